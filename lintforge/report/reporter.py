from __future__ import annotations

import json
from typing import Iterable

from lintforge.executor.executor import TIMEOUT_EXIT_CODE
from lintforge.executor.types import JobTimeoutError, RunResult, StepFailure

from .types import JobResult, Outcome

OUTPUT_TAIL_LINES = 40

EXIT_OK = 0
EXIT_STEP_FAILED = 1
EXIT_TIMED_OUT = TIMEOUT_EXIT_CODE


def build_job_result(
    job: str,
    results: Iterable[RunResult],
    *,
    failure: StepFailure | None = None,
    timeout: JobTimeoutError | None = None,
) -> JobResult:
    results = tuple(results)

    if timeout is not None:
        outcome = Outcome.TIMED_OUT
    elif all(r.passed for r in results):
        outcome = Outcome.PASSED
    else:
        outcome = Outcome.FAILED

    if outcome is Outcome.FAILED and failure is None:
        first = next(r for r in results if not r.passed)
        failure = StepFailure(first, "")

    return JobResult(job, results, outcome, failure, timeout)


def exit_code_for(job_result: JobResult) -> int:
    match job_result.outcome:
        case Outcome.PASSED:
            return EXIT_OK
        case Outcome.TIMED_OUT:
            return EXIT_TIMED_OUT
        case _:
            return EXIT_STEP_FAILED


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _tail(data: bytes, lines: int = OUTPUT_TAIL_LINES) -> list[str]:
    return _decode(data).rstrip("\n").splitlines()[-lines:] if data else []


def render_text(job_result: JobResult) -> list[str]:
    out: list[str] = []
    for result in job_result.results:
        name = result.step_name
        if result.skipped:
            out.append(f"SKIP {name} ({result.skip_reason})")
            continue

        status = "OK" if result.exit_code == 0 else "FAIL"
        out.append(
            f"{status} {name}, {result.duration_s:.3f}s, exit code = {result.exit_code}"
        )
        if result.exit_code != 0:
            for line in _tail(result.stdout) + _tail(result.stderr):
                out.append(f"    {line}")

    if job_result.timeout is not None:
        out.append(f"TIMEOUT {job_result.timeout}")

    summary = f"{job_result.job}: {job_result.outcome.value}"
    counts = (
        f"{len(job_result.executed)} run, "
        f"{len(job_result.failed)} failed, "
        f"{len(job_result.skipped)} skipped"
    )
    out.append(f"{summary} ({counts})")
    return out


def to_dict(job_result: JobResult) -> dict:
    error = None
    if job_result.timeout is not None:
        error = str(job_result.timeout)
    elif job_result.failure is not None:
        error = str(job_result.failure)

    return {
        "job": job_result.job,
        "outcome": job_result.outcome.value,
        "success": job_result.success,
        "steps": [
            {
                "name": r.step_name,
                "exit_code": r.exit_code,
                "skipped": r.skipped,
                "skip_reason": r.skip_reason,
                "duration_s": round(r.duration_s, 3),
                "stdout": _decode(r.stdout),
                "stderr": _decode(r.stderr),
            }
            for r in job_result.results
        ],
        "error": error,
    }


def render_json(job_result: JobResult) -> str:
    return json.dumps(to_dict(job_result), indent=2)
