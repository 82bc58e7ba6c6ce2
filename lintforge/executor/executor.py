from __future__ import annotations

import logging
from typing import Sequence

from .types import (
    SKIP_ABORTED,
    SKIP_CONDITION,
    Execution,
    JobContext,
    JobTimeoutError,
    RunResult,
    Step,
    StepFailure,
)

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124


class StepExecutor:
    def __init__(self, context: JobContext):
        self.context = context

    def run(self, steps: Sequence[Step]) -> Execution:
        """
        Run `steps` in order and stop at the first non-zero exit code.

        Steps that never ran because of a failure or a timeout are reported
        as skipped with reason "aborted".
        """
        _check_unique(steps)
        execution = Execution()

        for index, step in enumerate(steps):
            try:
                if step.run_condition is not None and not step.run_condition(self.context):
                    logger.info("skip %s (condition is false)", step.name)
                    execution.results.append(RunResult.skip(step.name, SKIP_CONDITION))
                    continue

                logger.info("run %s", step.name)
                result = self._run_step(step)
            except JobTimeoutError as exc:
                logger.error("%s", exc)
                execution.timeout = exc
                execution.results.append(
                    RunResult(step.name, TIMEOUT_EXIT_CODE, exc.stdout, exc.stderr)
                )
                _abort_rest(execution, steps[index + 1 :])
                break

            execution.results.append(result)

            if result.exit_code != 0:
                execution.failure = StepFailure(result, step.command)
                logger.error("%s", execution.failure)
                _abort_rest(execution, steps[index + 1 :])
                break

        return execution

    def _run_step(self, step: Step) -> RunResult:
        cwd = self.context.workdir
        if step.working_dir:
            cwd = (cwd / step.working_dir).resolve()

        done = self.context.runner.run(
            step.command,
            cwd=cwd,
            env={**self.context.env, **step.env},
            deadline=self.context.deadline,
        )
        return RunResult(
            step.name,
            done.returncode,
            done.stdout,
            done.stderr,
            duration_s=done.duration_s,
        )


def _abort_rest(execution: Execution, rest: Sequence[Step]) -> None:
    execution.results.extend(RunResult.skip(step.name, SKIP_ABORTED) for step in rest)


def _check_unique(steps: Sequence[Step]) -> None:
    seen: set[str] = set()
    for step in steps:
        if step.name in seen:
            raise ValueError(f"Duplicate step name: {step.name}")
        seen.add(step.name)
