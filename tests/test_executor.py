# tests/test_executor.py
from __future__ import annotations

import os
import signal
import sys
import time
from pathlib import Path

import pytest

from lintforge.executor.conditions import CommandCondition, InputCondition
from lintforge.executor.executor import TIMEOUT_EXIT_CODE, StepExecutor
from lintforge.executor.runner import SPAWN_FAILED_EXIT_CODE, Deadline, ShellRunner
from lintforge.executor.types import (
    SKIP_ABORTED,
    SKIP_CONDITION,
    JobContext,
    JobTimeoutError,
    Step,
)


def _py(cmd: str) -> str:
    """
    Build a shell command that runs `python -c "<cmd>"` using the current interpreter.
    The runner uses shell=True, so return a single command string.
    """
    exe = str(Path(sys.executable))
    return f'"{exe}" -c "{cmd}"'


def _log_step(name: str, log: Path, exit_code: int = 0) -> Step:
    return Step(
        name,
        _py(f"open(r'{log}','a').write('{name}\\n'); raise SystemExit({exit_code})"),
    )


def _context(tmp_path: Path, **kwargs) -> JobContext:
    return JobContext(workdir=tmp_path, runner=ShellRunner(), **kwargs)


def test_runs_in_declared_order(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [_log_step("c", log), _log_step("a", log), _log_step("b", log)]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert execution.failure is None
    assert [r.step_name for r in execution.results] == ["c", "a", "b"]
    assert log.read_text(encoding="utf-8").splitlines() == ["c", "a", "b"]


def test_fmt_passes_clippy_fails_doctest_is_skipped(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [
        _log_step("fmt", log, 0),
        _log_step("clippy", log, 1),
        _log_step("doctest", log, 0),
    ]

    execution = StepExecutor(_context(tmp_path)).run(steps)
    fmt, clippy, doctest = execution.results

    assert fmt.exit_code == 0 and not fmt.skipped
    assert clippy.exit_code == 1 and not clippy.skipped
    assert doctest.skipped and doctest.skip_reason == SKIP_ABORTED
    assert execution.failure is not None
    assert execution.failure.result is clippy
    # doctest never ran
    assert log.read_text(encoding="utf-8").splitlines() == ["fmt", "clippy"]


def test_all_steps_pass(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [_log_step(n, log) for n in ("fmt", "clippy", "doctest")]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert execution.failure is None
    assert execution.timeout is None
    assert [r.exit_code for r in execution.results] == [0, 0, 0]
    assert not any(r.skipped for r in execution.results)


@pytest.mark.parametrize("failing", [0, 1, 2, 3])
def test_no_step_after_a_failure_runs(tmp_path: Path, failing: int) -> None:
    log = tmp_path / "log.txt"
    names = ["s0", "s1", "s2", "s3"]
    steps = [_log_step(n, log, 3 if i == failing else 0) for i, n in enumerate(names)]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert log.read_text(encoding="utf-8").splitlines() == names[: failing + 1]
    assert [r.skipped for r in execution.results] == [i > failing for i in range(4)]


def test_output_is_captured_as_bytes(tmp_path: Path) -> None:
    step = Step(
        "noisy",
        _py("import sys; print('to-out'); print('to-err', file=sys.stderr)"),
    )

    (result,) = StepExecutor(_context(tmp_path)).run([step]).results

    assert isinstance(result.stdout, bytes)
    assert b"to-out" in result.stdout
    assert b"to-err" in result.stderr
    assert result.duration_s >= 0.0


def test_env_is_applied(tmp_path: Path) -> None:
    step = Step(
        "envstep",
        _py("import os; raise SystemExit(0 if os.environ.get('LF_TEST')=='ok' else 2)"),
        env={"LF_TEST": "ok"},
    )

    execution = StepExecutor(_context(tmp_path)).run([step])

    assert execution.failure is None
    assert execution.results[0].exit_code == 0


def test_working_dir_is_relative_to_workdir(tmp_path: Path) -> None:
    wd = tmp_path / "crate"
    wd.mkdir()
    step = Step(
        "w",
        _py("from pathlib import Path; Path('written.txt').write_text('ok', encoding='utf-8')"),
        working_dir="crate",
    )

    execution = StepExecutor(_context(tmp_path)).run([step])

    assert execution.failure is None
    assert (wd / "written.txt").read_text(encoding="utf-8") == "ok"


def test_false_condition_skips_and_continues(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [
        _log_step("a", log),
        Step("b", _py("raise SystemExit(9)"), run_condition=lambda ctx: False),
        _log_step("c", log),
    ]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert execution.failure is None
    assert execution.results[1].skipped
    assert execution.results[1].skip_reason == SKIP_CONDITION
    assert execution.results[1].passed
    assert log.read_text(encoding="utf-8").splitlines() == ["a", "c"]


def test_condition_is_evaluated_once_when_step_starts(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    seen: list[bool] = []

    def first_step_ran(ctx: JobContext) -> bool:
        ran = log.exists()
        seen.append(ran)
        return ran

    steps = [
        _log_step("a", log),
        Step("b", _py("raise SystemExit(0)"), run_condition=first_step_ran),
    ]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert seen == [True]
    assert not execution.results[1].skipped


def test_input_condition(tmp_path: Path) -> None:
    steps = [
        Step("with", _py("raise SystemExit(0)"), run_condition=InputCondition("packages")),
        Step("blank", _py("raise SystemExit(0)"), run_condition=InputCondition("other")),
        Step("missing", _py("raise SystemExit(0)"), run_condition=InputCondition("nope")),
    ]
    context = _context(tmp_path, inputs={"packages": "clang", "other": "   "})

    results = StepExecutor(context).run(steps).results

    assert [r.skipped for r in results] == [False, True, True]


def test_command_condition_runs_in_workdir(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text("", encoding="utf-8")
    check_ok = _py("import os; raise SystemExit(0 if os.path.exists('Cargo.toml') else 1)")
    check_bad = _py("raise SystemExit(1)")
    steps = [
        Step("present", _py("raise SystemExit(0)"), run_condition=CommandCondition(check_ok)),
        Step("absent", _py("raise SystemExit(0)"), run_condition=CommandCondition(check_bad)),
    ]

    results = StepExecutor(_context(tmp_path)).run(steps).results

    assert [r.skipped for r in results] == [False, True]


def test_timeout_aborts_the_job(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [
        _log_step("fast", log),
        Step("slow", _py("import time; time.sleep(10)")),
        _log_step("after", log),
    ]
    context = _context(tmp_path, deadline=Deadline(1.0))

    execution = StepExecutor(context).run(steps)

    assert isinstance(execution.timeout, JobTimeoutError)
    assert isinstance(execution.timeout, TimeoutError)
    assert execution.failure is None
    assert [r.step_name for r in execution.results] == ["fast", "slow", "after"]
    assert execution.results[1].exit_code == TIMEOUT_EXIT_CODE
    assert execution.results[2].skip_reason == SKIP_ABORTED
    assert log.read_text(encoding="utf-8").splitlines() == ["fast"]


def test_duplicate_step_names_are_rejected(tmp_path: Path) -> None:
    steps = [Step("a", "true"), Step("a", "true")]
    with pytest.raises(ValueError):
        StepExecutor(_context(tmp_path)).run(steps)


def test_missing_working_dir_fails_the_step_and_aborts_the_rest(tmp_path: Path) -> None:
    log = tmp_path / "log.txt"
    steps = [
        _log_step("fmt", log),
        Step("clippy", "true", working_dir="not-there"),
        _log_step("doctest", log),
    ]

    execution = StepExecutor(_context(tmp_path)).run(steps)

    assert [r.step_name for r in execution.results] == ["fmt", "clippy", "doctest"]
    clippy = execution.results[1]
    assert clippy.exit_code == SPAWN_FAILED_EXIT_CODE
    assert b"not-there" in clippy.stderr
    assert execution.failure is not None
    assert execution.failure.result is clippy
    assert execution.results[2].skip_reason == SKIP_ABORTED
    assert log.read_text(encoding="utf-8").splitlines() == ["fmt"]


@pytest.mark.skipif(os.name == "nt", reason="needs SIGALRM and process groups")
def test_interrupt_kills_the_running_command(tmp_path: Path) -> None:
    pid_file = tmp_path / "pid"

    def interrupt(signum, frame):
        raise KeyboardInterrupt

    previous = signal.signal(signal.SIGALRM, interrupt)
    signal.setitimer(signal.ITIMER_REAL, 1.0)
    try:
        with pytest.raises(KeyboardInterrupt):
            ShellRunner().run(f"echo $$ > '{pid_file}'; exec sleep 30", cwd=tmp_path)
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous)

    pid = int(pid_file.read_text(encoding="utf-8"))
    # the runner reaped the child, so the pid no longer exists
    for _ in range(20):
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            break
        time.sleep(0.1)
    else:
        pytest.fail(f"command {pid} still running after interrupt")
