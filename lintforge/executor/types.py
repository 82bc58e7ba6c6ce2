from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Mapping

from lintforge.errors import LintforgeError

if TYPE_CHECKING:
    from .runner import CommandRunner, Deadline

SKIP_CONDITION = "condition"
SKIP_ABORTED = "aborted"


@dataclass(frozen=True)
class JobContext:
    """What a run condition may look at while the job is running."""

    workdir: Path
    runner: CommandRunner
    inputs: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    deadline: Deadline | None = None


RunCondition = Callable[[JobContext], bool]


@dataclass(frozen=True)
class Step:
    name: str
    command: str
    run_condition: RunCondition | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None


@dataclass(frozen=True)
class RunResult:
    step_name: str
    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    skipped: bool = False
    skip_reason: str | None = None
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return self.skipped or self.exit_code == 0

    @classmethod
    def skip(cls, step_name: str, reason: str) -> RunResult:
        return cls(step_name, 0, skipped=True, skip_reason=reason)


class StepFailure(LintforgeError):
    def __init__(self, result: RunResult, command: str):
        super().__init__(
            f"step '{result.step_name}' failed (exit={result.exit_code}): {command}"
        )
        self.result = result
        self.command = command


class JobTimeoutError(LintforgeError, TimeoutError):
    def __init__(
        self,
        command: str,
        timeout_s: float | None,
        *,
        stdout: bytes = b"",
        stderr: bytes = b"",
    ):
        super().__init__(f"job timed out after {timeout_s}s while running: {command}")
        self.command = command
        self.timeout_s = timeout_s
        self.stdout = stdout
        self.stderr = stderr


@dataclass
class Execution:
    results: list[RunResult] = field(default_factory=list)
    failure: StepFailure | None = None
    timeout: JobTimeoutError | None = None
