from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lintforge.executor.types import JobTimeoutError, RunResult, StepFailure


class Outcome(Enum):
    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class JobResult:
    job: str
    results: tuple[RunResult, ...]
    outcome: Outcome
    failure: StepFailure | None = None
    timeout: JobTimeoutError | None = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.PASSED

    @property
    def step_names(self) -> list[str]:
        return [r.step_name for r in self.results]

    @property
    def executed(self) -> list[RunResult]:
        return [r for r in self.results if not r.skipped]

    @property
    def skipped(self) -> list[RunResult]:
        return [r for r in self.results if r.skipped]

    @property
    def failed(self) -> list[RunResult]:
        return [r for r in self.results if not r.passed]

    def get(self, step_name: str) -> RunResult:
        for result in self.results:
            if result.step_name == step_name:
                return result
        raise KeyError(step_name)

    def raise_for_status(self) -> None:
        if self.timeout is not None:
            raise self.timeout
        if self.failure is not None:
            raise self.failure
