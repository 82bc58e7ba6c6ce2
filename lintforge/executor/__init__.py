from .conditions import CommandCondition, InputCondition, condition_for, describe_condition
from .executor import TIMEOUT_EXIT_CODE, StepExecutor
from .runner import CommandResult, CommandRunner, Deadline, ShellRunner
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

__all__ = [
    "StepExecutor",
    "Execution",
    "TIMEOUT_EXIT_CODE",
    "Step",
    "RunResult",
    "JobContext",
    "StepFailure",
    "JobTimeoutError",
    "SKIP_ABORTED",
    "SKIP_CONDITION",
    "CommandCondition",
    "InputCondition",
    "condition_for",
    "describe_condition",
    "CommandResult",
    "CommandRunner",
    "Deadline",
    "ShellRunner",
]
