from __future__ import annotations

import logging
from dataclasses import dataclass

from lintforge.config.types import StepConfig

from .types import JobContext, RunCondition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandCondition:
    """True when the check command exits 0 in the job's working directory."""

    check: str

    def __call__(self, context: JobContext) -> bool:
        result = context.runner.run(
            self.check,
            cwd=context.workdir,
            env=context.env,
            deadline=context.deadline,
        )
        logger.debug("condition %r exited %d", self.check, result.returncode)
        return result.returncode == 0

    def describe(self) -> str:
        return f"when `{self.check}` succeeds"


@dataclass(frozen=True)
class InputCondition:
    """True when the named job input is set to a non-blank value."""

    name: str

    def __call__(self, context: JobContext) -> bool:
        return context.inputs.get(self.name, "").strip() != ""

    def describe(self) -> str:
        return f"when input '{self.name}' is not empty"


@dataclass(frozen=True)
class AllOf:
    conditions: tuple[RunCondition, ...]

    def __call__(self, context: JobContext) -> bool:
        return all(cond(context) for cond in self.conditions)

    def describe(self) -> str:
        return " and ".join(describe_condition(c) for c in self.conditions)


def condition_for(step: StepConfig) -> RunCondition | None:
    conditions: list[RunCondition] = []
    if step.when_input is not None:
        conditions.append(InputCondition(step.when_input))
    if step.when is not None:
        conditions.append(CommandCondition(step.when))

    match len(conditions):
        case 0:
            return None
        case 1:
            return conditions[0]
        case _:
            return AllOf(tuple(conditions))


def describe_condition(condition: RunCondition | None) -> str:
    if condition is None:
        return "always"
    describe = getattr(condition, "describe", None)
    if callable(describe):
        return describe()
    return getattr(condition, "__name__", repr(condition))
