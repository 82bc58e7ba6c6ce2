from __future__ import annotations

from dataclasses import dataclass, field, replace

from lintforge.errors import LintforgeError


@dataclass
class StepConfig:
    name: str
    run: str
    when: str | None = None
    when_input: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    working_dir: str | None = None


@dataclass
class ToolchainConfig:
    channel: str = "stable"
    components: tuple[str, ...] = ()
    profile: str = "minimal"


@dataclass
class CacheConfig:
    enabled: bool = True
    directory: str = ".lintforge/cache"
    paths: tuple[str, ...] = ()
    key_files: tuple[str, ...] = ()
    keep: int = 3


@dataclass
class JobConfig:
    name: str
    steps: list[StepConfig]
    # None means the file did not set it
    packages: tuple[str, ...] | None = None
    package_manager: str = "apt"
    toolchain: ToolchainConfig | None = None
    timeout_s: float | None = None
    cache: CacheConfig | None = None

    def __iter__(self):
        yield from self.steps

    def __len__(self):
        return len(self.steps)

    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def get_step(self, name: str) -> StepConfig:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def with_overrides(
        self,
        *,
        packages: tuple[str, ...] | None = None,
        timeout_s: float | None = None,
        toolchain: bool = True,
        cache: bool = True,
    ) -> JobConfig:
        return replace(
            self,
            packages=self.packages if packages is None else packages,
            timeout_s=self.timeout_s if timeout_s is None else timeout_s,
            toolchain=self.toolchain if toolchain else None,
            cache=self.cache if cache else None,
        )


class ConfigError(LintforgeError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
