from __future__ import annotations

import logging
import shlex
import shutil
from pathlib import Path
from typing import Callable

from lintforge.config.types import ToolchainConfig
from lintforge.executor.runner import CommandRunner, Deadline
from lintforge.executor.types import RunResult

from .types import ToolchainError

logger = logging.getLogger(__name__)

STEP_NAME = "toolchain"


def rustup_commands(toolchain: ToolchainConfig) -> list[str]:
    install = [
        "rustup",
        "toolchain",
        "install",
        toolchain.channel,
        "--profile",
        toolchain.profile,
        "--no-self-update",
    ]
    if toolchain.components:
        install += ["--component", ",".join(toolchain.components)]

    return [
        shlex.join(install),
        shlex.join(["rustup", "default", toolchain.channel]),
    ]


class ToolchainInstaller:
    def __init__(
        self,
        runner: CommandRunner,
        *,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.runner = runner
        self.which = which

    def install(
        self,
        toolchain: ToolchainConfig,
        *,
        workdir: Path | None = None,
        deadline: Deadline | None = None,
    ) -> RunResult:
        if self.which("rustup") is None:
            raise ToolchainError("rustup not found on PATH; install it from https://rustup.rs")

        components = ", ".join(toolchain.components) or "no extra components"
        logger.info("installing toolchain %s (%s)", toolchain.channel, components)

        stdout = b""
        stderr = b""
        duration = 0.0
        for command in rustup_commands(toolchain):
            done = self.runner.run(command, cwd=workdir, deadline=deadline)
            stdout += done.stdout
            stderr += done.stderr
            duration += done.duration_s

            if done.returncode != 0:
                raise ToolchainError(
                    f"'{command}' exited {done.returncode}", output=stdout + stderr
                )

        return RunResult(STEP_NAME, 0, stdout, stderr, duration_s=duration)
