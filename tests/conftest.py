from __future__ import annotations

from pathlib import Path
from typing import Mapping

import pytest

from lintforge.executor.runner import CommandResult, Deadline


class FakeRunner:
    """
    Records commands instead of running them.

    `exit_codes` maps a substring of a command to the exit code to return;
    the first matching entry wins and everything else exits 0.
    """

    def __init__(self, exit_codes: dict[str, int] | None = None, stderr: bytes = b""):
        self.exit_codes = exit_codes or {}
        self.stderr = stderr
        self.commands: list[str] = []

    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        deadline: Deadline | None = None,
    ) -> CommandResult:
        self.commands.append(command)
        for needle, code in self.exit_codes.items():
            if needle in command:
                stderr = self.stderr if code != 0 else b""
                return CommandResult(command, code, b"", stderr, 0.0)
        return CommandResult(command, 0, f"ran {command}\n".encode(), b"", 0.0)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_runner():
    return FakeRunner
