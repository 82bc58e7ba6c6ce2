from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

from .types import JobTimeoutError

logger = logging.getLogger(__name__)

_TERM_GRACE_S = 0.5

# shell convention for "command could not be started"
SPAWN_FAILED_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    command: str
    returncode: int
    stdout: bytes
    stderr: bytes
    duration_s: float


class Deadline:
    """Wall-clock budget shared by every command of one job."""

    def __init__(self, timeout_s: float | None):
        self.timeout_s = timeout_s
        self._expires_at = (
            None if timeout_s is None else time.monotonic() + timeout_s
        )

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0


class CommandRunner(Protocol):
    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        deadline: Deadline | None = None,
    ) -> CommandResult: ...


class ShellRunner:
    """Runs commands through the system shell and captures raw output."""

    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        deadline: Deadline | None = None,
    ) -> CommandResult:
        timeout = deadline.remaining() if deadline is not None else None
        if timeout is not None and timeout <= 0.0:
            raise JobTimeoutError(command, deadline.timeout_s)

        logger.debug("$ %s (cwd=%s)", command, cwd or ".")
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=str(cwd) if cwd is not None else None,
                env={**os.environ, **(env or {})},
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=os.name != "nt",
            )
        except OSError as exc:
            logger.debug("could not start %s: %s", command, exc)
            return CommandResult(
                command,
                SPAWN_FAILED_EXIT_CODE,
                b"",
                f"{exc}\n".encode("utf-8", errors="replace"),
                time.monotonic() - start,
            )

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            stdout, stderr = proc.communicate()
            raise JobTimeoutError(
                command, deadline.timeout_s, stdout=stdout, stderr=stderr
            ) from None
        except BaseException:
            # the child has its own session, so a terminal Ctrl-C never reaches it
            _kill_group(proc)
            proc.wait()
            raise
        duration = time.monotonic() - start

        return CommandResult(command, proc.returncode, stdout, stderr, duration)


def _kill_group(proc: subprocess.Popen) -> None:
    if os.name == "nt":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGTERM)
        try:
            proc.wait(timeout=_TERM_GRACE_S)
        except subprocess.TimeoutExpired:
            os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
