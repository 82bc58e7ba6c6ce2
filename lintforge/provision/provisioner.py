"""
Install OS-level prerequisite packages before the toolchain is set up.

Each supported package manager maps to the commands that refresh its index
(if it has one) and install a list of packages non-interactively.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
from pathlib import Path
from typing import Iterable, Sequence

from lintforge.executor.runner import CommandRunner, Deadline
from lintforge.executor.types import RunResult

from .types import ProvisionError

logger = logging.getLogger(__name__)

STEP_NAME = "provision"

# pkg, pkg=1.2-3, pkg:amd64, lib++-dev, python3.12-venv
_PACKAGE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+_:=~@/-]*$")

_UNAVAILABLE_MARKERS = (
    b"Unable to locate package",
    b"has no installation candidate",
    b"No match for argument",
    b"target not found",
    b"No available formula",
)

PACKAGE_MANAGERS: dict[str, tuple[list[str] | None, list[str], bool]] = {
    # name: (refresh, install prefix, needs root)
    "apt": (["apt-get", "update", "-q"], ["apt-get", "install", "-y", "-q", "--no-install-recommends"], True),
    "dnf": (None, ["dnf", "install", "-y"], True),
    "yum": (None, ["yum", "install", "-y"], True),
    "apk": (["apk", "update"], ["apk", "add", "--no-cache"], True),
    "pacman": (["pacman", "-Sy", "--noconfirm"], ["pacman", "-S", "--noconfirm", "--needed"], True),
    "brew": (None, ["brew", "install"], False),
}


def install_commands(
    manager: str, packages: Sequence[str], *, sudo: bool = False
) -> list[str]:
    if manager not in PACKAGE_MANAGERS:
        known = ", ".join(sorted(PACKAGE_MANAGERS))
        raise ProvisionError(f"Unknown package manager '{manager}', expected one of: {known}")

    names = _validate(packages)
    refresh, install, needs_root = PACKAGE_MANAGERS[manager]
    prefix = ["sudo"] if (sudo and needs_root) else []

    commands: list[str] = []
    if refresh is not None:
        commands.append(shlex.join(prefix + refresh))
    commands.append(shlex.join(prefix + install + names))
    return commands


def _running_as_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def _validate(packages: Iterable[str]) -> list[str]:
    names = list(packages)
    bad = [name for name in names if not _PACKAGE_NAME.match(name)]
    if bad:
        raise ProvisionError(f"Invalid package name(s): {', '.join(bad)}")
    return names


class Provisioner:
    def __init__(
        self,
        runner: CommandRunner,
        manager: str = "apt",
        *,
        sudo: bool | None = None,
    ):
        self.runner = runner
        self.manager = manager
        if sudo is None:
            sudo = not _running_as_root() and shutil.which("sudo") is not None
        self.sudo = sudo

    def provision(
        self,
        packages: Sequence[str],
        *,
        workdir: Path | None = None,
        deadline: Deadline | None = None,
    ) -> RunResult | None:
        """
        Install `packages`, or do nothing and return None when there are none.

        Raises ProvisionError when a name is malformed, a package is not
        available, or any install command exits non-zero.
        """
        if not packages:
            logger.debug("no prerequisite packages, skipping provisioning")
            return None

        commands = install_commands(self.manager, packages, sudo=self.sudo)
        names = list(packages)
        logger.info("provisioning %d package(s) with %s: %s", len(names), self.manager, " ".join(names))

        stdout = b""
        stderr = b""
        duration = 0.0
        for command in commands:
            done = self.runner.run(
                command,
                cwd=workdir,
                env={"DEBIAN_FRONTEND": "noninteractive"},
                deadline=deadline,
            )
            stdout += done.stdout
            stderr += done.stderr
            duration += done.duration_s

            if done.returncode != 0:
                if any(marker in done.stderr or marker in done.stdout for marker in _UNAVAILABLE_MARKERS):
                    message = f"Package unavailable via {self.manager}: {' '.join(names)}"
                else:
                    message = f"'{command}' exited {done.returncode}"
                raise ProvisionError(message, output=stdout + stderr)

        return RunResult(STEP_NAME, 0, stdout, stderr, duration_s=duration)
