from __future__ import annotations

from lintforge.errors import LintforgeError


class ToolchainError(LintforgeError):
    def __init__(self, *args: object, output: bytes = b"") -> None:
        super().__init__(*args)
        self.output = output
