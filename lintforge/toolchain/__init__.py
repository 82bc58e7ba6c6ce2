from .installer import ToolchainInstaller, rustup_commands
from .types import ToolchainError

__all__ = ["ToolchainInstaller", "ToolchainError", "rustup_commands"]
