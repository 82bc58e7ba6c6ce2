from .errors import LintforgeError

__version__ = "0.1.0"

__all__ = ["LintforgeError", "__version__"]
