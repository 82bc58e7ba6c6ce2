from .provisioner import PACKAGE_MANAGERS, Provisioner, install_commands
from .types import ProvisionError

__all__ = ["Provisioner", "ProvisionError", "PACKAGE_MANAGERS", "install_commands"]
