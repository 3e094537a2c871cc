"""Navigator OPVault.

Read-only access to OPVault containers with an auto-locking session.
"""
from .version import __version__
from .vault import VaultSession, VaultConfig, VaultError

__all__ = ["__version__", "VaultSession", "VaultConfig", "VaultError"]
