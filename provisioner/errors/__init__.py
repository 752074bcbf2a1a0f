"""
Error types for the provisioning core.
"""

from .exceptions import (
    ProvisionerError,
    ConfigStoreError,
    ConfigCorruptError,
    ConfigWriteError,
    InvalidDatabaseConfigError,
    AdapterError,
    SetupIncompleteError,
    SetupAlreadyCompleteError,
)

__all__ = [
    "ProvisionerError",
    "ConfigStoreError",
    "ConfigCorruptError",
    "ConfigWriteError",
    "InvalidDatabaseConfigError",
    "AdapterError",
    "SetupIncompleteError",
    "SetupAlreadyCompleteError",
]
