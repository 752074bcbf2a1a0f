"""
Settings and the persisted setup configuration.
"""

from provisioner.config.settings import Settings, get_settings, reload_settings, validate_environment
from provisioner.config.store import ConfigStore, LocationCheck, PermissionReport

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "validate_environment",
    "ConfigStore",
    "LocationCheck",
    "PermissionReport",
]
