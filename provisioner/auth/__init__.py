"""
Database handle shared with the external authentication service.
"""

from provisioner.auth.instance import (
    AuthContext,
    AuthInstance,
    InitResult,
    get_auth_instance,
    reset_auth_instance,
)

__all__ = [
    "AuthContext",
    "AuthInstance",
    "InitResult",
    "get_auth_instance",
    "reset_auth_instance",
]
