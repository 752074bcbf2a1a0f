"""
Setup wizard service layer.
"""

from provisioner.setup.steps import (
    SetupSteps,
    get_setup_status,
    require_setup_complete,
    require_setup_incomplete,
)

__all__ = [
    "SetupSteps",
    "get_setup_status",
    "require_setup_complete",
    "require_setup_incomplete",
]
