"""
Pharmstock Adapters.

Implementations of protocols for external systems.
"""

from pharmstock.adapters.noop import AllowAllPermissionChecker, DenyAllPermissionChecker
from pharmstock.adapters.permissions import (
    DjangoPermissionChecker,
    get_permission_checker,
    reset_permission_checker,
)

__all__ = [
    "AllowAllPermissionChecker",
    "DenyAllPermissionChecker",
    "DjangoPermissionChecker",
    "get_permission_checker",
    "reset_permission_checker",
]
