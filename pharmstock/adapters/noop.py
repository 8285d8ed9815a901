"""
Noop permission checkers — Stub adapters for development and testing.

Usage in settings.py:
    PHARMSTOCK = {
        "PERMISSION_CHECKER": "pharmstock.adapters.noop.AllowAllPermissionChecker",
    }

WARNING: Do NOT use AllowAllPermissionChecker in production. Every
movement logged under it is approved (and applied) immediately.
"""

from __future__ import annotations


class AllowAllPermissionChecker:
    """Every actor may perform every action, except an actor with no identity."""

    def can_perform(self, user, action: str) -> bool:
        return user is not None


class DenyAllPermissionChecker:
    """
    Nobody may perform anything.

    Handy to force every adjustment through the pending → approve path.
    """

    def can_perform(self, user, action: str) -> bool:
        return False
