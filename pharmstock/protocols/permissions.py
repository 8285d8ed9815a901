"""
Permission Protocol — Interface for "may this actor perform X" checks.

Pharmstock defines this protocol; the host application (or one of the
adapters in pharmstock.adapters) implements it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


# Action names understood by the stock services
ACTION_ADJUST = "inventory.adjust"
ACTION_APPROVE = "inventory.approve"
ACTION_SELL = "sale.create"


@runtime_checkable
class PermissionChecker(Protocol):
    """
    Protocol for permission checks.

    Implementations decide, for a given actor and action name, whether the
    actor may perform the action. An actor may be ``None`` (no resolvable
    identity); implementations should treat that as "not allowed".
    """

    def can_perform(self, user: Any, action: str) -> bool:
        """
        Check whether ``user`` may perform ``action``.

        Args:
            user: Acting user (may be None)
            action: Action name, e.g. "inventory.approve"

        Returns:
            True if allowed
        """
        ...
