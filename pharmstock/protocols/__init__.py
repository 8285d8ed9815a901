"""
Pharmstock Protocols.

Defines interfaces for external system integration.
"""

from pharmstock.protocols.permissions import (
    ACTION_ADJUST,
    ACTION_APPROVE,
    ACTION_SELL,
    PermissionChecker,
)

__all__ = [
    "ACTION_ADJUST",
    "ACTION_APPROVE",
    "ACTION_SELL",
    "PermissionChecker",
]
