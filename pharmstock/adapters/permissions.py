"""
Pharmstock Permission Adapter — permission oracle loaded from settings.

Usage:
    from pharmstock.adapters import get_permission_checker

    checker = get_permission_checker()
    checker.can_perform(request.user, "inventory.approve")

Settings:
    PHARMSTOCK = {
        "PERMISSION_CHECKER": "pharmstock.adapters.permissions.DjangoPermissionChecker",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from pharmstock.conf import pharmstock_settings
from pharmstock.protocols.permissions import (
    ACTION_ADJUST,
    ACTION_APPROVE,
    ACTION_SELL,
    PermissionChecker,
)

logger = logging.getLogger(__name__)


class DjangoPermissionChecker:
    """
    Maps action names onto Django model permissions.

    - Superusers may do anything
    - ``None`` or anonymous users may do nothing
    - Unknown actions are denied
    """

    ACTION_PERMISSIONS = {
        ACTION_ADJUST: "pharmstock.add_stockmovement",
        ACTION_APPROVE: "pharmstock.change_stockmovement",
        ACTION_SELL: "pharmstock.add_sale",
    }

    def can_perform(self, user, action: str) -> bool:
        if user is None or not getattr(user, "is_authenticated", False):
            return False
        if not getattr(user, "is_active", True):
            return False
        if getattr(user, "is_superuser", False):
            return True

        perm = self.ACTION_PERMISSIONS.get(action)
        if perm is None:
            return False
        return user.has_perm(perm)


# Cached checker instance
_lock = threading.Lock()
_checker: PermissionChecker | None = None
_checker_path: str | None = None


def get_permission_checker() -> PermissionChecker:
    """
    Return the configured permission checker.

    The instance is cached per dotted path, so changing
    PHARMSTOCK['PERMISSION_CHECKER'] (e.g. in tests) takes effect.

    Raises:
        ImproperlyConfigured: If the checker cannot be imported
    """
    global _checker, _checker_path

    path = pharmstock_settings.PERMISSION_CHECKER
    if _checker is None or _checker_path != path:
        with _lock:
            if _checker is None or _checker_path != path:  # double-checked
                try:
                    checker_class = import_string(path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import permission checker '{path}': {e}"
                    ) from e
                _checker = checker_class()
                _checker_path = path
                logger.debug("Loaded permission checker: %s", path)

    return _checker


def reset_permission_checker() -> None:
    """Reset the cached checker. Useful for testing."""
    global _checker, _checker_path
    _checker = None
    _checker_path = None
