"""
Pharmstock configuration.

Usage in settings.py:
    PHARMSTOCK = {
        "PERMISSION_CHECKER": "pharmstock.adapters.permissions.DjangoPermissionChecker",
        "CLOCK": "django.utils.timezone.now",
        "DEPLETED_RETENTION_DAYS": 30,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class PharmstockSettings:
    """Pharmstock configuration settings."""

    # Permission oracle backend (dotted path)
    PERMISSION_CHECKER: str = "pharmstock.adapters.permissions.DjangoPermissionChecker"

    # Zero-arg callable returning an aware datetime (dotted path)
    CLOCK: str = "django.utils.timezone.now"

    # Action name an actor needs for movements to be auto-approved
    APPROVE_ACTION: str = "inventory.approve"

    # Days a depleted batch is kept as a return target before pruning
    DEPLETED_RETENTION_DAYS: int = 30

    # First sale number handed out
    SALE_NUMBER_START: int = 100001

    # Decimal places sale totals and cash entries are rounded to
    DEFAULT_CURRENCY_PLACES: int = 2


def get_pharmstock_settings() -> PharmstockSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "PHARMSTOCK", {})
    return PharmstockSettings(**{
        k: v for k, v in user_settings.items()
        if k in PharmstockSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_pharmstock_settings(), name)


pharmstock_settings = _LazySettings()
