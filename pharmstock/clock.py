"""
Clock — the single source of "now" for expiry checks and timestamps.

The callable is configured by dotted path so tests and hosts with a
verified/offset clock can swap it:

    PHARMSTOCK = {"CLOCK": "myproject.timekeeping.verified_now"}
"""

from datetime import date, datetime

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone
from django.utils.module_loading import import_string

from pharmstock.conf import pharmstock_settings


def now() -> datetime:
    """Current time from the configured clock (always aware)."""
    path = pharmstock_settings.CLOCK
    try:
        clock = import_string(path)
    except ImportError as e:
        raise ImproperlyConfigured(f"Failed to import clock '{path}': {e}") from e

    value = clock()
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def today() -> date:
    """Local date according to the configured clock."""
    return timezone.localdate(now())
