"""
Test clock. Expiry-dependent tests run on a fixed date.
"""

from datetime import datetime, timezone

CURRENT = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)


def frozen_now() -> datetime:
    return CURRENT
