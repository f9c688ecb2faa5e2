"""Deprecation sunset arithmetic.

A deprecated version stays servable for SUNSET_DAYS after deprecated_at.
The date is advisory only: past-sunset versions are still served, callers
just get a sterner warning.
"""

import math
from datetime import datetime, timedelta

from intellayer.models.common import utc_now

SUNSET_DAYS = 90

_SECONDS_PER_DAY = 24 * 60 * 60


def calculate_sunset_date(deprecated_at: datetime, days: int = SUNSET_DAYS) -> datetime:
    return deprecated_at + timedelta(days=days)


def is_beyond_sunset(sunset_at: datetime, now: datetime | None = None) -> bool:
    return (now or utc_now()) > sunset_at


def days_until_sunset(sunset_at: datetime, now: datetime | None = None) -> int:
    """Whole days left before sunset, rounded up; 0 once it has passed."""
    remaining = (sunset_at - (now or utc_now())).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / _SECONDS_PER_DAY)
