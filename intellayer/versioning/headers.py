"""X-Version request parsing and version response headers."""

import re
from collections.abc import Callable
from datetime import datetime

from intellayer.models.common import utc_now
from intellayer.models.version import ResolvedVersion
from intellayer.versioning.errors import InvalidVersionHeaderError
from intellayer.versioning.sunset import days_until_sunset

MAX_PINNED_VERSION = 999_999

_DIGITS = re.compile(r"[+-]?\d+")


def parse_version_header(
    value: str | None, max_version: int = MAX_PINNED_VERSION,
) -> int | None:
    """Parse an ``X-Version`` header value.

    Absent or blank means "no pin". Anything else must be an integer in
    ``1..max_version``.

    Raises:
        InvalidVersionHeaderError: Not an integer, below 1, or too large.
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None

    if not _DIGITS.fullmatch(trimmed) or int(trimmed) < 1:
        raise InvalidVersionHeaderError(
            "X-Version header must be a positive integer", value,
        )
    parsed = int(trimmed)
    if parsed > max_version:
        raise InvalidVersionHeaderError("X-Version header value is too large", value)
    return parsed


def build_deprecation_message(
    resolved: ResolvedVersion, now: datetime | None = None,
) -> str:
    number = resolved.version.version_number
    latest = resolved.latest_version_number
    if resolved.sunset_at is None:
        return f"Version {number} is deprecated. Latest is version {latest}."

    days = days_until_sunset(resolved.sunset_at, now)
    if days > 0:
        return (
            f"Version {number} is deprecated. Latest is version {latest}. "
            f"Sunset in {days} days."
        )
    return (
        f"Version {number} is deprecated and past its sunset date. "
        f"Please upgrade to version {latest}."
    )


def build_version_headers(
    resolved: ResolvedVersion,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, str]:
    """Headers describing the version that served the response."""
    headers = {
        "X-Version": str(resolved.version.version_number),
        "X-Version-Status": "deprecated" if resolved.is_deprecated else "active",
        "X-Environment": resolved.version.environment.value.lower(),
    }
    if resolved.is_deprecated:
        headers["X-Deprecated"] = "true"
        headers["X-Deprecated-Message"] = build_deprecation_message(resolved, clock())
        if resolved.sunset_at is not None:
            headers["X-Sunset-Date"] = resolved.sunset_at.isoformat()
    return headers
