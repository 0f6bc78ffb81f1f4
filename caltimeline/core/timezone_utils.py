"""Timezone lookup and conversion utilities for caltimeline."""

from __future__ import annotations

import datetime
import logging
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Windows timezone names to IANA identifier mapping
# Common Windows timezones used in ICS files from Outlook/Exchange
WINDOWS_TZ_MAP: dict[str, str] = {
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Arizona Standard Time": "America/Phoenix",
    "GMT Standard Time": "Europe/London",
    "Romance Standard Time": "Europe/Paris",
    "Central European Standard Time": "Europe/Warsaw",
    "W. Europe Standard Time": "Europe/Berlin",
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "India Standard Time": "Asia/Kolkata",
    "AUS Eastern Standard Time": "Australia/Sydney",
}


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return WINDOWS_TZ_MAP.get(windows_tz)


@lru_cache(maxsize=64)
def load_zone(name: str) -> ZoneInfo:
    """Load an IANA zone, accepting Windows names as aliases.

    Raises:
        ZoneInfoNotFoundError: If the name resolves to no known zone
    """
    candidate = name.strip().strip('"')
    iana = windows_tz_to_iana(candidate) or candidate
    try:
        return ZoneInfo(iana)
    except (ValueError, OSError) as exc:
        # ZoneInfo raises ValueError for malformed keys such as "../x"
        raise ZoneInfoNotFoundError(f"No time zone found with key {name}") from exc


def resolve_zone(name: str | None, fallback: ZoneInfo) -> ZoneInfo:
    """Resolve a TZID parameter, falling back to ``fallback`` when unknown."""
    if not name:
        return fallback
    try:
        return load_zone(name)
    except ZoneInfoNotFoundError:
        logger.debug("Unknown TZID %r, interpreting wall clock in %s", name, fallback.key)
        return fallback


def month_bounds(year: int, month: int, tz: ZoneInfo) -> tuple[datetime.datetime, datetime.datetime]:
    """Return ``[first day 00:00, first day of next month 00:00)`` in ``tz``."""
    start = datetime.datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime.datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime.datetime(year, month + 1, 1, tzinfo=tz)
    return start, end


def day_bounds(first: datetime.date, last: datetime.date, tz: ZoneInfo) -> tuple[datetime.datetime, datetime.datetime]:
    """Return ``[first 00:00, last + 1 day 00:00)`` in ``tz`` (inclusive day range)."""
    start = datetime.datetime.combine(first, datetime.time(), tzinfo=tz)
    end = datetime.datetime.combine(last + datetime.timedelta(days=1), datetime.time(), tzinfo=tz)
    return start, end
