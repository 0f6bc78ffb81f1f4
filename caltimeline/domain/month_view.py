"""Month summary derived from an occurrence list."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date, time, timedelta
from zoneinfo import ZoneInfo

from ..core.timezone_utils import month_bounds
from ..models import Occurrence
from .ordering import sort_occurrences

logger = logging.getLogger(__name__)


def covered_dates(occurrence: Occurrence, tz: ZoneInfo) -> Iterator[date]:
    """Yield every calendar date in ``tz`` that an occurrence covers.

    All-day occurrences cover ``[start, end)``. Timed occurrences cover every
    date they touch, except that an end exactly at midnight does not count
    that date. Zero-length occurrences cover their start date.
    """
    start = occurrence.start.astimezone(tz)
    end = occurrence.end.astimezone(tz)

    first = start.date()
    if end <= start:
        yield first
        return

    if occurrence.all_day:
        last = end.date() - timedelta(days=1)
    else:
        last = end.date()
        if end.time() == time():
            last -= timedelta(days=1)

    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)
    if last < first:
        yield first


def bucket_by_day(
    occurrences: Iterable[Occurrence], year: int, month: int, tz: ZoneInfo
) -> dict[int, list[Occurrence]]:
    """Group occurrences by day of month.

    Multi-day occurrences appear under every day they cover within the month.
    Each bucket is in canonical order.

    Args:
        occurrences: Occurrences to group
        year: Calendar year
        month: Month number (1-12)
        tz: Display timezone the days are counted in

    Returns:
        Mapping of day-of-month to occurrences, only for days with at least one
    """
    month_start, month_end = month_bounds(year, month, tz)
    first_day = month_start.date()
    last_day = month_end.date() - timedelta(days=1)

    buckets: dict[int, list[Occurrence]] = {}
    for occurrence in sort_occurrences(occurrences):
        for day in covered_dates(occurrence, tz):
            if first_day <= day <= last_day:
                buckets.setdefault(day.day, []).append(occurrence)

    logger.debug("Bucketed %04d-%02d into %d days", year, month, len(buckets))
    return buckets


def day_bucket_keys(
    occurrences: Iterable[Occurrence], year: int, month: int, tz: ZoneInfo
) -> set[int]:
    """Days of the month that have at least one occurrence."""
    return set(bucket_by_day(occurrences, year, month, tz))
