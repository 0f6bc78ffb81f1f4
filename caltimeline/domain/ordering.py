"""Canonical ordering of occurrences.

Every sorted view (aggregated results, per-day buckets) goes through
``occurrence_sort_key`` so they all agree.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..models import Occurrence


def occurrence_sort_key(occurrence: Occurrence) -> tuple[bool, datetime, str]:
    """Sort key: all-day first, then start instant, then summary."""
    return (not occurrence.all_day, occurrence.start, occurrence.summary)


def sort_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    """Return occurrences in canonical order.

    Sorting is stable, so occurrences with equal keys keep their input order.
    """
    return sorted(occurrences, key=occurrence_sort_key)


def compare_occurrences(a: Occurrence, b: Occurrence) -> int:
    """Three-way comparison consistent with ``occurrence_sort_key``.

    Returns:
        -1 if ``a`` sorts first, 1 if ``b`` sorts first, 0 if they are equivalent
    """
    key_a = occurrence_sort_key(a)
    key_b = occurrence_sort_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0
