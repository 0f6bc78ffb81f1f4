"""Unit tests for caltimeline.domain.month_view."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from caltimeline.domain.month_view import bucket_by_day, covered_dates, day_bucket_keys
from caltimeline.models import Occurrence

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def _occ(start: datetime, end: datetime, all_day: bool = False, summary: str = "Event") -> Occurrence:
    return Occurrence(
        uid=summary,
        summary=summary,
        start=start,
        end=end,
        all_day=all_day,
        calendar_name="Work",
        calendar_color="#D9534F",
    )


def test_covered_dates_when_timed_multi_day_then_every_touched_date(display_tz: ZoneInfo) -> None:
    """A timed event spanning nights covers each date it touches."""
    occ = _occ(
        datetime(2026, 1, 30, 22, tzinfo=display_tz),
        datetime(2026, 2, 1, 1, tzinfo=display_tz),
    )
    assert list(covered_dates(occ, display_tz)) == [date(2026, 1, 30), date(2026, 1, 31), date(2026, 2, 1)]


def test_covered_dates_when_end_at_midnight_then_end_date_excluded(display_tz: ZoneInfo) -> None:
    """Ending exactly at midnight does not mark the following day."""
    occ = _occ(
        datetime(2026, 1, 5, 22, tzinfo=display_tz),
        datetime(2026, 1, 6, tzinfo=display_tz),
    )
    assert list(covered_dates(occ, display_tz)) == [date(2026, 1, 5)]


def test_covered_dates_when_all_day_then_half_open_dates(display_tz: ZoneInfo) -> None:
    """All-day events cover their start date up to but excluding the end date."""
    occ = _occ(
        datetime(2026, 1, 5, tzinfo=display_tz),
        datetime(2026, 1, 8, tzinfo=display_tz),
        all_day=True,
    )
    assert list(covered_dates(occ, display_tz)) == [date(2026, 1, 5), date(2026, 1, 6), date(2026, 1, 7)]


def test_covered_dates_when_zero_length_then_start_date(display_tz: ZoneInfo) -> None:
    """Zero-length events cover their start date, even at midnight."""
    midnight = datetime(2026, 1, 9, tzinfo=display_tz)
    assert list(covered_dates(_occ(midnight, midnight), display_tz)) == [date(2026, 1, 9)]


def test_covered_dates_when_other_zone_then_counted_in_display_zone(display_tz: ZoneInfo) -> None:
    """Dates are counted in the display zone, not the occurrence's own offset."""
    utc = ZoneInfo("UTC")
    occ = _occ(datetime(2026, 1, 6, 2, tzinfo=utc), datetime(2026, 1, 6, 3, tzinfo=utc))
    assert list(covered_dates(occ, display_tz)) == [date(2026, 1, 5)]


def test_bucket_by_day_when_spanning_months_then_only_this_month(display_tz: ZoneInfo) -> None:
    """Days outside the requested month are dropped."""
    spanning = _occ(
        datetime(2026, 1, 30, tzinfo=display_tz),
        datetime(2026, 2, 3, tzinfo=display_tz),
        all_day=True,
        summary="Trip",
    )
    buckets = bucket_by_day([spanning], 2026, 1, display_tz)
    assert sorted(buckets) == [30, 31]
    assert sorted(bucket_by_day([spanning], 2026, 2, display_tz)) == [1, 2]


def test_bucket_by_day_when_same_day_then_bucket_in_canonical_order(display_tz: ZoneInfo) -> None:
    """Each bucket lists its occurrences all-day first, then by start."""
    day = datetime(2026, 1, 5, tzinfo=display_tz)
    late = _occ(day + timedelta(hours=15), day + timedelta(hours=16), summary="Late")
    early = _occ(day + timedelta(hours=8), day + timedelta(hours=9), summary="Early")
    holiday = _occ(day, day + timedelta(days=1), all_day=True, summary="Holiday")

    buckets = bucket_by_day([late, early, holiday], 2026, 1, display_tz)
    assert [o.summary for o in buckets[5]] == ["Holiday", "Early", "Late"]


def test_day_bucket_keys_when_no_occurrences_then_empty(display_tz: ZoneInfo) -> None:
    """An empty list yields no days."""
    assert day_bucket_keys([], 2026, 1, display_tz) == set()


def test_day_bucket_keys_when_mixed_then_distinct_days(display_tz: ZoneInfo) -> None:
    """Keys are the distinct days that have at least one occurrence."""
    items = [
        _occ(datetime(2026, 3, 7, 23, tzinfo=display_tz), datetime(2026, 3, 8, 3, tzinfo=display_tz)),
        _occ(datetime(2026, 3, 8, 9, tzinfo=display_tz), datetime(2026, 3, 8, 10, tzinfo=display_tz)),
        _occ(datetime(2026, 3, 31, tzinfo=display_tz), datetime(2026, 4, 1, tzinfo=display_tz), all_day=True),
    ]
    assert day_bucket_keys(items, 2026, 3, display_tz) == {7, 8, 31}
