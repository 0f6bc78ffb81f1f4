"""DateTime parsing utilities for iCalendar properties.

Every value is resolved into an aware datetime in the display timezone, which
callers pass in explicitly. Nothing here reads process-wide timezone state.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, time, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo

from ..core.timezone_utils import resolve_zone
from ..exceptions import PropertyParseError
from ..models import RawProperty

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y%m%d"
DATETIME_FORMAT = "%Y%m%dT%H%M%S"

_BARE_DATE_RE = re.compile(r"^\d{8}$")
_DATETIME_RE = re.compile(r"^\d{8}T\d{6}Z?$")

# [+|-]P<n>W  or  [+|-]P[<n>D][T[<n>H][<n>M][<n>S]]
_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P"
    r"(?:(?P<weeks>\d+)W"
    r"|(?:(?P<days>\d+)D)?(?:T(?=\d)(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?)$"
)


class ResolvedDateTime(NamedTuple):
    """An interpreted DATE or DATE-TIME value."""

    instant: datetime
    all_day: bool


def parse_date(value: str) -> date:
    """Parse a ``YYYYMMDD`` value.

    Raises:
        PropertyParseError: If the value is not a valid calendar date
    """
    text = value.strip()
    if not _BARE_DATE_RE.match(text):
        raise PropertyParseError(f"invalid DATE value: {value!r}")
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as exc:
        raise PropertyParseError(f"invalid DATE value: {value!r}") from exc


def parse_wall_clock(value: str) -> datetime:
    """Parse a ``YYYYMMDDTHHMMSS[Z]`` value into a naive datetime.

    Raises:
        PropertyParseError: If the value has malformed numeric content
    """
    text = value.strip()
    if not _DATETIME_RE.match(text):
        raise PropertyParseError(f"invalid DATE-TIME value: {value!r}")
    try:
        return datetime.strptime(text.rstrip("Z"), DATETIME_FORMAT)
    except ValueError as exc:
        raise PropertyParseError(f"invalid DATE-TIME value: {value!r}") from exc


def interpret_value(value: str, prop: RawProperty, display_tz: ZoneInfo) -> ResolvedDateTime:
    """Interpret one raw value using the parameters of its property.

    Resolution order:
    1. DATE values become midnight of that date in ``display_tz`` (all-day).
    2. DATE-TIME values ending in ``Z`` are UTC instants.
    3. A ``TZID`` parameter places the wall clock in that zone; unknown zones
       fall back to ``display_tz``.
    4. Floating values are read as wall clock in ``display_tz``.

    The result is always converted to ``display_tz``.
    """
    text = value.strip()
    if (prop.param("VALUE") or "").upper() == "DATE" or _BARE_DATE_RE.match(text):
        day = parse_date(text)
        return ResolvedDateTime(datetime.combine(day, time(), tzinfo=display_tz), True)

    naive = parse_wall_clock(text)
    if text.endswith("Z"):
        aware = naive.replace(tzinfo=UTC)
    else:
        zone = resolve_zone(prop.param("TZID"), display_tz)
        aware = naive.replace(tzinfo=zone)
    try:
        return ResolvedDateTime(aware.astimezone(display_tz), False)
    except OverflowError as exc:
        raise PropertyParseError(f"DATE-TIME value out of range: {value!r}") from exc


def interpret_datetime(prop: RawProperty, display_tz: ZoneInfo) -> ResolvedDateTime:
    """Interpret a DTSTART/DTEND/RECURRENCE-ID style property.

    Args:
        prop: Raw property with its parameters
        display_tz: Zone every result is normalized into

    Returns:
        ResolvedDateTime with an aware instant in ``display_tz``

    Raises:
        PropertyParseError: If the value is malformed
    """
    return interpret_value(prop.value, prop, display_tz)


def parse_value_list(prop: RawProperty, display_tz: ZoneInfo) -> list[ResolvedDateTime]:
    """Interpret a comma-separated multi-value property such as EXDATE.

    Malformed entries are logged and skipped; they never fail the whole list.
    """
    resolved: list[ResolvedDateTime] = []
    for part in prop.value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            resolved.append(interpret_value(part, prop, display_tz))
        except PropertyParseError as exc:
            logger.warning("Skipping unparsable date entry %r: %s", part, exc)
    return resolved


def parse_duration(value: str) -> timedelta:
    """Parse an RFC 5545 DURATION value.

    Args:
        value: Duration text, e.g. ``PT1H30M``, ``-P1D``, ``P2W``

    Returns:
        Signed timedelta

    Raises:
        PropertyParseError: If the text does not follow the grammar
    """
    text = value.strip().upper()
    match = _DURATION_RE.match(text)
    if match is None:
        raise PropertyParseError(f"invalid DURATION value: {value!r}")

    fields = {k: v for k, v in match.groupdict().items() if k != "sign"}
    if all(v is None for v in fields.values()):
        raise PropertyParseError(f"DURATION has no components: {value!r}")

    try:
        duration = timedelta(
            weeks=int(fields["weeks"] or 0),
            days=int(fields["days"] or 0),
            hours=int(fields["hours"] or 0),
            minutes=int(fields["minutes"] or 0),
            seconds=int(fields["seconds"] or 0),
        )
    except OverflowError as exc:
        raise PropertyParseError(f"DURATION value out of range: {value!r}") from exc
    if match.group("sign") == "-":
        duration = -duration
    return duration


def add_absolute(instant: datetime, delta: timedelta, tz: ZoneInfo) -> datetime:
    """Add elapsed time to an aware instant and express the result in ``tz``.

    Aware datetime arithmetic in Python is wall-clock arithmetic; going through
    UTC keeps durations exact across DST transitions.
    """
    try:
        return (instant.astimezone(UTC) + delta).astimezone(tz)
    except OverflowError as exc:
        raise PropertyParseError(f"{instant.isoformat()} + {delta} is out of range") from exc


def add_calendar_days(instant: datetime, days: int, tz: ZoneInfo) -> datetime:
    """Return midnight ``days`` calendar days after the date of ``instant`` in ``tz``."""
    local_day = instant.astimezone(tz).date()
    try:
        return datetime.combine(local_day + timedelta(days=days), time(), tzinfo=tz)
    except OverflowError as exc:
        raise PropertyParseError(f"{local_day.isoformat()} + {days} days is out of range") from exc


def format_start_key(instant: datetime, tz: ZoneInfo) -> str:
    """Format an instant as ``YYYYMMDDTHHMMSS`` wall clock in ``tz``."""
    return instant.astimezone(tz).strftime(DATETIME_FORMAT)


class EventTiming(NamedTuple):
    """Resolved start/end of one component in the display timezone."""

    start: datetime
    end: datetime
    all_day: bool
