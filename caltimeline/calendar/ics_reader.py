"""Read VEVENT components out of iCalendar text without decoding their values.

icalendar's content-line parser handles unfolding and parameter quoting; TEXT
values are left escaped so that interpretation happens in one place.
"""

from __future__ import annotations

import logging
from typing import Optional

from icalendar.parser import Contentline, Contentlines

from ..models import RawComponent, RawProperty

logger = logging.getLogger(__name__)

_TEXT_PROPERTIES = {"UID", "SUMMARY", "DESCRIPTION", "LOCATION", "RRULE"}
_DATETIME_PROPERTIES = {"DTSTART", "DTEND", "DURATION", "RECURRENCE-ID"}


def _split_line(line: Contentline) -> Optional[tuple[str, dict[str, str], str]]:
    """Split a content line into (NAME, params, raw value), or None if malformed."""
    try:
        name, params, value = line.raw_parts()
    except ValueError as exc:
        logger.warning("Skipping malformed content line %r: %s", str(line)[:80], exc)
        return None
    flat = {}
    for key, val in params.items():
        if isinstance(val, (list, tuple)):
            val = ",".join(str(v) for v in val)
        flat[str(key).upper()] = str(val)
    return str(name).upper(), flat, str(value)


def _build_component(props: list[tuple[str, dict[str, str], str]]) -> RawComponent:
    text: dict[str, str] = {}
    timing: dict[str, RawProperty] = {}
    exdates: list[RawProperty] = []

    for name, params, value in props:
        if name in _TEXT_PROPERTIES:
            text.setdefault(name, value)
        elif name in _DATETIME_PROPERTIES:
            timing.setdefault(name, RawProperty(value, params))
        elif name == "EXDATE":
            exdates.append(RawProperty(value, params))

    return RawComponent(
        uid=text.get("UID"),
        summary=text.get("SUMMARY"),
        description=text.get("DESCRIPTION"),
        location=text.get("LOCATION"),
        dtstart=timing.get("DTSTART"),
        dtend=timing.get("DTEND"),
        duration=timing.get("DURATION"),
        rrule=text.get("RRULE"),
        exdates=tuple(exdates),
        recurrence_id=timing.get("RECURRENCE-ID"),
    )


def read_components(ics_text: str) -> list[RawComponent]:
    """Extract every top-level VEVENT of an iCalendar object.

    Nested components inside a VEVENT (VALARM) are ignored. Malformed lines are
    logged and skipped.

    Args:
        ics_text: iCalendar text (one VCALENDAR)

    Returns:
        RawComponent per VEVENT, in document order
    """
    components: list[RawComponent] = []
    current: Optional[list[tuple[str, dict[str, str], str]]] = None
    nested_depth = 0

    for line in Contentlines.from_ical(ics_text):
        if not line:
            continue
        parts = _split_line(line)
        if parts is None:
            continue
        name, params, value = parts

        if name == "BEGIN":
            if value.upper() == "VEVENT" and current is None:
                current = []
            elif current is not None:
                nested_depth += 1
            continue

        if name == "END":
            if current is not None:
                if nested_depth:
                    nested_depth -= 1
                elif value.upper() == "VEVENT":
                    components.append(_build_component(current))
                    current = None
            continue

        if current is not None and not nested_depth:
            current.append((name, params, value))

    if current is not None:
        logger.warning("Unterminated VEVENT at end of calendar data; ignoring it")

    logger.debug("Read %d VEVENT components", len(components))
    return components
