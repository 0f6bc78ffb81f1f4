"""Turn raw VEVENT components into occurrences.

Single events are built here directly; recurring series are handed to the
``RecurrenceExpander``. Both branches produce the same ``Occurrence`` shape.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..exceptions import MissingPropertyError, PropertyParseError, RRuleParseError
from ..models import Occurrence, QueryWindow, RawComponent
from .datetime_utils import (
    EventTiming,
    add_absolute,
    add_calendar_days,
    format_start_key,
    interpret_datetime,
    parse_duration,
)
from .rrule_expander import RecurrenceExpander
from .text_utils import unescape_text

logger = logging.getLogger(__name__)


def resolve_timing(component: RawComponent, display_tz: ZoneInfo) -> EventTiming:
    """Resolve start, end and all-day flag for a component.

    End priority: DTEND, then DTSTART + DURATION, then one calendar day for
    all-day events, otherwise a zero-length event ending at its start.

    Raises:
        MissingPropertyError: If UID or DTSTART is absent
        PropertyParseError: If DTSTART, DTEND or DURATION is malformed
    """
    if not component.uid:
        raise MissingPropertyError("event missing UID")
    if component.dtstart is None:
        raise MissingPropertyError(f"event {component.uid} missing DTSTART")

    start, all_day = interpret_datetime(component.dtstart, display_tz)

    if component.dtend is not None:
        end = interpret_datetime(component.dtend, display_tz).instant
    elif component.duration is not None:
        end = add_absolute(start, parse_duration(component.duration.value), display_tz)
    elif all_day:
        end = add_calendar_days(start, 1, display_tz)
    else:
        end = start

    return EventTiming(start, end, all_day)


def build_single_occurrence(
    component: RawComponent,
    timing: EventTiming,
    calendar_name: str,
    calendar_color: str,
    uid: Optional[str] = None,
    is_recurring: bool = False,
) -> Occurrence:
    """Build one occurrence with decoded text fields."""
    return Occurrence(
        uid=uid or component.uid,
        summary=unescape_text(component.summary),
        description=unescape_text(component.description),
        location=unescape_text(component.location),
        start=timing.start,
        end=timing.end,
        all_day=timing.all_day,
        calendar_name=calendar_name,
        calendar_color=calendar_color,
        is_recurring=is_recurring,
    )


class OccurrenceBuilder:
    """Builds occurrences for every component fetched from one source.

    Faults are absorbed per component: a malformed property skips its event, an
    unparsable rule skips its series, and the rest of the batch continues.
    """

    def __init__(
        self,
        calendar_name: str,
        calendar_color: str,
        display_tz: ZoneInfo,
        expander: Optional[RecurrenceExpander] = None,
    ):
        self.calendar_name = calendar_name
        self.calendar_color = calendar_color
        self.display_tz = display_tz
        self.expander = expander or RecurrenceExpander(display_tz)

    def build(self, components: Iterable[RawComponent], window: QueryWindow) -> list[Occurrence]:
        """Build all occurrences intersecting ``window``.

        Args:
            components: Raw components of one source
            window: Query window

        Returns:
            Occurrences in no particular order
        """
        components = list(components)
        overrides = self._collect_overrides(components)

        occurrences: list[Occurrence] = []
        for component in components:
            try:
                occurrences.extend(self.build_component(component, window, overrides))
            except (MissingPropertyError, PropertyParseError, OverflowError) as exc:
                logger.warning(
                    "Skipping event %r in %s: %s", component.uid, self.calendar_name, exc
                )
            except RRuleParseError as exc:
                logger.warning(
                    "Skipping recurring series %r in %s: %s",
                    component.uid,
                    self.calendar_name,
                    exc,
                )
        return occurrences

    def build_component(
        self,
        component: RawComponent,
        window: QueryWindow,
        overrides: Optional[dict[str, list[datetime]]] = None,
    ) -> list[Occurrence]:
        """Build the occurrences of one component.

        Raises:
            MissingPropertyError: If UID or DTSTART is absent
            PropertyParseError: If a timing property is malformed
            RRuleParseError: If the recurrence rule cannot be parsed
        """
        timing = resolve_timing(component, self.display_tz)

        if component.rrule:
            overridden = (overrides or {}).get(component.uid or "", [])
            return self.expander.expand(
                component,
                timing,
                self.calendar_name,
                self.calendar_color,
                window,
                extra_exclusions=overridden,
            )

        if not window.overlaps(timing.start, timing.end):
            return []

        if component.recurrence_id is not None and component.uid in (overrides or {}):
            # Modified instance of a series: keyed like the instances it replaces
            uid = f"{component.uid}_{format_start_key(timing.start, self.display_tz)}"
            return [
                build_single_occurrence(
                    component, timing, self.calendar_name, self.calendar_color, uid, True
                )
            ]

        return [
            build_single_occurrence(component, timing, self.calendar_name, self.calendar_color)
        ]

    def _collect_overrides(self, components: list[RawComponent]) -> dict[str, list[datetime]]:
        """Map series UID to the RECURRENCE-ID instants that replace its instances.

        Only UIDs that have a series master among ``components`` are included;
        an override without its master is built as a plain single event.
        """
        masters = {c.uid for c in components if c.rrule and c.uid}
        overrides: dict[str, list[datetime]] = {}
        for component in components:
            if component.rrule or component.recurrence_id is None:
                continue
            if component.uid not in masters:
                continue
            try:
                instant = interpret_datetime(component.recurrence_id, self.display_tz).instant
            except PropertyParseError as exc:
                logger.warning("Ignoring unparsable RECURRENCE-ID on %r: %s", component.uid, exc)
                continue
            overrides.setdefault(component.uid, []).append(instant)
        return overrides
