"""RRULE expansion for recurring calendar series."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import UTC, datetime, time, timedelta
from time import perf_counter
from typing import Any, Optional
from zoneinfo import ZoneInfo

from dateutil.rrule import rrule, rrulebase, rrulestr

from ..exceptions import RRuleParseError
from ..models import Occurrence, QueryWindow, RawComponent
from .datetime_utils import (
    DATETIME_FORMAT,
    EventTiming,
    add_absolute,
    add_calendar_days,
    format_start_key,
    parse_value_list,
)
from .text_utils import unescape_text

logger = logging.getLogger(__name__)

# Candidate starts are enumerated this far outside the query window so that
# instances starting before the window but still running into it are kept.
EXPANSION_BUFFER = timedelta(days=30)

# Upper bound on enumerated candidates per series
MAX_CANDIDATES = 1000

# Wall-clock budget for enumerating one series
EXPANSION_TIME_BUDGET_MS = 500

_UNTIL_RE = re.compile(r"UNTIL=(?P<date>\d{8})(?P<time>T\d{6})?(?P<utc>Z)?", re.IGNORECASE)
_RULE_PART_RE = re.compile(r"(?P<name>FREQ|INTERVAL|COUNT|UNTIL)=(?P<value>[^;\s]+)")

# Frequencies whose period has a fixed length in UTC or floating time
_FIXED_PERIODS = {
    "WEEKLY": timedelta(weeks=1),
    "DAILY": timedelta(days=1),
    "HOURLY": timedelta(hours=1),
    "MINUTELY": timedelta(minutes=1),
    "SECONDLY": timedelta(seconds=1),
}


class RecurrenceExpander:
    """Expands recurring series into the occurrences that intersect a window.

    All-day series are anchored on a floating calendar date so that instances
    never drift across a day boundary when converted to the display timezone.
    Timed series are anchored on their UTC start instant.
    """

    def __init__(
        self,
        display_tz: ZoneInfo,
        buffer: timedelta = EXPANSION_BUFFER,
        max_candidates: int = MAX_CANDIDATES,
        time_budget_ms: int = EXPANSION_TIME_BUDGET_MS,
    ):
        """Initialize expander.

        Args:
            display_tz: Zone every produced instant is expressed in
            buffer: Margin added on both sides of the query window for enumeration
            max_candidates: Maximum candidate starts enumerated per series
            time_budget_ms: Wall-clock limit for enumerating one series
        """
        self.display_tz = display_tz
        self.buffer = buffer
        self.max_candidates = max_candidates
        self.time_budget_ms = time_budget_ms

    def expand(
        self,
        component: RawComponent,
        timing: EventTiming,
        calendar_name: str,
        calendar_color: str,
        window: QueryWindow,
        extra_exclusions: Iterable[datetime] = (),
    ) -> list[Occurrence]:
        """Expand one series into occurrences intersecting ``window``.

        Args:
            component: Series master with a recurrence rule
            timing: Resolved start/end of the master instance
            calendar_name: Source calendar name
            calendar_color: Source calendar color
            window: Query window
            extra_exclusions: Additional instants to drop (overridden instances)

        Returns:
            Occurrences in chronological order

        Raises:
            RRuleParseError: If the rule text cannot be parsed
        """
        if not component.rrule:
            raise RRuleParseError(f"event {component.uid} has no RRULE")

        rule = self.build_rule(component.rrule, timing)
        exclusions = self.collect_exclusions(component)
        exclusions.update(extra_exclusions)

        starts = self.enumerate_candidates(rule, timing.all_day, window, exclusions)

        summary = unescape_text(component.summary)
        description = unescape_text(component.description)
        location = unescape_text(component.location)

        if timing.all_day:
            span_days = max((timing.end.date() - timing.start.date()).days, 0)
            duration = None
        else:
            span_days = 0
            duration = timing.end.astimezone(UTC) - timing.start.astimezone(UTC)

        occurrences: list[Occurrence] = []
        for start in starts:
            if duration is None:
                end = add_calendar_days(start, span_days, self.display_tz)
            else:
                end = add_absolute(start, duration, self.display_tz)

            if not window.overlaps(start, end):
                continue

            occurrences.append(
                Occurrence(
                    uid=f"{component.uid}_{format_start_key(start, self.display_tz)}",
                    summary=summary,
                    description=description,
                    location=location,
                    start=start,
                    end=end,
                    all_day=timing.all_day,
                    calendar_name=calendar_name,
                    calendar_color=calendar_color,
                    is_recurring=True,
                )
            )

        logger.debug(
            "Expanded series %s: %d candidates, %d in window",
            component.uid,
            len(starts),
            len(occurrences),
        )
        return occurrences

    def build_rule(self, rrule_text: str, timing: EventTiming) -> rrulebase:
        """Parse rule text against the series anchor.

        Raises:
            RRuleParseError: If the rule text is invalid
        """
        anchor = self.anchor_for(timing)
        text = rrule_text.strip()
        if text.upper().startswith("RRULE:"):
            text = text[len("RRULE:"):]
        if not text:
            raise RRuleParseError("empty RRULE")
        text = self._normalize_until(text, all_day=timing.all_day)

        try:
            return rrulestr(text, dtstart=anchor)
        except (ValueError, TypeError, OverflowError) as exc:
            raise RRuleParseError(f"failed to parse RRULE {rrule_text!r}: {exc}") from exc

    def anchor_for(self, timing: EventTiming) -> datetime:
        """Return the expansion anchor: floating midnight for all-day, UTC otherwise."""
        if timing.all_day:
            return datetime.combine(timing.start.astimezone(self.display_tz).date(), time())
        return timing.start.astimezone(UTC)

    def collect_exclusions(self, component: RawComponent) -> set[datetime]:
        """Parse EXDATE entries into display-zone instants.

        Unparsable entries are logged and skipped without failing the series.
        """
        excluded: set[datetime] = set()
        for prop in component.exdates:
            for resolved in parse_value_list(prop, self.display_tz):
                excluded.add(resolved.instant)
        return excluded

    def enumerate_candidates(
        self,
        rule: rrulebase,
        all_day: bool,
        window: QueryWindow,
        exclusions: Optional[set[datetime]] = None,
    ) -> list[datetime]:
        """List candidate starts inside the buffered window, earliest first.

        The buffered window is inclusive on both ends. Excluded starts are
        dropped before counting. Enumeration stops at ``max_candidates`` or
        when ``time_budget_ms`` runs out, whichever comes first.

        Returns:
            Candidate starts as aware datetimes in the display timezone

        Raises:
            RRuleParseError: If the rule fails while iterating
        """
        exclusions = exclusions or set()
        candidates: list[datetime] = []
        budget = self.time_budget_ms / 1000
        started = perf_counter()
        try:
            lower, upper = window.buffered(self.buffer)
            if all_day:
                lower_bound: datetime = lower.astimezone(self.display_tz).replace(tzinfo=None)
                upper_bound: datetime = upper.astimezone(self.display_tz).replace(tzinfo=None)
            else:
                lower_bound = lower.astimezone(UTC)
                upper_bound = upper.astimezone(UTC)

            for raw in self.advance_open_ended(rule, lower_bound):
                if perf_counter() - started >= budget:
                    logger.warning(
                        "Recurrence expansion exceeded time budget (%dms) after %d candidates",
                        self.time_budget_ms,
                        len(candidates),
                    )
                    break
                if raw < lower_bound:
                    continue
                if raw > upper_bound:
                    break
                start = self._to_display(raw, all_day)
                if start in exclusions:
                    continue
                if len(candidates) >= self.max_candidates:
                    logger.warning(
                        "Recurrence expansion truncated at %d candidates", self.max_candidates
                    )
                    break
                candidates.append(start)
        except (ValueError, TypeError, OverflowError) as exc:
            raise RRuleParseError(f"failed to expand RRULE: {exc}") from exc

        return candidates

    def advance_open_ended(self, rule: rrulebase, lower_bound: datetime) -> rrulebase:
        """Restart an unbounded rule close to ``lower_bound``.

        Applies only to rules without COUNT or UNTIL whose frequency has a fixed
        period (WEEKLY or shorter). The first instance moves forward by whole
        multiples of the INTERVAL period, so every instance at or after
        ``lower_bound`` is unchanged. Any other rule is returned as is.
        """
        if not isinstance(rule, rrule):
            return rule
        text = str(rule).rpartition("RRULE:")[2]
        parts = {m.group("name"): m.group("value") for m in _RULE_PART_RE.finditer(text)}
        if "COUNT" in parts or "UNTIL" in parts:
            return rule
        period = _FIXED_PERIODS.get(parts.get("FREQ", ""))
        if period is None:
            return rule
        period *= int(parts.get("INTERVAL", "1"))

        first = next(iter(rule), None)
        if first is None or first >= lower_bound:
            return rule
        steps = (lower_bound - first) // period
        if steps <= 0:
            return rule
        logger.debug("Advancing open-ended rule by %d periods of %s", steps, period)
        return rule.replace(dtstart=first + steps * period)

    def _to_display(self, raw: datetime, all_day: bool) -> datetime:
        if all_day:
            return datetime.combine(raw.date(), time(), tzinfo=self.display_tz)
        return raw.astimezone(self.display_tz)

    def _normalize_until(self, text: str, all_day: bool) -> str:
        """Make UNTIL agree with the anchor kind, as dateutil requires.

        Timed series get a UTC UNTIL; all-day series get a floating one.
        """

        def _replace(match: Any) -> str:
            day = match.group("date")
            clock = match.group("time")
            is_utc = bool(match.group("utc"))
            try:
                if all_day:
                    if not is_utc:
                        return match.group(0)
                    instant = datetime.strptime(day + clock, DATETIME_FORMAT).replace(tzinfo=UTC)
                    local = instant.astimezone(self.display_tz)
                    return "UNTIL=" + local.strftime(DATETIME_FORMAT)
                if is_utc:
                    return match.group(0)
                if clock:
                    naive = datetime.strptime(day + clock, DATETIME_FORMAT)
                else:
                    naive = datetime.combine(datetime.strptime(day, "%Y%m%d").date(), time(23, 59, 59))
                instant = naive.replace(tzinfo=self.display_tz).astimezone(UTC)
                return "UNTIL=" + instant.strftime(DATETIME_FORMAT) + "Z"
            except (ValueError, TypeError) as exc:
                raise RRuleParseError(f"invalid UNTIL in RRULE: {match.group(0)!r}") from exc

        return _UNTIL_RE.sub(_replace, text)


__all__ = [
    "EXPANSION_BUFFER",
    "MAX_CANDIDATES",
    "RecurrenceExpander",
]
