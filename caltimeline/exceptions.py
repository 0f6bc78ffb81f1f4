"""Exception hierarchy for caltimeline.

Per-event and per-series errors are absorbed where components are turned into
occurrences; only invalid caller input and total source failure are meant to
reach the HTTP boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SourceError


class CalTimelineError(Exception):
    """Base exception for all caltimeline errors."""


class ConfigError(CalTimelineError):
    """Configuration file is missing, unreadable or invalid."""


class PropertyParseError(CalTimelineError, ValueError):
    """A single iCalendar property could not be interpreted.

    Raised when:
    - A DATE or DATE-TIME value has malformed numeric content
    - A DURATION value does not follow the RFC 5545 grammar

    Scoped to one event; callers log and skip that event.
    """


class MissingPropertyError(CalTimelineError):
    """A required property (UID or DTSTART) is absent from a component."""


class RRuleParseError(CalTimelineError):
    """A recurrence rule could not be parsed.

    Scoped to one series; the series yields no occurrences.
    """


class SourceFetchError(CalTimelineError):
    """Fetching raw components from one calendar source failed."""

    def __init__(self, source_name: str, message: str):
        super().__init__(f"calendar {source_name}: {message}")
        self.source_name = source_name


class AllSourcesFailedError(CalTimelineError):
    """Every configured calendar source failed during one aggregation."""

    def __init__(self, errors: list[SourceError]):
        joined = "; ".join(f"{err.source}: {err.message}" for err in errors)
        super().__init__(f"failed to fetch events: {joined}")
        self.errors = errors


class InvalidQueryWindowError(CalTimelineError, ValueError):
    """Query window is empty, inverted or not timezone-aware.

    Should result in HTTP 400 Bad Request response.
    """
