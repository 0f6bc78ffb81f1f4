"""Data models for calendar timeline processing."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .exceptions import InvalidQueryWindowError


@dataclass(frozen=True)
class RawProperty:
    """One iCalendar property as it appeared on the wire.

    ``value`` keeps its backslash escapes; ``params`` keys are upper-cased so
    lookups are case-insensitive.
    """

    value: str
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {str(k).upper(): str(v) for k, v in self.params.items()}
        object.__setattr__(self, "params", normalized)

    def param(self, name: str) -> Optional[str]:
        """Return a parameter value by case-insensitive name."""
        return self.params.get(name.upper())


@dataclass(frozen=True)
class RawComponent:
    """One fetched VEVENT definition prior to interpretation."""

    uid: Optional[str]
    dtstart: Optional[RawProperty]
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    dtend: Optional[RawProperty] = None
    duration: Optional[RawProperty] = None
    rrule: Optional[str] = None
    exdates: tuple[RawProperty, ...] = ()
    recurrence_id: Optional[RawProperty] = None

    @property
    def is_recurring(self) -> bool:
        """Check whether this component is a recurring series master."""
        return bool(self.rrule)


class Occurrence(BaseModel):
    """One concrete calendar instance with absolute start and end."""

    uid: str = Field(..., description="Base UID, or base UID plus start key for series instances")
    summary: str = Field(default="", description="Decoded event title")
    description: str = Field(default="", description="Decoded event description")
    location: str = Field(default="", description="Decoded event location")

    start: datetime = Field(..., description="Start instant in the display timezone")
    end: datetime = Field(..., description="End instant in the display timezone")
    all_day: bool = Field(default=False, description="All-day event flag")

    calendar_name: str = Field(..., description="Name of the source calendar")
    calendar_color: str = Field(..., description="Source calendar color (#RRGGBB)")
    is_recurring: bool = Field(default=False, description="Produced by series expansion")

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format with explicit offset."""
        return dt.isoformat()

    def to_api_dict(self) -> dict[str, object]:
        """Return the boundary JSON shape (camelCase keys)."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class QueryWindow:
    """Half-open interval ``[start, end)`` that occurrences must intersect."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidQueryWindowError("query window bounds must be timezone-aware")
        if self.start >= self.end:
            raise InvalidQueryWindowError(
                f"query window start {self.start.isoformat()} is not before end "
                f"{self.end.isoformat()}"
            )

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Check whether ``[start, end)`` intersects this window.

        Zero-length intervals intersect when their instant lies inside the window.
        """
        if end <= start:
            return self.start <= start < self.end
        return start < self.end and end > self.start

    def buffered(self, margin: timedelta) -> tuple[datetime, datetime]:
        """Return the window widened by ``margin`` on both sides."""
        return self.start - margin, self.end + margin


FetchRaw = Callable[[QueryWindow], Awaitable[list[RawComponent]]]


@dataclass(frozen=True)
class CalendarSource:
    """A configured calendar plus the capability to fetch its raw components."""

    name: str
    color: str
    timezone: ZoneInfo
    fetch: FetchRaw = field(repr=False, compare=False)


@dataclass(frozen=True)
class SourceError:
    """Failure of one source during an aggregation."""

    source: str
    message: str


@dataclass(frozen=True)
class AggregateResult:
    """Merged, ordered occurrences plus the errors of sources that failed."""

    occurrences: tuple[Occurrence, ...] = ()
    errors: tuple[SourceError, ...] = ()

    @property
    def is_partial(self) -> bool:
        """Check if some sources failed while others contributed."""
        return bool(self.errors)
