"""Shared fixtures for caltimeline tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pytest

from caltimeline.core.http_client import close_all_clients
from caltimeline.models import CalendarSource, QueryWindow, RawComponent, RawProperty

SourceFactory = Callable[..., CalendarSource]


@pytest.fixture
def display_tz() -> ZoneInfo:
    """Deterministic display timezone with DST transitions.

    Using a fixed zone avoids host-local timezone differences which can make
    datetime-sensitive tests flaky.
    """
    return ZoneInfo("America/New_York")


@pytest.fixture
def january_window(display_tz: ZoneInfo) -> QueryWindow:
    """Window covering 2026-01-01 through 2026-01-31 inclusive."""
    return QueryWindow(
        datetime(2026, 1, 1, tzinfo=display_tz),
        datetime(2026, 2, 1, tzinfo=display_tz),
    )


def make_component(
    uid: Optional[str] = "evt-1",
    dtstart: Optional[str] = "20260105T090000",
    summary: Optional[str] = "Event",
    dtend: Optional[str] = None,
    duration: Optional[str] = None,
    rrule: Optional[str] = None,
    exdates: Sequence[str] = (),
    start_params: Optional[dict[str, str]] = None,
    end_params: Optional[dict[str, str]] = None,
    exdate_params: Optional[dict[str, str]] = None,
    recurrence_id: Optional[str] = None,
    **text: Any,
) -> RawComponent:
    """Build a RawComponent from plain strings."""
    return RawComponent(
        uid=uid,
        dtstart=RawProperty(dtstart, start_params or {}) if dtstart is not None else None,
        summary=summary,
        dtend=RawProperty(dtend, end_params or start_params or {}) if dtend else None,
        duration=RawProperty(duration) if duration else None,
        rrule=rrule,
        exdates=tuple(RawProperty(v, exdate_params or start_params or {}) for v in exdates),
        recurrence_id=(
            RawProperty(recurrence_id, start_params or {}) if recurrence_id else None
        ),
        description=text.get("description"),
        location=text.get("location"),
    )


@pytest.fixture
def component_factory() -> Callable[..., RawComponent]:
    """Expose ``make_component`` as a fixture."""
    return make_component


@pytest.fixture
def source_factory(display_tz: ZoneInfo) -> SourceFactory:
    """Factory for CalendarSource objects backed by canned fetch results.

    ``result`` is either a list of RawComponents or an exception to raise.
    ``delay`` yields to the event loop before answering.
    """

    def _make(
        name: str,
        result: Any,
        color: str = "#112233",
        delay: float = 0.0,
    ) -> CalendarSource:
        async def fetch(_window: QueryWindow) -> list[RawComponent]:
            await asyncio.sleep(delay)
            if isinstance(result, BaseException):
                raise result
            return list(result)

        return CalendarSource(name, color, display_tz, fetch)

    return _make


@pytest.fixture
def password_file(tmp_path: Path) -> Path:
    """A password file holding ``s3cret``."""
    path = tmp_path / "password"
    path.write_text("s3cret\n", encoding="utf-8")
    return path


@pytest.fixture
def config_data(password_file: Path) -> dict[str, Any]:
    """Minimal valid configuration mapping."""
    return {
        "time_zone": "America/New_York",
        "auto_refresh": 300,
        "calendars": [
            {
                "name": "Work",
                "url": "https://dav.example.com/cal/work/",
                "user_id": "alice",
                "password_file": str(password_file),
                "color": "#D9534F",
            }
        ],
    }


@pytest.fixture(autouse=True)
def clean_logging_environment(monkeypatch: Any) -> None:
    """Keep logging overrides from the host environment out of tests."""
    monkeypatch.delenv("CALTIMELINE_DEBUG", raising=False)
    monkeypatch.delenv("CALTIMELINE_LOG_LEVEL", raising=False)


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared HTTP clients after every test to prevent resource leaks."""
    yield
    await close_all_clients()
