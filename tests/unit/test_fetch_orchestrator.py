"""Unit tests for caltimeline.domain.fetch_orchestrator."""

import asyncio
import logging
from typing import Any, Callable
from zoneinfo import ZoneInfo

import pytest

from caltimeline.calendar.rrule_expander import RecurrenceExpander
from caltimeline.domain.fetch_orchestrator import FetchOrchestrator, expand_sources
from caltimeline.exceptions import AllSourcesFailedError, SourceFetchError
from caltimeline.models import AggregateResult, QueryWindow, RawComponent

pytestmark = [pytest.mark.unit, pytest.mark.fast]

ComponentFactory = Callable[..., RawComponent]


@pytest.mark.asyncio
async def test_expand_when_no_sources_then_empty_result(january_window: QueryWindow) -> None:
    """Zero sources is an empty success, not a failure."""
    result = await FetchOrchestrator().expand(january_window, [])
    assert result == AggregateResult()
    assert result.is_partial is False


@pytest.mark.asyncio
async def test_expand_when_sources_succeed_then_merged_in_canonical_order(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """Occurrences from every source are merged and ordered."""
    work = source_factory(
        "Work",
        [component_factory(uid="w1", summary="Review", dtstart="20260106T100000")],
        color="#D9534F",
    )
    home = source_factory(
        "Home",
        [
            component_factory(uid="h1", summary="Dentist", dtstart="20260106T080000"),
            component_factory(uid="h2", summary="Holiday", dtstart="20260107", start_params={"VALUE": "DATE"}),
        ],
        delay=0.01,
    )
    result = await FetchOrchestrator().expand(january_window, [work, home])

    assert [o.summary for o in result.occurrences] == ["Holiday", "Dentist", "Review"]
    assert {o.calendar_name: o.calendar_color for o in result.occurrences}["Work"] == "#D9534F"
    assert result.errors == ()


@pytest.mark.asyncio
async def test_expand_when_one_source_times_out_then_partial_result(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A failing source is reported while the others still contribute."""
    a = source_factory(
        "A",
        [
            component_factory(uid="a1", dtstart="20260105T090000"),
            component_factory(uid="a2", dtstart="20260106T090000"),
        ],
    )
    b = source_factory("B", SourceFetchError("B", "request timed out"))

    with caplog.at_level(logging.ERROR, logger="caltimeline.domain.fetch_orchestrator"):
        result = await FetchOrchestrator().expand(january_window, [a, b])

    assert [o.uid for o in result.occurrences] == ["a1", "a2"]
    assert len(result.errors) == 1
    assert result.errors[0].source == "B"
    assert "timed out" in result.errors[0].message
    assert result.is_partial is True
    assert "B" in caplog.text


@pytest.mark.asyncio
async def test_expand_when_plain_exception_without_message_then_type_name_recorded(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """Exceptions with an empty message are described by their type."""
    ok = source_factory("Ok", [component_factory()])
    slow = source_factory("Slow", asyncio.TimeoutError())
    result = await FetchOrchestrator().expand(january_window, [ok, slow])
    assert result.errors[0].message == "TimeoutError"


@pytest.mark.asyncio
async def test_expand_when_all_sources_fail_then_raises_with_every_error(
    source_factory: Callable[..., Any], january_window: QueryWindow
) -> None:
    """Every source failing raises AllSourcesFailedError carrying all errors."""
    sources = [
        source_factory("A", SourceFetchError("A", "unexpected HTTP status 401")),
        source_factory("B", ConnectionError("refused"), delay=0.01),
    ]
    with pytest.raises(AllSourcesFailedError) as exc_info:
        await FetchOrchestrator().expand(january_window, sources)

    assert sorted(err.source for err in exc_info.value.errors) == ["A", "B"]
    assert "failed to fetch events" in str(exc_info.value)


@pytest.mark.asyncio
async def test_expand_when_source_returns_nothing_then_success_not_failure(
    source_factory: Callable[..., Any], january_window: QueryWindow
) -> None:
    """An empty calendar is a successful source."""
    result = await FetchOrchestrator().expand(january_window, [source_factory("Empty", [])])
    assert result.occurrences == ()
    assert result.errors == ()


@pytest.mark.asyncio
async def test_expand_when_sources_run_then_fetched_concurrently(
    source_factory: Callable[..., Any], january_window: QueryWindow
) -> None:
    """Sources are fetched in parallel rather than one after another."""
    loop = asyncio.get_running_loop()
    sources = [source_factory(f"S{i}", [], delay=0.2) for i in range(5)]

    started = loop.time()
    await FetchOrchestrator().expand(january_window, sources)
    assert loop.time() - started < 0.8


@pytest.mark.asyncio
async def test_expand_when_expander_factory_given_then_used_per_source(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """The injected expander factory receives each source's display zone."""
    zones: list[ZoneInfo] = []

    def factory(tz: ZoneInfo) -> RecurrenceExpander:
        zones.append(tz)
        return RecurrenceExpander(tz, max_candidates=2)

    source = source_factory("Work", [component_factory(rrule="FREQ=DAILY")])
    result = await FetchOrchestrator(expander_factory=factory).expand(january_window, [source])

    assert zones == [source.timezone]
    assert [o.start.day for o in result.occurrences] == [5, 6]


@pytest.mark.asyncio
async def test_expand_when_event_dates_overflow_then_source_still_succeeds(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """Out-of-range dates drop their own event; the source is not reported as failed."""
    source = source_factory(
        "Work",
        [
            component_factory(uid="huge", duration="P9999999999W"),
            component_factory(uid="edge", dtstart="99991231", start_params={"VALUE": "DATE"}),
            component_factory(uid="good"),
        ],
    )
    result = await FetchOrchestrator().expand(january_window, [source])

    assert [o.uid for o in result.occurrences] == ["good"]
    assert result.errors == ()


@pytest.mark.asyncio
async def test_expand_when_series_started_years_ago_then_loop_stays_responsive(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """Expanding an old hourly series runs off the event loop and finishes quickly."""
    source = source_factory(
        "Work", [component_factory(uid="tick", dtstart="20200101T000000", rrule="FREQ=HOURLY")]
    )
    ticks = 0

    async def heartbeat() -> None:
        nonlocal ticks
        while True:
            ticks += 1
            await asyncio.sleep(0)

    beat = asyncio.create_task(heartbeat())
    try:
        result = await asyncio.wait_for(FetchOrchestrator().expand(january_window, [source]), 5)
    finally:
        beat.cancel()

    assert result.occurrences
    assert ticks > 1


@pytest.mark.asyncio
async def test_expand_sources_when_called_then_uses_default_orchestrator(
    source_factory: Callable[..., Any],
    component_factory: ComponentFactory,
    january_window: QueryWindow,
) -> None:
    """The convenience function behaves like FetchOrchestrator.expand."""
    result = await expand_sources(january_window, [source_factory("Work", [component_factory()])])
    assert len(result.occurrences) == 1
