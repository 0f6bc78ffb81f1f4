"""Fetch orchestration across multiple calendar sources."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Optional
from zoneinfo import ZoneInfo

from ..calendar.event_builder import OccurrenceBuilder
from ..calendar.rrule_expander import RecurrenceExpander
from ..exceptions import AllSourcesFailedError
from ..models import AggregateResult, CalendarSource, Occurrence, QueryWindow, SourceError
from .ordering import sort_occurrences

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    """Fetches every source in parallel and merges the results.

    Each source runs as its own task and writes either its occurrences or its
    error into one shared collection guarded by a single lock. The merge waits
    for every task before ordering the combined list.
    """

    def __init__(
        self, expander_factory: Optional[Callable[[ZoneInfo], RecurrenceExpander]] = None
    ):
        """Initialize fetch orchestrator.

        Args:
            expander_factory: Callable building a RecurrenceExpander from a display zone
        """
        self.expander_factory = expander_factory or RecurrenceExpander

    async def expand(
        self, window: QueryWindow, sources: Sequence[CalendarSource]
    ) -> AggregateResult:
        """Fetch, expand and merge occurrences from all sources.

        Args:
            window: Query window every occurrence must intersect
            sources: Configured calendar sources

        Returns:
            AggregateResult with occurrences in canonical order and the errors of
            any sources that failed

        Raises:
            AllSourcesFailedError: If there is at least one source and all failed
        """
        if not sources:
            logger.warning("No calendar sources configured, nothing to expand")
            return AggregateResult()

        lock = asyncio.Lock()
        collected: list[Occurrence] = []
        errors: list[SourceError] = []

        async def _run(source: CalendarSource) -> None:
            try:
                occurrences = await self.expand_source(window, source)
            except Exception as exc:
                async with lock:
                    errors.append(SourceError(source.name, str(exc) or type(exc).__name__))
                return
            async with lock:
                collected.extend(occurrences)

        tasks = [asyncio.create_task(_run(source)) for source in sources]
        await asyncio.gather(*tasks)

        if len(errors) == len(sources):
            raise AllSourcesFailedError(errors)

        for err in errors:
            logger.error("Calendar source %r failed: %s", err.source, err.message)

        ordered = sort_occurrences(collected)
        logger.debug(
            "Expanded %d occurrences from %d/%d sources",
            len(ordered),
            len(sources) - len(errors),
            len(sources),
        )
        return AggregateResult(tuple(ordered), tuple(errors))

    async def expand_source(self, window: QueryWindow, source: CalendarSource) -> list[Occurrence]:
        """Fetch one source and build its occurrences.

        Raises:
            Exception: Whatever the source's fetch capability raises
        """
        components = await source.fetch(window)
        builder = OccurrenceBuilder(
            source.name,
            source.color,
            source.timezone,
            expander=self.expander_factory(source.timezone),
        )
        # Expansion is CPU-bound; keep it off the event loop
        occurrences = await asyncio.to_thread(builder.build, components, window)
        logger.debug(
            "Source %r returned %d components, %d occurrences",
            source.name,
            len(components),
            len(occurrences),
        )
        return occurrences


async def expand_sources(window: QueryWindow, sources: Sequence[CalendarSource]) -> AggregateResult:
    """Expand all sources with a default orchestrator (convenience function)."""
    return await FetchOrchestrator().expand(window, sources)
