"""Main API routes for caltimeline."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime

from aiohttp import web

from ... import __version__
from ...core.config_loader import AppConfig
from ...core.timezone_utils import day_bounds, month_bounds
from ...domain.fetch_orchestrator import FetchOrchestrator
from ...domain.month_view import day_bucket_keys
from ...exceptions import AllSourcesFailedError, InvalidQueryWindowError
from ...models import CalendarSource, QueryWindow
from ..middleware import json_error

logger = logging.getLogger(__name__)

QUERY_DATE_FORMAT = "%Y-%m-%d"


class QueryParamError(ValueError):
    """A query parameter is missing or malformed."""


def _parse_query_date(request: web.Request, name: str) -> date:
    raw = request.query.get(name, "").strip()
    if not raw:
        raise QueryParamError(
            "start and end query parameters are required (format: YYYY-MM-DD)"
        )
    try:
        return datetime.strptime(raw, QUERY_DATE_FORMAT).date()
    except ValueError as exc:
        raise QueryParamError(f"invalid {name} date format: {raw!r}") from exc


def _parse_query_int(request: web.Request, name: str) -> int:
    raw = request.query.get(name, "").strip()
    if not raw:
        raise QueryParamError("year and month query parameters are required")
    try:
        return int(raw)
    except ValueError as exc:
        raise QueryParamError(f"invalid {name} format: {raw!r}") from exc


def register_api_routes(
    app: web.Application,
    config: AppConfig,
    sources: Sequence[CalendarSource],
    orchestrator: FetchOrchestrator,
) -> None:
    """Register main API routes.

    Args:
        app: aiohttp web application
        config: Application configuration
        sources: Calendar sources to aggregate
        orchestrator: Multi-source fetch orchestrator
    """
    zone = config.zone

    async def health_check(_request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok", "version": __version__})

    async def get_config(_request: web.Request) -> web.Response:
        """Sanitized configuration (no credentials)."""
        return web.json_response(config.sanitized())

    async def get_events(request: web.Request) -> web.Response:
        """Occurrences between two dates, both inclusive."""
        try:
            first = _parse_query_date(request, "start")
            last = _parse_query_date(request, "end")
            try:
                window = QueryWindow(*day_bounds(first, last, zone))
            except OverflowError as exc:
                raise QueryParamError(f"date range out of bounds: {first}..{last}") from exc
        except (QueryParamError, InvalidQueryWindowError) as exc:
            return json_error(400, str(exc))

        try:
            result = await orchestrator.expand(window, sources)
        except AllSourcesFailedError as exc:
            logger.error("All calendar sources failed: %s", exc)
            return json_error(500, str(exc))

        logger.debug(
            "/api/events %s..%s -> %d occurrences", first, last, len(result.occurrences)
        )
        return web.json_response({"events": [o.to_api_dict() for o in result.occurrences]})

    async def get_events_month(request: web.Request) -> web.Response:
        """Days of a month that have at least one occurrence."""
        try:
            year = _parse_query_int(request, "year")
            month = _parse_query_int(request, "month")
            if not 1 <= month <= 12:
                raise QueryParamError("month must be between 1 and 12")
            try:
                window = QueryWindow(*month_bounds(year, month, zone))
            except (ValueError, OverflowError) as exc:
                raise QueryParamError(f"invalid year: {year}") from exc
        except QueryParamError as exc:
            return json_error(400, str(exc))

        try:
            occurrences = (await orchestrator.expand(window, sources)).occurrences
        except AllSourcesFailedError as exc:
            logger.error("Month view: all calendar sources failed: %s", exc)
            occurrences = ()

        days = sorted(day_bucket_keys(occurrences, year, month, zone))
        return web.json_response({"days": days})

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/config", get_config)
    app.router.add_get("/api/events", get_events)
    app.router.add_get("/api/events/month", get_events_month)
