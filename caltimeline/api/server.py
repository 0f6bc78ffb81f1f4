"""aiohttp server for caltimeline.

Events are computed per request from the configured CalDAV calendars; nothing
is cached between requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence
from typing import Optional

from aiohttp import web

from ..core.caldav_fetcher import build_sources
from ..core.config_loader import AppConfig
from ..core.http_client import build_timeout, close_all_clients, get_shared_client
from ..core.logging_config import configure_logging
from ..domain.fetch_orchestrator import FetchOrchestrator
from ..models import CalendarSource
from .middleware import (
    correlation_id_middleware,
    cors_middleware,
    error_middleware,
    request_logging_middleware,
)
from .routes import register_api_routes

logger = logging.getLogger(__name__)


def make_app(
    config: AppConfig,
    sources: Sequence[CalendarSource],
    orchestrator: Optional[FetchOrchestrator] = None,
) -> web.Application:
    """Create the aiohttp application with API routes and middleware.

    Args:
        config: Application configuration
        sources: Calendar sources the API aggregates
        orchestrator: Fetch orchestrator (a default one is created when omitted)

    Returns:
        Configured web.Application
    """
    # Outermost first: the error handler sits innermost so CORS and access
    # logging see the JSON error responses it produces.
    app = web.Application(
        middlewares=[
            correlation_id_middleware,
            request_logging_middleware,
            cors_middleware,
            error_middleware,
        ]
    )
    register_api_routes(app, config, list(sources), orchestrator or FetchOrchestrator())

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")

    app.on_shutdown.append(_shutdown)
    logger.debug("Web application created with %d sources", len(sources))
    return app


async def _serve(config: AppConfig, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: Application configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()
    client = await get_shared_client("caldav", timeout=build_timeout(config.request_timeout))

    runner: Optional[web.AppRunner] = None
    try:
        sources = build_sources(config, client)
        app = make_app(config, sources)

        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
        await site.start()
        logger.info("Server started on %s:%d", config.server_bind, config.server_port)

        if external_stop_event is None:
            loop = asyncio.get_running_loop()

            def _on_signal() -> None:
                logger.info("Shutdown signal received")
                stop_event.set()

            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, _on_signal)
        else:
            logger.debug("Using external stop event - skipping signal handler registration")

        await stop_event.wait()
        logger.info("Stop event received, shutting down")
    finally:
        if runner is not None:
            await runner.cleanup()
        await close_all_clients()
        logger.info("Server shutdown complete")


def start_server(config: AppConfig, debug: bool = False) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks until SIGINT/SIGTERM is received.

    Args:
        config: Validated application configuration
        debug: Force debug logging
    """
    configure_logging(config.log_level, debug=debug)
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
