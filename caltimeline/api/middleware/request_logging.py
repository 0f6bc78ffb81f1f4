"""Access logging with request timing."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from aiohttp import web

logger = logging.getLogger(__name__)


@web.middleware
async def request_logging_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Log method, path, status and elapsed milliseconds for each request."""
    started = time.perf_counter()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as exc:
        status = exc.status
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if status >= 500 else logging.INFO
        logger.log(level, "%s %s -> %d (%.1f ms)", request.method, request.path, status, elapsed_ms)
