"""JSON error responses.

Errors leave the API as ``{"error": <message>, "code": <status>}``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

logger = logging.getLogger(__name__)


def json_error(status: int, message: str) -> web.Response:
    """Build a JSON error response."""
    return web.json_response({"error": message, "code": status}, status=status)


@web.middleware
async def error_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Turn HTTP errors and unexpected exceptions into JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException as exc:
        if exc.status < 400:
            raise
        return json_error(exc.status, exc.reason)
    except Exception:
        logger.exception("Unhandled error serving %s %s", request.method, request.path)
        return json_error(500, "internal server error")
