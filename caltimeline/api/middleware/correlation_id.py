"""Request correlation ID middleware.

The id is taken from the client's ``X-Request-ID``/``X-Correlation-ID`` header
or generated, stored in a context variable so log records and outgoing CalDAV
requests carry it, and echoed back in the response headers.
"""

import uuid
from collections.abc import Awaitable, Callable

from aiohttp import web

from ...core.logging_config import request_id_var


@web.middleware
async def correlation_id_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Extract or generate a correlation ID for request tracking.

    Args:
        request: aiohttp request object
        handler: Next handler in middleware chain

    Returns:
        Response with ``X-Request-ID`` header set
    """
    correlation_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid.uuid4())
    )

    token = request_id_var.set(correlation_id)
    request["correlation_id"] = correlation_id
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers["X-Request-ID"] = correlation_id
        raise
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = correlation_id
    return response
