"""Shared HTTP client manager.

One ``httpx.AsyncClient`` is reused across every CalDAV request so that
connections to the same server are pooled between fetches.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from .. import __version__
from .logging_config import NO_REQUEST_ID, get_request_id

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": f"caltimeline/{__version__}",
    "Accept": "application/xml, text/xml, text/calendar, */*",
}


def build_timeout(seconds: float) -> httpx.Timeout:
    """Timeout applying ``seconds`` to reads, with a shorter connect phase."""
    return httpx.Timeout(seconds, connect=min(10.0, seconds))


def request_headers() -> dict[str, str]:
    """Per-request headers, carrying the current request id when there is one."""
    headers: dict[str, str] = {}
    request_id = get_request_id()
    if request_id != NO_REQUEST_ID:
        headers["X-Request-ID"] = request_id
    return headers


async def get_shared_client(
    client_id: str = "default",
    timeout: Optional[httpx.Timeout] = None,
    limits: Optional[httpx.Limits] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        timeout: Timeout configuration (defaults to 30 seconds)
        limits: Connection limits

    Returns:
        Shared httpx.AsyncClient
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            effective_limits = limits or DEFAULT_LIMITS
            logger.debug(
                "Creating shared HTTP client '%s' (max_connections=%s)",
                client_id,
                effective_limits.max_connections,
            )
            client = httpx.AsyncClient(
                timeout=timeout or build_timeout(30.0),
                limits=effective_limits,
                follow_redirects=True,
                headers=DEFAULT_HEADERS,
            )
            _shared_clients[client_id] = client
            logger.info("Created shared HTTP client '%s'", client_id)
        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called during application shutdown.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            if not client.is_closed:
                try:
                    await client.aclose()
                except httpx.HTTPError as e:
                    logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)
                else:
                    logger.debug("Closed shared HTTP client '%s'", client_id)
        _shared_clients.clear()
    logger.info("All shared HTTP clients closed")
