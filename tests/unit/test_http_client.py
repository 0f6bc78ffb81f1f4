"""Unit tests for caltimeline.core.http_client."""

import pytest

from caltimeline import __version__
from caltimeline.core.http_client import (
    build_timeout,
    close_all_clients,
    get_shared_client,
    request_headers,
)
from caltimeline.core.logging_config import request_id_var

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.mark.asyncio
async def test_get_shared_client_when_same_id_then_reused() -> None:
    """The same id returns the same pooled client."""
    first = await get_shared_client("caldav")
    second = await get_shared_client("caldav")
    other = await get_shared_client("other")

    assert first is second
    assert first is not other
    assert first.headers["User-Agent"] == f"caltimeline/{__version__}"


@pytest.mark.asyncio
async def test_close_all_clients_when_called_then_new_client_created_next_time() -> None:
    """Closed clients are replaced on the next request."""
    first = await get_shared_client("caldav")
    await close_all_clients()
    assert first.is_closed
    second = await get_shared_client("caldav")
    assert second is not first


def test_build_timeout_when_short_then_connect_capped_by_total() -> None:
    """The connect phase never exceeds ten seconds or the read timeout."""
    assert build_timeout(30.0).connect == 10.0
    assert build_timeout(5.0).connect == 5.0
    assert build_timeout(30.0).read == 30.0


def test_request_headers_when_in_request_then_forwards_request_id() -> None:
    """X-Request-ID is forwarded only inside a request."""
    assert request_headers() == {}
    token = request_id_var.set("abc")
    try:
        assert request_headers() == {"X-Request-ID": "abc"}
    finally:
        request_id_var.reset(token)
