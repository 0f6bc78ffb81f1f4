"""
Central logging configuration for caltimeline.

Installs a colorized console handler, tags every record with the current
request id, and quiets verbose third-party libraries.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import Optional

from colorlog import ColoredFormatter

# Set per request by the correlation id middleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

NO_REQUEST_ID = "-"

LOG_FORMAT = (
    "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s [%(request_id)s] %(name)s: %(message)s"
)
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party loggers kept at WARNING unless debugging everything
NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_request_id() -> str:
    """Return the current request id, or ``-`` outside a request."""
    return request_id_var.get() or NO_REQUEST_ID


class CorrelationIdFilter(logging.Filter):
    """Add the current request id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Attach ``request_id`` and let the record through."""
        record.request_id = get_request_id()
        return True


def _env_debug() -> bool:
    return os.getenv("CALTIMELINE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def resolve_level(level_name: Optional[str], debug: bool = False) -> int:
    """Work out the effective root level.

    Precedence: ``CALTIMELINE_LOG_LEVEL``, then ``CALTIMELINE_DEBUG`` or
    ``debug``, then ``level_name``, then INFO.
    """
    env_level = os.getenv("CALTIMELINE_LOG_LEVEL", "").strip().upper()
    if env_level in _VALID_LEVELS:
        return getattr(logging, env_level)
    if debug or _env_debug():
        return logging.DEBUG
    if level_name and level_name.upper() in _VALID_LEVELS:
        return getattr(logging, level_name.upper())
    return logging.INFO


def configure_logging(level_name: Optional[str] = None, debug: bool = False) -> int:
    """Configure root logging for caltimeline.

    A handler is only added when the root logger has none, so repeated calls
    (and test harnesses that install their own handlers) do not duplicate output.

    Args:
        level_name: Level name from configuration (e.g. ``INFO``)
        debug: Force DEBUG for caltimeline modules

    Environment Variables:
        CALTIMELINE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALTIMELINE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The effective root level
    """
    level = resolve_level(level_name, debug)

    root = logging.getLogger()
    root.setLevel(level)

    correlation_filter = CorrelationIdFilter()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
        handler.addFilter(correlation_filter)
        root.addHandler(handler)
    else:
        for existing in root.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing.filters):
                existing.addFilter(correlation_filter)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
    logging.getLogger("caltimeline").setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
    return level
