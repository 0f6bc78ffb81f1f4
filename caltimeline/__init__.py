"""caltimeline - read-only CalDAV calendar timeline server.

Pulls events from one or more CalDAV calendars, expands recurring series into
concrete occurrences in a single display timezone, and serves them as JSON.
Imports are kept light here so the package can be inspected without the
server stack loaded.
"""

__version__ = "0.1.0"

from typing import Optional


def run_server(args: Optional[object] = None) -> None:
    """Load configuration and run the HTTP server until stopped.

    Args:
        args: Optional argparse namespace with ``config``, ``port`` and ``debug``

    Raises:
        ConfigError: If the configuration cannot be loaded
    """
    import logging

    from .api.server import start_server
    from .core.config_loader import load_config

    logger = logging.getLogger(__name__)

    config_path = getattr(args, "config", None)
    config = load_config(config_path)

    port = getattr(args, "port", None)
    if port is not None:
        config = config.model_copy(update={"server_port": int(port)})
        logger.debug("Applied command line port override: %d", port)

    start_server(config, debug=bool(getattr(args, "debug", False)))
