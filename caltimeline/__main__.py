"""Command-line entry for caltimeline."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional

from . import run_server
from .core.config_loader import DEFAULT_CONFIG_PATH
from .exceptions import ConfigError


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the caltimeline CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="caltimeline",
        description="caltimeline - read-only CalDAV calendar timeline server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m caltimeline                          # Use ./config.yaml
  python -m caltimeline /etc/caltimeline.yaml    # Explicit config file
  python -m caltimeline --port 3000              # Override the configured port
        """,
    )
    parser.add_argument(
        "config_file",
        nargs="?",
        metavar="CONFIG",
        help="Path to the YAML configuration file (overrides --config)",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        metavar="PATH",
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: server_port from config)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (same as CALTIMELINE_DEBUG=1)",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments, letting the positional CONFIG win over --config."""
    args = _create_parser().parse_args(argv)
    if args.config_file:
        args.config = args.config_file
    return args


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the caltimeline CLI."""
    args = parse_args(argv)
    try:
        run_server(args)
    except ConfigError as exc:
        print(f"caltimeline: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
