"""caltimeline.core.config_loader

Config loader for caltimeline.

- Reads YAML with PyYAML ``safe_load``.
- Validates with pydantic models; every failure surfaces as ``ConfigError``.
- Credentials stay on disk in per-calendar password files and are read on demand.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigError
from .timezone_utils import load_zone

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class CalendarConfig(BaseModel):
    """One CalDAV calendar to pull events from."""

    name: str = Field(..., min_length=1, description="Display name of the calendar")
    url: str = Field(..., min_length=1, description="CalDAV collection URL")
    user_id: str = Field(..., min_length=1, description="HTTP Basic auth user")
    password_file: str = Field(..., min_length=1, description="File holding the password")
    color: str = Field(..., description="Display color in #RRGGBB form")

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Require a #RRGGBB hex color."""
        if not _COLOR_RE.match(v):
            raise ValueError("color must be in hex format (#RRGGBB)")
        return v

    def read_password(self) -> str:
        """Read the password from ``password_file``, stripped of whitespace.

        Raises:
            ConfigError: If the file cannot be read or is empty
        """
        path = Path(self.password_file)
        try:
            password = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"failed to read password file {path}: {exc}") from exc
        if not password:
            raise ConfigError(f"password file {path} is empty")
        return password


class AppConfig(BaseModel):
    """Typed configuration for caltimeline.

    Fields:
        time_zone: IANA zone every occurrence is displayed in
        auto_refresh: client refresh interval in seconds (passed through to clients)
        calendars: CalDAV calendars to aggregate (at least one)
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
        request_timeout: per-request CalDAV timeout in seconds
    """

    time_zone: str = Field(..., min_length=1)
    auto_refresh: int = Field(..., gt=0)
    calendars: list[CalendarConfig] = Field(..., min_length=1)

    server_bind: str = "0.0.0.0"  # nosec: B104 - intentional default, overridable in config
    server_port: int = Field(default=8080, gt=0, lt=65536)
    log_level: str = "INFO"
    request_timeout: float = Field(default=30.0, gt=0)

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str) -> str:
        """Require a resolvable zone name."""
        try:
            load_zone(v)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"invalid time_zone {v!r}") from exc
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the level name."""
        return str(v).upper()

    @property
    def zone(self) -> ZoneInfo:
        """Display timezone as a ZoneInfo."""
        return load_zone(self.time_zone)

    def sanitized(self) -> dict[str, Any]:
        """Return the public view of the configuration, without credentials."""
        return {
            "timezone": self.time_zone,
            "autoRefresh": self.auto_refresh,
            "calendars": [{"name": cal.name, "color": cal.color} for cal in self.calendars],
        }


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location or 'config'}: {err.get('msg')}")
    return "; ".join(parts)


def parse_config(data: Any) -> AppConfig:
    """Validate an already-loaded mapping.

    Raises:
        ConfigError: If the data is not a mapping or fails validation
    """
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping at top level")
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {_format_validation_error(exc)}") from exc


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the config file; defaults to ./config.yaml

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If the file is missing, unreadable, not YAML or invalid
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file {p}: {exc}") from exc

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {p}: {exc}") from exc

    cfg = parse_config(raw)
    logger.info("Loaded configuration from %s (%d calendars)", p, len(cfg.calendars))
    logger.debug("Display timezone %s, auto refresh %ds", cfg.time_zone, cfg.auto_refresh)
    return cfg
