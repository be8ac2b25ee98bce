"""Runtime settings for the DKAN datastore client.

Settings are read from environment variables so that the same code can
target different portals without edits:

``DKAN_BASE_URL``
    Base URL of the portal (default ``https://data.ca.gov``).
``DKAN_TIMEOUT``
    Per-request timeout in seconds.  Unset means the transport default
    (no timeout).
``DKAN_USER_AGENT``
    User-Agent header sent with every request.
``DKAN_LOG_LEVEL``
    Logging level used by the HTTP application (default ``INFO``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from . import __version__
from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://data.ca.gov"
DEFAULT_USER_AGENT = f"dkan_datastore/{__version__}"


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"DKAN_TIMEOUT must be a number, got {raw!r}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"DKAN_TIMEOUT must be positive, got {raw!r}")
    return timeout


def _parse_log_level(raw: Optional[str]) -> str:
    level = (raw or "INFO").strip().upper() or "INFO"
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(
            f"DKAN_LOG_LEVEL must be a logging level name, got {raw!r}"
        )
    return level


@dataclass(frozen=True)
class Settings:
    """Snapshot of the environment-driven configuration."""

    base_url: str = DEFAULT_BASE_URL
    timeout: Optional[float] = None
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url=os.getenv("DKAN_BASE_URL") or DEFAULT_BASE_URL,
            timeout=_parse_timeout(os.getenv("DKAN_TIMEOUT")),
            user_agent=os.getenv("DKAN_USER_AGENT") or DEFAULT_USER_AGENT,
            log_level=_parse_log_level(os.getenv("DKAN_LOG_LEVEL")),
        )


def get_settings() -> Settings:
    """Return settings freshly read from the current environment."""
    return Settings.from_env()


__all__ = ["Settings", "get_settings", "DEFAULT_BASE_URL"]
