"""Runtime configuration for the Messenger webhook and reply pipeline.

Values come from the environment (``main`` loads a ``.env`` file first). Missing
secrets never prevent start up: the operations that need them fail closed, e.g.
the verification handshake answers 500 and signature checks reject everything.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from functools import lru_cache

DEFAULT_GRAPH_API_VERSION = "v19.0"
RESPONSE_MODES = ("rules", "acknowledge")

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Settings:
    """Environment-driven settings shared by the router and the services."""

    database_url: str | None
    verify_token: str | None
    app_secret: str | None
    encryption_key: str | None
    graph_api_version: str = DEFAULT_GRAPH_API_VERSION
    graph_api_base: str = f"https://graph.facebook.com/{DEFAULT_GRAPH_API_VERSION}"
    send_timeout_seconds: float = 10.0
    send_max_retries: int = 3
    business_timezone: str = "Asia/Phnom_Penh"
    response_mode: str = "rules"


def _optional(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.error("Invalid %s=%r, using %s", name, raw, default)
        return default


def _response_mode() -> str:
    mode = os.getenv("BOT_RESPONSE_MODE", "rules").strip().lower()
    if mode not in RESPONSE_MODES:
        logger.error(
            "BOT_RESPONSE_MODE must be one of %s, got %r; using rules",
            ", ".join(RESPONSE_MODES),
            mode,
        )
        return "rules"
    return mode


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment with defaults for development."""

    version = os.getenv("GRAPH_API_VERSION", DEFAULT_GRAPH_API_VERSION)
    api_base = os.getenv("GRAPH_API_BASE") or f"https://graph.facebook.com/{version}"
    return Settings(
        database_url=_optional("DATABASE_URL"),
        verify_token=_optional("FACEBOOK_VERIFY_TOKEN"),
        app_secret=_optional("FACEBOOK_APP_SECRET"),
        encryption_key=_optional("ENCRYPTION_KEY"),
        graph_api_version=version,
        graph_api_base=api_base.rstrip("/"),
        send_timeout_seconds=_number("SEND_TIMEOUT_SECONDS", 10.0, float),
        send_max_retries=_number("SEND_MAX_RETRIES", 3, int),
        business_timezone=os.getenv("BUSINESS_TIMEZONE", "Asia/Phnom_Penh"),
        response_mode=_response_mode(),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
