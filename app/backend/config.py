"""
Environment driven settings for the research bridge.

Values are read from the process environment (a local .env file is loaded
first by app.py). Cache bounds map straight onto caching.service.CacheLimits.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import List

from caching.service import CacheLimits

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = ("debug", "info", "warning", "error")
_DEFAULT_CORS = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %d", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_timeout_seconds: float = 600.0
    log_level: str = "info"
    cors_allowed_origins: List[str] = field(default_factory=lambda: _DEFAULT_CORS.split(","))
    cache_limits: CacheLimits = field(default_factory=CacheLimits)

    @classmethod
    def from_env(cls) -> "Settings":
        log_level = os.getenv("LOG_LEVEL", "info").lower()
        if log_level not in _VALID_LOG_LEVELS:
            logger.warning("Invalid LOG_LEVEL %r, defaulting to info", log_level)
            log_level = "info"

        defaults = CacheLimits()
        limits = CacheLimits(
            response_max_entries=_int_env("RESPONSE_CACHE_MAX_ENTRIES", defaults.response_max_entries),
            response_max_size=_int_env("RESPONSE_CACHE_MAX_BYTES", defaults.response_max_size),
            attachment_max_entries=_int_env("ATTACHMENT_CACHE_MAX_ENTRIES", defaults.attachment_max_entries),
            attachment_max_size=_int_env("ATTACHMENT_CACHE_MAX_BYTES", defaults.attachment_max_size),
        )

        origins = os.getenv("CORS_ALLOWED_ORIGINS", _DEFAULT_CORS).split(",")

        return cls(
            perplexity_api_key=os.getenv("PERPLEXITY_API_KEY", ""),
            perplexity_base_url=os.getenv("PERPLEXITY_API_BASE_URL", "https://api.perplexity.ai"),
            perplexity_timeout_seconds=_float_env("PERPLEXITY_TIMEOUT_SECONDS", 600.0),
            log_level=log_level,
            cors_allowed_origins=[o.strip() for o in origins if o.strip()],
            cache_limits=limits,
        )
