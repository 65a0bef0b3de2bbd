"""
Backing store settings from the environment.

Environment variables:
    SUPABASE_URL               hosted backend base URL (https://<ref>.supabase.co)
    SUPABASE_ANON_KEY          public API key sent as ``apikey`` / bearer token
    DATABASE_URL               direct SQL connection; selects the SQL store
    CONGREGATION_HTTP_TIMEOUT  REST timeout in seconds (default 15)

A missing or malformed SUPABASE_URL is logged at CRITICAL and replaced by a
placeholder host so the console still starts; every write against it then
fails as a transport error instead of crashing the bootstrap.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlparse

_logger = logging.getLogger("congregation_kernel.config")

PLACEHOLDER_URL = "https://setup-needed.supabase.co"
PLACEHOLDER_KEY = "placeholder-key"
DEFAULT_HTTP_TIMEOUT = 15.0


@dataclass(frozen=True)
class StoreSettings:
    """Connection settings for the backing store."""

    supabase_url: str
    supabase_anon_key: str
    database_url: str | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def uses_sql(self) -> bool:
        return bool(self.database_url)

    @property
    def is_configured(self) -> bool:
        return self.uses_sql or self.supabase_url != PLACEHOLDER_URL


def is_valid_url(url: str | None) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def load_store_settings(environ: Mapping[str, str] | None = None) -> StoreSettings:
    """Read StoreSettings from ``environ`` (defaults to ``os.environ``).

    Raises:
        ValueError: If CONGREGATION_HTTP_TIMEOUT is not a positive number.
    """
    env = os.environ if environ is None else environ

    database_url = env.get("DATABASE_URL") or None
    url = env.get("SUPABASE_URL")
    key = env.get("SUPABASE_ANON_KEY")

    if not is_valid_url(url):
        if database_url is None:
            _logger.critical(
                "supabase_url_invalid",
                extra={"supabase_url": url, "fallback": PLACEHOLDER_URL},
            )
        url = PLACEHOLDER_URL
    if not key:
        key = PLACEHOLDER_KEY

    raw_timeout = env.get("CONGREGATION_HTTP_TIMEOUT")
    timeout = DEFAULT_HTTP_TIMEOUT
    if raw_timeout:
        timeout = float(raw_timeout)
        if timeout <= 0:
            raise ValueError(
                f"CONGREGATION_HTTP_TIMEOUT must be positive, got {raw_timeout!r}"
            )

    return StoreSettings(
        supabase_url=url,
        supabase_anon_key=key,
        database_url=database_url,
        http_timeout=timeout,
    )
