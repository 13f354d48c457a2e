"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Resolves the signing secret once all fields
      are loaded. A missing JWT_SECRET is replaced by a random per-process
      secret, which means issued tokens do not survive a restart. That is a
      known limitation of running without JWT_SECRET, not something to paper
      over.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("fivechan.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'fivechan_auth.db'}"

# Used when PUBLIC_ALLOWED_URLS is not set (local frontend dev servers).
_DEV_ORIGINS = ("http://localhost:3000", "http://localhost:5173")

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel; the validator below
    # replaces it, so callers never see "".
    jwt_secret: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Expiry notifications
    # ------------------------------------------------------------------

    # Seconds between scans on each /ws/expiry connection.
    expiry_scan_interval: float = 5.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    # Comma-separated list of origins, e.g. "https://a.example, https://b.example"
    public_allowed_urls: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def resolve_jwt_secret(self) -> "Settings":
        """Generate a process-lifetime secret when none is configured.

        A configured secret is used as given. One shorter than 32 characters
        only logs a warning, since HS256 tokens are only as strong as the key.
        """
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_hex(32)
            logger.warning(
                "WARNING: Using generated JWT secret. "
                "Set JWT_SECRET for production; tokens will not survive a restart."
            )
        elif len(self.jwt_secret) < MIN_SECRET_LENGTH:
            logger.warning(
                "WARNING: JWT_SECRET is shorter than %d characters; use a longer random secret.",
                MIN_SECRET_LENGTH,
            )
        return self

    @property
    def allowed_origins(self) -> list[str]:
        """Return CORS origins parsed from PUBLIC_ALLOWED_URLS (whitespace trimmed)."""
        if not self.public_allowed_urls.strip():
            return list(_DEV_ORIGINS)
        return [o.strip() for o in self.public_allowed_urls.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
