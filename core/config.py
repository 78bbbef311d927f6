"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Surfer happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET, google_client_id -> GOOGLE_CLIENT_ID).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Used for the DEBUG-conditional JWT_SECRET fallback.

Security notes:
  [S1] In production mode (DEBUG not set or false), a missing JWT_SECRET is a
       hard startup failure. The insecure placeholder is only ever used when
       DEBUG=true.

  [S2] JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("surfer.config")

# Dev-only fallback. Never accepted when DEBUG is false [S1].
INSECURE_DEV_SECRET = "your-secret-key-change-this-in-production"

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'surfer.db'}"


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

    debug: bool = False
    # Empty string is the sentinel for "not configured". The validator below
    # either substitutes the dev placeholder or raises.
    jwt_secret: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Google OAuth provider
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_url: str = "http://localhost:8080/api/v1/auth/google/callback"
    google_authorize_url: str = "https://accounts.google.com/o/oauth2/auth"
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    oauth_scopes: list[str] = [
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]

    # Per-call timeout and a whole-exchange deadline, so a slow provider
    # cannot hold a worker thread indefinitely.
    oauth_http_timeout_seconds: float = 10.0
    oauth_exchange_deadline_seconds: float = 20.0

    # ------------------------------------------------------------------
    # Lifetimes
    # ------------------------------------------------------------------

    state_ttl_seconds: int = 300
    state_reap_interval_seconds: int = 300
    token_expire_seconds: int = 24 * 3600

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    cookie_domain: str = ""
    cors_origins: list[str] = ["http://localhost:3000"]

    rate_limit_enabled: bool = True
    login_rate_limit: str = "20/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy [S1] [S2].

        Dev mode (DEBUG=true): fall back to a fixed placeholder with a warning
            so tokens survive local restarts.

        Production mode: refuse to start if JWT_SECRET is missing.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = INSECURE_DEV_SECRET
                logger.warning("WARNING: JWT_SECRET not set, using the insecure development placeholder.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        if self.state_ttl_seconds <= 0 or self.token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        if self.state_reap_interval_seconds <= 0:
            raise ValueError("STATE_REAP_INTERVAL_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
