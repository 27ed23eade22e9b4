"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a signing key with a warning, production
      mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and the
  refresh-token HMAC both rely on key entropy.

  The settings object is read by the application factory only. The signing
  secret is handed to TokenCodec explicitly; auth/ never reads settings.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authsession.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true is still needed unless
    SECRET_KEY is set).
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"
    # Access tokens cannot be revoked individually, so keep them short.
    access_token_expire_seconds: int = Field(default=15 * 60, gt=0)
    refresh_token_expire_seconds: int = Field(default=7 * 24 * 3600, gt=0)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    # bcrypt cost factor. 12 is roughly 100-250ms per comparison on current
    # hardware. Tests drop this to 4.
    password_hash_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./authsession.db"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Comma-separated list, e.g. "http://localhost:3000,https://app.example.com"
    allowed_origins: str = "http://localhost:3000"
    secure_cookies: bool = False
    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def cors_origins(self) -> list[str]:
        """allowed_origins split on commas, blanks dropped."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing. Every restart would otherwise invalidate
            all issued tokens and stored refresh-token hashes.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
