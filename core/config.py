"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for BizHub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates missing signing secrets with a warning,
      production mode refuses to start without them.

Security notes:
  [M6] Signing secrets shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing secret is a
       hard startup failure.

  [M8] Access and refresh tokens are signed with different secrets. Equal
       secrets would let a refresh token pass access-token verification, so
       the validator rejects them.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("bizhub.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    database_url: str = "sqlite:///bizhub_auth.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 900
    refresh_token_expire_days: int = 7

    # ------------------------------------------------------------------
    # Credentials and lockout
    # ------------------------------------------------------------------

    # One cost factor for every hash written by the service.
    bcrypt_rounds: int = 12
    max_login_attempts: int = 5
    lockout_minutes: int = 30
    reset_token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the signing-secret policy [M6] [M7] [M8].

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            value = getattr(self, name)
            if not value:
                if self.debug:
                    setattr(self, name, secrets.token_hex(32))
                    logger.warning(
                        "WARNING: Using auto-generated %s. Tokens will not persist across restarts.",
                        name.upper(),
                    )
                else:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
            elif len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.bcrypt_rounds < 4 or self.bcrypt_rounds > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
