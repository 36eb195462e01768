"""
core/config.py -- LeaseDesk settings, read once from the environment.

Every knob (database URL, session lifetime, cookie flags, rate limits, secret
redaction) is a field on Settings. Modules ask get_settings() for it and
never read os.environ themselves.

get_settings() is wrapped in lru_cache, so the first caller builds Settings
and everyone after shares that object. FastAPI routes, the CLI in main.py and
the stores all see the same values.

pydantic-settings maps each field to the upper-cased env var of the same
name (session_expire_seconds <- SESSION_EXPIRE_SECONDS) and also reads a
.env file in the working directory. Values are coerced to the field types.

SECRET_KEY keys the HMAC under which session tokens are stored. It must be
at least 32 characters. With DEBUG=true a random one is generated when none
is set (sessions then die with the process); without DEBUG a missing key
stops startup, since a fresh random key on each restart would log out every
user.

Layer rule: core/ may not import from api/, auth/, or vault/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("leasedesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'leasedesk.db'}"

# Session row lifetime and cookie max_age.
_SEVEN_DAYS = 60 * 60 * 24 * 7

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Environment-backed configuration. Every field has a default except
    SECRET_KEY outside debug mode, which validate_secret_key enforces."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces or rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_expire_seconds: int = _SEVEN_DAYS

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Rate limiting (slowapi limit strings)
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Test-user secrets
    # ------------------------------------------------------------------

    # Off: every member of the organization reads every record's email and
    # password. On: only the current holder does.
    redact_unheld_secrets: bool = False

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is required unless DEBUG=true. "
                    "Set it in the environment or in .env."
                )
            self.secret_key = secrets.token_hex(32)
            logger.warning("No SECRET_KEY set; generated a temporary one. Sessions end when the process exits.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings. Tests that change the environment
    call get_settings.cache_clear() or patch attributes on the instance."""
    return Settings()
