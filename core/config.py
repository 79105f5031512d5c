"""
core/config.py -- Environment-driven settings for the newsletter service.

Settings is a pydantic-settings model: each field is read from the
upper-cased environment variable of the same name (DATABASE_URL, BASE_URL,
EMAIL_SENDER, ...) or from .env, with type coercion. get_settings() caches
one instance per process. Only the API lifespan and manage.py call it; they
turn the values into explicit objects (stores, email client, redirect
signer) so nothing below api/ reads configuration on its own.

Security notes:
  SECRET_KEY is the HMAC key for signed login redirects. Keys shorter than
  32 chars are rejected outright.

Layer rule: core/ is the kernel. This module may import the domain value
types from subscriptions/models.py (pure, no I/O) but nothing from api/ or web/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subscriptions.models import SubscriberEmail

logger = logging.getLogger("newsletter.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'newsletter.db'}"


class Settings(BaseSettings):
    """Newsletter service configuration. Every field has a usable default except
    secret_key, which validate_secret_key fills in (DEBUG) or insists on.
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
    # "" means unset; validate_secret_key replaces it or refuses to start.
    secret_key: str = ""
    # Public URL the confirmation links point at (no trailing slash).
    base_url: str = "http://127.0.0.1:8000"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    # Upper bound on waiting for a pooled connection (or a SQLite lock).
    database_timeout_seconds: float = 2.0

    # ------------------------------------------------------------------
    # Email delivery (Postmark-style HTTP API)
    # ------------------------------------------------------------------

    email_base_url: str = "http://localhost:8025"
    email_authorization_token: str = ""
    email_sender: str = "newsletter@example.com"
    email_timeout_ms: int = 10_000

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Signed login errors issued before a restart stop verifying.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Signed redirects will not verify across restarts."
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

    def sender(self) -> SubscriberEmail:
        """Return the configured From address as a validated SubscriberEmail."""
        return SubscriberEmail.parse(self.email_sender)

    @property
    def email_timeout(self) -> float:
        """Email API timeout in seconds, as requests expects it."""
        return self.email_timeout_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings (get_settings.cache_clear() resets it)."""
    return Settings()
