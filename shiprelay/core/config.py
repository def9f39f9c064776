"""
Application configuration

Settings are built once at startup and handed to each component
constructor. Request handlers never read configuration from module state.

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- Shippo/Stripe credentials and BASE_URL have no defaults
- Runtime validation catches insecure configurations
"""
import logging
import os
from typing import List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SHIPPO_DEFAULT_BASE = "https://api.goshippo.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Ship Relay"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    PORT: int = 10000

    # Externally reachable URL for success/cancel redirects
    BASE_URL: str = ""

    # Shippo
    SHIPPO_API_KEY: str = ""
    SHIPPO_API_BASE: str = SHIPPO_DEFAULT_BASE
    SHIPPO_TIMEOUT_SECONDS: float = 30.0
    LABEL_FILE_TYPE: str = "PDF"

    # Stripe Payments
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "usd"

    # Redis (webhook idempotency); empty = in-memory only
    REDIS_URL: str = ""
    WEBHOOK_EVENT_TTL_HOURS: int = 24

    @field_validator("BASE_URL", "SHIPPO_API_BASE")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if v else v

    @field_validator("STRIPE_CURRENCY")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return (v or "usd").lower()

    @field_validator("LABEL_FILE_TYPE")
    @classmethod
    def upper_label_type(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch incomplete production configurations."""
        if self.ENVIRONMENT != "production":
            return self

        errors: List[str] = []

        if self.DEBUG:
            errors.append(
                "DEBUG=True is forbidden in production. "
                "Set DEBUG=false or ENVIRONMENT=development"
            )

        for name in ("SHIPPO_API_KEY", "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "BASE_URL"):
            if not getattr(self, name):
                errors.append(f"{name} must be set in production")

        if self.BASE_URL and not self.BASE_URL.startswith("https://"):
            errors.append("BASE_URL must use https in production (Stripe redirects)")

        if errors:
            raise ValueError(
                "PRODUCTION CONFIGURATION VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
            )

        return self

    @property
    def secret_values(self) -> List[str]:
        """Credential values that must never reach a client or a log line."""
        return [
            v for v in (self.SHIPPO_API_KEY, self.STRIPE_SECRET_KEY, self.STRIPE_WEBHOOK_SECRET)
            if v
        ]


def load_settings() -> Settings:
    """
    Build settings from the environment.

    Only an explicit ENVIRONMENT=development in the process environment
    gets the development fallback. Unset ENVIRONMENT means production and
    a failed validation is raised.
    """
    try:
        return Settings()
    except Exception:
        if os.getenv("ENVIRONMENT", "production") != "development":
            raise
        logger.warning(
            "Settings validation failed, using development defaults. "
            "Set SHIPPO_API_KEY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET and BASE_URL in .env."
        )
        os.environ.setdefault("BASE_URL", "http://localhost:10000")
        return Settings()
