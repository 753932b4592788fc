"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

TurnstileSettings is frozen: it is built once when the app starts and shared
read-only by every request the gate inspects.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class TurnstileSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    turnstile_secret_key: str

    # Hard deadlines; a timeout surfaces as a 503 and is never retried here
    turnstile_timeout_seconds: float = 5.0
    turnstile_connect_timeout_seconds: float = 5.0
    turnstile_pool_idle_timeout_seconds: float = 5.0

    turnstile_verify_url: str = TURNSTILE_VERIFY_URL

    # Requests to these paths are never gated (health probes, etc.)
    turnstile_exempt_paths: list[str] = ["/health"]


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "turnstile-gate"

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    turnstile: Optional[TurnstileSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.turnstile is None:
            self.turnstile = TurnstileSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
