from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    Environment variables are read once at import time so the rest of the
    code depends on typed attributes instead of calling os.getenv directly.
    """

    # Optional database configuration for SQL-backed repositories. When
    # USE_SQL_REPOS is false (default) the in-memory repositories stay active.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, every endpoint requires a valid X-API-Key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # Minimum lead time, in hours, before a session's start for it to be
    # cancellable. Applies to every role, admins included.
    cancellation_window_hours: float = float(os.getenv("CANCELLATION_WINDOW_HOURS", "24"))

    # Currency assigned to bookings that do not name one.
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")

    # Root log level applied by setup_logging at startup.
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS configuration: comma-separated origins. "*" is fine for local
    # development but should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
