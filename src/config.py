"""
Task Deadline Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ConfigurationError(Exception):
    """Raised when required credentials or tokens are missing."""


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Task tracker API — static token OR service login/password
    API_BASE_URL: str = "http://localhost:4000/api"
    API_TOKEN: str = ""
    API_SERVICE_LOGIN: str = ""
    API_SERVICE_PASSWORD: str = ""
    API_TIMEOUT_SECONDS: float = 15.0

    # Directory + notifier
    USER_REFRESH_INTERVAL_SECONDS: float = 300.0
    TASK_NOTIFIER_POLL_INTERVAL_SECONDS: float = 60.0   # 0 disables the notifier
    TASK_DEADLINE_ALERT_WINDOW_HOURS: float = 24.0
    TASK_URL_TEMPLATE: str = ""                          # e.g. https://tracker/tasks/:id

    # Daily digest (hour unset → digest disabled)
    DAILY_REMINDER_HOUR: int | None = None
    DAILY_REMINDER_MINUTE: int = 0
    TIMEZONE: str = "UTC"

    # Notification ledger: "json" | "sqlite"
    STATE_BACKEND: str = "json"
    TASK_NOTIFIER_STATE_PATH: str = "bot-state.json"

    # Broadcasts
    BROADCAST_BATCH_SIZE: int = 20
    BROADCAST_PAUSE_SECONDS: float = 1.0
    BROADCAST_ACCESS_TOKEN: str = ""
    BROADCAST_SERVER_HOST: str = "0.0.0.0"
    BROADCAST_SERVER_PORT: int | None = None

    # Chat output
    MESSAGE_CHUNK_SIZE: int = 3500

    LOG_LEVEL: str = "INFO"

    @field_validator("DAILY_REMINDER_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int | None) -> int | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            hour = int(float(v))
        except (TypeError, ValueError):
            return None
        if not 0 <= hour <= 23:
            return None
        return hour

    @field_validator("DAILY_REMINDER_MINUTE", mode="before")
    @classmethod
    def parse_minute(cls, v: str | int | None) -> int:
        try:
            minute = int(float(v))
        except (TypeError, ValueError):
            return 0
        if not 0 <= minute <= 59:
            return 0
        return minute

    @field_validator("BROADCAST_SERVER_PORT", mode="before")
    @classmethod
    def parse_port(cls, v: str | int | None) -> int | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @property
    def has_api_credentials(self) -> bool:
        return bool(self.API_TOKEN) or bool(
            self.API_SERVICE_LOGIN and self.API_SERVICE_PASSWORD
        )


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys.

    Raises ConfigurationError when the bot token or the API credentials
    are missing.
    """
    token = _env("TELEGRAM_BOT_TOKEN")
    if not token or token.startswith("your-"):
        raise ConfigurationError("TELEGRAM_BOT_TOKEN is missing or not set in .env")

    loaded = Settings(
        TELEGRAM_BOT_TOKEN=token,
        API_BASE_URL=_env("API_BASE_URL", "http://localhost:4000/api"),
        API_TOKEN=_env("API_TOKEN"),
        API_SERVICE_LOGIN=_env("API_SERVICE_LOGIN"),
        API_SERVICE_PASSWORD=_env("API_SERVICE_PASSWORD"),
        API_TIMEOUT_SECONDS=_env("API_TIMEOUT_SECONDS", "15"),
        USER_REFRESH_INTERVAL_SECONDS=_env("USER_REFRESH_INTERVAL_SECONDS", "300"),
        TASK_NOTIFIER_POLL_INTERVAL_SECONDS=_env("TASK_NOTIFIER_POLL_INTERVAL_SECONDS", "60"),
        TASK_DEADLINE_ALERT_WINDOW_HOURS=_env("TASK_DEADLINE_ALERT_WINDOW_HOURS", "24"),
        TASK_URL_TEMPLATE=_env("TASK_URL_TEMPLATE"),
        DAILY_REMINDER_HOUR=_env("DAILY_REMINDER_HOUR"),
        DAILY_REMINDER_MINUTE=_env("DAILY_REMINDER_MINUTE", "0"),
        TIMEZONE=_env("TIMEZONE", "UTC"),
        STATE_BACKEND=_env("STATE_BACKEND", "json"),
        TASK_NOTIFIER_STATE_PATH=_env("TASK_NOTIFIER_STATE_PATH", "bot-state.json"),
        BROADCAST_BATCH_SIZE=_env("BROADCAST_BATCH_SIZE", "20"),
        BROADCAST_PAUSE_SECONDS=_env("BROADCAST_PAUSE_SECONDS", "1"),
        BROADCAST_ACCESS_TOKEN=_env("BROADCAST_ACCESS_TOKEN"),
        BROADCAST_SERVER_HOST=_env("BROADCAST_SERVER_HOST", "0.0.0.0"),
        BROADCAST_SERVER_PORT=_env("BROADCAST_SERVER_PORT"),
        MESSAGE_CHUNK_SIZE=_env("MESSAGE_CHUNK_SIZE", "3500"),
        LOG_LEVEL=_env("LOG_LEVEL", "INFO").upper(),
    )

    if not loaded.has_api_credentials:
        raise ConfigurationError(
            "API credentials are not provided. "
            "Set API_TOKEN or API_SERVICE_LOGIN/API_SERVICE_PASSWORD in .env"
        )
    return loaded


def setup_logging() -> None:
    """Configure the root logger for an entry point."""
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)


try:
    # Singleton — imported by all other modules as:
    #   from src.config import settings
    settings = _load_settings()
except ConfigurationError as _exc:
    print(f"ERROR: {_exc}", file=sys.stderr)
    sys.exit(1)
