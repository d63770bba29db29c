"""
Experience Upgrades — Centralized configuration.

Loads all settings from .env and validates them.
Every module that needs a tunable reads it from the `settings` singleton.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/upgrades.db"

    # How long the notification permission probe may block (seconds)
    NOTIFICATION_PERMISSION_TIMEOUT: float = 0.05

    # Used when remote config has no donateMegaphoneSnoozeInterval
    DONATE_SNOOZE_DAYS: int = 30

    LOG_LEVEL: str = "INFO"

    @field_validator("NOTIFICATION_PERMISSION_TIMEOUT", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        timeout = float(v)
        if timeout <= 0:
            raise ValueError("NOTIFICATION_PERMISSION_TIMEOUT must be positive")
        return timeout

    @field_validator("DONATE_SNOOZE_DAYS", mode="before")
    @classmethod
    def parse_days(cls, v: str | int) -> int:
        days = int(v)
        if days < 0:
            raise ValueError("DONATE_SNOOZE_DAYS must not be negative")
        return days

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown LOG_LEVEL: {v!r}")
        return level

    @property
    def log_level(self) -> int:
        return getattr(logging, self.LOG_LEVEL)


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/upgrades.db"),
        NOTIFICATION_PERMISSION_TIMEOUT=os.getenv("NOTIFICATION_PERMISSION_TIMEOUT", "0.05"),
        DONATE_SNOOZE_DAYS=os.getenv("DONATE_SNOOZE_DAYS", "30"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
