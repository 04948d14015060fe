"""
OpsBoard Recurrence Engine — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/opsboard.db"

    # Reference zone for "today" (never UTC)
    TIMEZONE: str = "Europe/Paris"

    # Hourly sweep fires at this minute past every hour
    SWEEP_MINUTE: int = 5

    # One failing event rolls back the whole sweep unless this is on
    SWEEP_ISOLATE_EVENTS: bool = False

    # Largest inclusive date range a generator call accepts
    MAX_RANGE_DAYS: int = 366

    LOG_LEVEL: str = "INFO"

    @field_validator("SWEEP_MINUTE", mode="before")
    @classmethod
    def parse_minute(cls, v: str | int) -> int:
        minute = int(v)
        if not 0 <= minute <= 59:
            raise ValueError(f"SWEEP_MINUTE out of range: {minute}")
        return minute

    @field_validator("MAX_RANGE_DAYS", mode="before")
    @classmethod
    def parse_max_range(cls, v: str | int) -> int:
        days = int(v)
        if days < 1:
            raise ValueError("MAX_RANGE_DAYS must be at least 1")
        return days

    @field_validator("SWEEP_ISOLATE_EVENTS", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_level(cls, v: str) -> str:
        return str(v).strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/opsboard.db"),
            TIMEZONE=os.getenv("TIMEZONE", "Europe/Paris"),
            SWEEP_MINUTE=os.getenv("SWEEP_MINUTE", "5"),
            SWEEP_ISOLATE_EVENTS=os.getenv("SWEEP_ISOLATE_EVENTS", "false"),
            MAX_RANGE_DAYS=os.getenv("MAX_RANGE_DAYS", "366"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
