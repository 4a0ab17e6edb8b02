# conduct_log/core/config.py
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

# root .env first, then package-level .env as fallback (never overriding)
load_dotenv(find_dotenv(usecwd=True))
load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./data/conduct-log.db")

# dev convenience: create tables at startup (disable when Alembic manages the schema)
ENABLE_CREATE_ALL: bool = os.getenv("ENABLE_CREATE_ALL", "1") == "1"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Bounded retries for the two serialized resources (incident number, incident status)
INCIDENT_NUMBER_RETRIES: int = _int_env("INCIDENT_NUMBER_RETRIES", 5)
STATUS_CHANGE_RETRIES: int = _int_env("STATUS_CHANGE_RETRIES", 3)

DEFAULT_PAGE_SIZE: int = _int_env("DEFAULT_PAGE_SIZE", 20)
MAX_PAGE_SIZE: int = _int_env("MAX_PAGE_SIZE", 1000)
