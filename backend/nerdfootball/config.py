"""
backend/nerdfootball/config.py

Purpose:
    Central settings loading for the survivor backend, API surface and admin
    tools.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from datetime import date
from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "nerdfootball"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5000"

    # Pool identity
    POOL_ID: str = "nerduniverse-2025"
    SEASON: int = 2025
    SEASON_START_DATE: date = date(2025, 9, 4)  # Week 1 kickoff (Thursday)

    # Shared secret for admin endpoints (leave empty to disable them)
    ADMIN_API_KEY: str = ""

    # Survivor recompute
    SURVIVOR_RECOMPUTE_CONCURRENCY: int = 8
    SURVIVOR_WRITE_RETRIES: int = 3
    SURVIVOR_AUTOMATION_ENABLED: bool = False
    SURVIVOR_RECOMPUTE_INTERVAL_MINUTES: int = 60
    SURVIVOR_SMART_SLEEP_MINUTES: int = 360

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
