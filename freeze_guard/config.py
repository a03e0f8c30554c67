"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

from freeze_guard.utils.constants import (
    DEFAULT_FREEZE_HOURS,
    DEFAULT_FREEZE_THRESHOLD,
    DEFAULT_STRATEGY_NAMES,
    DEFAULT_SYMBOLS,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = "sqlite:///./freeze_guard.db"
    log_level: str = "INFO"
    log_file: str = ""  # empty = console only
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Values given to records created on first access
    default_freeze_threshold: int = DEFAULT_FREEZE_THRESHOLD
    default_freeze_hours: int = DEFAULT_FREEZE_HOURS

    # Option-list fallbacks for an empty table
    default_symbols: list[str] = DEFAULT_SYMBOLS
    default_strategy_names: list[str] = DEFAULT_STRATEGY_NAMES

    model_config = {"env_prefix": "FG_", "env_file": ".env"}


settings = Settings()
