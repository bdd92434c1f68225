"""Application configuration loaded from environment variables."""

from datetime import date
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Engine thresholds live in ``cycles/cycle_config.yaml``, not here.
    """

    # --- App ---
    app_name: str = "Miso Cycle"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Storage ---
    storage_backend: str = "memory"  # memory | postgres
    database_url: str = ""  # required for the postgres backend
    db_pool_min_size: int = 2
    db_pool_max_size: int = 20

    # --- Engine ---
    cycle_config_path: str | None = None  # overrides the bundled cycle_config.yaml
    today_override: date | None = None  # pins "today" for demos and tests

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
