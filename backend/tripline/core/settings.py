from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application level configuration sourced from env or .env file."""

    app_env: str = "development"
    app_name: str = "Tripline Backend"
    app_version: str = "0.1.0"
    debug: bool = True
    uvicorn_host: str = "0.0.0.0"
    uvicorn_port: int = 8000

    database_url: str = "sqlite:///./tripline.db"

    itinerary_reconcile_on_failure: bool = Field(
        default=True,
        validation_alias="ITINERARY_RECONCILE_ON_FAILURE",
    )
    itinerary_strict_invariants: bool = Field(
        default=False,
        validation_alias="ITINERARY_STRICT_INVARIANTS",
    )
    itinerary_history_limit: int = Field(
        default=50,
        validation_alias="ITINERARY_HISTORY_LIMIT",
    )
    trip_activity_limit: int = Field(
        default=100,
        validation_alias="TRIP_ACTIVITY_LIMIT",
    )
    share_token_bytes: int = 12

    log_level: str = "INFO"
    log_directory: str = "logs"
    log_max_bytes: int = 2 * 1024 * 1024
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
