"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Defaults provided for every non-secret setting
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://jobboard:jobboard@db:5432/jobboard"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres URLs use postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # API
    cors_origins: list[str] = ["http://localhost:3000"]
    site_url: str = "http://localhost:3000"

    # Read cache
    cache_capacity: int = 100
    cache_detail_ttl_seconds: float = 300.0
    cache_listing_ttl_seconds: float = 120.0
    cache_sweep_interval_seconds: float = 300.0

    # Outbound email (edge-function style HTTP endpoints)
    email_functions_url: str | None = None
    email_api_key: str | None = None
    email_timeout_seconds: float = 10.0

    # Résumé storage
    resume_storage_dir: str = "./storage/resumes"
    resume_public_base_url: str = "http://localhost:8000/storage/resumes"

    # Lifecycle rules
    stale_application_days: int = 7
    deadline_reminder_days: int = 3
    strict_status_transitions: bool = False

    # Scheduler (single-instance deployments only)
    scheduler_enabled: bool = False
    scheduler_interval_seconds: float = 3600.0

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
