from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from simflow.models.enums import ProjectStatus


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "SimFlow Hours"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    database_url: str = "postgresql+asyncpg://simflow:simflow@db:5432/simflow"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Project statuses that accept positive hour allocations.
    allocatable_project_statuses: list[ProjectStatus] = [ProjectStatus.ACTIVE, ProjectStatus.APPROVED]
    history_page_size: int = 50


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
