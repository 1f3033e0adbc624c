"""Global configuration for the canvas store."""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Canvas Store"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: Path = Path("./logs")

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # File storage
    storage_dir: Path = Path("./storage")
    documents_dirname: str = "documents"
    record_extension: str = "canvas"
    settings_filename: str = "settings.json"
    trash_retention_days: int = 30

    # Search
    search_debounce_ms: int = 300

    # Caches
    document_cache_size: int = 0  # 0 = unbounded
    image_cache_count_limit: int = 100
    image_cache_cost_limit: int = 500 * 1024 * 1024  # 500MB

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure directories exist
        self.storage_dir.mkdir(exist_ok=True, parents=True)

    @property
    def search_debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
