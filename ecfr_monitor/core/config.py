"""
Configuration management for the eCFR word counting pipeline.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # eCFR API
    base_url: str = Field("https://www.ecfr.gov/api/versioner/v1", alias="ECFR_BASE_URL")
    user_agent: str = Field("eCFRWordCounter/1.0", alias="ECFR_USER_AGENT")

    # Response cache. Entries never expire: clearing the directory is the
    # only way to pick up upstream changes.
    cache_dir: str = Field("cache", alias="ECFR_CACHE_DIR")

    # Throughput
    rate_limit_seconds: float = Field(3.0, ge=0.0, alias="ECFR_RATE_LIMIT_SECONDS")
    max_workers: int = Field(6, ge=1, alias="ECFR_MAX_WORKERS")
    request_timeout_seconds: float = Field(10.0, gt=0.0, alias="ECFR_REQUEST_TIMEOUT_SECONDS")
    run_timeout_minutes: Optional[float] = Field(120.0, alias="ECFR_RUN_TIMEOUT_MINUTES")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    @property
    def cache_path(self) -> Path:
        """Get the response cache directory."""
        return Path(self.cache_dir)

    @property
    def run_timeout_seconds(self) -> Optional[float]:
        """Get the run deadline in seconds, or None for no deadline."""
        if not self.run_timeout_minutes or self.run_timeout_minutes <= 0:
            return None
        return self.run_timeout_minutes * 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
