"""
Olist Analytics Layer
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type safety.
The snapshot date is deliberately optional here: it has no wall-clock default and
must be supplied by the caller or the environment for every run.
"""

from datetime import date
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataLakeSettings(BaseSettings):
    """Raw and curated storage locations"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Directory holding the raw Olist extracts")
    curated_path: str = Field(default="./data/curated", description="Directory receiving derived tables")
    default_format: str = Field(default="csv", description="Raw file format: csv or parquet")

    @field_validator("default_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate raw file format"""
        allowed = ["csv", "parquet"]
        if v.lower() not in allowed:
            raise ValueError(f"Raw format must be one of: {allowed}")
        return v.lower()


class PipelineSettings(BaseSettings):
    """Canonicalization and scoring parameters"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", populate_by_name=True)

    snapshot_date: Optional[date] = Field(
        default=None,
        alias="SNAPSHOT_DATE",
        description="Reference date representing 'now' for recency scoring",
    )
    density_outlier_threshold: float = Field(
        default=10.0,
        gt=0,
        description="Product density (g/cm3) above which a row is flagged",
    )
    low_quality_review_length: int = Field(
        default=5,
        ge=0,
        description="Review comments shorter than this are flagged low quality",
    )
    strict_validation: bool = Field(
        default=False,
        description="Raise when an output contract fails instead of logging",
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="olist-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    version: str = Field(default="1.0.0", description="Application version")

    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
