"""
POS Sales Snapshot
Centralized Configuration Management

Pydantic settings with environment variable support. Only the customer-list
cap, pretty printing and worker tuning are meant to change between runs;
lookup tables and thresholds live next to the code that uses them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SnapshotSettings(BaseSettings):
    """Analytics snapshot tuning"""

    model_config = SettingsConfigDict(env_prefix="SNAPSHOT_")

    customer_list_limit: int = Field(default=500, ge=0, description="Customer list cap (0 = unlimited)")
    pretty_print: bool = Field(default=False, description="Indent the snapshot JSON")
    top_n: int = Field(default=25, gt=0, description="Entities kept in performance and trend views")
    max_workers: Optional[int] = Field(default=None, gt=0, description="Brand worker pool size")
    worker_timeout_seconds: Optional[float] = Field(
        default=600.0, gt=0, description="Per-brand worker timeout (None waits forever)"
    )
    executor: Literal["process", "thread"] = Field(default="process", description="Brand worker pool type")


class DataLakeSettings(BaseSettings):
    """Input and output locations"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Raw POS export directory")
    output_path: str = Field(default="./data/public", description="Published artifact directory")

    sales_pattern: str = Field(default="mark_sales_*.csv", description="Brand sales export glob")
    anonymized_sales_file: str = Field(default="mark_sales_anonymized.csv", description="Pseudonymized sales CSV")
    prefix_map_file: str = Field(default="member_prefix_map.json", description="Member ID prefix map")
    membership_file: str = Field(default="mark_membership.csv", description="Membership export")
    users_file: str = Field(default="mark_users.csv", description="Users export")
    demographics_file: str = Field(default="member_demographics.json", description="Demographic lookup")
    snapshot_file: str = Field(default="precomputed.json", description="Analytics snapshot")

    chunk_size: int = Field(default=50_000, gt=0, description="Rows per streamed CSV chunk")
    encoding: str = Field(default="utf-8", description="CSV encoding")

    @property
    def raw_dir(self) -> Path:
        return Path(self.raw_path)

    @property
    def output_dir(self) -> Path:
        return Path(self.output_path)


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="console", alias="LOG_FORMAT", description="Log format: json or console")


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
    )

    app_name: str = Field(default="pos-sales-snapshot", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    version: str = Field(default="1.0.0", description="Application version")

    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
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
