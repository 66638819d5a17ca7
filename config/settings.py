"""Pydantic settings for configuration management."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


class ScannerConfig(BaseSettings):
    """Screening run configuration."""

    model_config = SettingsConfigDict(env_prefix="SCANNER_")

    default_timeframe: str = Field(
        default="1d",
        description="Timeframe used for groups that do not set one",
    )
    max_workers: int = Field(
        default=8,
        description="Worker threads used to fan out over a universe",
    )
    default_context: Literal["swing", "positional"] = Field(
        default="swing",
        description="Threshold set used by the breakout classifiers",
    )
    data_dir: Path = Field(
        default=Path("data/bars"),
        description="Directory holding <SYMBOL>_<timeframe>.csv bar files",
    )
    near_miss_limit: int = Field(
        default=20,
        description="Number of near misses kept in a diagnostic summary",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Require at least one worker."""
        if v < 1:
            raise ValueError("max_workers must be >= 1")
        return v


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path (None for stdout only)",
    )
    rotate_size_mb: int = Field(
        default=10,
        description="Log file rotation size in MB",
    )
    retain_count: int = Field(
        default=5,
        description="Number of rotated log files to retain",
    )


class Settings(BaseSettings):
    """Main settings class combining all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "production"] = Field(
        default="development",
        description="Environment type",
    )

    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Settings instance (defaults when the file does not exist)
        """
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(**config_dict)

    def to_yaml(self, path: str | Path) -> None:
        """Save settings to YAML file.

        Args:
            path: Path to save configuration
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(mode="json")

        with open(path, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance
    """
    config_path = Path("config/screener.yaml")
    if config_path.exists():
        return Settings.from_yaml(config_path)

    return Settings()
