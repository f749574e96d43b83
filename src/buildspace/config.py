"""Configuration management for buildspace."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class BuildspaceSettings(BaseSettings):
    """Runtime configuration sourced from environment, .env and buildspace.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="BUILDSPACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="buildspace.yaml",
        extra="ignore",
    )

    work_root: Path = Field(default=Path("./_work"))
    mapping_directory: str = Field(default="SourceRootMapping")
    garbage_directory: str = Field(default="GC")
    tracking_file_name: str = Field(default="trackingfile.json")
    top_level_file_name: str = Field(default="TopLevelTracking.json")
    expiration_days: float = Field(default=30.0)
    agent_id: int | None = Field(default=None)
    log_level: str = Field(default="INFO")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "BUILDSPACE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator(
        "mapping_directory", "garbage_directory", "tracking_file_name", "top_level_file_name"
    )
    @classmethod
    def _validate_segment(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or normalized in {".", ".."}:
            raise ValueError("Directory and file names must not be empty, '.' or '..'")
        if "/" in normalized or "\\" in normalized:
            raise ValueError(f"'{normalized}' must be a single path segment")
        return normalized

    @field_validator("expiration_days")
    @classmethod
    def _validate_expiration_days(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("BUILDSPACE_EXPIRATION_DAYS must be > 0")
        return value

    @field_validator("agent_id")
    @classmethod
    def _validate_agent_id(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("BUILDSPACE_AGENT_ID must be >= 1")
        return value

    @property
    def expiration(self) -> timedelta:
        return timedelta(days=self.expiration_days)


@lru_cache(maxsize=1)
def get_settings() -> BuildspaceSettings:
    """Return cached settings instance."""

    settings = BuildspaceSettings()
    settings.work_root = settings.work_root.expanduser().resolve()
    return settings


__all__ = ["BuildspaceSettings", "get_settings"]
