"""
Configuration Management for Financia

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The undo policy values (window, history bound, sweep interval, countdown
tick) live next to storage and backup settings so a single `.env` file
controls the whole session.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UndoSettings(BaseSettings):
    """Undo subsystem policy values."""

    model_config = SettingsConfigDict(
        env_prefix="UNDO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    window_ms: int = Field(
        default=5000,
        gt=0,
        description="How long an action stays undoable, in milliseconds"
    )
    max_entries: int = Field(
        default=10,
        gt=0,
        description="Maximum number of undoable actions kept in history"
    )
    sweep_interval_ms: int = Field(
        default=1000,
        gt=0,
        description="How often expired entries are purged, in milliseconds"
    )
    countdown_tick_ms: int = Field(
        default=50,
        gt=0,
        description="Sampling interval of the countdown progress indicator"
    )


class StorageSettings(BaseSettings):
    """Finance record storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        description="Storage backend: 'memory' or 'json'"
    )
    data_file: str = Field(
        default="financia_data.json",
        description="Path of the JSON file holding finance records"
    )
    audit_file: str = Field(
        default="financia_audit.jsonl",
        description="Path of the JSON-lines audit log"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("memory", "json"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v


class BackupSettings(BaseSettings):
    """Backup export and reminder configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BACKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_name: str = Field(
        default="Financia Suite",
        description="Application name written into backup files"
    )
    export_dir: str = Field(
        default=".",
        description="Directory where backup files are written"
    )
    state_file: str = Field(
        default=str(Path.home() / ".financia" / "backup_state.json"),
        description="File remembering when the last backup happened"
    )
    reminder_interval_days: int = Field(
        default=7,
        ge=1,
        description="Days without a backup before the reminder is shown"
    )
    postpone_days: int = Field(
        default=1,
        ge=1,
        description="How long 'remind me later' hides the reminder"
    )

    @field_validator("postpone_days")
    @classmethod
    def validate_postpone_days(cls, v: int, info: ValidationInfo) -> int:
        interval = info.data.get("reminder_interval_days")
        if interval is not None and v > interval:
            raise ValueError("Postpone period cannot exceed the reminder interval")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def undo(self) -> UndoSettings:
        return UndoSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing any failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("undo", "storage", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
