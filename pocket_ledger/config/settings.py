"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core never reads the environment itself; the composition root
reads these settings once and passes the values down.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Core ledger behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    user_id: str = Field(
        default="local-user",
        min_length=1,
        description="Opaque identifier stamped onto every entry"
    )
    sync_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the remote store before failing a write"
    )
    category_breakdown_limit: int = Field(
        default=5,
        ge=1,
        description="Number of categories returned by the breakdown"
    )
    recent_limit: int = Field(
        default=10,
        ge=1,
        description="Number of transactions on the recent list"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (otherwise console format)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class RemoteStoreSettings(BaseSettings):
    """Table names used against the remote store."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REMOTE_STORE_",
        extra="ignore"
    )

    transactions_table: str = Field(default="transactions")
    shared_entries_table: str = Field(default="shared_entries")
    people_table: str = Field(default="people")


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    new_sheet_rows: int = Field(
        default=1000,
        ge=10,
        description="Row count for worksheets created on first use"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Sub-settings are loaded lazily so the Sheets group can stay unset
    # when the in-memory store is used.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def remote_store(self) -> RemoteStoreSettings:
        return RemoteStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


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

    Returns a dict of {setting_name: is_valid}, plus an
    ``<name>_error`` entry for each group that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "remote_store", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
