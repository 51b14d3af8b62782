"""Configuration package."""

from pocket_ledger.config.settings import (
    GoogleSheetsSettings,
    LedgerSettings,
    RemoteStoreSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "LedgerSettings",
    "RemoteStoreSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
