"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote store because:
1. The user can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the sync coordinator compensates instead)
- Limited query capabilities (we filter in Python)

Each table is one worksheet whose first row holds the column names.
Every cell is stored as text; the sync codec parses it back into
typed entities.

gspread is blocking, so every call runs in a worker thread and the
coordinator's timeout can still fire.
"""

import asyncio
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from pocket_ledger.config import GoogleSheetsSettings, get_settings
from pocket_ledger.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    Record,
    RemoteStoreInterface,
    StorageError,
)


# Column layout for worksheets created on first use
TABLE_COLUMNS = {
    "transactions": [
        "id",
        "owner_id",
        "amount",
        "category",
        "date",
        "notes",
        "kind",
        "created_at",
    ],
    "shared_entries": [
        "id",
        "owner_id",
        "counterparty_id",
        "amount",
        "description",
        "date",
        "direction",
        "created_at",
    ],
    "people": [
        "id",
        "owner_id",
        "display_name",
        "cached_balance",
        "last_activity_at",
    ],
}


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_table_sheet(self, table: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create the worksheet backing a table."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(table)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=table,
                rows=self._settings.new_sheet_rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote store.

    One row per record; the ``id`` column holds the id this store
    assigns on insert.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        columns: Optional[dict[str, list[str]]] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._columns = columns or TABLE_COLUMNS

    def _sheet(self, table: str, record: Optional[Record] = None) -> gspread.Worksheet:
        columns = self._columns.get(table)
        if columns is None:
            columns = ["id"] + sorted(k for k in (record or {}) if k != "id")
        return self._client.get_table_sheet(table, columns)

    @staticmethod
    def _find_row(values: list[list[str]], record_id: str) -> int:
        """1-based sheet row number holding record_id (row 1 is the header)."""
        header = values[0] if values else []
        id_col = header.index("id") if "id" in header else 0
        for idx, row in enumerate(values[1:], start=2):
            if len(row) > id_col and row[id_col] == record_id:
                return idx
        raise NotFoundError(f"Row not found: {record_id}")

    def _insert_sync(self, table: str, record: Record) -> str:
        sheet = self._sheet(table, record)
        header = sheet.row_values(1)
        record_id = uuid4().hex
        row = dict(record, id=record_id)
        sheet.append_row([_cell(row.get(col)) for col in header], value_input_option="RAW")
        return record_id

    def _update_sync(self, table: str, record_id: str, patch: Record) -> None:
        sheet = self._sheet(table)
        values = sheet.get_all_values()
        row_idx = self._find_row(values, record_id)
        header = values[0]
        for key, value in patch.items():
            if key == "id" or key not in header:
                continue
            sheet.update_cell(row_idx, header.index(key) + 1, _cell(value))

    def _delete_sync(self, table: str, record_id: str) -> None:
        sheet = self._sheet(table)
        row_idx = self._find_row(sheet.get_all_values(), record_id)
        sheet.delete_rows(row_idx)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _query_sync(self, table: str, filters: Record) -> list[Record]:
        values = self._sheet(table).get_all_values()
        if not values:
            return []
        header = values[0]
        records = []
        for row in values[1:]:
            if not row or not any(row):  # Skip empty rows
                continue
            padded = row + [""] * (len(header) - len(row))
            record = {col: (cell if cell != "" else None) for col, cell in zip(header, padded)}
            if all(_cell(record.get(k)) == _cell(v) for k, v in filters.items()):
                records.append(record)
        return records

    # Writes are deliberately not retried here: whether to retry a
    # failed write is the caller's decision.

    async def insert(self, table: str, record: Record) -> str:
        try:
            return await asyncio.to_thread(self._insert_sync, table, record)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {table}: {e}")

    async def update(self, table: str, record_id: str, patch: Record) -> None:
        try:
            await asyncio.to_thread(self._update_sync, table, record_id, patch)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table}/{record_id}: {e}")

    async def delete(self, table: str, record_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, table, record_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {table}/{record_id}: {e}")

    async def query(self, table: str, filters: Optional[Record] = None) -> list[Record]:
        try:
            return await asyncio.to_thread(self._query_sync, table, filters or {})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to query {table}: {e}")
