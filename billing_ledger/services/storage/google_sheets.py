"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets is the remote sync target because:
1. The business owner can look at their records directly in Sheets
2. No database server to run
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for a small shop)
- No transactions; last write wins
- Limited query capabilities (we filter in Python)

Layout: one worksheet per collection, one row per record:

    id | tenant_scope | updated_at | payload_json

Transport calls retry with exponential backoff. Failures surface as
StorageError; the gateway turns a failed remote write into a soft
sync failure.
"""

import json
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from billing_ledger.config import GoogleSheetsSettings, get_settings
from billing_ledger.services.storage.interface import (
    ConnectionError,
    Record,
    RecordStore,
    StorageError,
)
from billing_ledger.time_utils import utcnow


RECORD_COLUMNS = [
    "id",
    "tenant_scope",
    "updated_at",
    "payload_json",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._sheets: dict[str, gspread.Worksheet] = {}

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

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        title = f"{self._settings.sheet_name_prefix}{collection}"
        if title in self._sheets:
            return self._sheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(RECORD_COLUMNS),
            )
            sheet.append_row(RECORD_COLUMNS)
        self._sheets[title] = sheet
        return sheet


class GoogleSheetsRecordStore(RecordStore):
    """
    Google Sheets implementation of a record store.

    The record itself is JSON-serialized into one cell, so the sheet
    layout never changes when a model gains a field.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, tenant_scope: str, record: Record) -> list:
        return [
            str(record["id"]),
            tenant_scope,
            utcnow().isoformat(),
            json.dumps(record),
        ]

    def _find_row(self, rows: list, tenant_scope: str, record_id: str) -> Optional[int]:
        """1-based sheet row index of a record, header excluded."""
        for idx, row in enumerate(rows[1:], start=2):
            if len(row) > 1 and row[0] == record_id and row[1] == tenant_scope:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def put(self, collection: str, tenant_scope: str, record: Record) -> None:
        try:
            sheet = self._client.get_collection_sheet(collection)
            new_row = self._record_to_row(tenant_scope, record)
            idx = self._find_row(sheet.get_all_values(), tenant_scope, new_row[0])
            if idx is None:
                sheet.append_row(new_row, value_input_option="RAW")
                return
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {collection} record: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def all(self, collection: str, tenant_scope: str) -> list[Record]:
        try:
            sheet = self._client.get_collection_sheet(collection)
            rows = sheet.get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {collection}: {e}")

        records = []
        for row in rows:
            if len(row) < 4 or row[1] != tenant_scope or not row[3]:
                continue
            try:
                records.append(json.loads(row[3]))
            except json.JSONDecodeError:
                continue  # Skip malformed rows
        return records

    async def remove(self, collection: str, tenant_scope: str, record_id: str) -> bool:
        try:
            sheet = self._client.get_collection_sheet(collection)
            idx = self._find_row(sheet.get_all_values(), tenant_scope, record_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {collection} record: {e}")
