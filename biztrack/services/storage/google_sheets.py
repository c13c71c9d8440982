"""
Google Sheets Storage Implementation

DESIGN DECISION: A Google Sheets spreadsheet is the remote backend because:
1. The business owner can view and fix their books directly in Sheets
2. No database setup required
3. Built-in sharing and backup

TRADEOFFS:
- No transactions (bulk operations write collection by collection)
- No foreign keys, but clear_all still removes payments and expenses
  before clients so a stricter backend could be swapped in
- Limited query capabilities (we read whole worksheets)

Each collection is one worksheet whose first row is a header. Rows are
mapped by header name, so sheets created before a column existed (for
example `isActive`) keep working.

gspread is synchronous; every call runs in a worker thread so the three
worksheet reads of fetch_all proceed concurrently.
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError

from biztrack.config import get_settings
from biztrack.models.ledger import (
    Collection,
    ENTITY_TYPES,
    LedgerData,
    LedgerEntity,
    normalize_client_record,
)
from biztrack.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    WriteRejectedError,
)


logger = structlog.get_logger(__name__)


# Column layout used when a worksheet is created
COLUMNS: dict[Collection, list[str]] = {
    Collection.CLIENTS: [
        "id",
        "name",
        "email",
        "phone",
        "company",
        "notes",
        "createdAt",
        "isActive",
        "totalBilled",
    ],
    Collection.PAYMENTS: [
        "id",
        "clientId",
        "amount",
        "date",
        "description",
        "method",
        "details",
        "type",
    ],
    Collection.EXPENSES: [
        "id",
        "category",
        "amount",
        "date",
        "description",
    ],
}

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# Open-ended range covering every data row below the header
DATA_RANGE = "A2:Z"


def _to_cell(value: Any) -> str:
    """Render a wire value as a RAW cell string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _from_cell(column: str, value: str) -> Any:
    """Turn a cell string back into a wire value."""
    if value == "":
        return None
    if column == "isActive":
        lowered = value.strip().lower()
        if lowered in ("false", "0", "no"):
            return False
        if lowered in ("true", "1", "yes"):
            return True
        return None
    if column == "createdAt" and value.isdigit():
        return int(value)
    return value


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    The endpoint is the spreadsheet URL. The access key is a service account
    credentials JSON document, or a path to a file holding one.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        access_key: Optional[str] = None,
    ):
        self._settings = get_settings().remote_store
        self._url = url if url is not None else self._settings.url
        self._access_key = access_key if access_key is not None else self._settings.access_key
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[Collection, gspread.Worksheet] = {}
        self._lock = threading.Lock()

    def _credentials(self) -> Credentials:
        key = self._access_key.strip()
        if key.startswith("{"):
            return Credentials.from_service_account_info(json.loads(key), scopes=SCOPES)
        if not Path(key).exists():
            raise StorageConnectionError(f"Google credentials file not found: {key}")
        return Credentials.from_service_account_file(key, scopes=SCOPES)

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            if not self._url or not self._access_key:
                raise StorageConnectionError("Remote store URL and access key are both required")
            try:
                self._client = gspread.authorize(self._credentials())
            except StorageConnectionError:
                raise
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_url(self._url)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(f"Spreadsheet not found: {self._url}")
            except gspread.exceptions.NoValidUrlKeyFound:
                raise StorageConnectionError(f"Not a spreadsheet URL: {self._url}")
            except Exception as e:
                raise StorageConnectionError(f"Failed to open spreadsheet: {e}")
        return self._spreadsheet

    def _sheet_name(self, collection: Collection) -> str:
        return {
            Collection.CLIENTS: self._settings.clients_sheet_name,
            Collection.PAYMENTS: self._settings.payments_sheet_name,
            Collection.EXPENSES: self._settings.expenses_sheet_name,
        }[collection]

    def get_worksheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet for a collection."""
        with self._lock:
            if collection in self._worksheets:
                return self._worksheets[collection]

            spreadsheet = self.get_spreadsheet()
            name = self._sheet_name(collection)
            try:
                sheet = spreadsheet.worksheet(name)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=name,
                    rows=1000,
                    cols=len(COLUMNS[collection]),
                )
                sheet.append_row(COLUMNS[collection], value_input_option="RAW")
                logger.info("worksheet_created", worksheet=name)
            except Exception as e:
                raise StorageConnectionError(f"Failed to open worksheet {name}: {e}")

            self._worksheets[collection] = sheet
            return sheet


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One record per row. A 403 from the Sheets API (the service account is
    not an editor of the spreadsheet) surfaces as WriteRejectedError.
    """

    backend_name = "google_sheets"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _header(values: list[list[str]], collection: Collection) -> list[str]:
        if values and any(values[0]):
            return values[0]
        return COLUMNS[collection]

    @staticmethod
    def _record_to_row(record: LedgerEntity, header: list[str]) -> list[str]:
        """Convert a record to a row laid out like the worksheet header."""
        wire = record.to_wire()
        return [_to_cell(wire.get(column)) for column in header]

    @staticmethod
    def _row_to_wire(row: list[str], header: list[str]) -> dict[str, Any]:
        """Convert a worksheet row to a camelCase record dict."""
        wire = {}
        for idx, column in enumerate(header):
            if not column:
                continue
            cell = row[idx] if idx < len(row) else ""
            wire[column] = _from_cell(column, cell)
        return wire

    @staticmethod
    def _find_row(values: list[list[str]], header: list[str], record_id: str) -> Optional[int]:
        """1-based sheet row number of the record, or None."""
        id_idx = header.index("id") if "id" in header else 0
        for row_number, row in enumerate(values[1:], start=2):
            if len(row) > id_idx and row[id_idx] == record_id:
                return row_number
        return None

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------

    @staticmethod
    def _translate(action: str, error: Exception) -> StorageError:
        if isinstance(error, StorageError):
            return error
        if isinstance(error, gspread.exceptions.APIError):
            status = getattr(getattr(error, "response", None), "status_code", None)
            if status in (401, 403):
                return WriteRejectedError(
                    f"Failed to {action}: {error} (check that the service account can edit the spreadsheet)"
                )
        return StorageError(f"Failed to {action}: {error}")

    # ------------------------------------------------------------------
    # Synchronous worksheet operations (run in worker threads)
    # ------------------------------------------------------------------

    def _read_collection(self, collection: Collection) -> list[dict[str, Any]]:
        try:
            sheet = self._client.get_worksheet(collection)
            values = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Failed to read {collection.value}: {e}")

        header = self._header(values, collection)
        records = []
        for row in values[1:]:
            if not row or not any(row):
                continue
            wire = self._row_to_wire(row, header)
            if collection == Collection.CLIENTS:
                wire = normalize_client_record(wire)
            try:
                ENTITY_TYPES[collection].model_validate(wire)
            except ValidationError as e:
                logger.warning(
                    "malformed_row_skipped",
                    collection=collection.value,
                    record_id=wire.get("id"),
                    error=str(e),
                )
                continue
            records.append(wire)
        return records

    def _append(self, collection: Collection, record: LedgerEntity) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            header = self._header(sheet.get_all_values(), collection)
            sheet.append_row(self._record_to_row(record, header), value_input_option="RAW")
        except Exception as e:
            raise self._translate(f"save {collection.value[:-1]}", e)

    def _replace(self, collection: Collection, record: LedgerEntity) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            values = sheet.get_all_values()
            header = self._header(values, collection)
            row_number = self._find_row(values, header, record.id)
            if row_number is None:
                raise NotFoundError(
                    f"Failed to update {collection.value[:-1]}: id {record.id} not found"
                )
            sheet.update(
                range_name=f"A{row_number}",
                values=[self._record_to_row(record, header)],
                value_input_option="RAW",
            )
        except Exception as e:
            raise self._translate(f"update {collection.value[:-1]}", e)

    def _remove(self, collection: Collection, record_id: str) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            values = sheet.get_all_values()
            header = self._header(values, collection)
            row_number = self._find_row(values, header, record_id)
            if row_number is not None:
                sheet.delete_rows(row_number)
        except Exception as e:
            raise self._translate(f"delete {collection.value[:-1]}", e)

    def _upsert(self, collection: Collection, records: list[LedgerEntity]) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            values = sheet.get_all_values()
            header = self._header(values, collection)

            updates = []
            appends = []
            for record in records:
                row_number = self._find_row(values, header, record.id)
                row = self._record_to_row(record, header)
                if row_number is None:
                    appends.append(row)
                else:
                    updates.append({"range": f"A{row_number}", "values": [row]})

            if updates:
                sheet.batch_update(updates, value_input_option="RAW")
            if appends:
                sheet.append_rows(appends, value_input_option="RAW")
        except Exception as e:
            raise self._translate(f"import {collection.value}", e)

    def _clear(self, collection: Collection) -> None:
        try:
            sheet = self._client.get_worksheet(collection)
            sheet.batch_clear([DATA_RANGE])
        except Exception as e:
            raise self._translate(f"clear {collection.value}", e)

    def _probe(self) -> None:
        try:
            sheet = self._client.get_worksheet(Collection.CLIENTS)
            sheet.row_values(1)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Connection check failed: {e}")

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    async def fetch_all(self) -> LedgerData:
        """Read the three worksheets concurrently; any failure fails the whole fetch."""
        clients, payments, expenses = await asyncio.gather(
            asyncio.to_thread(self._read_collection, Collection.CLIENTS),
            asyncio.to_thread(self._read_collection, Collection.PAYMENTS),
            asyncio.to_thread(self._read_collection, Collection.EXPENSES),
        )
        return LedgerData.model_validate(
            {"clients": clients, "payments": payments, "expenses": expenses}
        )

    async def add_record(self, collection: Collection, record: LedgerEntity) -> None:
        await asyncio.to_thread(self._append, collection, record)

    async def update_record(self, collection: Collection, record: LedgerEntity) -> None:
        await asyncio.to_thread(self._replace, collection, record)

    async def delete_record(self, collection: Collection, record_id: str) -> None:
        await asyncio.to_thread(self._remove, collection, record_id)

    async def upsert_records(self, collection: Collection, records: list[LedgerEntity]) -> None:
        await asyncio.to_thread(self._upsert, collection, records)

    async def clear_all(self) -> None:
        # Referencing collections first; clients last
        for collection in (Collection.PAYMENTS, Collection.EXPENSES, Collection.CLIENTS):
            await asyncio.to_thread(self._clear, collection)

    async def check_connection(self) -> None:
        await asyncio.to_thread(self._probe)
