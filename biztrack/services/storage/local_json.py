"""
Local JSON Storage Implementation

Used whenever no remote store is configured. The whole ledger lives in one
JSON document (the same three-array shape as an export file), rewritten
atomically on every change.

TRADEOFFS:
- Every write rewrites the whole file (fine for a small business ledger)
- Nothing to configure and nothing that can be "unreachable"
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from biztrack.config import get_settings
from biztrack.models.ledger import (
    Collection,
    LedgerData,
    LedgerEntity,
)
from biztrack.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LocalJsonLedgerStorage(LedgerStorageInterface):
    """
    Local-only ledger storage backed by a single JSON file.

    A missing file reads as an empty ledger. Deleting an id that is not
    stored is a no-op.
    """

    backend_name = "local_json"

    def __init__(self, file_path: Optional[str] = None):
        self._file_path = Path(file_path or get_settings().local_store.data_file)

    @property
    def file_path(self) -> Path:
        return self._file_path

    # ------------------------------------------------------------------
    # Blob access
    # ------------------------------------------------------------------

    def _read_blob(self) -> dict[str, list[dict[str, Any]]]:
        try:
            with open(self._file_path, encoding="utf-8") as f:
                blob = json.load(f)
        except FileNotFoundError:
            return {"clients": [], "payments": [], "expenses": []}
        except json.JSONDecodeError as e:
            raise StorageConnectionError(
                f"Local data file {self._file_path} is not valid JSON: {e}"
            )
        except OSError as e:
            raise StorageConnectionError(f"Could not read local data file: {e}")

        if not isinstance(blob, dict):
            raise StorageConnectionError(
                f"Local data file {self._file_path} does not contain a ledger object"
            )
        for collection in Collection:
            blob.setdefault(collection.value, [])
        return blob

    def _write_blob(self, blob: dict[str, list[dict[str, Any]]]) -> None:
        directory = self._file_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".biztrack_", suffix=".json", dir=str(directory)
            )
        except OSError as e:
            raise StorageError(f"Failed to save local data: {e}")

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            raise StorageError(f"Failed to save local data: {e}")
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    async def fetch_all(self) -> LedgerData:
        blob = self._read_blob()
        try:
            return LedgerData.model_validate(blob)
        except ValidationError as e:
            raise StorageConnectionError(f"Local data file contains invalid records: {e}")

    async def add_record(self, collection: Collection, record: LedgerEntity) -> None:
        blob = self._read_blob()
        blob[collection.value].append(record.to_wire())
        self._write_blob(blob)

    async def update_record(self, collection: Collection, record: LedgerEntity) -> None:
        blob = self._read_blob()
        rows = blob[collection.value]
        for idx, row in enumerate(rows):
            if row.get("id") == record.id:
                rows[idx] = record.to_wire()
                self._write_blob(blob)
                return
        raise NotFoundError(f"Failed to update {collection.value}: id {record.id} not found")

    async def delete_record(self, collection: Collection, record_id: str) -> None:
        blob = self._read_blob()
        rows = blob[collection.value]
        remaining = [row for row in rows if row.get("id") != record_id]
        if len(remaining) != len(rows):
            blob[collection.value] = remaining
            self._write_blob(blob)

    async def upsert_records(self, collection: Collection, records: list[LedgerEntity]) -> None:
        blob = self._read_blob()
        rows = blob[collection.value]
        positions = {row.get("id"): idx for idx, row in enumerate(rows)}
        for record in records:
            if record.id in positions:
                rows[positions[record.id]] = record.to_wire()
            else:
                positions[record.id] = len(rows)
                rows.append(record.to_wire())
        self._write_blob(blob)

    async def clear_all(self) -> None:
        try:
            self._file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to clear local data: {e}")
        logger.info("local_store_cleared", path=str(self._file_path))
