"""
Connection Configuration and Backend Selection

The remote store is identified by two opaque strings: an endpoint URL and an
access key. They are saved outside the ledger in a small JSON file, with
environment variables as defaults.

DESIGN DECISION: The backend is chosen once, when the storage object is
built, and the instance is handed to whoever needs it. Nothing looks up the
configuration behind the caller's back. When either value is missing the
local JSON backend is used, silently.
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from biztrack.config import get_settings
from biztrack.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from biztrack.services.storage.interface import (
    LedgerStorageInterface,
    StorageConnectionError,
    StorageError,
)
from biztrack.services.storage.local_json import LocalJsonLedgerStorage


logger = structlog.get_logger(__name__)


class ConnectionConfig(BaseModel):
    """Remote store endpoint and access key."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    url: str = ""
    access_key: str = ""

    @property
    def is_complete(self) -> bool:
        """Both values present selects the remote backend."""
        return bool(self.url) and bool(self.access_key)


class ConnectionConfigStore:
    """
    Persists the connection values to a JSON file.

    A missing or unreadable file falls back to the environment defaults.
    """

    def __init__(self, file_path: Optional[str] = None):
        self._file_path = Path(file_path or get_settings().local_store.connection_file)

    def load(self) -> ConnectionConfig:
        try:
            with open(self._file_path, encoding="utf-8") as f:
                return ConnectionConfig.model_validate(json.load(f))
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as e:
            logger.warning("connection_config_unreadable", path=str(self._file_path), error=str(e))

        remote = get_settings().remote_store
        return ConnectionConfig(url=remote.url, access_key=remote.access_key)

    def save(self, config: ConnectionConfig) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._file_path, "w", encoding="utf-8") as f:
            json.dump(config.model_dump(), f, indent=2)

    def clear(self) -> None:
        """Forget the saved values; the next load returns the defaults."""
        try:
            self._file_path.unlink()
        except FileNotFoundError:
            pass


def create_storage(
    config: ConnectionConfig,
    local_data_file: Optional[str] = None,
) -> LedgerStorageInterface:
    """
    Build the storage backend for a configuration.

    Complete configuration gives the Google Sheets backend; anything else
    gives the local JSON backend. Never raises for the fallback.
    """
    if config.is_complete:
        client = GoogleSheetsClient(url=config.url, access_key=config.access_key)
        return GoogleSheetsLedgerStorage(client)
    return LocalJsonLedgerStorage(local_data_file)


async def verify_connection(
    config: ConnectionConfig,
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerStorageInterface:
    """
    Probe a configuration before accepting it as connected.

    Returns the storage built for the configuration so the caller can
    switch to it.

    Raises:
        StorageConnectionError: If either value is missing or the probe fails
    """
    if not config.is_complete:
        raise StorageConnectionError("Please enter both the spreadsheet URL and the access key.")

    storage = storage or create_storage(config)
    try:
        await storage.check_connection()
    except StorageConnectionError:
        raise
    except StorageError as e:
        raise StorageConnectionError(str(e))
    return storage
