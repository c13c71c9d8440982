"""
Storage Services Package

Provides the abstract ledger storage interface and its two backends:
Google Sheets (remote) and a local JSON file (fallback).
"""

from biztrack.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    WriteRejectedError,
)
from biztrack.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from biztrack.services.storage.local_json import LocalJsonLedgerStorage
from biztrack.services.storage.connection import (
    ConnectionConfig,
    ConnectionConfigStore,
    create_storage,
    verify_connection,
)

__all__ = [
    # Interface
    "LedgerStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "WriteRejectedError",
    # Backends
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "LocalJsonLedgerStorage",
    # Configuration
    "ConnectionConfig",
    "ConnectionConfigStore",
    "create_storage",
    "verify_connection",
]
