"""Services package."""

from biztrack.services.storage import (
    ConnectionConfig,
    ConnectionConfigStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    LocalJsonLedgerStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    WriteRejectedError,
    create_storage,
    verify_connection,
)

__all__ = [
    "ConnectionConfig",
    "ConnectionConfigStore",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "LedgerStorageInterface",
    "LocalJsonLedgerStorage",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "WriteRejectedError",
    "create_storage",
    "verify_connection",
]
