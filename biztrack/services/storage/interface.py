"""
Abstract Storage Interface

DESIGN DECISION: We define one abstract interface for ledger persistence.
This allows us to:
1. Run against a remote spreadsheet or a local JSON file interchangeably
2. Use in-memory storage for testing
3. Keep the optimistic coordinator decoupled from any backend

Backends implement a handful of collection-level primitives; the
entity-specific methods (add_client, delete_expense, ...) are defined once
here on top of them.

Backends NEVER retry on their own. A failed call raises a StorageError
subclass carrying a human-readable message, and retrying is a user decision.
"""

from abc import ABC, abstractmethod

from biztrack.models.ledger import (
    Client,
    Collection,
    Expense,
    LedgerData,
    LedgerEntity,
    Payment,
    collection_for,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (spreadsheet, JSON file, database)
    must implement the abstract primitives.
    """

    #: Short backend name used in logs ("google_sheets", "local_json", ...)
    backend_name: str = "unknown"

    @abstractmethod
    async def fetch_all(self) -> LedgerData:
        """
        Fetch every client, payment and expense.

        Client records are passed through normalize_client_record.

        Raises:
            StorageConnectionError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def add_record(self, collection: Collection, record: LedgerEntity) -> None:
        """
        Persist a single new record.

        Raises:
            WriteRejectedError: If the backend refuses the write
            StorageError: If the write fails for any other reason
        """
        pass

    @abstractmethod
    async def update_record(self, collection: Collection, record: LedgerEntity) -> None:
        """
        Replace the stored record that has the same id.

        Raises:
            NotFoundError: If the id is unknown to the backend
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(self, collection: Collection, record_id: str) -> None:
        """
        Delete a record by id. Deleting an id that is not stored is a no-op.

        Raises:
            StorageError: If the underlying delete call fails
        """
        pass

    @abstractmethod
    async def upsert_records(self, collection: Collection, records: list[LedgerEntity]) -> None:
        """
        Insert or replace many records of one collection.

        Raises:
            StorageError: If the bulk write fails
        """
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """
        Delete every record in every collection.

        Payments and expenses are cleared before clients, since clients may
        be referenced.

        Raises:
            StorageError: If any collection cannot be cleared
        """
        pass

    async def check_connection(self) -> None:
        """
        Perform a trivial bounded read to prove the backend is reachable.

        Raises:
            StorageConnectionError: If the probe fails
        """
        return None

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    async def upsert_many(self, data: LedgerData) -> None:
        """
        Insert-or-replace everything in an import document.

        Collections are written clients, then payments, then expenses.
        Empty collections are skipped. The first failure aborts the
        remaining collections and propagates.
        """
        for collection in (Collection.CLIENTS, Collection.PAYMENTS, Collection.EXPENSES):
            records = data.records(collection)
            if records:
                await self.upsert_records(collection, records)

    # ------------------------------------------------------------------
    # Entity-specific operations
    # ------------------------------------------------------------------

    async def add(self, record: LedgerEntity) -> None:
        await self.add_record(collection_for(record), record)

    async def update(self, record: LedgerEntity) -> None:
        await self.update_record(collection_for(record), record)

    async def add_client(self, client: Client) -> None:
        await self.add_record(Collection.CLIENTS, client)

    async def update_client(self, client: Client) -> None:
        await self.update_record(Collection.CLIENTS, client)

    async def delete_client(self, client_id: str) -> None:
        await self.delete_record(Collection.CLIENTS, client_id)

    async def add_payment(self, payment: Payment) -> None:
        await self.add_record(Collection.PAYMENTS, payment)

    async def update_payment(self, payment: Payment) -> None:
        await self.update_record(Collection.PAYMENTS, payment)

    async def delete_payment(self, payment_id: str) -> None:
        await self.delete_record(Collection.PAYMENTS, payment_id)

    async def add_expense(self, expense: Expense) -> None:
        await self.add_record(Collection.EXPENSES, expense)

    async def update_expense(self, expense: Expense) -> None:
        await self.update_record(Collection.EXPENSES, expense)

    async def delete_expense(self, expense_id: str) -> None:
        await self.delete_record(Collection.EXPENSES, expense_id)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class WriteRejectedError(StorageError):
    """The backend refused a write (e.g. an access policy denial)."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to or read from the storage backend."""
    pass
