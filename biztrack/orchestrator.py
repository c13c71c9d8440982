"""
Main Orchestrator for BizTrack

This module ties together all the components and defines the
end-to-end flows for:
1. Single changes (validate -> apply optimistically -> persist -> commit or roll back)
2. Bulk changes (import and clear: persist first, then replace the ledger)
3. Loading, exporting and switching the storage connection

DESIGN DECISION: The in-memory ledger is updated BEFORE storage confirms a
single change, so the user sees it immediately. If storage then fails, the
exact pre-change snapshot is restored and the failure is reported as a
MutationResult. Bulk operations are the opposite: storage first, ledger
after.

KNOWN LIMITATION: Mutations are not serialized. If two changes are in
flight and the first one fails, restoring its snapshot also discards the
second one's optimistic change. The application assumes a single operator.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from biztrack.agents import InsightAgent
from biztrack.audit import AuditLogger, configure_log_level, create_correlation_id
from biztrack.config import get_settings, validate_all_settings
from biztrack.models.ledger import (
    Client,
    Collection,
    Expense,
    Ledger,
    LedgerData,
    LedgerEntity,
    Payment,
    UserRole,
    collection_for,
)
from biztrack.models.report import (
    FinancialReport,
    FinancialSummary,
    MonthlyBucket,
    ReportFilter,
)
from biztrack.models.results import (
    LoadResult,
    MutationResult,
    ValidationIssue,
    ValidationResult,
)
from biztrack.queries import build_report, financial_summary, monthly_series
from biztrack.services.storage import (
    ConnectionConfig,
    ConnectionConfigStore,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    StorageError,
    create_storage,
    verify_connection,
)
from biztrack.store import LedgerStore
from biztrack.validation import LedgerValidator


logger = structlog.get_logger(__name__)

CONNECTION_ERROR_MESSAGE = "Cannot load data. Check the connection settings and try again."


@dataclass(frozen=True)
class OptimisticMutation:
    """
    One single-entity change, described as a command.

    `transform` must be pure: it receives the current Ledger and returns a
    new one. `persist` performs the matching storage call.
    """

    operation: str
    collection: Collection
    entity_id: Optional[str]
    transform: Callable[[Ledger], Ledger]
    persist: Callable[[], Awaitable[None]]


class MutationCoordinator:
    """
    Runs OptimisticMutation commands against a store and a storage backend.

    Flow:
    1. Capture the current snapshot
    2. Apply the transform to the store
    3. Await the storage call
    4. Success: keep the new state
    5. StorageError: restore the snapshot, report the message

    Any other exception also restores the snapshot and then propagates.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def run(
        self,
        mutation: OptimisticMutation,
        correlation_id: Optional[UUID] = None,
    ) -> MutationResult:
        correlation_id = correlation_id or create_correlation_id()
        entity_type = mutation.collection.value

        snapshot = self._store.snapshot()
        self._store.apply(mutation.transform)

        if self._audit_logger:
            await self._audit_logger.log_mutation_applied(
                operation=mutation.operation,
                entity_type=entity_type,
                entity_id=mutation.entity_id,
                correlation_id=correlation_id,
            )

        try:
            await mutation.persist()
        except StorageError as e:
            self._store.replace(snapshot)
            if self._audit_logger:
                await self._audit_logger.log_mutation_rolled_back(
                    operation=mutation.operation,
                    entity_type=entity_type,
                    entity_id=mutation.entity_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return MutationResult.failed(
                operation=mutation.operation,
                error_message=str(e),
                entity_id=mutation.entity_id,
                rolled_back=True,
            )
        except Exception as e:
            self._store.replace(snapshot)
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": mutation.operation},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_mutation_committed(
                operation=mutation.operation,
                entity_type=entity_type,
                entity_id=mutation.entity_id,
                correlation_id=correlation_id,
            )
        return MutationResult.ok(mutation.operation, mutation.entity_id)


class BookkeepingSession:
    """
    The application core as seen by a presentation layer.

    Holds the ledger store, the storage backend chosen at construction,
    and the role of the current user. Reads go through the aggregation
    engine over the current snapshot; changes go through validation and
    then the coordinator.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        role: UserRole = UserRole.ADMIN,
        store: Optional[LedgerStore] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        connection_store: Optional[ConnectionConfigStore] = None,
    ):
        self._storage = storage
        self._role = role
        self._store = store or LedgerStore()
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger
        self._connection_store = connection_store
        self._coordinator = MutationCoordinator(self._store, audit_logger)
        self._connection_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def ledger(self) -> Ledger:
        return self._store.snapshot()

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def role(self) -> UserRole:
        return self._role

    @role.setter
    def role(self, role: UserRole) -> None:
        self._role = role

    @property
    def connection_error(self) -> Optional[str]:
        """Set while the last load failed; None once data has loaded."""
        return self._connection_error

    @property
    def has_connection_error(self) -> bool:
        return self._connection_error is not None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self, correlation_id: Optional[UUID] = None) -> LoadResult:
        """
        Fetch the whole ledger from storage and install it.

        On failure the current ledger is kept and the session enters the
        "cannot load data" state until a later load succeeds.
        """
        correlation_id = correlation_id or create_correlation_id()
        backend = self._storage.backend_name

        try:
            data = await self._storage.fetch_all()
        except StorageError as e:
            self._connection_error = CONNECTION_ERROR_MESSAGE
            if self._audit_logger:
                await self._audit_logger.log_data_load_failed(backend, str(e), correlation_id)
            return LoadResult(success=False, error_message=str(e))

        self._store.replace(Ledger.from_data(data))
        self._connection_error = None
        counts = _counts(data)
        if self._audit_logger:
            await self._audit_logger.log_data_loaded(backend, counts, correlation_id)
        return LoadResult(
            success=True,
            client_count=counts["clients"],
            payment_count=counts["payments"],
            expense_count=counts["expenses"],
        )

    # -------------------------------------------------------------------------
    # Single changes
    # -------------------------------------------------------------------------

    async def _reject(
        self,
        operation: str,
        collection: Collection,
        entity_id: Optional[str],
        result: ValidationResult,
        correlation_id: UUID,
    ) -> MutationResult:
        if self._audit_logger:
            await self._audit_logger.log_mutation_rejected(
                operation=operation,
                entity_type=collection.value,
                entity_id=entity_id,
                result=result,
                correlation_id=correlation_id,
            )
        return MutationResult.rejected(operation, result, entity_id)

    async def _add(self, record: LedgerEntity, operation: str) -> MutationResult:
        correlation_id = create_correlation_id()
        collection = collection_for(record)
        result = self._validator.validate_add(self.ledger, collection, record, self._role)
        if result.has_errors:
            return await self._reject(operation, collection, record.id, result, correlation_id)

        outcome = await self._coordinator.run(
            OptimisticMutation(
                operation=operation,
                collection=collection,
                entity_id=record.id,
                transform=lambda ledger: ledger.with_added(record),
                persist=lambda: self._storage.add_record(collection, record),
            ),
            correlation_id,
        )
        return _with_validation(outcome, result)

    async def _update(self, record: LedgerEntity, operation: str) -> MutationResult:
        correlation_id = create_correlation_id()
        collection = collection_for(record)
        result = self._validator.validate_update(self.ledger, collection, record, self._role)
        if result.has_errors:
            return await self._reject(operation, collection, record.id, result, correlation_id)

        outcome = await self._coordinator.run(
            OptimisticMutation(
                operation=operation,
                collection=collection,
                entity_id=record.id,
                transform=lambda ledger: ledger.with_replaced(record),
                persist=lambda: self._storage.update_record(collection, record),
            ),
            correlation_id,
        )
        return _with_validation(outcome, result)

    async def _delete(
        self,
        collection: Collection,
        record_id: str,
        operation: str,
    ) -> MutationResult:
        correlation_id = create_correlation_id()
        result = self._validator.validate_delete(self.ledger, collection, record_id, self._role)
        if result.has_errors:
            return await self._reject(operation, collection, record_id, result, correlation_id)

        return await self._coordinator.run(
            OptimisticMutation(
                operation=operation,
                collection=collection,
                entity_id=record_id,
                transform=lambda ledger: ledger.with_removed(collection, record_id),
                persist=lambda: self._storage.delete_record(collection, record_id),
            ),
            correlation_id,
        )

    async def add_client(self, client: Client) -> MutationResult:
        return await self._add(client, "add_client")

    async def update_client(self, client: Client) -> MutationResult:
        return await self._update(client, "update_client")

    async def delete_client(self, client_id: str) -> MutationResult:
        """Delete a client. Its payments are kept and show as "Unknown"."""
        return await self._delete(Collection.CLIENTS, client_id, "delete_client")

    async def toggle_client_active(self, client_id: str) -> MutationResult:
        """Flip a client's active flag (the only soft delete)."""
        client = self.ledger.clients.get(client_id)
        if client is None:
            result = ValidationResult(issues=[ValidationIssue(
                field="id",
                issue_type="not_found",
                message=f"No client with id {client_id}",
                severity="error",
            )])
            return await self._reject(
                "toggle_client_active", Collection.CLIENTS, client_id, result,
                create_correlation_id(),
            )
        toggled = client.model_copy(update={"is_active": not client.is_active})
        return await self._update(toggled, "toggle_client_active")

    async def add_payment(self, payment: Payment) -> MutationResult:
        return await self._add(payment, "add_payment")

    async def update_payment(self, payment: Payment) -> MutationResult:
        return await self._update(payment, "update_payment")

    async def delete_payment(self, payment_id: str) -> MutationResult:
        return await self._delete(Collection.PAYMENTS, payment_id, "delete_payment")

    async def add_expense(self, expense: Expense) -> MutationResult:
        return await self._add(expense, "add_expense")

    async def update_expense(self, expense: Expense) -> MutationResult:
        return await self._update(expense, "update_expense")

    async def delete_expense(self, expense_id: str) -> MutationResult:
        return await self._delete(Collection.EXPENSES, expense_id, "delete_expense")

    # -------------------------------------------------------------------------
    # Bulk changes
    # -------------------------------------------------------------------------

    async def import_data(
        self,
        payload: Union[str, bytes, dict[str, Any], LedgerData],
    ) -> MutationResult:
        """
        Upsert an import document into storage, then reload from storage.

        Nothing in memory changes unless every collection was written and
        the reload succeeded.
        """
        operation = "import_data"
        correlation_id = create_correlation_id()

        result = self._validator.validate_bulk(self._role)
        data: Optional[LedgerData] = None
        if not result.has_errors:
            if isinstance(payload, LedgerData):
                data = payload
            else:
                data, result = self._validator.parse_import_payload(payload)

        if data is None or result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_import_failed(result.error_summary(), correlation_id)
            return MutationResult.rejected(operation, result)

        try:
            await self._storage.upsert_many(data)
            fresh = await self._storage.fetch_all()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_import_failed(str(e), correlation_id)
            return MutationResult.failed(operation, f"Import failed: {e}")

        self._store.replace(Ledger.from_data(fresh))
        self._connection_error = None
        if self._audit_logger:
            await self._audit_logger.log_import_completed(_counts(data), correlation_id)
        return _with_validation(MutationResult.ok(operation), result)

    async def clear_data(self) -> MutationResult:
        """Delete everything in storage, then install an empty ledger."""
        operation = "clear_data"
        correlation_id = create_correlation_id()

        result = self._validator.validate_bulk(self._role)
        if result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_clear_failed(result.error_summary(), correlation_id)
            return MutationResult.rejected(operation, result)

        try:
            await self._storage.clear_all()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_clear_failed(str(e), correlation_id)
            return MutationResult.failed(operation, f"Clear failed: {e}")

        self._store.replace(Ledger.empty())
        if self._audit_logger:
            await self._audit_logger.log_data_cleared(correlation_id)
        return MutationResult.ok(operation)

    def export_data(self) -> str:
        """The current snapshot as a three-array JSON document."""
        return self.ledger.to_data().to_json()

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(
        self,
        config: ConnectionConfig,
        storage: Optional[LedgerStorageInterface] = None,
    ) -> LoadResult:
        """
        Switch to the remote backend described by `config`.

        The configuration is probed first and only saved once the probe
        succeeds. After switching, the ledger is reloaded. `storage` is the
        backend to probe; by default it is built from `config`.
        """
        # Without an injected storage the probe always targets the remote backend
        backend = (
            storage.backend_name if storage is not None
            else GoogleSheetsLedgerStorage.backend_name
        )
        try:
            storage = await verify_connection(config, storage)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_connection_failed(backend, str(e))
            return LoadResult(success=False, error_message=str(e))

        if self._connection_store:
            try:
                self._connection_store.save(config)
            except OSError as e:
                message = f"Could not save connection settings: {e}"
                if self._audit_logger:
                    await self._audit_logger.log_connection_failed(backend, message)
                return LoadResult(success=False, error_message=message)
        if self._audit_logger:
            await self._audit_logger.log_connection_verified(storage.backend_name)

        self._storage = storage
        return await self.load()

    async def disconnect(self, local_data_file: Optional[str] = None) -> LoadResult:
        """Forget the saved connection and fall back to local storage."""
        if self._connection_store:
            self._connection_store.clear()
        self._storage = create_storage(ConnectionConfig(), local_data_file)
        return await self.load()

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def summary(self) -> FinancialSummary:
        return financial_summary(
            self.ledger,
            recent_limit=get_settings().app.recent_transactions_limit,
        )

    def monthly_series(self, today: Optional[date] = None) -> list[MonthlyBucket]:
        return monthly_series(
            self.ledger,
            today or date.today(),
            months=get_settings().app.dashboard_months,
        )

    def report(self, report_filter: Optional[ReportFilter] = None) -> FinancialReport:
        """Filtered report; defaults to the current month, unfiltered."""
        return build_report(
            self.ledger,
            report_filter or ReportFilter.current_month(date.today()),
        )


def _counts(data: LedgerData) -> dict[str, int]:
    return {
        "clients": len(data.clients),
        "payments": len(data.payments),
        "expenses": len(data.expenses),
    }


def _with_validation(outcome: MutationResult, result: ValidationResult) -> MutationResult:
    """Attach warnings from validation to an otherwise finished result."""
    if not result.issues:
        return outcome
    return outcome.model_copy(update={"validation": result})


async def generate_insight(
    session: BookkeepingSession,
    agent: InsightAgent,
    audit_logger: Optional[AuditLogger] = None,
) -> str:
    """Insight paragraph for the session's current ledger. Never raises."""
    text, used_fallback = await agent.generate_insight(session.ledger)
    if audit_logger:
        await audit_logger.log_insight_generated(agent.model_name, used_fallback)
    return text


def create_app_components(
    role: UserRole = UserRole.ADMIN,
    config: Optional[ConnectionConfig] = None,
) -> tuple[BookkeepingSession, InsightAgent, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        role: Role of the signed-in user
        config: Connection values; when None the saved values (or their
                environment defaults) are used

    Returns:
        (session, insight_agent, audit_logger)

    The session has not loaded yet; call `await session.load()`.
    """
    status = validate_all_settings()
    invalid = [name for name, ok in status.items() if ok is False]
    if invalid:
        logger.warning("settings_invalid", sections=invalid, details=status)

    app_settings = get_settings().app
    configure_log_level(app_settings.debug_mode)

    connection_store = ConnectionConfigStore()
    config = config or connection_store.load()
    storage = create_storage(config)
    audit_logger = AuditLogger()

    logger.info(
        "storage_selected",
        backend=storage.backend_name,
        environment=app_settings.app_environment,
    )

    session = BookkeepingSession(
        storage=storage,
        role=role,
        audit_logger=audit_logger,
        connection_store=connection_store,
    )
    return session, InsightAgent(), audit_logger
