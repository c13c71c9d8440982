"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. A trace of each optimistic change and whether it stuck
2. The backend's own message when a write is rejected
3. Correlation ids tying together the steps of one user action

The audit logger:
- Is async so callers can await it alongside storage calls
- Never raises (a logging failure must not break a mutation)
- Writes structured JSON through structlog
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from biztrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from biztrack.models.results import ValidationResult


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(debug_mode: bool) -> int:
    """Set the level of the stdlib loggers structlog writes through."""
    level = logging.DEBUG if debug_mode else logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("biztrack").setLevel(level)
    return level


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured log. Emitted events are also kept
    in memory (most recent `history_size`) so a session can show what
    happened.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("biztrack.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        return list(self._history)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if writing the log line failed; never raises.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    # -------------------------------------------------------------------------
    # Mutation lifecycle
    # -------------------------------------------------------------------------

    async def log_mutation_applied(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_applied(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_mutation_committed(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_committed(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_mutation_rolled_back(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log that storage failed and the snapshot was restored."""
        await self.log(AuditEventBuilder.mutation_rolled_back(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_mutation_rejected(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        issues = [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in result.issues
        ]
        await self.log(AuditEventBuilder.mutation_rejected(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Whole-ledger operations
    # -------------------------------------------------------------------------

    async def log_data_loaded(
        self,
        backend: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.data_loaded(backend, counts, correlation_id))

    async def log_data_load_failed(
        self,
        backend: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.data_load_failed(backend, error_message, correlation_id))

    async def log_import_completed(self, counts: dict[str, int], correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.import_completed(counts, correlation_id))

    async def log_import_failed(self, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.import_failed(error_message, correlation_id))

    async def log_data_cleared(self, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.data_cleared(correlation_id))

    async def log_clear_failed(self, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.clear_failed(error_message, correlation_id))

    # -------------------------------------------------------------------------
    # Connection and external services
    # -------------------------------------------------------------------------

    async def log_connection_verified(self, backend: str) -> None:
        await self.log(AuditEventBuilder.connection_verified(backend))

    async def log_connection_failed(self, backend: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.connection_failed(backend, error_message))

    async def log_insight_generated(self, model_name: str, used_fallback: bool) -> None:
        await self.log(AuditEventBuilder.insight_generated(model_name, used_fallback))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. adding a payment).
    Pass it through all subsequent operations.
    """
    return uuid4()
