"""
Audit Models for BizTrack

Every change to the ledger is logged as a structured event. This provides:
1. Traceability of optimistic changes and their rollbacks
2. Debugging information when a backend rejects a write
3. A correlation id linking the steps of one user action

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    A single mutation produces APPLIED followed by COMMITTED or ROLLED_BACK.
    """
    # Single mutations
    MUTATION_APPLIED = "mutation_applied"
    MUTATION_COMMITTED = "mutation_committed"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"
    MUTATION_REJECTED = "mutation_rejected"

    # Loading
    DATA_LOADED = "data_loaded"
    DATA_LOAD_FAILED = "data_load_failed"

    # Bulk operations
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    DATA_CLEARED = "data_cleared"
    CLEAR_FAILED = "clear_failed"

    # Connection settings
    CONNECTION_VERIFIED = "connection_verified"
    CONNECTION_FAILED = "connection_failed"

    # Insight generation
    INSIGHT_GENERATED = "insight_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection name (clients, payments, expenses) or 'ledger'"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one user action"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.mutation_applied("add_client", "clients", client.id, cid)
        event = AuditEventBuilder.mutation_rolled_back("add_client", "clients", client.id, msg, cid)
    """

    @staticmethod
    def mutation_applied(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Applied optimistically: {operation}",
            details={"operation": operation},
        )

    @staticmethod
    def mutation_committed(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_COMMITTED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Persisted: {operation}",
            details={"operation": operation},
        )

    @staticmethod
    def mutation_rolled_back(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage rejected {operation}; restored previous state",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def mutation_rejected(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Validation rejected {operation}",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def data_loaded(
        backend: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOADED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger loaded from {backend}",
            details={"backend": backend, **counts},
        )

    @staticmethod
    def data_load_failed(
        backend: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Could not load ledger from {backend}",
            details={"backend": backend},
            error_message=error_message,
        )

    @staticmethod
    def import_completed(
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Imported data file",
            details=counts,
        )

    @staticmethod
    def import_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Import failed; in-memory ledger left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def data_cleared(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="All clients, payments and expenses deleted",
        )

    @staticmethod
    def clear_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLEAR_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Clear failed; in-memory ledger left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def connection_verified(backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_VERIFIED,
            description=f"Connection verified: {backend}",
            details={"backend": backend},
        )

    @staticmethod
    def connection_failed(backend: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Connection check failed: {backend}",
            details={"backend": backend},
            error_message=error_message,
        )

    @staticmethod
    def insight_generated(model_name: str, used_fallback: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_GENERATED,
            description="Financial insight generated",
            details={"model": model_name, "used_fallback": used_fallback},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
