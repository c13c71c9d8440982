"""
Data Models Package

This package contains all Pydantic models used in BizTrack.
All ledger data flowing through the system must conform to these schemas.
"""

from biztrack.models.ledger import (
    ALL,
    DEFAULT_PAYMENT_METHOD,
    ENTITY_TYPES,
    UNKNOWN_CLIENT,
    Client,
    Collection,
    Expense,
    Ledger,
    LedgerData,
    LedgerEntity,
    Payment,
    PaymentKind,
    UserRole,
    collection_for,
    new_id,
    normalize_client_record,
)
from biztrack.models.report import (
    CategoryTotal,
    ClientBalance,
    FinancialReport,
    FinancialSummary,
    MonthlyBucket,
    ReportFilter,
    ReportRow,
)
from biztrack.models.results import (
    LoadResult,
    MutationResult,
    ValidationIssue,
    ValidationResult,
)
from biztrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ALL",
    "DEFAULT_PAYMENT_METHOD",
    "ENTITY_TYPES",
    "UNKNOWN_CLIENT",
    "Client",
    "Collection",
    "Expense",
    "Ledger",
    "LedgerData",
    "LedgerEntity",
    "Payment",
    "PaymentKind",
    "UserRole",
    "collection_for",
    "new_id",
    "normalize_client_record",
    # Report models
    "CategoryTotal",
    "ClientBalance",
    "FinancialReport",
    "FinancialSummary",
    "MonthlyBucket",
    "ReportFilter",
    "ReportRow",
    # Result models
    "LoadResult",
    "MutationResult",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
