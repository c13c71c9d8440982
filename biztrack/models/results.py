"""
Result Models

Expected failures (validation problems, rejected writes) are reported as
values rather than exceptions, so callers can show a message and carry on.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate_id', 'permission')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of checking a mutation or import before it reaches storage."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    def error_summary(self) -> str:
        """All error messages joined into one line for display."""
        return "; ".join(
            issue.message for issue in self.issues if issue.severity == "error"
        )


class MutationResult(BaseModel):
    """
    Outcome of one coordinated change.

    `rolled_back` is True only when the change had been applied optimistically
    and was then reverted because storage failed.
    """

    mutation_id: UUID = Field(default_factory=uuid4)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str = Field(description="e.g. add_client, delete_expense, import_data")
    entity_id: Optional[str] = None

    success: bool
    rolled_back: bool = False
    error_message: Optional[str] = None
    validation: Optional[ValidationResult] = None

    @classmethod
    def ok(cls, operation: str, entity_id: Optional[str] = None) -> "MutationResult":
        return cls(operation=operation, entity_id=entity_id, success=True)

    @classmethod
    def failed(
        cls,
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
        rolled_back: bool = False,
    ) -> "MutationResult":
        return cls(
            operation=operation,
            entity_id=entity_id,
            success=False,
            rolled_back=rolled_back,
            error_message=error_message,
        )

    @classmethod
    def rejected(
        cls,
        operation: str,
        validation: ValidationResult,
        entity_id: Optional[str] = None,
    ) -> "MutationResult":
        return cls(
            operation=operation,
            entity_id=entity_id,
            success=False,
            error_message=validation.error_summary(),
            validation=validation,
        )


class LoadResult(BaseModel):
    """Outcome of fetching the whole ledger from storage."""

    success: bool
    error_message: Optional[str] = None
    client_count: int = 0
    payment_count: int = 0
    expense_count: int = 0
