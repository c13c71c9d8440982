"""
Ledger Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required fields, types and formats
- Handled by the pydantic entity models; errors are translated here into
  ValidationIssue values so callers never see a raw ValidationError

STAGE 2 - LEDGER VALIDATION:
- Permission (only ADMIN may change data)
- Records handed to add and update are re-checked against their schema,
  since copies made with model_copy are never validated
- Duplicate ids on add, unknown ids on update and delete
- Payment client checks (unknown or inactive client is a warning)

Both stages run before anything reaches storage. A rejected change never
touches the in-memory ledger.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the caller can show them.
"""

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from biztrack.models.ledger import (
    Collection,
    ENTITY_TYPES,
    Ledger,
    LedgerData,
    LedgerEntity,
    Payment,
    UserRole,
)
from biztrack.models.results import ValidationIssue, ValidationResult


_IMPORT_COLLECTIONS = [c.value for c in Collection]


def issues_from_error(error: ValidationError, prefix: str = "") -> list[ValidationIssue]:
    """Translate a pydantic ValidationError into ValidationIssue values."""
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        field = f"{prefix}.{location}" if prefix and location else (prefix or location)
        error_type = err.get("type", "invalid")
        issues.append(ValidationIssue(
            field=field or "record",
            issue_type="missing" if error_type == "missing" else "invalid_value",
            message=f"{field or 'record'}: {err.get('msg', 'invalid value')}",
            severity="error",
        ))
    return issues


class LedgerValidator:
    """
    Checks ledger changes before they are applied.

    Every check works against a Ledger snapshot, so it can run without
    storage access.
    """

    # -------------------------------------------------------------------------
    # Stage 1: schema
    # -------------------------------------------------------------------------

    def parse_record(
        self,
        collection: Collection,
        raw: dict[str, Any],
    ) -> tuple[Optional[LedgerEntity], ValidationResult]:
        """
        Build an entity from form or wire fields.

        Returns (record, result); record is None when the result has errors.
        """
        entity_type = ENTITY_TYPES[collection]
        try:
            record = entity_type.model_validate(raw)
        except ValidationError as e:
            return None, ValidationResult(issues=issues_from_error(e))
        return record, ValidationResult()

    def parse_import_payload(
        self,
        raw: Union[str, bytes, dict[str, Any]],
    ) -> tuple[Optional[LedgerData], ValidationResult]:
        """
        Validate an import document.

        The document must be an object holding the three arrays `clients`,
        `payments` and `expenses`. Other keys are ignored. Clients are
        normalized as they are read.
        """
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                return None, ValidationResult(issues=[ValidationIssue(
                    field="file",
                    issue_type="invalid_format",
                    message=f"Import file is not valid JSON: {e}",
                    severity="error",
                )])

        if not isinstance(raw, dict):
            return None, ValidationResult(issues=[ValidationIssue(
                field="file",
                issue_type="invalid_format",
                message="Import file must contain a JSON object",
                severity="error",
            )])

        issues = []
        for name in _IMPORT_COLLECTIONS:
            if not isinstance(raw.get(name), list):
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="missing",
                    message=f"Invalid file format: '{name}' must be a list",
                    severity="error",
                ))
        if issues:
            return None, ValidationResult(issues=issues)

        try:
            data = LedgerData.model_validate(raw)
        except ValidationError as e:
            return None, ValidationResult(issues=issues_from_error(e))

        issues = self._duplicate_ids(data)
        if any(issue.severity == "error" for issue in issues):
            return None, ValidationResult(issues=issues)
        return data, ValidationResult(issues=issues)

    def _duplicate_ids(self, data: LedgerData) -> list[ValidationIssue]:
        issues = []
        for collection in Collection:
            seen: set[str] = set()
            for record in data.records(collection):
                if record.id in seen:
                    issues.append(ValidationIssue(
                        field=f"{collection.value}.id",
                        issue_type="duplicate_id",
                        message=f"Duplicate id {record.id} in {collection.value}",
                        severity="error",
                    ))
                seen.add(record.id)
        return issues

    # -------------------------------------------------------------------------
    # Stage 2: ledger
    # -------------------------------------------------------------------------

    def check_role(self, role: UserRole) -> list[ValidationIssue]:
        if role == UserRole.ADMIN:
            return []
        return [ValidationIssue(
            field="role",
            issue_type="permission",
            message="Only administrators can change data",
            severity="error",
        )]

    def _schema_issues(self, record: LedgerEntity) -> list[ValidationIssue]:
        """Re-check fields; `model_copy(update=...)` bypasses validation."""
        try:
            type(record).model_validate(record.model_dump())
        except ValidationError as e:
            return issues_from_error(e)
        return []

    def _payment_issues(self, ledger: Ledger, payment: Payment) -> list[ValidationIssue]:
        client = ledger.clients.get(payment.client_id)
        if client is None:
            return [ValidationIssue(
                field="client_id",
                issue_type="unknown_client",
                message=f"Payment refers to an unknown client ({payment.client_id})",
                severity="warning",
            )]
        if not client.is_active:
            return [ValidationIssue(
                field="client_id",
                issue_type="inactive_client",
                message=f"Client {client.name} is inactive",
                severity="warning",
            )]
        return []

    def validate_add(
        self,
        ledger: Ledger,
        collection: Collection,
        record: LedgerEntity,
        role: UserRole,
    ) -> ValidationResult:
        issues = self.check_role(role)
        issues.extend(self._schema_issues(record))
        if ledger.contains(collection, record.id):
            issues.append(ValidationIssue(
                field="id",
                issue_type="duplicate_id",
                message=f"A record with id {record.id} already exists",
                severity="error",
            ))
        if isinstance(record, Payment):
            issues.extend(self._payment_issues(ledger, record))
        return ValidationResult(issues=issues)

    def validate_update(
        self,
        ledger: Ledger,
        collection: Collection,
        record: LedgerEntity,
        role: UserRole,
    ) -> ValidationResult:
        issues = self.check_role(role)
        issues.extend(self._schema_issues(record))
        if not ledger.contains(collection, record.id):
            issues.append(ValidationIssue(
                field="id",
                issue_type="not_found",
                message=f"No record with id {record.id} to update",
                severity="error",
            ))
        if isinstance(record, Payment):
            issues.extend(self._payment_issues(ledger, record))
        return ValidationResult(issues=issues)

    def validate_delete(
        self,
        ledger: Ledger,
        collection: Collection,
        record_id: str,
        role: UserRole,
    ) -> ValidationResult:
        issues = self.check_role(role)
        if not ledger.contains(collection, record_id):
            issues.append(ValidationIssue(
                field="id",
                issue_type="not_found",
                message=f"No record with id {record_id} to delete",
                severity="error",
            ))
        return ValidationResult(issues=issues)

    def validate_bulk(self, role: UserRole) -> ValidationResult:
        """Import and clear only need the role check."""
        return ValidationResult(issues=self.check_role(role))

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if not result.issues:
            return "All checks passed."

        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        lines = []
        if errors:
            lines.append("Please fix the following:")
            lines.extend(f"- {issue.message}" for issue in errors)
        if warnings:
            lines.append("Please note:")
            lines.extend(f"- {issue.message}" for issue in warnings)
        return "\n".join(lines)
