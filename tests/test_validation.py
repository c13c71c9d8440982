"""Tests for ledger validation."""

import pytest

from biztrack.models.ledger import Collection, Payment, UserRole
from biztrack.validation import LedgerValidator


@pytest.fixture
def validator() -> LedgerValidator:
    return LedgerValidator()


class TestParseRecord:
    """Stage 1: form fields into entities."""

    def test_client_requires_name_and_email(self, validator):
        record, result = validator.parse_record(Collection.CLIENTS, {"name": "", "phone": "1"})
        assert record is None
        fields = {issue.field for issue in result.issues}
        assert {"name", "email"} <= fields

    def test_expense_requires_amount_description_category(self, validator):
        record, result = validator.parse_record(Collection.EXPENSES, {"date": "2024-01-01"})
        assert record is None
        assert {"amount", "description", "category"} <= {i.field for i in result.issues}
        assert all(i.issue_type == "missing" for i in result.issues)

    def test_payment_accepts_zero_amount(self, validator):
        record, result = validator.parse_record(
            Collection.PAYMENTS, {"clientId": "c1", "amount": "0", "date": "2024-01-01"}
        )
        assert result.is_valid
        assert isinstance(record, Payment)

    def test_negative_amount_is_invalid(self, validator):
        record, result = validator.parse_record(
            Collection.PAYMENTS, {"clientId": "c1", "amount": "-1", "date": "2024-01-01"}
        )
        assert record is None
        assert result.issues[0].issue_type == "invalid_value"


class TestImportPayload:
    """Validation of import documents."""

    def test_empty_document_is_valid(self, validator):
        data, result = validator.parse_import_payload('{"clients": [], "payments": [], "expenses": []}')
        assert result.is_valid
        assert data.clients == []

    @pytest.mark.parametrize("raw", [
        "[]",
        "not json",
        '{"clients": [], "payments": []}',
        '{"clients": {}, "payments": [], "expenses": []}',
    ])
    def test_invalid_documents_rejected(self, validator, raw):
        data, result = validator.parse_import_payload(raw)
        assert data is None
        assert result.has_errors

    def test_bad_record_rejected(self, validator):
        data, result = validator.parse_import_payload({
            "clients": [],
            "payments": [{"id": "p1", "clientId": "c1", "amount": -5, "date": "2024-01-01"}],
            "expenses": [],
        })
        assert data is None
        assert result.issues[0].field.startswith("payments.0")

    def test_duplicate_ids_rejected(self, validator):
        expense = {"id": "e1", "category": "Rent", "amount": 1, "date": "2024-01-01", "description": "x"}
        data, result = validator.parse_import_payload(
            {"clients": [], "payments": [], "expenses": [expense, expense]}
        )
        assert data is None
        assert result.issues[0].issue_type == "duplicate_id"

    def test_clients_normalized_on_import(self, validator):
        data, _ = validator.parse_import_payload({
            "clients": [{"id": "c1", "name": "A", "email": "a@b"}],
            "payments": [],
            "expenses": [],
        })
        assert data.clients[0].is_active is True


class TestLedgerChecks:
    """Stage 2: checks against the current ledger."""

    def test_viewer_denied(self, validator, sample_ledger, client_c):
        result = validator.validate_delete(sample_ledger, Collection.CLIENTS, "c1", UserRole.VIEWER)
        assert [i.issue_type for i in result.issues] == ["permission"]

    def test_delete_unknown_id(self, validator, sample_ledger):
        result = validator.validate_delete(sample_ledger, Collection.EXPENSES, "e9", UserRole.ADMIN)
        assert result.has_errors

    def test_payment_for_unknown_client_is_warning(self, validator, sample_ledger):
        payment = Payment(client_id="gone", amount=1, date="2024-01-01")
        result = validator.validate_add(sample_ledger, Collection.PAYMENTS, payment, UserRole.ADMIN)
        assert result.is_valid
        assert result.issues[0].issue_type == "unknown_client"

    def test_user_friendly_summary(self, validator, sample_ledger, client_c):
        result = validator.validate_add(sample_ledger, Collection.CLIENTS, client_c, UserRole.VIEWER)
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("Please fix the following:")
        assert "Only administrators can change data" in summary
