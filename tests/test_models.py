"""
Tests for BizTrack

Test strategy:
1. Unit tests for individual components (models, aggregation, validators)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (use fakes)
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from biztrack.models.ledger import (
    Client,
    Collection,
    Expense,
    Ledger,
    LedgerData,
    Payment,
    PaymentKind,
    collection_for,
    normalize_client_record,
)
from biztrack.models.report import ReportFilter
from biztrack.models.results import MutationResult, ValidationIssue, ValidationResult
from biztrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for the entity models."""

    def test_client_defaults(self):
        """A new client is active, has billed nothing and gets an id."""
        client = Client(name="Acme", email="a@acme.test")
        assert client.is_active is True
        assert client.total_billed == Decimal("0")
        assert client.id
        assert client.created_at.tzinfo is not None

    def test_client_strips_whitespace(self):
        """Test that whitespace is stripped from client name."""
        client = Client(name="  Acme  ", email="a@acme.test")
        assert client.name == "Acme"

    def test_client_requires_name_and_email(self):
        with pytest.raises(ValidationError):
            Client(name="", email="a@acme.test")
        with pytest.raises(ValidationError):
            Client(name="Acme", email="")

    def test_payment_rejects_negative_amount(self):
        """Direction is carried by kind, so amounts are never negative."""
        with pytest.raises(ValidationError):
            Payment(client_id="c1", amount=Decimal("-10"), date=date(2024, 1, 1))

    def test_payment_zero_amount_is_valid(self):
        payment = Payment(client_id="c1", amount=Decimal("0"), date=date(2024, 1, 1))
        assert payment.amount == Decimal("0")

    def test_payment_missing_kind_is_received(self):
        payment = Payment.model_validate(
            {"id": "p1", "clientId": "c1", "amount": 10, "date": "2024-01-01", "type": None}
        )
        assert payment.kind == PaymentKind.RECEIVED
        assert payment.signed_amount == Decimal("10")

    def test_refund_signed_amount_is_negative(self):
        payment = Payment(
            client_id="c1", amount=Decimal("25"), date=date(2024, 1, 1),
            kind=PaymentKind.REFUND,
        )
        assert payment.is_refund
        assert payment.signed_amount == Decimal("-25")

    def test_missing_method_counts_as_cash(self):
        payment = Payment(client_id="c1", amount=Decimal("5"), date=date(2024, 1, 1))
        assert payment.effective_method == "Cash"

    def test_entities_are_immutable(self):
        client = Client(name="Acme", email="a@acme.test")
        with pytest.raises(ValidationError):
            client.name = "Other"

    def test_collection_for(self):
        assert collection_for(Client(name="A", email="a@b")) == Collection.CLIENTS
        assert collection_for(
            Expense(category="Rent", amount=Decimal("1"), date=date(2024, 1, 1), description="x")
        ) == Collection.EXPENSES


class TestWireFormat:
    """Tests for the camelCase import/export representation."""

    def test_payment_wire_keys(self):
        payment = Payment(
            id="p1", client_id="c1", amount=Decimal("12.5"), date=date(2024, 2, 3),
            kind=PaymentKind.REFUND,
        )
        wire = payment.to_wire()
        assert wire["clientId"] == "c1"
        assert wire["type"] == "REFUND"
        assert wire["amount"] == 12.5
        assert wire["date"] == "2024-02-03"

    def test_client_created_at_is_epoch_millis(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client = Client(name="A", email="a@b", created_at=created)
        wire = client.to_wire()
        assert wire["createdAt"] == 1704067200000
        assert wire["isActive"] is True
        assert wire["totalBilled"] == 0.0

    def test_client_reads_epoch_millis(self):
        client = Client.model_validate(
            {"id": "c1", "name": "A", "email": "a@b", "createdAt": 1704067200000}
        )
        assert client.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_client_reads_missing_optional_cells(self):
        """Rows read from a spreadsheet carry None for empty cells."""
        client = Client.model_validate(
            {"id": "c1", "name": "A", "email": "a@b", "phone": None,
             "createdAt": None, "totalBilled": None}
        )
        assert client.phone == ""
        assert client.total_billed == Decimal("0")

    def test_ledger_data_export_is_json(self, sample_ledger):
        exported = json.loads(sample_ledger.to_data().to_json())
        assert set(exported) == {"clients", "payments", "expenses"}
        assert len(exported["payments"]) == 3

    def test_ledger_data_requires_all_three_arrays(self):
        with pytest.raises(ValidationError):
            LedgerData.model_validate({"clients": [], "payments": []})

    def test_ledger_data_ignores_extra_keys(self):
        data = LedgerData.model_validate(
            {"clients": [], "payments": [], "expenses": [], "version": 2}
        )
        assert data == LedgerData.empty()


class TestNormalization:
    """Tests for the isActive read-time default."""

    @pytest.mark.parametrize("raw,expected", [
        ({}, True),
        ({"isActive": None}, True),
        ({"isActive": True}, True),
        ({"isActive": False}, False),
    ])
    def test_is_active_defaults(self, raw, expected):
        assert normalize_client_record(raw)["isActive"] is expected

    def test_normalize_is_idempotent(self):
        record = {"id": "c1", "name": "A", "isActive": None}
        once = normalize_client_record(record)
        assert normalize_client_record(once) == once

    def test_normalize_does_not_mutate_input(self):
        record = {"id": "c1"}
        normalize_client_record(record)
        assert "isActive" not in record

    def test_ledger_data_normalizes_clients(self):
        data = LedgerData.model_validate({
            "clients": [{"id": "c1", "name": "A", "email": "a@b", "isActive": None}],
            "payments": [],
            "expenses": [],
        })
        assert data.clients[0].is_active is True


class TestLedger:
    """Tests for the immutable aggregate root."""

    def test_with_added_returns_new_ledger(self, client_c):
        empty = Ledger.empty()
        added = empty.with_added(client_c)
        assert empty.is_empty
        assert added.clients == {"c1": client_c}

    def test_with_replaced_keeps_position(self, sample_ledger):
        original = sample_ledger.payments[1]
        changed = original.model_copy(update={"amount": Decimal("90")})
        ledger = sample_ledger.with_replaced(changed)
        assert ledger.payments[1].amount == Decimal("90")
        assert [p.id for p in ledger.payments] == ["p1", "p2", "p3"]
        assert sample_ledger.payments[1].amount == Decimal("100")

    def test_with_removed_absent_id_is_noop(self, sample_ledger):
        assert sample_ledger.with_removed(Collection.EXPENSES, "missing") == sample_ledger

    def test_client_name_resolves_unknown(self, sample_ledger):
        assert sample_ledger.client_name("c1") == "Acme Ltd"
        assert sample_ledger.client_name("gone") == "Unknown"

    def test_round_trip_through_data(self, sample_ledger):
        assert Ledger.from_data(sample_ledger.to_data()) == sample_ledger


class TestReportFilter:
    """Tests for report filter parameters."""

    def test_current_month_range(self):
        f = ReportFilter.current_month(date(2024, 2, 14))
        assert f.start_date == date(2024, 2, 1)
        assert f.end_date == date(2024, 2, 29)
        assert f.is_unfiltered

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            ReportFilter(start_date=date(2024, 3, 2), end_date=date(2024, 3, 1))

    def test_bounds_are_inclusive(self):
        f = ReportFilter(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
        assert f.includes_date(date(2024, 3, 1))
        assert f.includes_date(date(2024, 3, 31))
        assert not f.includes_date(date(2024, 4, 1))


class TestResultModels:
    """Tests for validation and mutation results."""

    def test_validation_result_with_errors(self):
        result = ValidationResult(issues=[
            ValidationIssue(field="id", issue_type="duplicate_id",
                            message="Duplicate", severity="error"),
            ValidationIssue(field="client_id", issue_type="inactive_client",
                            message="Inactive", severity="warning"),
        ])
        assert result.has_errors
        assert result.error_count == 1
        assert result.warnings == ["Inactive"]
        assert result.error_summary() == "Duplicate"

    def test_invalid_severity_rejected(self):
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")

    def test_rejected_result_carries_message(self):
        validation = ValidationResult(issues=[
            ValidationIssue(field="role", issue_type="permission",
                            message="Only administrators can change data", severity="error"),
        ])
        result = MutationResult.rejected("add_client", validation, "c1")
        assert not result.success
        assert not result.rolled_back
        assert result.error_message == "Only administrators can change data"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.DATA_CLEARED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.MUTATION_COMMITTED,
            entity_type="clients",
            entity_id="c1",
            description="Test event",
            details={"operation": "add_client"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "mutation_committed"
        assert log_dict["entity_id"] == "c1"
        assert log_dict["details"] == {"operation": "add_client"}

    def test_audit_event_builder_rolled_back(self):
        """Test AuditEventBuilder for rollbacks."""
        event = AuditEventBuilder.mutation_rolled_back(
            operation="add_payment",
            entity_type="payments",
            entity_id="p1",
            error_message="permission denied",
            correlation_id=None,
        )
        assert event.event_type == AuditEventType.MUTATION_ROLLED_BACK
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "permission denied"
