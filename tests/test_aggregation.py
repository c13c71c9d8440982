"""Tests for the financial aggregation engine."""

import random
from datetime import date
from decimal import Decimal

from biztrack.models.ledger import Client, Expense, Ledger, Payment, PaymentKind
from biztrack.queries.aggregation import (
    active_clients,
    available_methods,
    category_breakdown,
    client_balance,
    expense_categories,
    financial_summary,
    method_breakdown,
    monthly_series,
    net_income,
    net_profit,
    profit_margin,
    recent_transactions,
    sorted_clients,
    total_outstanding,
)


class TestTotals:
    """Income, expense and profit figures."""

    def test_net_income_subtracts_refunds(self, sample_ledger):
        assert net_income(sample_ledger.payments) == Decimal("600")

    def test_net_profit(self, sample_ledger):
        assert net_profit(sample_ledger) == Decimal("525")

    def test_net_income_invariant_under_reordering(self, sample_ledger):
        payments = list(sample_ledger.payments)
        expected = net_income(payments)
        rng = random.Random(7)
        for _ in range(10):
            rng.shuffle(payments)
            assert net_income(payments) == expected

    def test_zero_amount_payment_is_counted(self):
        payments = [
            Payment(client_id="c1", amount=Decimal("0"), date=date(2024, 1, 1)),
            Payment(client_id="c1", amount=Decimal("10"), date=date(2024, 1, 2)),
        ]
        assert net_income(payments) == Decimal("10")
        assert len(available_methods(payments)) == 1

    def test_empty_ledger_is_all_zero(self):
        summary = financial_summary(Ledger.empty())
        assert summary.total_income == Decimal("0")
        assert summary.net_profit == Decimal("0")
        assert summary.profit_margin == Decimal("0")
        assert summary.total_due == Decimal("0")
        assert summary.recent_transactions == []

    def test_profit_margin_zero_when_income_not_positive(self):
        assert profit_margin(Decimal("0"), Decimal("-50")) == Decimal("0")
        assert profit_margin(Decimal("-10"), Decimal("-60")) == Decimal("0")

    def test_profit_margin_percentage(self):
        assert profit_margin(Decimal("600"), Decimal("525")) == Decimal("87.5")


class TestClientBalances:
    """Per-client due and aggregate outstanding."""

    def test_sorted_clients_include_inactive(self, sample_ledger):
        inactive = Client(id="c0", name="aardvark", email="a@test", is_active=False)
        ledger = sample_ledger.with_added(inactive)
        assert [c.id for c in sorted_clients(ledger)] == ["c0", "c1", "c2"]
        assert [c.id for c in active_clients(ledger)] == ["c1", "c2"]

    def test_due_after_refund(self, sample_ledger, client_c):
        balance = client_balance(sample_ledger, client_c)
        assert balance.total_received == Decimal("400")
        assert balance.total_refunded == Decimal("100")
        assert balance.net_paid == Decimal("300")
        assert balance.due == Decimal("700")

    def test_overpaid_client_has_negative_due(self, sample_ledger):
        balance = client_balance(sample_ledger, sample_ledger.clients["c2"])
        assert balance.due == Decimal("-100")
        assert balance.outstanding == Decimal("0")

    def test_total_outstanding_ignores_overpayment(self, sample_ledger):
        assert total_outstanding(sample_ledger) == Decimal("700")

    def test_client_without_total_billed(self):
        client = Client(id="c9", name="New", email="n@test")
        ledger = Ledger(clients={"c9": client})
        assert client_balance(ledger, client).due == Decimal("0")

    def test_active_clients_hides_inactive(self, sample_ledger):
        inactive = sample_ledger.clients["c2"].model_copy(update={"is_active": False})
        ledger = sample_ledger.with_replaced(inactive)
        assert [c.id for c in active_clients(ledger)] == ["c1"]


class TestBreakdowns:
    """Method and category breakdowns."""

    def test_expense_categories_distinct_and_sorted(self, sample_ledger):
        assert expense_categories(sample_ledger.expenses) == ["Travel", "travel"]

    def test_categories_are_case_sensitive(self, sample_ledger):
        totals = {c.category: c.total for c in category_breakdown(sample_ledger.expenses)}
        assert totals == {"Travel": Decimal("50"), "travel": Decimal("25")}

    def test_method_breakdown_signed(self, sample_ledger):
        breakdown = method_breakdown(sample_ledger.payments)
        assert breakdown == {"Bank": Decimal("700"), "Cash": Decimal("-100")}

    def test_available_methods_sorted_and_distinct(self, sample_ledger):
        assert available_methods(sample_ledger.payments) == ["Bank", "Cash"]


class TestMonthlySeries:
    """Trailing window of monthly income and expense."""

    def test_window_has_every_month_oldest_first(self, sample_ledger):
        series = monthly_series(sample_ledger, date(2024, 3, 15))
        assert [b.key for b in series] == [
            "2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03",
        ]
        assert [b.label for b in series][-3:] == ["Jan", "Feb", "Mar"]

    def test_buckets_sum_signed_income_and_expenses(self, sample_ledger):
        series = {b.key: b for b in monthly_series(sample_ledger, date(2024, 3, 15))}
        assert series["2024-03"].income == Decimal("300")
        assert series["2024-03"].expense == Decimal("75")
        assert series["2024-02"].income == Decimal("300")
        assert series["2023-12"].income == Decimal("0")

    def test_records_outside_window_ignored(self, sample_ledger):
        series = monthly_series(sample_ledger, date(2025, 1, 1))
        assert all(b.income == 0 and b.expense == 0 for b in series)

    def test_custom_window_length(self, sample_ledger):
        assert len(monthly_series(sample_ledger, date(2024, 3, 1), months=12)) == 12


class TestRecentTransactions:
    """Newest-first listing on the dashboard."""

    def test_newest_first_and_limited(self, sample_ledger):
        recent = recent_transactions(sample_ledger, limit=3)
        assert [t.id for t in recent] == ["p2", "e2", "e1"]

    def test_summary_includes_recent(self, sample_ledger):
        summary = financial_summary(sample_ledger, recent_limit=2)
        assert len(summary.recent_transactions) == 2
        assert summary.total_due == Decimal("700")

    def test_refund_only_ledger(self):
        ledger = Ledger(payments=(
            Payment(client_id="c1", amount=Decimal("40"), date=date(2024, 1, 1),
                    kind=PaymentKind.REFUND),
        ), expenses=(
            Expense(category="Rent", amount=Decimal("10"), date=date(2024, 1, 1),
                    description="Desk"),
        ))
        summary = financial_summary(ledger)
        assert summary.total_income == Decimal("-40")
        assert summary.net_profit == Decimal("-50")
        assert summary.profit_margin == Decimal("0")
