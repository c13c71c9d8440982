"""
Financial Aggregation Engine

DESIGN DECISION: Every figure shown to the user is DERIVED.
Nothing here is stored; each function takes a Ledger snapshot and returns
a fresh value. The functions are pure and synchronous: they never touch
storage, never mutate the ledger and give the same answer for the same
input.

Money direction comes from Payment.kind only. A refund subtracts its
(positive) amount from income.
"""

from calendar import month_abbr
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from biztrack.models.ledger import (
    Client,
    Expense,
    Ledger,
    Payment,
)
from biztrack.models.report import (
    CategoryTotal,
    ClientBalance,
    FinancialSummary,
    MonthlyBucket,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")

Transaction = Union[Payment, Expense]


# =============================================================================
# TOTALS
# =============================================================================

def net_income(payments: Iterable[Payment]) -> Decimal:
    """Sum of RECEIVED amounts minus sum of REFUND amounts."""
    return sum((p.signed_amount for p in payments), ZERO)


def total_received(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments if not p.is_refund), ZERO)


def total_refunded(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments if p.is_refund), ZERO)


def total_expenses(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def net_profit(ledger: Ledger) -> Decimal:
    return net_income(ledger.payments) - total_expenses(ledger.expenses)


def profit_margin(income: Decimal, profit: Decimal) -> Decimal:
    """
    Profit as a percentage of income.

    Defined as 0 whenever income is zero or negative (more refunded than
    received), so the margin never divides by zero or flips sign oddly.
    """
    if income <= 0:
        return ZERO
    return profit / income * HUNDRED


# =============================================================================
# CLIENTS
# =============================================================================

def client_payments(ledger: Ledger, client_id: str) -> list[Payment]:
    return [p for p in ledger.payments if p.client_id == client_id]


def client_balance(ledger: Ledger, client: Client) -> ClientBalance:
    """
    All-time billed, paid and due figures for one client.

    Example: billed 1000 with 400 received and 100 refunded gives
    net paid 300 and due 700. Due goes negative on overpayment.
    """
    payments = client_payments(ledger, client.id)
    received = total_received(payments)
    refunded = total_refunded(payments)
    paid = received - refunded
    return ClientBalance(
        client_id=client.id,
        name=client.name,
        company=client.company,
        total_billed=client.total_billed,
        total_received=received,
        total_refunded=refunded,
        net_paid=paid,
        due=client.total_billed - paid,
    )


def client_balances(ledger: Ledger) -> list[ClientBalance]:
    return [client_balance(ledger, client) for client in ledger.clients.values()]


def total_outstanding(ledger: Ledger) -> Decimal:
    """Sum of positive per-client dues. Overpaid clients contribute 0."""
    return sum((b.outstanding for b in client_balances(ledger)), ZERO)


def active_clients(ledger: Ledger) -> list[Client]:
    """Clients offered for new payments, sorted by name."""
    return sorted(
        (c for c in ledger.clients.values() if c.is_active),
        key=lambda c: c.name.lower(),
    )


def sorted_clients(ledger: Ledger) -> list[Client]:
    """All clients (active or not) sorted by name, for report filters."""
    return sorted(ledger.clients.values(), key=lambda c: c.name.lower())


# =============================================================================
# BREAKDOWNS
# =============================================================================

def available_methods(payments: Iterable[Payment]) -> list[str]:
    """Distinct payment methods, with a missing method counted as Cash."""
    return sorted({p.effective_method for p in payments})


def method_breakdown(payments: Iterable[Payment]) -> dict[str, Decimal]:
    """Signed totals per payment method, in order of first appearance."""
    totals: dict[str, Decimal] = {}
    for payment in payments:
        method = payment.effective_method
        totals[method] = totals.get(method, ZERO) + payment.signed_amount
    return totals


def category_breakdown(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """
    Expense totals per category.

    Category strings are compared exactly: "Travel" and "travel" are two
    separate buckets.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[expense.category] += expense.amount
    return [CategoryTotal(category=name, total=total) for name, total in totals.items()]


def expense_categories(expenses: Iterable[Expense]) -> list[str]:
    return sorted({e.category for e in expenses})


# =============================================================================
# TIME SERIES
# =============================================================================

def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def monthly_series(
    ledger: Ledger,
    today: date,
    months: int = 6,
) -> list[MonthlyBucket]:
    """
    Income and expense per calendar month over a trailing window.

    The window ends with today's month. Every month of the window is
    present even when empty, oldest first. Records outside the window are
    ignored.
    """
    buckets: dict[str, MonthlyBucket] = {}
    for offset in range(months - 1, -1, -1):
        index = today.year * 12 + (today.month - 1) - offset
        year, month = divmod(index, 12)
        key = _month_key(year, month + 1)
        buckets[key] = MonthlyBucket(key=key, label=month_abbr[month + 1])

    for payment in ledger.payments:
        bucket = buckets.get(_month_key(payment.date.year, payment.date.month))
        if bucket is not None:
            bucket.income += payment.signed_amount

    for expense in ledger.expenses:
        bucket = buckets.get(_month_key(expense.date.year, expense.date.month))
        if bucket is not None:
            bucket.expense += expense.amount

    return list(buckets.values())


def recent_transactions(ledger: Ledger, limit: int = 5) -> list[Transaction]:
    """Latest payments and expenses combined, newest date first."""
    combined: list[Transaction] = [*ledger.payments, *ledger.expenses]
    combined.sort(key=lambda t: t.date, reverse=True)
    return combined[:limit]


# =============================================================================
# SUMMARY
# =============================================================================

def financial_summary(
    ledger: Ledger,
    recent_limit: Optional[int] = 5,
) -> FinancialSummary:
    """Headline dashboard figures over the whole ledger."""
    income = net_income(ledger.payments)
    expenses = total_expenses(ledger.expenses)
    profit = income - expenses
    return FinancialSummary(
        total_income=income,
        total_expenses=expenses,
        net_profit=profit,
        profit_margin=profit_margin(income, profit),
        total_due=total_outstanding(ledger),
        recent_transactions=recent_transactions(ledger, recent_limit) if recent_limit else [],
    )
