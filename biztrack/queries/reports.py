"""
Filtered Financial Reports

Builds the statement shown on the reports page and its tabular export.

Expenses are never tied to a client or a payment method, so they only
appear in a report that narrows neither.
"""

import csv
from decimal import Decimal
from typing import Iterable, TextIO

from biztrack.models.ledger import ALL, Ledger, Payment
from biztrack.models.report import FinancialReport, ReportFilter, ReportRow
from biztrack.queries.aggregation import (
    client_balance,
    method_breakdown,
    total_expenses,
    total_received,
    total_refunded,
)


CSV_HEADER = ["Date", "Description", "Type", "Method", "Debit (Out)", "Credit (In)"]

EXPENSE_METHOD = "-"


def _payment_matches(payment: Payment, report_filter: ReportFilter) -> bool:
    if not report_filter.includes_date(payment.date):
        return False
    if report_filter.client_id != ALL and payment.client_id != report_filter.client_id:
        return False
    if report_filter.method != ALL and payment.effective_method != report_filter.method:
        return False
    return True


def build_report(ledger: Ledger, report_filter: ReportFilter) -> FinancialReport:
    """
    Apply a filter to a ledger snapshot.

    Payments and expenses are each sorted by date ascending. The method
    breakdown is only produced when the method filter is ALL. When a
    single client is selected, its all-time balance is attached regardless
    of the date range.
    """
    payments = sorted(
        (p for p in ledger.payments if _payment_matches(p, report_filter)),
        key=lambda p: p.date,
    )

    if report_filter.is_unfiltered:
        expenses = sorted(
            (e for e in ledger.expenses if report_filter.includes_date(e.date)),
            key=lambda e: e.date,
        )
    else:
        expenses = []

    received = total_received(payments)
    refunded = total_refunded(payments)
    income = received - refunded
    spent = total_expenses(expenses)

    client_context = None
    if report_filter.client_id != ALL:
        client = ledger.clients.get(report_filter.client_id)
        if client is not None:
            client_context = client_balance(ledger, client)

    return FinancialReport(
        filter=report_filter,
        payments=payments,
        expenses=expenses,
        total_received=received,
        total_refunded=refunded,
        net_income=income,
        total_expenses=spent,
        net_profit=income - spent,
        method_breakdown=method_breakdown(payments) if report_filter.method == ALL else None,
        client_context=client_context,
    )


def format_money(value: Decimal) -> str:
    """Two decimal places, no currency symbol or grouping."""
    return f"{value:.2f}"


def report_rows(ledger: Ledger, report: FinancialReport) -> list[ReportRow]:
    """
    Tabular rows for a report: payments, then expenses, then a totals row.

    The ledger is needed to resolve client names.
    """
    rows: list[ReportRow] = []
    zero = format_money(Decimal("0"))

    for payment in report.payments:
        name = ledger.client_name(payment.client_id)
        description = f"{name} - {payment.description}" if payment.description else name
        amount = format_money(payment.amount)
        rows.append(ReportRow(
            date=payment.date.isoformat(),
            description=description,
            type="Refund" if payment.is_refund else "Payment",
            method=payment.effective_method,
            debit=amount if payment.is_refund else zero,
            credit=zero if payment.is_refund else amount,
        ))

    for expense in report.expenses:
        rows.append(ReportRow(
            date=expense.date.isoformat(),
            description=f"{expense.description} ({expense.category})",
            type="Expense",
            method=EXPENSE_METHOD,
            debit=format_money(expense.amount),
            credit=zero,
        ))

    rows.append(ReportRow(
        date="",
        description="TOTALS",
        type="",
        method="",
        debit=format_money(report.total_debit),
        credit=format_money(report.total_credit),
    ))
    return rows


def write_report_csv(rows: Iterable[ReportRow], stream: TextIO) -> None:
    """Write report rows, with the header line, as CSV."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(row.as_list())


def report_filename(report_filter: ReportFilter) -> str:
    return f"Report_{report_filter.start_date.isoformat()}_{report_filter.end_date.isoformat()}.csv"
