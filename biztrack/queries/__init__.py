"""Aggregation and report package."""

from biztrack.queries.aggregation import (
    active_clients,
    available_methods,
    category_breakdown,
    client_balance,
    client_balances,
    expense_categories,
    financial_summary,
    method_breakdown,
    monthly_series,
    net_income,
    net_profit,
    profit_margin,
    recent_transactions,
    sorted_clients,
    total_expenses,
    total_outstanding,
    total_received,
    total_refunded,
)
from biztrack.queries.reports import (
    CSV_HEADER,
    build_report,
    format_money,
    report_filename,
    report_rows,
    write_report_csv,
)

__all__ = [
    "active_clients",
    "available_methods",
    "category_breakdown",
    "client_balance",
    "client_balances",
    "expense_categories",
    "financial_summary",
    "method_breakdown",
    "monthly_series",
    "net_income",
    "net_profit",
    "profit_margin",
    "recent_transactions",
    "sorted_clients",
    "total_expenses",
    "total_outstanding",
    "total_received",
    "total_refunded",
    "CSV_HEADER",
    "build_report",
    "format_money",
    "report_filename",
    "report_rows",
    "write_report_csv",
]
