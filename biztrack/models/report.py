"""
Report and Summary Models

Outputs of the aggregation engine. These are derived views: they are
recomputed from a Ledger snapshot whenever needed and never persisted.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from biztrack.models.ledger import ALL, Expense, Payment


class ReportFilter(BaseModel):
    """
    Filter parameters for a financial report.

    Both date bounds are inclusive. `client_id` and `method` use "ALL" to
    mean no narrowing.
    """
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    client_id: str = ALL
    method: str = ALL

    @model_validator(mode='after')
    def validate_range(self) -> 'ReportFilter':
        if self.end_date < self.start_date:
            raise ValueError("Report end date cannot be before start date")
        return self

    @classmethod
    def current_month(
        cls,
        today: date,
        client_id: str = ALL,
        method: str = ALL,
    ) -> 'ReportFilter':
        """Default report range: first to last day of today's month."""
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        return cls(
            start_date=first,
            end_date=next_month - timedelta(days=1),
            client_id=client_id,
            method=method,
        )

    @property
    def is_unfiltered(self) -> bool:
        """True when neither client nor method narrows the report."""
        return self.client_id == ALL and self.method == ALL

    def includes_date(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date


class ClientBalance(BaseModel):
    """What a client has been billed, has paid, and still owes."""

    client_id: str
    name: str
    company: Optional[str] = None
    total_billed: Decimal
    total_received: Decimal
    total_refunded: Decimal
    net_paid: Decimal
    due: Decimal = Field(
        description="May be negative when the client has overpaid"
    )

    @property
    def outstanding(self) -> Decimal:
        """Contribution to an aggregate total outstanding (never negative)."""
        return self.due if self.due > 0 else Decimal("0")


class MonthlyBucket(BaseModel):
    """Income and expense for one calendar month."""

    key: str = Field(description="Year-month key, e.g. 2024-03")
    label: str = Field(description="Abbreviated month name")
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class CategoryTotal(BaseModel):
    """Total spent in one expense category."""

    category: str
    total: Decimal


class FinancialSummary(BaseModel):
    """Dashboard headline figures over a whole Ledger."""

    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    profit_margin: Decimal = Field(
        description="Net profit as a percentage of income; 0 when income is not positive"
    )
    total_due: Decimal
    recent_transactions: list[Union[Payment, Expense]] = Field(default_factory=list)


class FinancialReport(BaseModel):
    """A filtered statement over a date range."""

    filter: ReportFilter
    payments: list[Payment]
    expenses: list[Expense]
    total_received: Decimal
    total_refunded: Decimal
    net_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    method_breakdown: Optional[dict[str, Decimal]] = Field(
        default=None,
        description="Signed totals per method; only computed when the method filter is ALL"
    )
    client_context: Optional[ClientBalance] = Field(
        default=None,
        description="All-time balance of the filtered client, independent of the date range"
    )

    @property
    def total_debit(self) -> Decimal:
        """Debit column of the totals row."""
        if self.filter.method == ALL:
            return self.total_refunded + self.total_expenses
        return self.total_refunded

    @property
    def total_credit(self) -> Decimal:
        """Credit column of the totals row."""
        return self.total_received


class ReportRow(BaseModel):
    """One line of the tabular report export, money already formatted."""

    date: str
    description: str
    type: str
    method: str
    debit: str
    credit: str

    def as_list(self) -> list[str]:
        return [self.date, self.description, self.type, self.method, self.debit, self.credit]
