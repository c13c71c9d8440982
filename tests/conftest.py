"""
Shared fixtures for BizTrack tests.

No test talks to a real spreadsheet or AI service: storage is an
in-memory fake and the gspread objects are stand-ins with the same
method names.
"""

import asyncio
import copy
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from biztrack.models.ledger import (
    Client,
    Collection,
    Expense,
    Ledger,
    LedgerData,
    LedgerEntity,
    Payment,
    PaymentKind,
)
from biztrack.services.storage.interface import (
    LedgerStorageInterface,
    StorageConnectionError,
    WriteRejectedError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Ledger storage kept in dicts.

    `fail_on` holds operation names that should fail: "fetch", "add",
    "update", "delete", "clear", "probe" or "upsert:<collection>".
    `delays` maps operation names to seconds to wait before answering.
    """

    backend_name = "memory"

    def __init__(self, data: Optional[LedgerData] = None):
        self.rows: dict[Collection, dict[str, LedgerEntity]] = {c: {} for c in Collection}
        self.fail_on: set[str] = set()
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []
        if data is not None:
            for collection in Collection:
                for record in data.records(collection):
                    self.rows[collection][record.id] = record

    async def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.delays:
            await asyncio.sleep(self.delays[operation])
        if operation in self.fail_on:
            if operation == "fetch":
                raise StorageConnectionError("backend unreachable")
            raise WriteRejectedError(f"{operation} rejected by access policy")

    async def fetch_all(self) -> LedgerData:
        await self._maybe_fail("fetch")
        return LedgerData(
            clients=list(self.rows[Collection.CLIENTS].values()),
            payments=list(self.rows[Collection.PAYMENTS].values()),
            expenses=list(self.rows[Collection.EXPENSES].values()),
        )

    async def add_record(self, collection: Collection, record: LedgerEntity) -> None:
        await self._maybe_fail("add")
        self.rows[collection][record.id] = record

    async def update_record(self, collection: Collection, record: LedgerEntity) -> None:
        await self._maybe_fail("update")
        self.rows[collection][record.id] = record

    async def delete_record(self, collection: Collection, record_id: str) -> None:
        await self._maybe_fail("delete")
        self.rows[collection].pop(record_id, None)

    async def upsert_records(self, collection: Collection, records: list[LedgerEntity]) -> None:
        await self._maybe_fail(f"upsert:{collection.value}")
        for record in records:
            self.rows[collection][record.id] = record

    async def clear_all(self) -> None:
        await self._maybe_fail("clear")
        for collection in Collection:
            self.rows[collection].clear()

    async def check_connection(self) -> None:
        await self._maybe_fail("probe")


class FakeWorksheet:
    """Stand-in for gspread.Worksheet holding a list of string rows."""

    def __init__(self, rows: Optional[list[list[str]]] = None):
        self.rows = [list(r) for r in (rows or [])]
        self.error: Optional[Exception] = None

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def get_all_values(self) -> list[list[str]]:
        self._check()
        return copy.deepcopy(self.rows)

    def row_values(self, row: int) -> list[str]:
        self._check()
        return list(self.rows[row - 1]) if len(self.rows) >= row else []

    def append_row(self, values, value_input_option=None) -> None:
        self._check()
        self.rows.append(list(values))

    def append_rows(self, values, value_input_option=None) -> None:
        self._check()
        self.rows.extend(list(v) for v in values)

    def update(self, range_name=None, values=None, value_input_option=None) -> None:
        self._check()
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = list(values[0])

    def batch_update(self, data, value_input_option=None) -> None:
        self._check()
        for item in data:
            row_number = int(item["range"].lstrip("A"))
            self.rows[row_number - 1] = list(item["values"][0])

    def delete_rows(self, index: int) -> None:
        self._check()
        del self.rows[index - 1]

    def batch_clear(self, ranges) -> None:
        self._check()
        del self.rows[1:]


class FakeSheetsClient:
    """Stand-in for GoogleSheetsClient handing out FakeWorksheets."""

    def __init__(self, worksheets: dict[Collection, FakeWorksheet]):
        self.worksheets = worksheets

    def get_worksheet(self, collection: Collection) -> FakeWorksheet:
        return self.worksheets[collection]


# =============================================================================
# FIXTURES
# =============================================================================

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def client_c() -> Client:
    return Client(
        id="c1",
        name="Acme Ltd",
        email="billing@acme.test",
        company="Acme",
        total_billed=Decimal("1000"),
        created_at=CREATED,
    )


@pytest.fixture
def sample_ledger(client_c) -> Ledger:
    """Client C billed 1000 with 400 received (Bank) and 100 refunded (Cash)."""
    other = Client(
        id="c2", name="Beta Co", email="beta@test",
        total_billed=Decimal("200"), created_at=CREATED,
    )
    return Ledger(
        clients={client_c.id: client_c, other.id: other},
        payments=(
            Payment(
                id="p1", client_id="c1", amount=Decimal("400"),
                date=date(2024, 3, 5), method="Bank", description="Milestone 1",
            ),
            Payment(
                id="p2", client_id="c1", amount=Decimal("100"),
                date=date(2024, 3, 20), kind=PaymentKind.REFUND,
            ),
            Payment(
                id="p3", client_id="c2", amount=Decimal("300"),
                date=date(2024, 2, 10), method="Bank",
            ),
        ),
        expenses=(
            Expense(
                id="e1", category="Travel", amount=Decimal("50"),
                date=date(2024, 3, 7), description="Taxi",
            ),
            Expense(
                id="e2", category="travel", amount=Decimal("25"),
                date=date(2024, 3, 8), description="Bus",
            ),
        ),
    )


@pytest.fixture
def memory_storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def seeded_storage(sample_ledger) -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage(sample_ledger.to_data())
