"""
Core Data Models for BizTrack

These models define the strict schemas for all ledger data.
They are designed to:
1. Enforce the money invariants at runtime (amounts are never negative)
2. Read and write the camelCase wire format used by exports and backends
3. Be immutable, so a Ledger snapshot can be captured and restored safely

DESIGN DECISION: Direction of money is carried by Payment.kind, never by the
sign of an amount. A refund is a positive amount with kind=REFUND.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


# Filter value meaning "no narrowing" for client and method filters
ALL = "ALL"

# Method assumed for payments that do not record one
DEFAULT_PAYMENT_METHOD = "Cash"

# Display name for payments whose client no longer resolves
UNKNOWN_CLIENT = "Unknown"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentKind(str, Enum):
    """Direction of a payment. RECEIVED increases income, REFUND decreases it."""
    RECEIVED = "RECEIVED"
    REFUND = "REFUND"


class UserRole(str, Enum):
    """
    The single role flag passed into the core.

    Only ADMIN may change data; VIEWER is read-only.
    """
    ADMIN = "ADMIN"
    VIEWER = "VIEWER"


class Collection(str, Enum):
    """The three persisted collections, in import order."""
    CLIENTS = "clients"
    PAYMENTS = "payments"
    EXPENSES = "expenses"


def new_id() -> str:
    """Generate a fresh opaque entity id."""
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Money is a non-negative Decimal that travels as a JSON number.
Money = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(float, return_type=float, when_used="json"),
]


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_client_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Default a raw client record's `isActive` to True unless explicitly False.

    Older data has no `isActive` column at all, or stores null. This shim is
    applied to every client read through a storage backend or an import file
    and is permanent: it is not a migration step. Idempotent.
    """
    normalized = dict(record)
    normalized["isActive"] = record.get("isActive") is not False
    return normalized


# =============================================================================
# ENTITIES
# =============================================================================

class LedgerRecord(BaseModel):
    """Base for persisted entities: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Opaque unique id, immutable after creation"
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON-compatible dict used by backends and exports."""
        return self.model_dump(mode="json", by_alias=True)


class Client(LedgerRecord):
    """
    A customer of the business.

    `total_billed` is the expected total revenue from this client (the
    contract value), not a running balance.
    """

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(default="", max_length=50)
    company: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(
        default_factory=_now,
        description="Creation time; accepts epoch milliseconds or ISO text"
    )
    is_active: bool = Field(
        default=True,
        description="Inactive clients are hidden from new-payment selection"
    )
    total_billed: Money = Field(
        default=Decimal("0"),
        description="Total project value"
    )

    @field_validator("total_billed", mode="before")
    @classmethod
    def default_missing_total(cls, v: Any) -> Any:
        """A missing total billed means nothing has been billed yet."""
        return Decimal("0") if v is None or v == "" else v

    @field_validator("phone", mode="before")
    @classmethod
    def default_missing_phone(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def default_missing_created_at(cls, v: Any) -> Any:
        return _now() if v is None or v == "" else v

    @field_serializer("created_at", when_used="json")
    def serialize_created_at(self, value: datetime) -> int:
        """Creation time travels as epoch milliseconds."""
        return int(value.timestamp() * 1000)


class Payment(LedgerRecord):
    """Money received from (or refunded to) a client."""

    client_id: str = Field(..., min_length=1)
    amount: Money
    date: date
    description: Optional[str] = None
    method: Optional[str] = None
    details: Optional[str] = None
    kind: PaymentKind = Field(
        default=PaymentKind.RECEIVED,
        alias="type",
        description="RECEIVED or REFUND"
    )

    @field_validator("kind", mode="before")
    @classmethod
    def default_missing_kind(cls, v: Any) -> Any:
        """Payments recorded before refunds existed have no kind."""
        return PaymentKind.RECEIVED if v is None or v == "" else v

    @property
    def is_refund(self) -> bool:
        return self.kind == PaymentKind.REFUND

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it affects income: negative for refunds."""
        return -self.amount if self.is_refund else self.amount

    @property
    def effective_method(self) -> str:
        return self.method or DEFAULT_PAYMENT_METHOD


class Expense(LedgerRecord):
    """Money spent by the business. Expenses have no client or method."""

    category: str = Field(..., min_length=1, max_length=100)
    amount: Money
    date: date
    description: str = Field(..., min_length=1, max_length=500)


LedgerEntity = Union[Client, Payment, Expense]

ENTITY_TYPES: dict[Collection, type] = {
    Collection.CLIENTS: Client,
    Collection.PAYMENTS: Payment,
    Collection.EXPENSES: Expense,
}


def collection_for(record: LedgerEntity) -> Collection:
    """Which collection a record belongs to."""
    for collection, entity_type in ENTITY_TYPES.items():
        if isinstance(record, entity_type):
            return collection
    raise TypeError(f"Not a ledger entity: {type(record).__name__}")


# =============================================================================
# IMPORT / EXPORT FORMAT
# =============================================================================

class LedgerData(BaseModel):
    """
    The three-array document used for import, export and bulk upserts.

    All three arrays are required; a document missing one is invalid.
    """

    model_config = ConfigDict(extra="ignore")

    clients: list[Client]
    payments: list[Payment]
    expenses: list[Expense]

    @field_validator("clients", mode="before")
    @classmethod
    def normalize_clients(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [
                normalize_client_record(item) if isinstance(item, Mapping) else item
                for item in v
            ]
        return v

    @classmethod
    def empty(cls) -> "LedgerData":
        return cls(clients=[], payments=[], expenses=[])

    def records(self, collection: Collection) -> list[LedgerEntity]:
        return list(getattr(self, collection.value))

    def to_wire(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "clients": [c.to_wire() for c in self.clients],
            "payments": [p.to_wire() for p in self.payments],
            "expenses": [e.to_wire() for e in self.expenses],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Serialize for download in the three-array export format."""
        return json.dumps(self.to_wire(), indent=indent, ensure_ascii=False)


# =============================================================================
# LEDGER (aggregate root)
# =============================================================================

class Ledger(BaseModel):
    """
    Immutable snapshot of all clients, payments and expenses.

    Every change produces a new Ledger; nothing is edited in place, so a
    captured snapshot can always be restored exactly. No referential
    integrity is enforced: a payment may point at a deleted client.
    """

    model_config = ConfigDict(frozen=True)

    clients: dict[str, Client] = Field(default_factory=dict)
    payments: tuple[Payment, ...] = ()
    expenses: tuple[Expense, ...] = ()

    @classmethod
    def empty(cls) -> "Ledger":
        return cls()

    @classmethod
    def from_data(cls, data: LedgerData) -> "Ledger":
        return cls(
            clients={client.id: client for client in data.clients},
            payments=tuple(data.payments),
            expenses=tuple(data.expenses),
        )

    def to_data(self) -> LedgerData:
        return LedgerData(
            clients=list(self.clients.values()),
            payments=list(self.payments),
            expenses=list(self.expenses),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.clients or self.payments or self.expenses)

    def client_name(self, client_id: str) -> str:
        client = self.clients.get(client_id)
        return client.name if client else UNKNOWN_CLIENT

    def get(self, collection: Collection, record_id: str) -> Optional[LedgerEntity]:
        if collection == Collection.CLIENTS:
            return self.clients.get(record_id)
        for record in getattr(self, collection.value):
            if record.id == record_id:
                return record
        return None

    def contains(self, collection: Collection, record_id: str) -> bool:
        return self.get(collection, record_id) is not None

    def with_added(self, record: LedgerEntity) -> "Ledger":
        """Return a new Ledger with the record appended to its collection."""
        collection = collection_for(record)
        if collection == Collection.CLIENTS:
            return self.model_copy(update={"clients": {**self.clients, record.id: record}})
        items = getattr(self, collection.value) + (record,)
        return self.model_copy(update={collection.value: items})

    def with_replaced(self, record: LedgerEntity) -> "Ledger":
        """Return a new Ledger where the record with the same id is replaced in position."""
        collection = collection_for(record)
        if collection == Collection.CLIENTS:
            clients = {
                client_id: (record if client_id == record.id else client)
                for client_id, client in self.clients.items()
            }
            return self.model_copy(update={"clients": clients})
        items = tuple(
            record if item.id == record.id else item
            for item in getattr(self, collection.value)
        )
        return self.model_copy(update={collection.value: items})

    def with_removed(self, collection: Collection, record_id: str) -> "Ledger":
        """Return a new Ledger without the record; absent ids are ignored."""
        if collection == Collection.CLIENTS:
            clients = {
                client_id: client
                for client_id, client in self.clients.items()
                if client_id != record_id
            }
            return self.model_copy(update={"clients": clients})
        items = tuple(
            item for item in getattr(self, collection.value) if item.id != record_id
        )
        return self.model_copy(update={collection.value: items})
