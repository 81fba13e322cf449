"""
workforce_core.stores.base

Contracts for the two external collaborators: the Identity Store and the Document Store.

Responsibilities:
- Define the capability sets the services depend on (`IdentityStore`, `DocumentStore`).
- Define the value types exchanged across that boundary (snapshots, predicates,
  preconditions, the store-native `Timestamp`).

Any conforming implementation may back these protocols; `stores.identity` and
`stores.documents` ship SQLAlchemy-backed reference implementations.
"""

from __future__ import annotations

import operator
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

COLLECTION_USERS = "users"
COLLECTION_PAYMENTS = "payments"


def notifications_path(principal_id: str) -> str:
    return f"{COLLECTION_USERS}/{principal_id}/notifications"


def payment_audit_path(payment_id: str) -> str:
    return f"{COLLECTION_PAYMENTS}/{payment_id}/audit"


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Store-native point in time. Always UTC; convert at the boundary with
    `from_datetime` / `to_datetime`.
    """

    value: datetime

    @classmethod
    def now(cls) -> Timestamp:
        return cls(datetime.now(tz=UTC))

    @classmethod
    def from_datetime(cls, dt: datetime) -> Timestamp:
        # Naive datetimes are interpreted as UTC.
        if dt.tzinfo is None:
            return cls(dt.replace(tzinfo=UTC))
        return cls(dt.astimezone(UTC))

    @classmethod
    def from_iso(cls, raw: str) -> Timestamp:
        return cls.from_datetime(datetime.fromisoformat(raw))

    def to_datetime(self) -> datetime:
        return self.value

    def isoformat(self) -> str:
        return self.value.isoformat()


def to_datetime(value: Any, *, default: datetime | None = None) -> datetime | None:
    """
    Read a timestamp field from a stored document. Missing or unreadable values fall back
    to `default` (legacy/partial records must not break reads).
    """

    if isinstance(value, Timestamp):
        return value.to_datetime()
    if isinstance(value, datetime):
        return Timestamp.from_datetime(value).to_datetime()
    if isinstance(value, str):
        try:
            return Timestamp.from_iso(value).to_datetime()
        except ValueError:
            return default
    return default


@dataclass(frozen=True, slots=True)
class Snapshot:
    id: str
    data: dict[str, Any]
    # Monotonic per-document version; used for compare-and-set updates.
    version: int = 1

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


PredicateOp = Literal["==", "!=", "<", "<=", ">", ">=", "in"]

_OPS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
}


@dataclass(frozen=True, slots=True)
class Predicate:
    field: str
    op: PredicateOp
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        # A document without the field never matches (including "!=").
        if self.field not in data:
            return False
        try:
            return bool(_OPS[self.op](data[self.field], self.value))
        except TypeError:
            return False


def where(field: str, op: PredicateOp, value: Any) -> Predicate:
    return Predicate(field=field, op=op, value=value)


@dataclass(frozen=True, slots=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True, slots=True)
class Precondition:
    """
    Conditional-write guard: the update applies only if the stored document still has
    `version` (when given) and every `fields` value matches.
    """

    version: int | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def holds(self, current: Snapshot) -> bool:
        if self.version is not None and current.version != self.version:
            return False
        return all(current.data.get(k) == v for k, v in self.fields.items())


@dataclass(frozen=True, slots=True)
class IdentityAccount:
    id: str
    email: str
    display_name: str
    phone: str | None
    disabled: bool
    claims: dict[str, Any]
    created_at: datetime


class IdentityStore(Protocol):
    async def create_account(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        phone: str | None = None,
        disabled: bool = False,
    ) -> str: ...

    async def set_claims(self, account_id: str, claims: dict[str, Any]) -> None: ...

    async def delete_account(self, account_id: str) -> None: ...

    async def get_account(self, account_id: str) -> IdentityAccount | None: ...

    async def list_accounts(self) -> list[IdentityAccount]: ...

    async def set_disabled(self, account_id: str, disabled: bool) -> None: ...

    async def authenticate(self, email: str, password: str) -> IdentityAccount: ...


class DocumentStore(Protocol):
    def new_id(self) -> str: ...

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None: ...

    async def get(self, collection: str, doc_id: str) -> Snapshot | None: ...

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: OrderBy | None = None,
    ) -> list[Snapshot]: ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        precondition: Precondition | None = None,
    ) -> Snapshot: ...

    async def append(self, collection: str, document: dict[str, Any]) -> str: ...


# --- Module Notes -----------------------------------------------------------
# Collection paths follow the hosted document store convention: sub-collections are
# addressed as "<collection>/<doc id>/<sub-collection>".
