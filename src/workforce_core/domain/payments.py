"""
workforce_core.domain.payments

Payment records and their status state machine.

Responsibilities:
- Define `PaymentStatus` and the allowed transitions (paid/cancelled are terminal).
- Validate new payment input and build the stored document.
- Rebuild `Payment` / `PaymentAuditEntry` read models from stored documents.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from workforce_core.errors import InvalidTransition
from workforce_core.stores.base import Snapshot, Timestamp, to_datetime


class PaymentStatus(enum.StrEnum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"


ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.pending: frozenset({PaymentStatus.paid, PaymentStatus.cancelled}),
    PaymentStatus.paid: frozenset(),
    PaymentStatus.cancelled: frozenset(),
}


def assert_transition(old: PaymentStatus | str, new: PaymentStatus) -> None:
    try:
        current = PaymentStatus(old)
    except ValueError as e:
        raise InvalidTransition(f"Unknown payment status: {old!r}") from e
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Illegal payment transition: {current} -> {new}")


class PaymentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    employee_id: str = Field(min_length=1, alias="employeeId")
    employee_name: str = Field(alias="employeeName")
    assignment_id: str = Field(min_length=1, alias="assignmentId")
    order_id: str = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    product_name: str = Field(alias="productName")
    amount: float = Field(ge=0)
    completed_at: datetime = Field(alias="completedAt")
    # Accepted for compatibility with existing callers; the ledger always starts at pending.
    status: str | None = None

    def to_document(self, *, now: Timestamp) -> dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "assignmentId": self.assignment_id,
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            "productName": self.product_name,
            "amount": self.amount,
            "status": PaymentStatus.pending.value,
            "completedAt": Timestamp.from_datetime(self.completed_at),
            "createdAt": now,
            "updatedAt": now,
        }


class Payment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    employee_id: str = Field(alias="employeeId")
    employee_name: str = Field(alias="employeeName")
    assignment_id: str = Field(alias="assignmentId")
    order_id: str = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    product_name: str = Field(alias="productName")
    amount: float
    status: PaymentStatus
    completed_at: datetime = Field(alias="completedAt")
    paid_at: datetime | None = Field(default=None, alias="paidAt")
    paid_by: str | None = Field(default=None, alias="paidBy")
    notes: str | None = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, *, now: datetime | None = None) -> Payment:
        # Legacy/partial records: missing timestamps read as "now" rather than failing.
        now = now or datetime.now(tz=UTC)
        data = snapshot.data
        return cls(
            id=snapshot.id,
            employee_id=data.get("employeeId", ""),
            employee_name=data.get("employeeName", ""),
            assignment_id=data.get("assignmentId", ""),
            order_id=data.get("orderId", ""),
            order_number=data.get("orderNumber", ""),
            product_name=data.get("productName", ""),
            amount=data.get("amount", 0),
            status=data.get("status", PaymentStatus.pending.value),
            completed_at=to_datetime(data.get("completedAt"), default=now),
            paid_at=to_datetime(data.get("paidAt")),
            paid_by=data.get("paidBy"),
            notes=data.get("notes"),
            created_at=to_datetime(data.get("createdAt"), default=now),
            updated_at=to_datetime(data.get("updatedAt"), default=now),
        )


class PaymentAuditEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    actor: str
    event_type: str = Field(alias="eventType")
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> PaymentAuditEntry:
        data = snapshot.data
        return cls(
            id=snapshot.id,
            actor=data.get("actor", "unknown"),
            event_type=data.get("eventType", "UNKNOWN"),
            details=dict(data.get("details") or {}),
            created_at=to_datetime(data.get("createdAt"), default=datetime.now(tz=UTC)),
        )


# --- Module Notes -----------------------------------------------------------
# The cancelled state is entered by an external process; this module only encodes that
# it is terminal.
