"""
workforce_core.services.ledger

Payment ledger service.

Responsibilities:
- Record payments for completed assignments (always starting at `pending`).
- List payments newest-completed first, tolerating legacy records without timestamps.
- Settle payments (`pending -> paid`) with a conditional write so racing settlements
  cannot both succeed.
- Keep an append-only audit trail per payment.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from workforce_core.domain.payments import (
    Payment,
    PaymentAuditEntry,
    PaymentCreate,
    PaymentStatus,
    assert_transition,
)
from workforce_core.errors import CoreError, ErrorKind, classify
from workforce_core.observability.logging import get_logger
from workforce_core.services.results import OperationResult
from workforce_core.stores.base import (
    COLLECTION_PAYMENTS,
    DocumentStore,
    Precondition,
    Predicate,
    Snapshot,
    Timestamp,
    payment_audit_path,
    where,
)

log = get_logger(__name__)


def _newest_completed_first(snaps: Sequence[Snapshot]) -> list[Payment]:
    now = datetime.now(tz=UTC)
    payments = [Payment.from_snapshot(s, now=now) for s in snaps]
    return sorted(payments, key=lambda p: p.completed_at, reverse=True)


class PaymentLedger:
    def __init__(self, *, documents: DocumentStore) -> None:
        self._documents = documents

    async def create_payment(
        self, data: PaymentCreate | Mapping[str, Any], *, actor: str = "system"
    ) -> OperationResult[Payment]:
        try:
            payload = data if isinstance(data, PaymentCreate) else PaymentCreate.model_validate(data)
        except ValidationError as e:
            return OperationResult.fail(ErrorKind.validation_error, f"Invalid payment data: {e}")

        if payload.status not in (None, PaymentStatus.pending.value):
            # New payments always start pending; a caller-supplied status is not trusted.
            log.warning("payment_status_overridden", requested=payload.status)

        payment_id = self._documents.new_id()
        now = Timestamp.now()
        doc = payload.to_document(now=now)
        try:
            await self._documents.put(COLLECTION_PAYMENTS, payment_id, doc)
        except Exception as e:
            log.error("payment_create_failed", error=str(e))
            return OperationResult.fail(classify(e), f"Failed to create payment: {e}")

        log.info("payment_created", payment_id=payment_id, employee_id=payload.employee_id)
        audited = await self._audit(
            payment_id,
            actor=actor,
            event_type="PAYMENT_CREATED",
            details={"amount": payload.amount, "employeeId": payload.employee_id},
        )
        payment = Payment.from_snapshot(Snapshot(id=payment_id, data=doc))
        return OperationResult.ok(payment, "Payment recorded", audit_recorded=audited)

    async def list_payments_by_employee(self, employee_id: str) -> OperationResult[list[Payment]]:
        return await self._list([where("employeeId", "==", employee_id)])

    async def list_all_payments(self) -> OperationResult[list[Payment]]:
        return await self._list([])

    async def _list(self, predicates: list[Predicate]) -> OperationResult[list[Payment]]:
        try:
            # Ordering is applied after normalization: store-side ordering would drop
            # records that lack completedAt.
            snaps = await self._documents.query(COLLECTION_PAYMENTS, predicates)
            payments = _newest_completed_first(snaps)
        except Exception as e:
            log.error("payment_list_failed", error=str(e))
            return OperationResult.fail(classify(e), f"Failed to load payments: {e}", data=[])
        return OperationResult.ok(payments, f"{len(payments)} payments")

    async def get_payment(self, payment_id: str) -> OperationResult[Payment]:
        try:
            snap = await self._documents.get(COLLECTION_PAYMENTS, payment_id)
            if snap is None:
                return OperationResult.fail(ErrorKind.not_found, "Payment not found")
            return OperationResult.ok(Payment.from_snapshot(snap))
        except Exception as e:
            return OperationResult.fail(classify(e), f"Failed to load payment: {e}")

    async def mark_paid(
        self, payment_id: str, paid_by: str, notes: str | None = None
    ) -> OperationResult[Payment]:
        if not paid_by or not paid_by.strip():
            return OperationResult.fail(ErrorKind.validation_error, "paidBy is required")

        try:
            snap = await self._documents.get(COLLECTION_PAYMENTS, payment_id)
            if snap is None:
                return OperationResult.fail(ErrorKind.not_found, "Payment not found")

            # Legacy records without a status read as pending; the precondition compares
            # against what is actually stored.
            stored = snap.get("status")
            current = stored if stored is not None else PaymentStatus.pending.value
            assert_transition(current, PaymentStatus.paid)

            now = Timestamp.now()
            updated = await self._documents.update(
                COLLECTION_PAYMENTS,
                payment_id,
                {
                    "status": PaymentStatus.paid.value,
                    "paidAt": now,
                    "paidBy": paid_by,
                    "notes": notes or "",
                    "updatedAt": now,
                },
                precondition=Precondition(version=snap.version, fields={"status": stored}),
            )
        except CoreError as e:
            if e.kind == ErrorKind.state_conflict:
                log.warning("payment_transition_rejected", payment_id=payment_id, error=e.message)
                return OperationResult.fail(
                    ErrorKind.state_conflict,
                    f"Payment {payment_id} can no longer be marked as paid: {e.message}",
                )
            return OperationResult.fail(e.kind, f"Failed to mark payment as paid: {e.message}")
        except Exception as e:
            log.error("payment_mark_paid_failed", payment_id=payment_id, error=str(e))
            return OperationResult.fail(classify(e), f"Failed to mark payment as paid: {e}")

        log.info("payment_marked_paid", payment_id=payment_id, paid_by=paid_by)
        audited = await self._audit(
            payment_id,
            actor=paid_by,
            event_type="PAYMENT_MARKED_PAID",
            details={"from": current, "to": PaymentStatus.paid.value, "notes": notes or ""},
        )
        return OperationResult.ok(
            Payment.from_snapshot(updated), "Payment marked as paid", audit_recorded=audited
        )

    async def list_payment_audit(self, payment_id: str) -> OperationResult[list[PaymentAuditEntry]]:
        try:
            snaps = await self._documents.query(payment_audit_path(payment_id))
            entries = [PaymentAuditEntry.from_snapshot(s) for s in snaps]
        except Exception as e:
            return OperationResult.fail(classify(e), f"Failed to load audit trail: {e}", data=[])
        # Newest-first for UI consumption.
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return OperationResult.ok(entries, f"{len(entries)} audit entries")

    async def _audit(
        self, payment_id: str, *, actor: str, event_type: str, details: dict[str, Any]
    ) -> bool:
        # Audit entries are append-only (no update/delete).
        try:
            await self._documents.append(
                payment_audit_path(payment_id),
                {
                    "actor": actor,
                    "eventType": event_type,
                    "details": details,
                    "createdAt": Timestamp.now(),
                },
            )
        except Exception as e:
            log.error(
                "payment_audit_append_failed",
                payment_id=payment_id,
                event_type=event_type,
                error=str(e),
            )
            return False
        return True


# --- Module Notes -----------------------------------------------------------
# The audit append follows the ledger write it describes. A failed append never undoes
# that write; it is logged and reported as `audit_recorded=False` on the result.
