"""
workforce_core.api.routers.payments

Payment ledger endpoints.

Responsibilities:
- Record payments for completed assignments.
- List payments (all, or per employee), read one payment and its audit trail.
- Settle a pending payment.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND

from workforce_core.api.deps import ledger_dep, unwrap
from workforce_core.auth.deps import get_caller, require_roles
from workforce_core.auth.models import Caller
from workforce_core.domain.payments import Payment, PaymentAuditEntry, PaymentCreate
from workforce_core.services.ledger import PaymentLedger

router = APIRouter(prefix="/v1/payments", tags=["payments"])


class MarkPaidRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


def _can_view(caller: Caller, employee_id: str) -> bool:
    return caller.is_admin or caller.role == "agent" or caller.subject == employee_id


@router.post(
    "",
    response_model=Payment,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_roles("agent"))],
)
async def create_payment(
    body: PaymentCreate,
    caller: Caller = Depends(get_caller),
    ledger: PaymentLedger = Depends(ledger_dep),
) -> Payment:
    return unwrap(await ledger.create_payment(body, actor=caller.subject))


@router.get("", response_model=list[Payment], dependencies=[Depends(require_roles())])
async def list_all_payments(ledger: PaymentLedger = Depends(ledger_dep)) -> list[Payment]:
    return unwrap(await ledger.list_all_payments())


@router.get("/employees/{employee_id}", response_model=list[Payment])
async def list_employee_payments(
    employee_id: str,
    caller: Caller = Depends(get_caller),
    ledger: PaymentLedger = Depends(ledger_dep),
) -> list[Payment]:
    if not _can_view(caller, employee_id):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Employee not found")
    return unwrap(await ledger.list_payments_by_employee(employee_id))


@router.get("/{payment_id}", response_model=Payment)
async def get_payment(
    payment_id: str,
    caller: Caller = Depends(get_caller),
    ledger: PaymentLedger = Depends(ledger_dep),
) -> Payment:
    payment = unwrap(await ledger.get_payment(payment_id))
    if not _can_view(caller, payment.employee_id):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


@router.post(
    "/{payment_id}/mark-paid",
    response_model=Payment,
    dependencies=[Depends(require_roles())],
)
async def mark_paid(
    payment_id: str,
    body: MarkPaidRequest,
    caller: Caller = Depends(get_caller),
    ledger: PaymentLedger = Depends(ledger_dep),
) -> Payment:
    return unwrap(await ledger.mark_paid(payment_id, paid_by=caller.subject, notes=body.notes))


@router.get(
    "/{payment_id}/audit",
    response_model=list[PaymentAuditEntry],
    dependencies=[Depends(require_roles())],
)
async def list_audit(
    payment_id: str,
    ledger: PaymentLedger = Depends(ledger_dep),
) -> list[PaymentAuditEntry]:
    return unwrap(await ledger.list_payment_audit(payment_id))
