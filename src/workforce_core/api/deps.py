"""
workforce_core.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for DB sessions and the services.
- Encapsulate app.state access patterns (engine/sessionmaker/services).
- Translate failed `OperationResult`s into HTTP errors.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, TypeVar

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette import status

from workforce_core.errors import ErrorKind
from workforce_core.services.ledger import PaymentLedger
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.services.results import OperationResult

T = TypeVar("T")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation_error: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ErrorKind.invalid_email: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ErrorKind.weak_password: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ErrorKind.duplicate_email: status.HTTP_409_CONFLICT,
    ErrorKind.state_conflict: status.HTTP_409_CONFLICT,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.invalid_credentials: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.account_disabled: status.HTTP_403_FORBIDDEN,
    ErrorKind.dependency_unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.partial_failure: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.unknown: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created on app startup in `workforce_core.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


def provisioning_dep(request: Request) -> ProvisioningService:
    return request.app.state.provisioning  # type: ignore[attr-defined]


def ledger_dep(request: Request) -> PaymentLedger:
    return request.app.state.ledger  # type: ignore[attr-defined]


def unwrap(result: OperationResult[T]) -> T:
    """
    Returns `result.data` on success; raises an HTTPException carrying the error kind,
    message and details otherwise.
    """

    if result.success:
        return result.data  # type: ignore[return-value]

    kind = result.error or ErrorKind.unknown
    detail: dict[str, Any] = {"error": kind.value, "message": result.message}
    if result.details:
        detail["details"] = result.details
    if result.data is not None:
        # Partial failures carry the orphaned identity id.
        detail["data"] = result.data
    raise HTTPException(status_code=STATUS_BY_KIND.get(kind, 500), detail=detail)


# --- Module Notes -----------------------------------------------------------
# Routers never inspect store exceptions; they only see OperationResult values.
