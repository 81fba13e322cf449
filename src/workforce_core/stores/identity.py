"""
workforce_core.stores.identity

SQL-backed Identity Store.

Responsibilities:
- Create accounts (unique email, password policy, bcrypt hashes).
- Hold the disabled flag and authorization claims for each account.
- Translate database faults into the store error taxonomy.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workforce_core.db.models import IdentityAccountRow
from workforce_core.errors import (
    ErrorKind,
    IdentityError,
    InvalidCredentials,
    StoreError,
    StoreUnavailable,
)
from workforce_core.stores.base import IdentityAccount, Timestamp

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+[1-9]\d{6,14}$")

# bcrypt only looks at the first 72 bytes of a password; longer ones are refused.
_BCRYPT_MAX_BYTES = 72


def _to_account(row: IdentityAccountRow) -> IdentityAccount:
    return IdentityAccount(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        phone=row.phone,
        disabled=row.disabled,
        claims=dict(row.claims or {}),
        created_at=Timestamp.from_datetime(row.created_at).to_datetime(),
    )


class SqlIdentityStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        min_password_length: int = 6,
    ) -> None:
        self._session_factory = session_factory
        self._min_password_length = min_password_length

    def _validate(self, *, email: str, password: str, phone: str | None) -> None:
        if not _EMAIL_RE.match(email):
            raise IdentityError("Invalid email address.", kind=ErrorKind.invalid_email)
        if len(password) < self._min_password_length:
            raise IdentityError(
                f"Password is too weak. Must be at least {self._min_password_length} characters.",
                kind=ErrorKind.weak_password,
            )
        if len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
            raise IdentityError(
                f"Password must be at most {_BCRYPT_MAX_BYTES} bytes.",
                kind=ErrorKind.validation_error,
            )
        if phone is not None and not _PHONE_RE.match(phone):
            raise IdentityError(
                "Phone number must be in E.164 format (e.g. +15551234567).",
                kind=ErrorKind.validation_error,
            )

    async def create_account(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        phone: str | None = None,
        disabled: bool = False,
    ) -> str:
        email = email.strip().lower()
        self._validate(email=email, password=password, phone=phone)
        password_hash = await asyncio.to_thread(_hash_password, password)

        account_id = uuid.uuid4().hex
        row = IdentityAccountRow(
            id=account_id,
            email=email,
            password_hash=password_hash,
            display_name=display_name,
            phone=phone,
            disabled=disabled,
            claims={},
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except IntegrityError as e:
            raise IdentityError(
                "An account with this email already exists.", kind=ErrorKind.duplicate_email
            ) from e
        except (OperationalError, DBAPIError) as e:
            raise StoreUnavailable(f"identity store unavailable: {e}") from e
        return account_id

    async def set_claims(self, account_id: str, claims: dict[str, Any]) -> None:
        async with self._guard():
            async with self._session_factory() as session:
                row = await self._require(session, account_id)
                # Claims are replaced wholesale, like the hosted identity service does.
                row.claims = dict(claims)
                await session.commit()

    async def set_disabled(self, account_id: str, disabled: bool) -> None:
        async with self._guard():
            async with self._session_factory() as session:
                row = await self._require(session, account_id)
                row.disabled = disabled
                await session.commit()

    async def delete_account(self, account_id: str) -> None:
        async with self._guard():
            async with self._session_factory() as session:
                row = await self._require(session, account_id)
                await session.delete(row)
                await session.commit()

    async def get_account(self, account_id: str) -> IdentityAccount | None:
        async with self._guard():
            async with self._session_factory() as session:
                row = await session.get(IdentityAccountRow, account_id)
                return _to_account(row) if row is not None else None

    async def list_accounts(self) -> list[IdentityAccount]:
        async with self._guard():
            async with self._session_factory() as session:
                stmt = select(IdentityAccountRow).order_by(IdentityAccountRow.created_at)
                rows = (await session.execute(stmt)).scalars().all()
                return [_to_account(r) for r in rows]

    async def authenticate(self, email: str, password: str) -> IdentityAccount:
        async with self._guard():
            async with self._session_factory() as session:
                stmt = select(IdentityAccountRow).where(
                    IdentityAccountRow.email == email.strip().lower()
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None or not await asyncio.to_thread(_check_password, password, row.password_hash):
            raise InvalidCredentials("Invalid email or password.")
        return _to_account(row)

    async def _require(self, session: AsyncSession, account_id: str) -> IdentityAccountRow:
        row = await session.get(IdentityAccountRow, account_id, with_for_update=True)
        if row is None:
            raise StoreError(f"identity account {account_id} not found", kind=ErrorKind.not_found)
        return row

    @staticmethod
    @asynccontextmanager
    async def _guard() -> AsyncIterator[None]:
        # Driver/database faults surface as StoreUnavailable.
        try:
            yield
        except (OperationalError, DBAPIError) as e:
            raise StoreUnavailable(f"identity store unavailable: {e}") from e


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def _check_password(password: str, password_hash: str) -> bool:
    raw = password.encode("utf-8")
    if len(raw) > _BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(raw, password_hash.encode("ascii"))


# --- Module Notes -----------------------------------------------------------
# bcrypt work runs in a worker thread so hashing never blocks the event loop.
