"""
tests.conftest

Shared fixtures: a throwaway SQLite database per test, the reference stores, the
services, and fault-injecting store wrappers for the saga/compensation paths.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from fnmatch import fnmatchcase
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from workforce_core.db.init_db import init_db
from workforce_core.db.session import create_engine, create_sessionmaker
from workforce_core.errors import StoreUnavailable
from workforce_core.services.ledger import PaymentLedger
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.settings import Settings
from workforce_core.stores.base import Snapshot
from workforce_core.stores.documents import SqlDocumentStore
from workforce_core.stores.identity import SqlIdentityStore


def _outage() -> Exception:
    return StoreUnavailable("simulated outage")


class FaultyIdentityStore:
    """
    Delegates to a real identity store; the methods named in `fail` raise instead.
    """

    def __init__(self, inner: SqlIdentityStore, *, fail: set[str], error: Exception | None = None):
        self.inner = inner
        self.fail = set(fail)
        self.error = error or _outage()

    def _check(self, method: str) -> None:
        if method in self.fail:
            raise self.error

    async def create_account(self, **kwargs: Any) -> str:
        self._check("create_account")
        return await self.inner.create_account(**kwargs)

    async def set_claims(self, account_id: str, claims: dict[str, Any]) -> None:
        self._check("set_claims")
        await self.inner.set_claims(account_id, claims)

    async def delete_account(self, account_id: str) -> None:
        self._check("delete_account")
        await self.inner.delete_account(account_id)

    async def get_account(self, account_id: str):
        self._check("get_account")
        return await self.inner.get_account(account_id)

    async def list_accounts(self):
        self._check("list_accounts")
        return await self.inner.list_accounts()

    async def set_disabled(self, account_id: str, disabled: bool) -> None:
        self._check("set_disabled")
        await self.inner.set_disabled(account_id, disabled)

    async def authenticate(self, email: str, password: str):
        self._check("authenticate")
        return await self.inner.authenticate(email, password)


class FaultyDocumentStore:
    """
    Delegates to a real document store and records every call as (method, collection).

    `fail` maps a method name to a collection glob (e.g. {"append": "payments/*/audit"});
    matching calls raise. `pinned` serves fixed snapshots from `get`, simulating a reader
    holding a stale copy.
    """

    def __init__(
        self,
        inner: SqlDocumentStore,
        *,
        fail: dict[str, str] | None = None,
        error: Exception | None = None,
        pinned: dict[tuple[str, str], Snapshot] | None = None,
    ):
        self.inner = inner
        self.fail = dict(fail or {})
        self.error = error or _outage()
        self.pinned = dict(pinned or {})
        self.calls: list[tuple[str, str]] = []

    def _check(self, method: str, collection: str) -> None:
        self.calls.append((method, collection))
        pattern = self.fail.get(method)
        if pattern is not None and fnmatchcase(collection, pattern):
            raise self.error

    def writes_to(self, collection: str) -> int:
        return sum(
            1 for m, c in self.calls if c == collection and m in ("put", "update", "append")
        )

    def new_id(self) -> str:
        return self.inner.new_id()

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        self._check("put", collection)
        await self.inner.put(collection, doc_id, document)

    async def get(self, collection: str, doc_id: str) -> Snapshot | None:
        self._check("get", collection)
        if (collection, doc_id) in self.pinned:
            return self.pinned[(collection, doc_id)]
        return await self.inner.get(collection, doc_id)

    async def query(self, collection: str, predicates=(), order_by=None) -> list[Snapshot]:
        self._check("query", collection)
        return await self.inner.query(collection, predicates, order_by)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any], *, precondition=None):
        self._check("update", collection)
        return await self.inner.update(collection, doc_id, fields, precondition=precondition)

    async def append(self, collection: str, document: dict[str, Any]) -> str:
        self._check("append", collection)
        return await self.inner.append(collection, document)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'workforce.db'}")


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings)
    try:
        await init_db(engine)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(engine)


@pytest.fixture
def identity_store(sessionmaker, settings: Settings) -> SqlIdentityStore:
    return SqlIdentityStore(sessionmaker, min_password_length=settings.min_password_length)


@pytest.fixture
def document_store(sessionmaker) -> SqlDocumentStore:
    return SqlDocumentStore(sessionmaker)


@pytest.fixture
def provisioning(identity_store, document_store, settings: Settings) -> ProvisioningService:
    return ProvisioningService(identity=identity_store, documents=document_store, settings=settings)


@pytest.fixture
def ledger(document_store) -> PaymentLedger:
    return PaymentLedger(documents=document_store)


@pytest.fixture
def new_user():
    """Factory for provisioning input; keyword overrides replace defaults."""

    def _make(**overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": "Ana Field",
            "email": "ana@example.com",
            "password": "s3cret-pass",
            "role": "employee",
        }
        data.update(overrides)
        return data

    return _make
