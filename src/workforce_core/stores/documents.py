"""
workforce_core.stores.documents

SQL-backed Document Store.

Responsibilities:
- Store schemaless documents addressed by (collection path, id).
- Evaluate equality/range predicates and ordering over a collection.
- Provide conditional (compare-and-set) updates keyed on the document version.
- Convert `Timestamp` values to/from their JSON representation at the boundary.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workforce_core.db.models import DocumentRow
from workforce_core.errors import DocumentNotFound, PreconditionFailed, StoreUnavailable
from workforce_core.stores.base import OrderBy, Precondition, Predicate, Snapshot, Timestamp

_TS_TAG = "__timestamp__"


def encode(value: Any) -> Any:
    if isinstance(value, Timestamp):
        return {_TS_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(v) for v in value]
    return value


def decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_TS_TAG}:
            return Timestamp.from_iso(value[_TS_TAG])
        return {k: decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode(v) for v in value]
    return value


def _snapshot(row: DocumentRow) -> Snapshot:
    return Snapshot(id=row.doc_id, data=decode(row.data or {}), version=row.version)


class SqlDocumentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def new_id(self) -> str:
        return uuid.uuid4().hex

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        # Upsert: replaces the whole body and bumps the version.
        async with self._guard(), self._session_factory() as session:
            row = await self._row(session, collection, doc_id)
            if row is None:
                session.add(
                    DocumentRow(collection=collection, doc_id=doc_id, data=encode(document), version=1)
                )
            else:
                row.data = encode(document)
                row.version = row.version + 1
            await session.commit()

    async def get(self, collection: str, doc_id: str) -> Snapshot | None:
        async with self._guard(), self._session_factory() as session:
            row = await self._row(session, collection, doc_id)
            return _snapshot(row) if row is not None else None

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: OrderBy | None = None,
    ) -> list[Snapshot]:
        async with self._guard(), self._session_factory() as session:
            stmt = select(DocumentRow).where(DocumentRow.collection == collection).order_by(DocumentRow.pk)
            rows = (await session.execute(stmt)).scalars().all()

        snapshots = [_snapshot(r) for r in rows]
        matched = [s for s in snapshots if all(p.matches(s.data) for p in predicates)]
        if order_by is None:
            return matched
        # Like the hosted store, ordering on a field excludes documents that lack it.
        ordered = [s for s in matched if s.data.get(order_by.field) is not None]
        return sorted(ordered, key=lambda s: s.data[order_by.field], reverse=order_by.descending)

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        precondition: Precondition | None = None,
    ) -> Snapshot:
        async with self._guard(), self._session_factory() as session:
            row = await self._row(session, collection, doc_id)
            if row is None:
                raise DocumentNotFound(f"{collection}/{doc_id} not found")
            current = _snapshot(row)
            if precondition is not None and not precondition.holds(current):
                raise PreconditionFailed(f"{collection}/{doc_id} changed since it was read")

            merged = {**current.data, **fields}
            # Compare-and-set on the version read above; a concurrent writer makes rowcount 0.
            stmt = (
                update(DocumentRow)
                .where(DocumentRow.pk == row.pk, DocumentRow.version == current.version)
                .values(data=encode(merged), version=current.version + 1)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                raise PreconditionFailed(f"{collection}/{doc_id} changed since it was read")
            await session.commit()
            return Snapshot(id=doc_id, data=merged, version=current.version + 1)

    async def append(self, collection: str, document: dict[str, Any]) -> str:
        doc_id = self.new_id()
        async with self._guard(), self._session_factory() as session:
            session.add(DocumentRow(collection=collection, doc_id=doc_id, data=encode(document), version=1))
            await session.commit()
        return doc_id

    async def _row(self, session: AsyncSession, collection: str, doc_id: str) -> DocumentRow | None:
        stmt = select(DocumentRow).where(
            DocumentRow.collection == collection, DocumentRow.doc_id == doc_id
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    @asynccontextmanager
    async def _guard() -> AsyncIterator[None]:
        try:
            yield
        except (OperationalError, DBAPIError) as e:
            raise StoreUnavailable(f"document store unavailable: {e}") from e


# --- Module Notes -----------------------------------------------------------
# Predicates are evaluated in-process after a collection scan; the collection index keeps
# the scan bounded for the collection sizes this service handles.
