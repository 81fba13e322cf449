"""
workforce_core.db.models

Schema for the SQL-backed reference stores.

Responsibilities:
- IdentityAccountRow: credentials, disabled flag and claims (identity store).
- DocumentRow: schemaless JSON documents addressed by (collection path, id) (document store).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workforce_core.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class IdentityAccountRow(Base):
    __tablename__ = "identity_accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Stored lower-cased; the unique index is what arbitrates concurrent sign-ups.
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claims: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class DocumentRow(Base):
    __tablename__ = "documents"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(512), nullable=False)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # Bumped on every write; conditional updates compare against it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
        Index("ix_documents_collection", "collection"),
    )


# --- Module Notes -----------------------------------------------------------
# Document bodies are JSON; `Timestamp` values are tagged on the way in and restored on
# the way out by `stores.documents`.
