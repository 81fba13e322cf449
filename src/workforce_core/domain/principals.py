"""
workforce_core.domain.principals

Principal records: provisioning input, the stored profile document and its read model.

Responsibilities:
- Validate provisioning input before any store is touched.
- Build the profile document (camelCase keys, optional fields omitted when empty).
- Rebuild a `Principal` from a stored profile, tolerating missing timestamps.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from workforce_core.stores.base import Snapshot, Timestamp, to_datetime

Role = Literal["admin", "agent", "employee"]


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(max_length=256)
    email: str = Field(max_length=320)
    password: str = Field(repr=False)
    phone: str | None = None
    role: Role
    agent_id: str | None = Field(default=None, alias="agentId")
    skills: list[str] | None = None
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _strip_email(cls, v: str) -> str:
        return v.strip()

    @field_validator("phone", "agent_id")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        # Forms submit "" for untouched optional inputs.
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("skills")
    @classmethod
    def _clean_skills(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        cleaned = [s.strip() for s in v if s and s.strip()]
        return cleaned or None

    @property
    def supervising_agent_id(self) -> str | None:
        # agentId is only meaningful for employees.
        return self.agent_id if self.role == "employee" else None


def profile_document(request: ProvisionRequest, *, now: Timestamp) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "name": request.name,
        "email": request.email,
        "role": request.role,
        "isActive": request.is_active,
        "createdAt": now,
        "updatedAt": now,
    }
    if request.phone:
        doc["phone"] = request.phone
    if request.skills:
        doc["skills"] = list(request.skills)
    if request.supervising_agent_id:
        doc["agentId"] = request.supervising_agent_id
    return doc


class Principal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    role: Role
    phone: str | None = None
    agent_id: str | None = Field(default=None, alias="agentId")
    skills: list[str] | None = None
    is_active: bool = Field(default=True, alias="isActive")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> Principal:
        data = snapshot.data
        now = datetime.now(tz=UTC)
        return cls(
            id=snapshot.id,
            name=data.get("name", ""),
            email=data.get("email", ""),
            role=data.get("role"),
            phone=data.get("phone"),
            agent_id=data.get("agentId"),
            skills=data.get("skills"),
            is_active=bool(data.get("isActive", True)),
            created_at=to_datetime(data.get("createdAt"), default=now),
            updated_at=to_datetime(data.get("updatedAt"), default=now),
        )
