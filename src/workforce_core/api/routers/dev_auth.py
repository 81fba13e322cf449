"""
workforce_core.api.routers.dev_auth

Dev-only token minting.

Responsibilities:
- Issue a bearer token for an arbitrary subject/role without a password (dev/test only).
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from workforce_core.auth.jwt import JwtConfig, issue_token
from workforce_core.domain.principals import Role
from workforce_core.settings import Settings, get_settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=256)
    role: Role | None = None
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(get_settings),
) -> DevTokenResponse:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    claims = {"role": body.role} if body.role else {}
    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=body.subject,
        claims=claims,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DevTokenResponse(access_token=token)
