"""
workforce_core.api.routers.auth

Password sign-in.

Responsibilities:
- Exchange email/password for a bearer token carrying the identity's claims.
- Refuse deactivated accounts and accounts whose provisioning never completed.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from workforce_core.api.deps import provisioning_dep, unwrap
from workforce_core.auth.jwt import JwtConfig, issue_token
from workforce_core.domain.principals import Principal
from workforce_core.observability.logging import get_logger
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.settings import Settings, get_settings

log = get_logger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class SignInRequest(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, repr=False)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Principal


@router.post("/token", response_model=TokenResponse)
async def sign_in(
    body: SignInRequest,
    provisioning: ProvisioningService = Depends(provisioning_dep),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    result = await provisioning.sign_in(body.email, body.password)
    if not result.success:
        log.info("sign_in_rejected", error=result.error)
    principal = unwrap(result)

    ttl = timedelta(minutes=settings.token_ttl_minutes)
    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=principal.id,
        claims=result.details.get("claims", {}),
        ttl=ttl,
    )
    return TokenResponse(
        access_token=token,
        expires_in=int(ttl.total_seconds()),
        user=principal,
    )
