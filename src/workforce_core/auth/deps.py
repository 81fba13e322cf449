"""
workforce_core.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Caller`.
- Enforce role checks via reusable dependency factories.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from workforce_core.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from workforce_core.auth.models import Caller
from workforce_core.settings import Settings, get_settings

_bearer = HTTPBearer(auto_error=False)


def get_caller(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Caller:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    role = payload.get("role")
    if not subject:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    if not isinstance(role, str) or not role:
        # Identities without a role claim are half-provisioned; they get no access.
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Missing role claim")

    return Caller(subject=subject, role=role)


def require_roles(*allowed: str):
    allowed_set = frozenset(allowed)

    def _dep(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.is_admin:
            return caller
        if caller.role not in allowed_set:
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Insufficient role")
        return caller

    return _dep
