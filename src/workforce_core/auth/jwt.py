"""
workforce_core.auth.jwt

JWT issuing and validation helpers.

Responsibilities:
- Issue short-lived JWTs embedding an identity's authorization claims.
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat/sub).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from workforce_core.settings import Settings


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


class JwtValidationError(Exception):
    pass


_REGISTERED = frozenset({"iss", "aud", "sub", "iat", "exp"})


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    claims: dict[str, Any],
    ttl: timedelta = timedelta(hours=1),
) -> str:
    now = datetime.now(tz=UTC)
    # Custom claims cannot shadow registered ones.
    payload: dict[str, Any] = {k: v for k, v in claims.items() if k not in _REGISTERED}
    payload.update(
        {
            "iss": cfg.issuer,
            "aud": cfg.audience,
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
    )
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub"],
            },
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by:
# - `api/routers/auth.py` (sign-in, with the claims stored on the identity)
# - `api/routers/dev_auth.py` (dev convenience)
