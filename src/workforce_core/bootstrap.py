"""
workforce_core.bootstrap

Operator-run command that provisions the first admin account.

Responsibilities:
- Read the admin email/name/password from settings (`WFC_BOOTSTRAP_ADMIN_*`).
- Generate a one-time password when none is supplied and print it once.
- Be safe to re-run: an existing account with the same email is left untouched.

Usage:
    WFC_BOOTSTRAP_ADMIN_EMAIL=ops@example.com python -m workforce_core.bootstrap
"""

from __future__ import annotations

import asyncio
import secrets
import sys
from dataclasses import dataclass

from workforce_core.db.init_db import init_db
from workforce_core.db.session import create_engine, create_sessionmaker
from workforce_core.errors import ErrorKind
from workforce_core.observability.logging import configure_logging, get_logger
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.settings import Settings, get_settings
from workforce_core.stores.documents import SqlDocumentStore
from workforce_core.stores.identity import SqlIdentityStore

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BootstrapOutcome:
    created: bool
    message: str
    principal_id: str | None = None
    # Set only when the password was generated here; shown to the operator once.
    generated_password: str | None = None


async def bootstrap_admin(settings: Settings) -> BootstrapOutcome:
    if not settings.bootstrap_admin_email:
        raise ValueError("WFC_BOOTSTRAP_ADMIN_EMAIL must be set")

    password = settings.bootstrap_admin_password
    generated = None
    if not password:
        generated = password = secrets.token_urlsafe(18)

    engine = create_engine(settings)
    try:
        if settings.env in ("dev", "test"):
            await init_db(engine)
        sessionmaker = create_sessionmaker(engine)
        service = ProvisioningService(
            identity=SqlIdentityStore(sessionmaker, min_password_length=settings.min_password_length),
            documents=SqlDocumentStore(sessionmaker),
            settings=settings,
        )
        result = await service.provision_user(
            {
                "name": settings.bootstrap_admin_name,
                "email": settings.bootstrap_admin_email,
                "password": password,
                "role": "admin",
            }
        )
    finally:
        await engine.dispose()

    if result.success:
        log.info("bootstrap_admin_created", principal_id=result.data)
        return BootstrapOutcome(
            created=True,
            message=result.message,
            principal_id=result.data,
            generated_password=generated,
        )
    if result.error == ErrorKind.duplicate_email:
        log.info("bootstrap_admin_exists")
        return BootstrapOutcome(created=False, message="Admin account already exists.")
    raise RuntimeError(f"Bootstrap failed ({result.error}): {result.message}")


def main() -> int:
    settings = get_settings()
    configure_logging(service_name=settings.service_name, level=settings.log_level)
    try:
        outcome = asyncio.run(bootstrap_admin(settings))
    except (ValueError, RuntimeError) as e:
        print(f"bootstrap: {e}", file=sys.stderr)
        return 1

    print(outcome.message)
    if outcome.generated_password:
        print(f"Generated password for {settings.bootstrap_admin_email}: {outcome.generated_password}")
        print("It is not stored anywhere else. Change it after the first sign-in.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
