"""
workforce_core.api.app

FastAPI app factory for the workforce service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine, stores, services).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from fastapi import FastAPI

from workforce_core import __version__
from workforce_core.api.routers.auth import router as auth_router
from workforce_core.api.routers.dev_auth import router as dev_auth_router
from workforce_core.api.routers.health import router as health_router
from workforce_core.api.routers.payments import router as payments_router
from workforce_core.api.routers.users import router as users_router
from workforce_core.db.init_db import init_db
from workforce_core.db.session import create_engine, create_sessionmaker
from workforce_core.observability.logging import configure_logging, get_logger
from workforce_core.observability.middleware import RequestContextMiddleware
from workforce_core.services.ledger import PaymentLedger
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.settings import Settings, get_settings
from workforce_core.stores.documents import SqlDocumentStore
from workforce_core.stores.identity import SqlIdentityStore

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Workforce Core",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    # Every `Depends(get_settings)` sees the settings this app was built with.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(payments_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        sessionmaker = create_sessionmaker(engine)
        app.state.engine = engine
        app.state.sessionmaker = sessionmaker

        identity = SqlIdentityStore(sessionmaker, min_password_length=settings.min_password_length)
        documents = SqlDocumentStore(sessionmaker)
        app.state.provisioning = ProvisioningService(
            identity=identity, documents=documents, settings=settings
        )
        app.state.ledger = PaymentLedger(documents=documents)
        if settings.env in ("dev", "test"):
            # Prod uses Alembic migrations.
            await init_db(engine)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; business rules live in the services, store adapters
# behind the protocols in `workforce_core.stores.base`.
