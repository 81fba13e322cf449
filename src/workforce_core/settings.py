"""
workforce_core.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, bootstrap admin password).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration shared by the stores, services and API layer.
    Defaults are safe for local dev; no credential of a real account has a default.
    """

    model_config = SettingsConfigDict(env_prefix="WFC_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "workforce-core"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth (bearer tokens carry the identity store claims)
    jwt_alg: str = "HS256"
    jwt_issuer: str = "workforce-core"
    jwt_audience: str = "workforce-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    token_ttl_minutes: int = 60

    # Persistence backing the reference identity/document stores
    database_url: str = "sqlite+aiosqlite:///./workforce.db"

    # Identity store password policy
    min_password_length: int = 6

    # Provisioning
    compensate_failed_provisioning: bool = True
    validate_agent_reference: bool = True
    welcome_title: str = "Welcome to the Platform!"

    # Operator-run bootstrap (`python -m workforce_core.bootstrap`)
    bootstrap_admin_email: str | None = None
    bootstrap_admin_name: str = "Administrator"
    bootstrap_admin_password: str | None = Field(default=None, repr=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# No admin password has a default: the bootstrap command reads one from the environment
# or generates a one-time secret.
