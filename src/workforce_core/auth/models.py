"""
workforce_core.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated caller type (`Caller`) injected into endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Caller:
    """
    Authenticated caller identity, rebuilt from the bearer token's claims.
    """

    subject: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# --- Module Notes -----------------------------------------------------------
# `role` is the single claim set on identities by ProvisioningService.provision_user.
