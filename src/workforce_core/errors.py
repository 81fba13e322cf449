"""
workforce_core.errors

Error taxonomy shared by the stores and services.

Responsibilities:
- Define the machine-checkable error kinds surfaced to callers.
- Provide typed exceptions raised at the store adapter seam.
- Classify arbitrary faults into the taxonomy at service boundaries.
"""

from __future__ import annotations

import asyncio
import enum


class ErrorKind(enum.StrEnum):
    # Values are part of the API contract (returned in result payloads).
    validation_error = "validation-error"
    duplicate_email = "duplicate-email"
    invalid_email = "invalid-email"
    weak_password = "weak-password"
    dependency_unavailable = "dependency-unavailable"
    not_found = "not-found"
    state_conflict = "state-conflict"
    partial_failure = "partial-failure"
    invalid_credentials = "invalid-credentials"
    account_disabled = "account-disabled"
    unknown = "unknown"


class CoreError(Exception):
    """
    Base for classified faults. Subclasses pin a default `kind`; callers may override it.
    """

    kind: ErrorKind = ErrorKind.unknown

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class StoreError(CoreError):
    pass


class StoreUnavailable(StoreError):
    kind = ErrorKind.dependency_unavailable


class IdentityError(StoreError):
    # kind is one of duplicate-email / invalid-email / weak-password / validation-error
    pass


class InvalidCredentials(StoreError):
    kind = ErrorKind.invalid_credentials


class DocumentNotFound(StoreError):
    kind = ErrorKind.not_found


class PreconditionFailed(StoreError):
    kind = ErrorKind.state_conflict


class InvalidTransition(CoreError):
    kind = ErrorKind.state_conflict


def classify(exc: BaseException) -> ErrorKind:
    if isinstance(exc, CoreError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError)):
        return ErrorKind.dependency_unavailable
    return ErrorKind.unknown


# --- Module Notes -----------------------------------------------------------
# Stores raise; services catch at their boundary and return `OperationResult` values.
