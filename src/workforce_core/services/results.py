from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from workforce_core.errors import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class OperationResult(Generic[T]):
    """
    Value returned by every service operation: callers branch on `success`/`error`
    instead of catching exceptions.
    """

    success: bool
    message: str
    data: T | None = None
    error: ErrorKind | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T | None = None, message: str = "ok", **details: Any) -> OperationResult[T]:
        return cls(success=True, message=message, data=data, details=details)

    @classmethod
    def fail(
        cls,
        error: ErrorKind,
        message: str,
        *,
        data: T | None = None,
        **details: Any,
    ) -> OperationResult[T]:
        return cls(success=False, message=message, data=data, error=error, details=details)
