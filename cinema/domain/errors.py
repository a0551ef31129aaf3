"""Typed errors raised by the workflow core.

Every error carries a machine-readable ``kind`` and a human-readable message
that explains *why* the request was refused, so the consuming layer can show
"not the assigned staff member" rather than a generic failure.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"


class CinemaError(Exception):
    """Base error with kind and user-safe message."""

    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    @property
    def details(self) -> dict[str, Any] | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.kind.value, "message": self.message, "details": self.details}


class UnauthenticatedError(CinemaError):
    kind = ErrorKind.UNAUTHENTICATED


class ForbiddenError(CinemaError):
    kind = ErrorKind.FORBIDDEN


class InvalidTransitionError(CinemaError):
    kind = ErrorKind.INVALID_TRANSITION


class ValidationError(CinemaError):
    """Raised for a malformed field (score out of range, missing reason, ...)."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    @property
    def details(self) -> dict[str, Any] | None:
        return {"field": self.field}


class ConflictError(CinemaError):
    """Raised when the stored entity changed between read and write."""

    kind = ErrorKind.CONFLICT

    def __init__(self, resource: str, entity_id: int) -> None:
        super().__init__(f"{resource} {entity_id} was modified concurrently; re-read and retry")
        self.resource = resource
        self.entity_id = entity_id

    @property
    def details(self) -> dict[str, Any] | None:
        return {"resource": self.resource, "id": self.entity_id}


class NotFoundError(CinemaError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, entity_id: int | None = None) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.entity_id = entity_id

    @property
    def details(self) -> dict[str, Any] | None:
        return {"resource": self.resource}


_ERRORS_BY_KIND: dict[ErrorKind, type[CinemaError]] = {
    ErrorKind.UNAUTHENTICATED: UnauthenticatedError,
    ErrorKind.FORBIDDEN: ForbiddenError,
    ErrorKind.INVALID_TRANSITION: InvalidTransitionError,
}


def error_for(kind: ErrorKind, message: str) -> CinemaError:
    """Build the exception matching a denial kind produced by the evaluator."""

    if kind is ErrorKind.VALIDATION_ERROR:
        return ValidationError("request", message)
    cls = _ERRORS_BY_KIND.get(kind)
    if cls is None:
        raise ValueError(f"Denials cannot carry kind {kind.value}")
    return cls(message)
