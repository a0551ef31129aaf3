from __future__ import annotations

from dataclasses import dataclass

from cinema.domain.errors import CinemaError, ErrorKind, error_for


@dataclass(frozen=True)
class Decision:
    """Outcome of a permission or guard check."""

    allowed: bool
    kind: ErrorKind | None = None
    reason: str = ""

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, kind: ErrorKind, reason: str) -> Decision:
        return cls(allowed=False, kind=kind, reason=reason)

    @classmethod
    def forbidden(cls, reason: str) -> Decision:
        return cls.deny(ErrorKind.FORBIDDEN, reason)

    @classmethod
    def invalid_transition(cls, reason: str) -> Decision:
        return cls.deny(ErrorKind.INVALID_TRANSITION, reason)

    def __bool__(self) -> bool:
        return self.allowed

    def to_error(self) -> CinemaError:
        if self.allowed or self.kind is None:
            raise ValueError("An allowing decision has no error")
        return error_for(self.kind, self.reason)

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise self.to_error()
