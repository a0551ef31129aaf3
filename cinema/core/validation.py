"""Field-level validation shared by the state machines and the dispatcher."""

from __future__ import annotations

from datetime import date

from cinema.domain.errors import ValidationError

MIN_SCORE = 0
MAX_SCORE = 10


def require_text(field: str, value: str | None, label: str | None = None) -> str:
    """Return ``value`` trimmed, or raise if it is missing or blank."""

    if value is None or not str(value).strip():
        raise ValidationError(field, f"{label or field.capitalize()} is required")
    return str(value).strip()


def optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return str(value).strip()


def require_date(field: str, value: date | None, label: str | None = None) -> date:
    if value is None:
        raise ValidationError(field, f"{label or field} is required")
    if not isinstance(value, date):
        raise ValidationError(field, f"{label or field} must be a date")
    return value


def validate_date_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("dates", "End date must be on or after start date")


def validate_score(score: object) -> int:
    # bool is an int subclass; True is not a score.
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("score", "Score must be an integer")
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError("score", f"Score must be between {MIN_SCORE} and {MAX_SCORE}")
    return score
