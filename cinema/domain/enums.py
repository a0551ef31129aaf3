"""Closed role, phase, state and action enumerations."""

from __future__ import annotations

from enum import Enum


class GlobalRole(str, Enum):
    """Platform-wide account type. Grants no program/screening privilege."""

    VISITOR = "VISITOR"
    USER = "USER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, raw: str | GlobalRole) -> GlobalRole:
        """
        Normalize a role string coming from an identity provider.

        Accepts any case and any number of leading ``ROLE_`` prefixes
        (``"role_role_admin"`` -> ``ADMIN``). Unknown strings raise ValueError.
        """

        if isinstance(raw, GlobalRole):
            return raw

        normalized = str(raw).strip().upper()
        while normalized.startswith("ROLE_"):
            normalized = normalized[len("ROLE_") :]

        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown global role: {raw!r}") from None


class ScopedRole(str, Enum):
    """Role held relative to one concrete program or screening."""

    CREATOR = "CREATOR"
    PROGRAMMER = "PROGRAMMER"
    STAFF = "STAFF"
    SUBMITTER = "SUBMITTER"
    ASSIGNED_HANDLER = "ASSIGNED_HANDLER"


class ProgramPhase(str, Enum):
    CREATED = "CREATED"
    SUBMISSION = "SUBMISSION"
    ASSIGNMENT = "ASSIGNMENT"
    REVIEW = "REVIEW"
    SCHEDULING = "SCHEDULING"
    FINAL_PUBLICATION = "FINAL_PUBLICATION"
    DECISION = "DECISION"
    ANNOUNCED = "ANNOUNCED"


class ScreeningState(str, Enum):
    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"
    APPROVED = "APPROVED"
    FINAL_SUBMITTED = "FINAL_SUBMITTED"
    SCHEDULED = "SCHEDULED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ScreeningState.SCHEDULED, ScreeningState.REJECTED)


class Action(str, Enum):
    """Every cinema-domain action the dispatcher can execute."""

    CREATE_PROGRAM = "create_program"
    UPDATE_PROGRAM = "update_program"
    DELETE_PROGRAM = "delete_program"
    CHANGE_PROGRAM_PHASE = "change_program_phase"
    ADD_PROGRAMMER = "add_programmer"
    ADD_STAFF = "add_staff"

    CREATE_SCREENING = "create_screening"
    UPDATE_SCREENING = "update_screening"
    SUBMIT_SCREENING = "submit_screening"
    WITHDRAW_SCREENING = "withdraw_screening"
    ASSIGN_HANDLER = "assign_handler"
    REVIEW_SCREENING = "review_screening"
    APPROVE_SCREENING = "approve_screening"
    FINAL_SUBMIT_SCREENING = "final_submit_screening"
    SCHEDULE_SCREENING = "schedule_screening"
    REJECT_SCREENING = "reject_screening"

    @property
    def targets_screening(self) -> bool:
        """True when the action operates on an existing screening."""
        return self in _SCREENING_ACTIONS

    @property
    def is_create(self) -> bool:
        return self in (Action.CREATE_PROGRAM, Action.CREATE_SCREENING)


_SCREENING_ACTIONS = frozenset(
    {
        Action.UPDATE_SCREENING,
        Action.SUBMIT_SCREENING,
        Action.WITHDRAW_SCREENING,
        Action.ASSIGN_HANDLER,
        Action.REVIEW_SCREENING,
        Action.APPROVE_SCREENING,
        Action.FINAL_SUBMIT_SCREENING,
        Action.SCHEDULE_SCREENING,
        Action.REJECT_SCREENING,
    }
)
