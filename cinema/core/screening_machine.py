"""
Screening state machine.

Each transition is guarded by three things, checked in this order:

1. the actor's scoped role (``Forbidden`` on mismatch),
2. the screening's own state (``InvalidTransition``),
3. the owning program's phase (``InvalidTransition``).

Operations return a new snapshot; the input snapshot is never modified, so a
failing transition leaves nothing half-applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any

from cinema.core.decision import Decision
from cinema.core.roles import RoleSet
from cinema.core.validation import optional_text, require_date, require_text, validate_score
from cinema.domain.enums import Action, ProgramPhase, ScopedRole, ScreeningState
from cinema.domain.errors import ValidationError
from cinema.domain.models import Program, Screening

logger = logging.getLogger(__name__)

_UNSET = object()


# ---- Guard table ---------------------------------------------------------------------


@dataclass(frozen=True)
class Transition:
    """One row of the guard table."""

    action: Action
    sources: frozenset[ScreeningState]
    target: ScreeningState | None
    phases: frozenset[ProgramPhase] | None
    actor: ScopedRole
    actor_label: str

    def describe_phases(self) -> str:
        if self.phases is None:
            return "any"
        return " or ".join(p.value for p in sorted(self.phases, key=_PHASE_ORDER.index))


_PHASE_ORDER = list(ProgramPhase)

_NON_TERMINAL = frozenset(s for s in ScreeningState if not s.is_terminal)


def _row(action, sources, target, phases, actor, actor_label) -> Transition:
    return Transition(
        action=action,
        sources=frozenset(sources),
        target=target,
        phases=None if phases is None else frozenset(phases),
        actor=actor,
        actor_label=actor_label,
    )


TRANSITIONS: dict[Action, Transition] = {
    t.action: t
    for t in (
        _row(
            Action.UPDATE_SCREENING,
            [ScreeningState.CREATED],
            ScreeningState.CREATED,
            None,
            ScopedRole.SUBMITTER,
            "the submitter",
        ),
        _row(
            Action.SUBMIT_SCREENING,
            [ScreeningState.CREATED],
            ScreeningState.SUBMITTED,
            [ProgramPhase.SUBMISSION],
            ScopedRole.SUBMITTER,
            "the submitter",
        ),
        _row(
            Action.WITHDRAW_SCREENING,
            [ScreeningState.CREATED],
            None,
            None,
            ScopedRole.SUBMITTER,
            "the submitter",
        ),
        _row(
            Action.ASSIGN_HANDLER,
            [ScreeningState.SUBMITTED],
            ScreeningState.SUBMITTED,
            [ProgramPhase.ASSIGNMENT],
            ScopedRole.PROGRAMMER,
            "a PROGRAMMER of the program",
        ),
        _row(
            Action.REVIEW_SCREENING,
            [ScreeningState.SUBMITTED],
            ScreeningState.REVIEWED,
            [ProgramPhase.REVIEW],
            ScopedRole.ASSIGNED_HANDLER,
            "the assigned staff member",
        ),
        _row(
            Action.APPROVE_SCREENING,
            [ScreeningState.REVIEWED],
            ScreeningState.APPROVED,
            [ProgramPhase.SCHEDULING],
            ScopedRole.SUBMITTER,
            "the submitter",
        ),
        _row(
            Action.FINAL_SUBMIT_SCREENING,
            [ScreeningState.APPROVED],
            ScreeningState.FINAL_SUBMITTED,
            [ProgramPhase.FINAL_PUBLICATION],
            ScopedRole.SUBMITTER,
            "the submitter",
        ),
        _row(
            Action.SCHEDULE_SCREENING,
            [ScreeningState.FINAL_SUBMITTED],
            ScreeningState.SCHEDULED,
            [ProgramPhase.DECISION],
            ScopedRole.PROGRAMMER,
            "a PROGRAMMER of the program",
        ),
        _row(
            Action.REJECT_SCREENING,
            _NON_TERMINAL,
            ScreeningState.REJECTED,
            [ProgramPhase.SCHEDULING, ProgramPhase.DECISION],
            ScopedRole.PROGRAMMER,
            "a PROGRAMMER of the program",
        ),
    )
}


def transition_for(action: Action) -> Transition:
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise ValueError(f"{action.value} is not a screening transition") from None


def check(action: Action, screening: Screening, program: Program, roles: RoleSet) -> Decision:
    """Evaluate the guard row for ``action`` without applying anything."""

    t = transition_for(action)
    verb = action.value.replace("_screening", "").replace("_", " ")

    if not roles.has(t.actor):
        if t.actor is ScopedRole.ASSIGNED_HANDLER:
            return Decision.forbidden("Not the assigned staff member for this screening")
        return Decision.forbidden(f"Only {t.actor_label} can {verb} this screening")

    if screening.state not in t.sources:
        if screening.state.is_terminal:
            return Decision.invalid_transition(f"Screening is already {screening.state.value} (final state)")
        expected = " or ".join(s.value for s in ScreeningState if s in t.sources)
        return Decision.invalid_transition(
            f"Screening is {screening.state.value}; {verb} requires {expected}"
        )

    if t.phases is not None and program.phase not in t.phases:
        return Decision.invalid_transition(
            f"Program is not in {t.describe_phases()} phase (currently {program.phase.value})"
        )

    if action is Action.ASSIGN_HANDLER and screening.staff_member_id is not None:
        return Decision.invalid_transition("A handler is already assigned to this screening")

    return Decision.allow()


def _guard(action: Action, screening: Screening, program: Program, roles: RoleSet) -> Transition:
    if screening.program_id != program.id:
        raise ValueError("Screening does not belong to the given program")
    check(action, screening, program, roles).raise_if_denied()
    return TRANSITIONS[action]


def _moved(screening: Screening, t: Transition, **changes) -> Screening:
    logger.debug(
        "Screening %s %s: %s -> %s",
        screening.id,
        t.action.value,
        screening.state.value,
        t.target.value,
    )
    return screening.evolve(state=t.target, **changes)


# ---- Operations ----------------------------------------------------------------------


def update_draft(
    screening: Screening,
    program: Program,
    roles: RoleSet,
    *,
    title: Any = _UNSET,
    genre: Any = _UNSET,
    description: Any = _UNSET,
) -> Screening:
    """Apply a partial edit. Omitted fields keep their value; an explicit None title is rejected."""

    t = _guard(Action.UPDATE_SCREENING, screening, program, roles)
    return _moved(
        screening,
        t,
        title=require_text("title", screening.title if title is _UNSET else title, "Title"),
        genre=screening.genre if genre is _UNSET else optional_text(genre),
        description=screening.description if description is _UNSET else optional_text(description),
    )


def submit(screening: Screening, program: Program, roles: RoleSet, *, now: datetime) -> Screening:
    t = _guard(Action.SUBMIT_SCREENING, screening, program, roles)
    if not screening.title or not screening.title.strip():
        raise ValidationError("title", "Screening is incomplete: title is required")
    return _moved(screening, t, submitted_time=now)


def withdraw(screening: Screening, program: Program, roles: RoleSet) -> None:
    """Validate a withdrawal. The caller deletes the screening on success."""

    _guard(Action.WITHDRAW_SCREENING, screening, program, roles)
    logger.debug("Screening %s withdrawn from program %s", screening.id, program.id)


def assign_handler(screening: Screening, program: Program, roles: RoleSet, *, staff_id: int) -> Screening:
    t = _guard(Action.ASSIGN_HANDLER, screening, program, roles)
    if staff_id not in program.staff_ids:
        raise ValidationError("staff_id", "User is not STAFF of this program")
    if staff_id == screening.submitter_id:
        raise ValidationError("staff_id", "The submitter cannot handle their own screening")
    return _moved(screening, t, staff_member_id=staff_id)


def review(
    screening: Screening,
    program: Program,
    roles: RoleSet,
    *,
    score: int,
    comments: str | None,
    now: datetime,
) -> Screening:
    t = _guard(Action.REVIEW_SCREENING, screening, program, roles)
    valid_score = validate_score(score)
    return _moved(
        screening,
        t,
        score=valid_score,
        comments=optional_text(comments) or "",
        reviewed_time=now,
    )


def approve(screening: Screening, program: Program, roles: RoleSet) -> Screening:
    t = _guard(Action.APPROVE_SCREENING, screening, program, roles)
    return _moved(screening, t)


def final_submit(screening: Screening, program: Program, roles: RoleSet, *, now: datetime) -> Screening:
    t = _guard(Action.FINAL_SUBMIT_SCREENING, screening, program, roles)
    return _moved(screening, t, final_submitted_time=now)


def schedule(
    screening: Screening,
    program: Program,
    roles: RoleSet,
    *,
    scheduled_date: date | None,
    room: str | None,
) -> Screening:
    t = _guard(Action.SCHEDULE_SCREENING, screening, program, roles)
    when = require_date("date", scheduled_date, "Date")
    where = require_text("room", room, "Room")
    return _moved(screening, t, scheduled_time=when, room=where)


def reject(screening: Screening, program: Program, roles: RoleSet, *, reason: str | None) -> Screening:
    t = _guard(Action.REJECT_SCREENING, screening, program, roles)
    why = require_text("reason", reason, "Rejection reason")
    return _moved(screening, t, rejection_reason=why)
