"""
Program state machine.

Phases form a strict linear chain; each phase has exactly one legal successor
and ANNOUNCED has none:

    CREATED -> SUBMISSION -> ASSIGNMENT -> REVIEW -> SCHEDULING
            -> FINAL_PUBLICATION -> DECISION -> ANNOUNCED

Advancing a program never touches its screenings.
"""

from __future__ import annotations

import logging

from cinema.core.decision import Decision
from cinema.core.roles import RoleSet
from cinema.domain.enums import ProgramPhase, ScopedRole
from cinema.domain.models import Program

logger = logging.getLogger(__name__)


SUCCESSORS: dict[ProgramPhase, ProgramPhase | None] = {
    ProgramPhase.CREATED: ProgramPhase.SUBMISSION,
    ProgramPhase.SUBMISSION: ProgramPhase.ASSIGNMENT,
    ProgramPhase.ASSIGNMENT: ProgramPhase.REVIEW,
    ProgramPhase.REVIEW: ProgramPhase.SCHEDULING,
    ProgramPhase.SCHEDULING: ProgramPhase.FINAL_PUBLICATION,
    ProgramPhase.FINAL_PUBLICATION: ProgramPhase.DECISION,
    ProgramPhase.DECISION: ProgramPhase.ANNOUNCED,
    ProgramPhase.ANNOUNCED: None,
}

# Staff may be added while the call for submissions is still open.
STAFF_MUTABLE_PHASES = frozenset({ProgramPhase.CREATED, ProgramPhase.SUBMISSION})


def successor(phase: ProgramPhase) -> ProgramPhase | None:
    return SUCCESSORS[phase]


def can_advance(current: ProgramPhase, requested: ProgramPhase) -> bool:
    nxt = SUCCESSORS.get(current)
    return nxt is not None and nxt is requested


def check_advance(program: Program, requested_next: ProgramPhase, roles: RoleSet) -> Decision:
    if not roles.has(ScopedRole.PROGRAMMER):
        return Decision.forbidden("Only a PROGRAMMER of this program can change its phase")

    nxt = successor(program.phase)
    if nxt is None:
        return Decision.invalid_transition(f"Program is {program.phase.value} and cannot change phase")
    if requested_next is not nxt:
        return Decision.invalid_transition(
            f"Program cannot move from {program.phase.value} to {requested_next.value}; "
            f"the next phase is {nxt.value}"
        )
    return Decision.allow()


def advance(program: Program, requested_next: ProgramPhase, roles: RoleSet) -> Program:
    """Return the program moved to ``requested_next`` or raise."""

    check_advance(program, requested_next, roles).raise_if_denied()
    logger.debug("Program %s phase %s -> %s", program.id, program.phase.value, requested_next.value)
    return program.evolve(phase=requested_next)


def check_editable(program: Program) -> Decision:
    """Program details and membership are locked once ANNOUNCED."""

    if program.phase is ProgramPhase.ANNOUNCED:
        return Decision.invalid_transition("Program is ANNOUNCED and can no longer be modified")
    return Decision.allow()


def check_staff_mutable(program: Program) -> Decision:
    if program.phase not in STAFF_MUTABLE_PHASES:
        return Decision.invalid_transition("Staff set is frozen after the SUBMISSION phase")
    return Decision.allow()


def check_deletable(program: Program) -> Decision:
    if program.phase is not ProgramPhase.CREATED:
        return Decision.invalid_transition(
            f"Program is {program.phase.value}; only CREATED programs can be deleted"
        )
    return Decision.allow()
