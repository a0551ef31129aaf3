"""
Permission evaluator.

Single decision point for every cinema-domain action. Evaluation order:

1. deny if the actor is missing, a visitor or inactive    (UNAUTHENTICATED)
2. deny if the actor is a platform ADMIN                  (FORBIDDEN)
3. deny if the program creator tries to create or submit
   a screening in their own program                       (FORBIDDEN)
4. delegate to the program / screening state machine guards
5. allow

The evaluator is pure: it reads snapshots and returns a Decision. It has no
store access and mutates nothing.
"""

from __future__ import annotations

import logging

from cinema.core import program_machine, screening_machine
from cinema.core.decision import Decision
from cinema.core.roles import RoleSet, resolve
from cinema.domain.enums import Action, GlobalRole, ProgramPhase, ScopedRole
from cinema.domain.errors import ErrorKind
from cinema.domain.models import Program, Screening
from cinema.security.config import WorkflowPolicy
from cinema.security.context import Actor

logger = logging.getLogger(__name__)

_CREATOR_CONFLICT_ACTIONS = frozenset({Action.CREATE_SCREENING, Action.SUBMIT_SCREENING})


class PermissionEvaluator:
    """
    Usage:
        evaluator = PermissionEvaluator(policy)
        decision = evaluator.can_perform(actor, Action.SUBMIT_SCREENING, program, screening)
    """

    def __init__(self, policy: WorkflowPolicy | None = None) -> None:
        self._policy = policy or WorkflowPolicy()

    @property
    def policy(self) -> WorkflowPolicy:
        return self._policy

    def can_perform(
        self,
        actor: Actor | None,
        action: Action,
        program: Program | None = None,
        screening: Screening | None = None,
        *,
        target_phase: ProgramPhase | None = None,
    ) -> Decision:
        decision = self._evaluate(actor, action, program, screening, target_phase)
        if decision.allowed:
            logger.debug("Allowed action=%s actor=%s", action.value, actor.user_id if actor else None)
        else:
            logger.info(
                "Denied action=%s actor=%s kind=%s reason=%s",
                action.value,
                actor.user_id if actor else None,
                decision.kind.value if decision.kind else None,
                decision.reason,
            )
        return decision

    # ---- Steps ----------------------------------------------------------------------

    def _evaluate(
        self,
        actor: Actor | None,
        action: Action,
        program: Program | None,
        screening: Screening | None,
        target_phase: ProgramPhase | None,
    ) -> Decision:
        if actor is None or actor.global_role is GlobalRole.VISITOR:
            return Decision.deny(ErrorKind.UNAUTHENTICATED, "Authentication required")
        if not actor.active:
            return Decision.deny(ErrorKind.UNAUTHENTICATED, "Account is inactive")

        if actor.is_admin:
            return Decision.forbidden("Administrators cannot perform cinema workflow actions")

        roles = resolve(actor.user_id, program, screening)

        if action in _CREATOR_CONFLICT_ACTIONS:
            conflict = self._check_creator_conflict(action, roles)
            if not conflict:
                return conflict

        if action.is_create:
            return Decision.allow()

        if program is None:
            return Decision.forbidden("Program is unknown; permission cannot be established")

        if action.targets_screening:
            if screening is None:
                return Decision.forbidden("Screening is unknown; permission cannot be established")
            if screening.program_id != program.id:
                return Decision.forbidden("Screening does not belong to this program")
            return screening_machine.check(action, screening, program, roles)

        return _check_program_action(action, program, roles, target_phase)

    def _check_creator_conflict(self, action: Action, roles: RoleSet) -> Decision:
        is_creator = roles.holds(ScopedRole.CREATOR)
        if is_creator is None:
            if action is Action.CREATE_SCREENING and self._policy.fail_open_on_unknown_for_create:
                return Decision.allow()
            return Decision.forbidden("Program is unknown; permission cannot be established")
        if is_creator:
            return Decision.forbidden("The creator of a program cannot submit screenings to it")
        return Decision.allow()


def _check_program_action(
    action: Action,
    program: Program,
    roles: RoleSet,
    target_phase: ProgramPhase | None,
) -> Decision:
    if action is Action.CHANGE_PROGRAM_PHASE:
        # Without an explicit target, ask about the natural successor.
        requested = target_phase or program_machine.successor(program.phase) or program.phase
        return program_machine.check_advance(program, requested, roles)

    if not roles.has(ScopedRole.PROGRAMMER):
        verb = {
            Action.UPDATE_PROGRAM: "update",
            Action.DELETE_PROGRAM: "delete",
            Action.ADD_PROGRAMMER: "add programmers to",
            Action.ADD_STAFF: "add staff to",
        }.get(action, action.value)
        return Decision.forbidden(f"Only a PROGRAMMER of this program can {verb} it")

    if action is Action.UPDATE_PROGRAM or action is Action.ADD_PROGRAMMER:
        return program_machine.check_editable(program)
    if action is Action.DELETE_PROGRAM:
        return program_machine.check_deletable(program)
    if action is Action.ADD_STAFF:
        return program_machine.check_staff_mutable(program)

    raise ValueError(f"Unsupported action: {action.value}")


def can_perform(
    actor: Actor | None,
    action: Action,
    program: Program | None = None,
    screening: Screening | None = None,
    *,
    target_phase: ProgramPhase | None = None,
    policy: WorkflowPolicy | None = None,
) -> Decision:
    """Module-level convenience around ``PermissionEvaluator.can_perform``."""

    return PermissionEvaluator(policy).can_perform(
        actor, action, program, screening, target_phase=target_phase
    )
