"""
Role resolver.

Derives the scoped roles a user holds relative to one program and/or one
screening, purely from relationship fields (never from the global role).

A missing program or screening does not mean "no role": it means the role
is *unknown*. ``RoleSet.holds`` returns ``None`` in that case so the caller
chooses explicitly whether unknown fails open or closed.
"""

from __future__ import annotations

from dataclasses import dataclass

from cinema.domain.enums import ScopedRole
from cinema.domain.models import Program, Screening

_PROGRAM_ROLES = frozenset({ScopedRole.CREATOR, ScopedRole.PROGRAMMER, ScopedRole.STAFF})
_SCREENING_ROLES = frozenset({ScopedRole.SUBMITTER, ScopedRole.ASSIGNED_HANDLER})


@dataclass(frozen=True)
class RoleSet:
    user_id: int
    roles: frozenset[ScopedRole]
    program_known: bool
    screening_known: bool

    def holds(self, role: ScopedRole) -> bool | None:
        """True/False when the owning entity was loaded, None when it was not."""

        known = self.program_known if role in _PROGRAM_ROLES else self.screening_known
        if not known:
            return None
        return role in self.roles

    def has(self, role: ScopedRole, *, unknown: bool = False) -> bool:
        """Collapse ``holds`` to a bool, using ``unknown`` when the entity is absent."""

        held = self.holds(role)
        return unknown if held is None else held

    def __contains__(self, role: object) -> bool:
        return role in self.roles


def is_creator(user_id: int, program: Program) -> bool:
    return program.creator_id == user_id


def is_programmer(user_id: int, program: Program) -> bool:
    return user_id in program.effective_programmer_ids


def is_staff(user_id: int, program: Program) -> bool:
    return user_id in program.staff_ids


def is_submitter(user_id: int, screening: Screening) -> bool:
    return screening.submitter_id == user_id


def is_assigned_handler(user_id: int, screening: Screening) -> bool:
    return screening.staff_member_id is not None and screening.staff_member_id == user_id


def resolve(
    user_id: int,
    program: Program | None = None,
    screening: Screening | None = None,
) -> RoleSet:
    roles: set[ScopedRole] = set()

    if program is not None:
        if is_creator(user_id, program):
            roles.add(ScopedRole.CREATOR)
        if is_programmer(user_id, program):
            roles.add(ScopedRole.PROGRAMMER)
        if is_staff(user_id, program):
            roles.add(ScopedRole.STAFF)

    if screening is not None:
        if is_submitter(user_id, screening):
            roles.add(ScopedRole.SUBMITTER)
        if is_assigned_handler(user_id, screening):
            roles.add(ScopedRole.ASSIGNED_HANDLER)

    return RoleSet(
        user_id=user_id,
        roles=frozenset(roles),
        program_known=program is not None,
        screening_known=screening is not None,
    )
