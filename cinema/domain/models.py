"""Domain snapshots.

These are immutable values read from (and written back to) the entity store.
State machines take a snapshot and return the proposed next snapshot; nothing
in the core keeps a long-lived reference to one.
ORM models live in cinema/models/ (persistence layer).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from cinema.domain.enums import GlobalRole, ProgramPhase, ScreeningState


@dataclass(frozen=True)
class User:
    id: int
    username: str
    display_name: str
    global_role: GlobalRole = GlobalRole.USER
    active: bool = True


@dataclass(frozen=True)
class Program:
    """A curated event window with its own lifecycle phase."""

    id: int | None
    name: str
    description: str
    start_date: date
    end_date: date
    creator_id: int
    phase: ProgramPhase = ProgramPhase.CREATED
    programmer_ids: frozenset[int] = field(default_factory=frozenset)
    staff_ids: frozenset[int] = field(default_factory=frozenset)
    created_at: datetime | None = None
    version: int = 0

    @property
    def effective_programmer_ids(self) -> frozenset[int]:
        """Explicit programmers plus the creator, who is always one."""
        return self.programmer_ids | {self.creator_id}

    def evolve(self, **changes: Any) -> Program:
        return replace(self, **changes)


@dataclass(frozen=True)
class Screening:
    """A single film submission nested under a program."""

    id: int | None
    program_id: int
    submitter_id: int
    title: str
    genre: str | None = None
    description: str | None = None
    state: ScreeningState = ScreeningState.CREATED
    staff_member_id: int | None = None
    score: int | None = None
    comments: str | None = None
    room: str | None = None
    scheduled_time: date | None = None
    rejection_reason: str | None = None
    created_time: datetime | None = None
    submitted_time: datetime | None = None
    reviewed_time: datetime | None = None
    final_submitted_time: datetime | None = None
    version: int = 0

    def evolve(self, **changes: Any) -> Screening:
        return replace(self, **changes)
