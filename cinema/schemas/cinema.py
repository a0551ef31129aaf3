from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from cinema.core.visibility import ProgramView, ScreeningView
from cinema.domain.enums import ProgramPhase, ScreeningState


# ---- Request bodies --------------------------------------------------------------------
# Fields are optional at this layer; the workflow core owns the "required" rules so
# a missing name and a blank name produce the same ValidationError.


class ProgramCreate(BaseModel):
    name: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class ProgramUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class PhaseChange(BaseModel):
    next_state: str | None = None


class ScreeningCreate(BaseModel):
    title: str | None = None
    genre: str | None = None
    description: str | None = None


class ScreeningUpdate(BaseModel):
    title: str | None = None
    genre: str | None = None
    description: str | None = None


# ---- Responses -------------------------------------------------------------------------


class ProgramOut(BaseModel):
    """Program document; membership and audit fields are only filled in the full view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    start_date: date
    end_date: date
    phase: ProgramPhase
    full: bool = True

    creator_id: int | None = None
    programmer_ids: list[int] | None = None
    staff_ids: list[int] | None = None
    created_at: datetime | None = None
    version: int | None = None

    @classmethod
    def from_view(cls, view: ProgramView) -> ProgramOut:
        p = view.program
        public = cls(
            id=p.id,
            name=p.name,
            description=p.description,
            start_date=p.start_date,
            end_date=p.end_date,
            phase=p.phase,
            full=view.full,
        )
        if not view.full:
            return public
        return public.model_copy(
            update={
                "creator_id": p.creator_id,
                "programmer_ids": sorted(p.effective_programmer_ids),
                "staff_ids": sorted(p.staff_ids),
                "created_at": p.created_at,
                "version": p.version,
            }
        )


class ScreeningOut(BaseModel):
    """Screening document; review and workflow fields are only filled in the full view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    program_id: int
    title: str
    genre: str | None = None
    description: str | None = None
    state: ScreeningState
    room: str | None = None
    scheduled_time: date | None = None
    full: bool = True

    submitter_id: int | None = None
    staff_member_id: int | None = None
    score: int | None = None
    comments: str | None = None
    rejection_reason: str | None = None
    created_time: datetime | None = None
    submitted_time: datetime | None = None
    reviewed_time: datetime | None = None
    final_submitted_time: datetime | None = None
    version: int | None = None

    @classmethod
    def from_view(cls, view: ScreeningView) -> ScreeningOut:
        s = view.screening
        if view.full:
            return cls.model_validate(s)
        return cls(
            id=s.id,
            program_id=s.program_id,
            title=s.title,
            genre=s.genre,
            description=s.description,
            state=s.state,
            room=s.room,
            scheduled_time=s.scheduled_time,
            full=False,
        )
