from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from cinema.core.dispatcher import ActionDispatcher
from cinema.core.visibility import ScreeningView, VisibilityService
from cinema.domain.enums import ScreeningState
from cinema.domain.models import Screening
from cinema.schemas.cinema import ScreeningCreate, ScreeningOut, ScreeningUpdate
from cinema.security.context import Actor
from cinema.security.dependencies import get_dispatcher, get_optional_actor, get_visibility

router = APIRouter(prefix="/screenings", tags=["screenings"])


def _full(screening: Screening) -> ScreeningOut:
    # Whoever just performed a transition is related to the screening.
    return ScreeningOut.from_view(ScreeningView(screening, full=True))


# Static list routes are registered before "/{screening_id}" so they are not
# captured by the id pattern.


@router.get("/by-program", response_model=list[ScreeningOut])
def search_screenings(
    program_id: int,
    title: str | None = None,
    genre: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    state: ScreeningState | None = None,
    offset: int = 0,
    limit: int = 50,
    timetable: bool = False,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> list[ScreeningOut]:
    views = visibility.search_screenings(
        actor,
        program_id,
        title=title,
        genre=genre,
        date_from=date_from,
        date_to=date_to,
        state=state,
        offset=offset,
        limit=limit,
        timetable=timetable,
    )
    return [ScreeningOut.from_view(v) for v in views]


@router.get("/by-submitter", response_model=list[ScreeningOut])
def my_screenings(
    state: ScreeningState | None = None,
    offset: int = 0,
    limit: int = 50,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> list[ScreeningOut]:
    return [_full(s) for s in visibility.my_screenings(actor, state=state, offset=offset, limit=limit)]


@router.get("/by-staff", response_model=list[ScreeningOut])
def assigned_screenings(
    offset: int = 0,
    limit: int = 50,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> list[ScreeningOut]:
    return [_full(s) for s in visibility.assigned_screenings(actor, offset=offset, limit=limit)]


@router.post("", response_model=ScreeningOut, status_code=status.HTTP_201_CREATED)
def create_screening(
    body: ScreeningCreate,
    program_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.create_screening(actor, program_id, body.title, body.genre, body.description))


@router.get("/{screening_id}", response_model=ScreeningOut)
def view_screening(
    screening_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> ScreeningOut:
    return ScreeningOut.from_view(visibility.view_screening(actor, screening_id))


@router.put("/{screening_id}", response_model=ScreeningOut)
def update_screening(
    screening_id: int,
    body: ScreeningUpdate,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.update_screening(actor, screening_id, body.model_dump(exclude_unset=True)))


@router.delete("/{screening_id}", status_code=status.HTTP_204_NO_CONTENT)
def withdraw_screening(
    screening_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> Response:
    dispatcher.withdraw_screening(actor, screening_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{screening_id}/submit", response_model=ScreeningOut)
def submit_screening(
    screening_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.submit_screening(actor, screening_id))


@router.put("/{screening_id}/handler/{staff_id}", response_model=ScreeningOut)
def assign_handler(
    screening_id: int,
    staff_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.assign_handler(actor, screening_id, staff_id))


@router.put("/{screening_id}/review", response_model=ScreeningOut)
def review_screening(
    screening_id: int,
    score: int | None = None,
    comments: str | None = None,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.review_screening(actor, screening_id, score, comments))


@router.put("/{screening_id}/approve", response_model=ScreeningOut)
def approve_screening(
    screening_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.approve_screening(actor, screening_id))


@router.put("/{screening_id}/final-submit", response_model=ScreeningOut)
def final_submit_screening(
    screening_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.final_submit_screening(actor, screening_id))


@router.put("/{screening_id}/schedule", response_model=ScreeningOut)
def schedule_screening(
    screening_id: int,
    scheduled_date: str | None = Query(default=None, alias="date"),
    room: str | None = None,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.schedule_screening(actor, screening_id, scheduled_date, room))


@router.put("/{screening_id}/reject", response_model=ScreeningOut)
def reject_screening(
    screening_id: int,
    reason: str | None = None,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ScreeningOut:
    return _full(dispatcher.reject_screening(actor, screening_id, reason))
