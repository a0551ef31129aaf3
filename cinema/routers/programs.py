from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Response, status

from cinema.core.dispatcher import ActionDispatcher
from cinema.core.visibility import ProgramView, VisibilityService
from cinema.domain.enums import ProgramPhase
from cinema.schemas.cinema import PhaseChange, ProgramCreate, ProgramOut, ProgramUpdate
from cinema.security.context import Actor
from cinema.security.dependencies import get_dispatcher, get_optional_actor, get_visibility

router = APIRouter(prefix="/programs", tags=["programs"])


@router.post("", response_model=ProgramOut, status_code=status.HTTP_201_CREATED)
def create_program(
    body: ProgramCreate,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ProgramOut:
    program = dispatcher.create_program(actor, body.name, body.description, body.start_date, body.end_date)
    return ProgramOut.from_view(ProgramView(program, full=True))


@router.get("", response_model=list[ProgramOut])
def search_programs(
    name: str | None = None,
    phase: ProgramPhase | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    offset: int = 0,
    limit: int = 50,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> list[ProgramOut]:
    views = visibility.search_programs(
        actor,
        name=name,
        phase=phase,
        date_from=date_from,
        date_to=date_to,
        offset=offset,
        limit=limit,
    )
    return [ProgramOut.from_view(v) for v in views]


@router.get("/{program_id}", response_model=ProgramOut)
def view_program(
    program_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    visibility: VisibilityService = Depends(get_visibility),
) -> ProgramOut:
    return ProgramOut.from_view(visibility.view_program(actor, program_id))


@router.put("/{program_id}", response_model=ProgramOut)
def update_program(
    program_id: int,
    body: ProgramUpdate,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ProgramOut:
    program = dispatcher.update_program(actor, program_id, body.model_dump(exclude_unset=True))
    return ProgramOut.from_view(ProgramView(program, full=True))


@router.delete("/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_program(
    program_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> Response:
    dispatcher.delete_program(actor, program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{program_id}/state", response_model=ProgramOut)
def change_program_phase(
    program_id: int,
    body: PhaseChange,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ProgramOut:
    program = dispatcher.change_program_phase(actor, program_id, body.next_state)
    return ProgramOut.from_view(ProgramView(program, full=True))


@router.post("/{program_id}/programmers/{user_id}", response_model=ProgramOut)
def add_programmer(
    program_id: int,
    user_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ProgramOut:
    program = dispatcher.add_programmer(actor, program_id, user_id)
    return ProgramOut.from_view(ProgramView(program, full=True))


@router.post("/{program_id}/staff/{user_id}", response_model=ProgramOut)
def add_staff(
    program_id: int,
    user_id: int,
    actor: Actor | None = Depends(get_optional_actor),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
) -> ProgramOut:
    program = dispatcher.add_staff(actor, program_id, user_id)
    return ProgramOut.from_view(ProgramView(program, full=True))
