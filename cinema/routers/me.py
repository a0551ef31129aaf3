from __future__ import annotations

from fastapi import APIRouter, Depends

from cinema.schemas.security import ActorOut
from cinema.security.context import Actor
from cinema.security.dependencies import get_current_actor

router = APIRouter(tags=["me"])


@router.get("/me", response_model=ActorOut)
def me(actor: Actor = Depends(get_current_actor)) -> Actor:
    return actor
