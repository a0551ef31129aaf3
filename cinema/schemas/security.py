from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from cinema.domain.enums import GlobalRole


class ActorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    global_role: GlobalRole
    active: bool


class ErrorOut(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
