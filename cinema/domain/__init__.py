from cinema.domain.enums import Action, GlobalRole, ProgramPhase, ScopedRole, ScreeningState
from cinema.domain.models import Program, Screening, User

__all__ = [
    "Action",
    "GlobalRole",
    "ProgramPhase",
    "ScopedRole",
    "ScreeningState",
    "Program",
    "Screening",
    "User",
]
