"""
Role-aware document views and searches.

Views are gated relative to the entity, like transitions:

- visitors see only public documents (ANNOUNCED programs, SCHEDULED
  screenings of ANNOUNCED programs);
- related users (programmer/staff/creator, submitters with a screening in the
  program, the assigned handler) see the full document;
- other signed-in users see programs past CREATED in public form.

Searches filter first, sort, and page *after* filtering.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging

from cinema.core.roles import is_assigned_handler, is_programmer, is_staff, is_submitter
from cinema.domain.enums import GlobalRole, ProgramPhase, ScreeningState
from cinema.domain.errors import ForbiddenError, NotFoundError, UnauthenticatedError, ValidationError
from cinema.domain.models import Program, Screening
from cinema.security.config import WorkflowPolicy
from cinema.security.context import Actor
from cinema.stores.interfaces import EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgramView:
    program: Program
    full: bool


@dataclass(frozen=True)
class ScreeningView:
    screening: Screening
    full: bool


class VisibilityService:
    """Read-side counterpart of the dispatcher."""

    def __init__(self, store: EntityStore, policy: WorkflowPolicy | None = None) -> None:
        self._store = store
        self._policy = policy or WorkflowPolicy()

    # ---- Programs -------------------------------------------------------------------

    def can_view_full_program(self, actor: Actor | None, program: Program) -> bool:
        if not _is_cinema_user(actor):
            return False
        uid = actor.user_id
        if is_programmer(uid, program) or is_staff(uid, program):
            return True
        return self._store.has_submission(program.id, uid)

    def view_program(self, actor: Actor | None, program_id: int) -> ProgramView:
        program = self._store.get_program(program_id)
        if program is None:
            raise NotFoundError("Program", program_id)

        if self.can_view_full_program(actor, program):
            return ProgramView(program, full=True)

        if not _is_signed_in(actor):
            if program.phase is not ProgramPhase.ANNOUNCED:
                raise ForbiddenError("Program not available")
            return ProgramView(program, full=False)

        # Signed-in but unrelated: public once the call for submissions opens.
        if program.phase is ProgramPhase.CREATED:
            raise ForbiddenError("Program not available")
        return ProgramView(program, full=False)

    def search_programs(
        self,
        actor: Actor | None,
        *,
        name: str | None = None,
        phase: ProgramPhase | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[ProgramView]:
        _check_range(date_from, date_to)
        words = _tokenize(name)

        views: list[ProgramView] = []
        for program in self._store.list_programs():
            if phase is not None and program.phase is not phase:
                continue
            if words and not _contains_all(program.name, words):
                continue
            if date_from is not None and program.end_date < date_from:
                continue
            if date_to is not None and program.start_date > date_to:
                continue

            if self.can_view_full_program(actor, program):
                views.append(ProgramView(program, full=True))
            elif program.phase is ProgramPhase.ANNOUNCED:
                views.append(ProgramView(program, full=False))

        views.sort(key=lambda v: (v.program.start_date, v.program.name.lower()))
        return self._page(views, offset, limit)

    # ---- Screenings -----------------------------------------------------------------

    def can_view_full_screening(self, actor: Actor | None, program: Program, screening: Screening) -> bool:
        if not _is_cinema_user(actor):
            return False
        uid = actor.user_id
        if is_programmer(uid, program) or is_submitter(uid, screening):
            return True
        return is_assigned_handler(uid, screening) and is_staff(uid, program)

    def view_screening(self, actor: Actor | None, screening_id: int) -> ScreeningView:
        screening = self._store.get_screening(screening_id)
        if screening is None:
            raise NotFoundError("Screening", screening_id)
        program = self._store.get_program(screening.program_id)
        if program is None:
            raise NotFoundError("Program", screening.program_id)

        if self.can_view_full_screening(actor, program, screening):
            return ScreeningView(screening, full=True)
        if _is_public(program, screening):
            return ScreeningView(screening, full=False)
        raise ForbiddenError("Not allowed to view this screening")

    def search_screenings(
        self,
        actor: Actor | None,
        program_id: int,
        *,
        title: str | None = None,
        genre: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        state: ScreeningState | None = None,
        offset: int = 0,
        limit: int = 50,
        timetable: bool = False,
    ) -> list[ScreeningView]:
        _check_range(date_from, date_to)
        program = self._store.get_program(program_id)
        if program is None:
            raise NotFoundError("Program", program_id)

        title_words = _tokenize(title)
        genre_words = _tokenize(genre)

        views: list[ScreeningView] = []
        for screening in self._store.list_screenings(program_id=program_id, state=state):
            if self.can_view_full_screening(actor, program, screening):
                view = ScreeningView(screening, full=True)
            elif _is_public(program, screening):
                view = ScreeningView(screening, full=False)
            else:
                continue

            if title_words and not _contains_all(screening.title, title_words):
                continue
            if genre_words and not _contains_all(screening.genre, genre_words):
                continue
            if date_from is not None and (screening.scheduled_time is None or screening.scheduled_time < date_from):
                continue
            if date_to is not None and (screening.scheduled_time is None or screening.scheduled_time > date_to):
                continue
            views.append(view)

        if timetable:
            views.sort(key=lambda v: (v.screening.scheduled_time or date.min, _lower(v.screening.title)))
        else:
            views.sort(key=lambda v: (_lower(v.screening.genre), _lower(v.screening.title)))
        return self._page(views, offset, limit)

    def my_screenings(
        self,
        actor: Actor | None,
        *,
        state: ScreeningState | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Screening]:
        _require_cinema_user(actor)
        if self._policy.my_screenings_visibility == "submitter_only":
            if not self._store.list_screenings(submitter_id=actor.user_id):
                raise ForbiddenError("Only submitters can list their screenings")

        mine = self._store.list_screenings(submitter_id=actor.user_id, state=state)
        mine.sort(key=lambda s: (_lower(s.genre), _lower(s.title)))
        return self._page(mine, offset, limit)

    def assigned_screenings(self, actor: Actor | None, *, offset: int = 0, limit: int = 50) -> list[Screening]:
        _require_cinema_user(actor)

        if self._policy.review_visibility == "staff_only":
            if not any(is_staff(actor.user_id, p) for p in self._store.list_programs()):
                raise ForbiddenError("Only STAFF members can list assigned screenings")

        assigned = self._store.list_screenings(staff_member_id=actor.user_id)
        assigned.sort(key=lambda s: (_lower(s.genre), _lower(s.title)))
        return self._page(assigned, offset, limit)

    # ---- Helpers --------------------------------------------------------------------

    def _page(self, items: list, offset: int, limit: int) -> list:
        safe_offset = max(0, offset)
        safe_limit = max(1, min(limit, self._policy.max_page_size))
        return items[safe_offset : safe_offset + safe_limit]


def _is_signed_in(actor: Actor | None) -> bool:
    return actor is not None and actor.active and actor.global_role is not GlobalRole.VISITOR


def _is_cinema_user(actor: Actor | None) -> bool:
    return _is_signed_in(actor) and actor.global_role is GlobalRole.USER


def _require_cinema_user(actor: Actor | None) -> None:
    if not _is_signed_in(actor):
        raise UnauthenticatedError("Authentication required")
    if actor.is_admin:
        raise ForbiddenError("Administrators cannot use cinema workflow lists")


def _is_public(program: Program, screening: Screening) -> bool:
    return program.phase is ProgramPhase.ANNOUNCED and screening.state is ScreeningState.SCHEDULED


def _check_range(date_from: date | None, date_to: date | None) -> None:
    if date_from is not None and date_to is not None and date_to < date_from:
        raise ValidationError("dates", "date_to must be on or after date_from")


def _tokenize(query: str | None) -> list[str]:
    if not query or not query.strip():
        return []
    return query.strip().lower().split()


def _contains_all(value: str | None, words: list[str]) -> bool:
    if value is None:
        return False
    haystack = value.lower()
    return all(w in haystack for w in words)


def _lower(value: str | None) -> str:
    return value.lower() if value else ""
