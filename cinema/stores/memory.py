"""In-memory implementation of the EntityStore.

Used by tests and by callers that embed the workflow core without a database.
All reads and writes go through one lock, so the version check and the write
happen atomically with respect to other threads.
"""

from __future__ import annotations

from dataclasses import replace
from itertools import count
import logging
import threading

from cinema.domain.enums import ScreeningState
from cinema.domain.errors import ConflictError, NotFoundError
from cinema.domain.models import Program, Screening, User
from cinema.stores.interfaces import EntityStore

logger = logging.getLogger(__name__)


class InMemoryEntityStore(EntityStore):
    """Dict-backed store with optimistic version checks."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[int, User] = {}
        self._programs: dict[int, Program] = {}
        self._screenings: dict[int, Screening] = {}
        self._program_ids = count(1)
        self._screening_ids = count(1)

    # ---- Users ----------------------------------------------------------------------

    def get_user(self, user_id: int) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def add_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user
            return user

    # ---- Programs -------------------------------------------------------------------

    def get_program(self, program_id: int) -> Program | None:
        with self._lock:
            return self._programs.get(program_id)

    def list_programs(self) -> list[Program]:
        with self._lock:
            return [self._programs[k] for k in sorted(self._programs)]

    def program_name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        with self._lock:
            return any(p.name == name and p.id != exclude_id for p in self._programs.values())

    def add_program(self, program: Program) -> Program:
        with self._lock:
            stored = replace(program, id=next(self._program_ids), version=1)
            self._programs[stored.id] = stored
            return stored

    def save_program(self, program: Program, expected_version: int) -> Program:
        with self._lock:
            current = self._programs.get(program.id)
            self._check_version("Program", program.id, current, expected_version)
            stored = replace(program, version=expected_version + 1)
            self._programs[stored.id] = stored
            return stored

    def delete_program(self, program_id: int, expected_version: int) -> None:
        with self._lock:
            self._check_version("Program", program_id, self._programs.get(program_id), expected_version)
            del self._programs[program_id]
            orphans = [sid for sid, s in self._screenings.items() if s.program_id == program_id]
            for sid in orphans:
                del self._screenings[sid]
            if orphans:
                logger.debug("Deleted %d screenings with program %s", len(orphans), program_id)

    # ---- Screenings -----------------------------------------------------------------

    def get_screening(self, screening_id: int) -> Screening | None:
        with self._lock:
            return self._screenings.get(screening_id)

    def list_screenings(
        self,
        *,
        program_id: int | None = None,
        submitter_id: int | None = None,
        staff_member_id: int | None = None,
        state: ScreeningState | None = None,
    ) -> list[Screening]:
        with self._lock:
            rows = [self._screenings[k] for k in sorted(self._screenings)]
        if program_id is not None:
            rows = [s for s in rows if s.program_id == program_id]
        if submitter_id is not None:
            rows = [s for s in rows if s.submitter_id == submitter_id]
        if staff_member_id is not None:
            rows = [s for s in rows if s.staff_member_id == staff_member_id]
        if state is not None:
            rows = [s for s in rows if s.state is state]
        return rows

    def add_screening(self, screening: Screening) -> Screening:
        with self._lock:
            if screening.program_id not in self._programs:
                raise NotFoundError("Program", screening.program_id)
            stored = replace(screening, id=next(self._screening_ids), version=1)
            self._screenings[stored.id] = stored
            return stored

    def save_screening(self, screening: Screening, expected_version: int) -> Screening:
        with self._lock:
            current = self._screenings.get(screening.id)
            self._check_version("Screening", screening.id, current, expected_version)
            stored = replace(screening, version=expected_version + 1)
            self._screenings[stored.id] = stored
            return stored

    def delete_screening(self, screening_id: int, expected_version: int) -> None:
        with self._lock:
            self._check_version("Screening", screening_id, self._screenings.get(screening_id), expected_version)
            del self._screenings[screening_id]

    # ---- Helpers --------------------------------------------------------------------

    @staticmethod
    def _check_version(resource: str, entity_id, current, expected_version: int) -> None:
        if current is None:
            raise NotFoundError(resource, entity_id)
        if current.version != expected_version:
            logger.info(
                "Version conflict on %s %s: expected=%s stored=%s",
                resource,
                entity_id,
                expected_version,
                current.version,
            )
            raise ConflictError(resource, entity_id)
