"""Entity store interface (repository pattern).

Stores must be swappable and return domain snapshots. Every write is a
compare-and-swap on the entity ``version``: when the stored version differs
from ``expected_version`` the store raises ConflictError and writes nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from cinema.domain.enums import ScreeningState
from cinema.domain.models import Program, Screening, User


class EntityStore(ABC):
    """Interface for user, program and screening persistence."""

    # ---- Users ----------------------------------------------------------------------

    @abstractmethod
    def get_user(self, user_id: int) -> User | None:
        """Return a user by ID, or None if not found."""
        ...

    @abstractmethod
    def add_user(self, user: User) -> User:
        """Insert a user and return it."""
        ...

    # ---- Programs -------------------------------------------------------------------

    @abstractmethod
    def get_program(self, program_id: int) -> Program | None:
        """Return a program by ID, or None if not found."""
        ...

    @abstractmethod
    def list_programs(self) -> list[Program]:
        """Return all programs ordered by ID."""
        ...

    @abstractmethod
    def program_name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        """Check if another program already uses ``name``."""
        ...

    @abstractmethod
    def add_program(self, program: Program) -> Program:
        """Insert a new program; returns it with its ID and version 1."""
        ...

    @abstractmethod
    def save_program(self, program: Program, expected_version: int) -> Program:
        """Replace a program if its stored version matches; returns it with version + 1."""
        ...

    @abstractmethod
    def delete_program(self, program_id: int, expected_version: int) -> None:
        """Delete a program and its screenings if the stored version matches."""
        ...

    # ---- Screenings -----------------------------------------------------------------

    @abstractmethod
    def get_screening(self, screening_id: int) -> Screening | None:
        """Return a screening by ID, or None if not found."""
        ...

    @abstractmethod
    def list_screenings(
        self,
        *,
        program_id: int | None = None,
        submitter_id: int | None = None,
        staff_member_id: int | None = None,
        state: ScreeningState | None = None,
    ) -> list[Screening]:
        """Return screenings matching every supplied filter, ordered by ID."""
        ...

    @abstractmethod
    def add_screening(self, screening: Screening) -> Screening:
        """Insert a new screening; returns it with its ID and version 1."""
        ...

    @abstractmethod
    def save_screening(self, screening: Screening, expected_version: int) -> Screening:
        """Replace a screening if its stored version matches; returns it with version + 1."""
        ...

    @abstractmethod
    def delete_screening(self, screening_id: int, expected_version: int) -> None:
        """Delete a screening if the stored version matches."""
        ...

    def has_submission(self, program_id: int, submitter_id: int) -> bool:
        """Check if ``submitter_id`` has any screening in the program."""
        return bool(self.list_screenings(program_id=program_id, submitter_id=submitter_id))
