"""SQLAlchemy ORM implementation of the EntityStore.

Rows are converted to domain snapshots on the way out. Writes check the
``version`` column explicitly and rely on the mapper's ``version_id_col``
for the race between that check and the UPDATE: a StaleDataError from the
flush is reported as ConflictError after rolling the session back.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from cinema.domain.enums import GlobalRole, ProgramPhase, ScreeningState
from cinema.domain.errors import ConflictError, NotFoundError, ValidationError
from cinema.domain.models import Program, Screening, User
from cinema.models import cinema as orm
from cinema.models.security import User as UserRow
from cinema.stores.interfaces import EntityStore

logger = logging.getLogger(__name__)


class SqlAlchemyEntityStore(EntityStore):
    """Relational store; one instance per Session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # ---- Users ----------------------------------------------------------------------

    def get_user(self, user_id: int) -> User | None:
        row = self._db.get(UserRow, user_id)
        return _user(row) if row is not None else None

    def add_user(self, user: User) -> User:
        row = UserRow(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            global_role=user.global_role.value,
            is_active=user.active,
        )
        self._db.add(row)
        self._commit()
        return _user(row)

    # ---- Programs -------------------------------------------------------------------

    def get_program(self, program_id: int) -> Program | None:
        row = self._load_program_row(program_id)
        return _program(row) if row is not None else None

    def list_programs(self) -> list[Program]:
        stmt = (
            select(orm.Program)
            .options(selectinload(orm.Program.programmers), selectinload(orm.Program.staff))
            .order_by(orm.Program.id)
        )
        return [_program(row) for row in self._db.scalars(stmt).all()]

    def program_name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        stmt = select(orm.Program.id).where(orm.Program.name == name)
        if exclude_id is not None:
            stmt = stmt.where(orm.Program.id != exclude_id)
        return self._db.execute(stmt.limit(1)).first() is not None

    def add_program(self, program: Program) -> Program:
        row = orm.Program(
            name=program.name,
            description=program.description,
            start_date=program.start_date,
            end_date=program.end_date,
            phase=program.phase.value,
            creator_id=program.creator_id,
            created_at=program.created_at,
            version=1,
        )
        self._apply_members(row, program)
        self._db.add(row)
        self._commit()
        return _program(row)

    def save_program(self, program: Program, expected_version: int) -> Program:
        row = self._locked_row(orm.Program, "Program", program.id, expected_version)
        self._apply_members(row, program)
        row.name = program.name
        row.description = program.description
        row.start_date = program.start_date
        row.end_date = program.end_date
        row.phase = program.phase.value
        row.version = expected_version + 1
        self._commit(resource="Program", entity_id=program.id)
        return _program(row)

    def delete_program(self, program_id: int, expected_version: int) -> None:
        row = self._locked_row(orm.Program, "Program", program_id, expected_version)
        self._db.delete(row)
        self._commit(resource="Program", entity_id=program_id)

    # ---- Screenings -----------------------------------------------------------------

    def get_screening(self, screening_id: int) -> Screening | None:
        row = self._db.get(orm.Screening, screening_id, populate_existing=True)
        return _screening(row) if row is not None else None

    def list_screenings(
        self,
        *,
        program_id: int | None = None,
        submitter_id: int | None = None,
        staff_member_id: int | None = None,
        state: ScreeningState | None = None,
    ) -> list[Screening]:
        stmt = select(orm.Screening).order_by(orm.Screening.id)
        if program_id is not None:
            stmt = stmt.where(orm.Screening.program_id == program_id)
        if submitter_id is not None:
            stmt = stmt.where(orm.Screening.submitter_id == submitter_id)
        if staff_member_id is not None:
            stmt = stmt.where(orm.Screening.staff_member_id == staff_member_id)
        if state is not None:
            stmt = stmt.where(orm.Screening.state == state.value)
        return [_screening(row) for row in self._db.scalars(stmt).all()]

    def add_screening(self, screening: Screening) -> Screening:
        if self._db.get(orm.Program, screening.program_id) is None:
            raise NotFoundError("Program", screening.program_id)
        row = orm.Screening(program_id=screening.program_id, submitter_id=screening.submitter_id, version=1)
        _copy_screening(row, screening)
        self._db.add(row)
        self._commit()
        return _screening(row)

    def save_screening(self, screening: Screening, expected_version: int) -> Screening:
        row = self._locked_row(orm.Screening, "Screening", screening.id, expected_version)
        if row.program_id != screening.program_id:
            raise ValidationError("program_id", "A screening cannot move to another program")
        _copy_screening(row, screening)
        row.version = expected_version + 1
        self._commit(resource="Screening", entity_id=screening.id)
        return _screening(row)

    def delete_screening(self, screening_id: int, expected_version: int) -> None:
        row = self._locked_row(orm.Screening, "Screening", screening_id, expected_version)
        self._db.delete(row)
        self._commit(resource="Screening", entity_id=screening_id)

    # ---- Helpers --------------------------------------------------------------------

    def _load_program_row(self, program_id: int) -> orm.Program | None:
        return self._db.execute(
            select(orm.Program)
            .where(orm.Program.id == program_id)
            .options(selectinload(orm.Program.programmers), selectinload(orm.Program.staff))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _locked_row(self, model, resource: str, entity_id: int, expected_version: int):
        row = self._db.get(model, entity_id, populate_existing=True)
        if row is None:
            raise NotFoundError(resource, entity_id)
        if row.version != expected_version:
            logger.info(
                "Version conflict on %s %s: expected=%s stored=%s",
                resource,
                entity_id,
                expected_version,
                row.version,
            )
            raise ConflictError(resource, entity_id)
        return row

    def _apply_members(self, row: orm.Program, program: Program) -> None:
        wanted_programmers = set(program.effective_programmer_ids)
        wanted_staff = set(program.staff_ids)
        users = {
            u.id: u
            for u in self._db.scalars(select(UserRow).where(UserRow.id.in_(wanted_programmers | wanted_staff))).all()
        }
        missing = (wanted_programmers | wanted_staff) - users.keys()
        if missing:
            raise NotFoundError("User", sorted(missing)[0])
        row.programmers = [users[uid] for uid in sorted(wanted_programmers)]
        row.staff = [users[uid] for uid in sorted(wanted_staff)]

    def _commit(self, resource: str | None = None, entity_id: int | None = None) -> None:
        try:
            self._db.commit()
        except StaleDataError as exc:
            self._db.rollback()
            raise ConflictError(resource or "Entity", entity_id or 0) from exc
        except IntegrityError as exc:
            self._db.rollback()
            raise ValidationError("request", "Write violates a uniqueness or reference constraint") from exc


# ---- Row -> snapshot -----------------------------------------------------------------


def _user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        display_name=row.display_name,
        global_role=GlobalRole.parse(row.global_role),
        active=row.is_active,
    )


def _program(row: orm.Program) -> Program:
    return Program(
        id=row.id,
        name=row.name,
        description=row.description,
        start_date=row.start_date,
        end_date=row.end_date,
        creator_id=row.creator_id,
        phase=ProgramPhase(row.phase),
        programmer_ids=frozenset(u.id for u in row.programmers),
        staff_ids=frozenset(u.id for u in row.staff),
        created_at=row.created_at,
        version=row.version,
    )


def _screening(row: orm.Screening) -> Screening:
    return Screening(
        id=row.id,
        program_id=row.program_id,
        submitter_id=row.submitter_id,
        title=row.title,
        genre=row.genre,
        description=row.description,
        state=ScreeningState(row.state),
        staff_member_id=row.staff_member_id,
        score=row.score,
        comments=row.comments,
        room=row.room,
        scheduled_time=row.scheduled_time,
        rejection_reason=row.rejection_reason,
        created_time=row.created_time,
        submitted_time=row.submitted_time,
        reviewed_time=row.reviewed_time,
        final_submitted_time=row.final_submitted_time,
        version=row.version,
    )


def _copy_screening(row: orm.Screening, screening: Screening) -> None:
    row.title = screening.title
    row.genre = screening.genre
    row.description = screening.description
    row.state = screening.state.value
    row.staff_member_id = screening.staff_member_id
    row.score = screening.score
    row.comments = screening.comments
    row.room = screening.room
    row.scheduled_time = screening.scheduled_time
    row.rejection_reason = screening.rejection_reason
    row.created_time = screening.created_time
    row.submitted_time = screening.submitted_time
    row.reviewed_time = screening.reviewed_time
    row.final_submitted_time = screening.final_submitted_time
