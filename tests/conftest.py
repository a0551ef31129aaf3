"""
Pytest fixtures for the test suite.

Workflow tests run against the in-memory store with a fixed clock. Data-layer
tests use an in-memory SQLite engine and a session that rolls back after each
test, so tests do not affect each other.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from cinema.core import program_machine
from cinema.core.dispatcher import ActionDispatcher
from cinema.core.policy import PermissionEvaluator
from cinema.core.visibility import VisibilityService
from cinema.domain.enums import GlobalRole, ProgramPhase, ScreeningState
from cinema.domain.models import Program, Screening, User
from cinema.security.config import WorkflowPolicy
from cinema.security.context import Actor
from cinema.stores.memory import InMemoryEntityStore


TEST_DB_URL = "sqlite:///:memory:"
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

ADMIN_ID = 1
ALICE_ID = 2  # programmer / creator
BOB_ID = 3  # staff
CAROL_ID = 4  # submitter
DAVE_ID = 5  # inactive
ERIN_ID = 6  # unrelated user
VERA_ID = 7  # visitor account

SEED_USERS = [
    User(id=ADMIN_ID, username="admin", display_name="Admin", global_role=GlobalRole.ADMIN),
    User(id=ALICE_ID, username="alice", display_name="Alice"),
    User(id=BOB_ID, username="bob", display_name="Bob"),
    User(id=CAROL_ID, username="carol", display_name="Carol"),
    User(id=DAVE_ID, username="dave", display_name="Dave", active=False),
    User(id=ERIN_ID, username="erin", display_name="Erin"),
    User(id=VERA_ID, username="vera", display_name="Vera", global_role=GlobalRole.VISITOR),
]


# ---- Database ------------------------------------------------------------------------


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from cinema.db.base import Base
    from cinema.models import cinema as _cinema  # noqa: F401
    from cinema.models import security as _security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Store writes call `commit()`; with `create_savepoint` those only release a
    SAVEPOINT, and the outer transaction is still rolled back at the end.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def sql_store(db_session):
    """SqlAlchemyEntityStore over the rolled-back session, with the seed users."""
    from cinema.stores.sqlalchemy_store import SqlAlchemyEntityStore

    s = SqlAlchemyEntityStore(db_session)
    for user in SEED_USERS:
        s.add_user(user)
    return s


# ---- Workflow core -------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryEntityStore:
    s = InMemoryEntityStore()
    for user in SEED_USERS:
        s.add_user(user)
    return s


@pytest.fixture
def policy() -> WorkflowPolicy:
    return WorkflowPolicy()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def dispatcher(store, policy) -> ActionDispatcher:
    return ActionDispatcher(store, PermissionEvaluator(policy), clock=lambda: FIXED_NOW)


@pytest.fixture
def visibility(store, policy) -> VisibilityService:
    return VisibilityService(store, policy)


def actor_for(user_id: int) -> Actor:
    user = next(u for u in SEED_USERS if u.id == user_id)
    return Actor(user_id=user.id, global_role=user.global_role, active=user.active)


@pytest.fixture
def admin() -> Actor:
    return actor_for(ADMIN_ID)


@pytest.fixture
def alice() -> Actor:
    return actor_for(ALICE_ID)


@pytest.fixture
def bob() -> Actor:
    return actor_for(BOB_ID)


@pytest.fixture
def carol() -> Actor:
    return actor_for(CAROL_ID)


@pytest.fixture
def erin() -> Actor:
    return actor_for(ERIN_ID)


@pytest.fixture
def dave() -> Actor:
    return actor_for(DAVE_ID)


@pytest.fixture
def vera() -> Actor:
    return actor_for(VERA_ID)


class Scenario:
    """
    Drives programs and screenings to a requested phase/state through the
    dispatcher, so tests start from states reached the legal way.

    alice programs, bob is staff, carol submits.
    """

    def __init__(self, dispatcher: ActionDispatcher, programmer: Actor, staff: Actor, submitter: Actor) -> None:
        self.d = dispatcher
        self.programmer = programmer
        self.staff = staff
        self.submitter = submitter
        self._names = count(1)

    def program(self, phase: ProgramPhase = ProgramPhase.CREATED, name: str | None = None) -> Program:
        program = self.d.create_program(
            self.programmer,
            name or f"Festival {next(self._names)}",
            "Independent films",
            date(2026, 5, 1),
            date(2026, 5, 31),
        )
        program = self.d.add_staff(self.programmer, program.id, self.staff.user_id)
        return self.advance(program, phase)

    def advance(self, program: Program, phase: ProgramPhase) -> Program:
        while program.phase is not phase:
            program = self.d.change_program_phase(
                self.programmer, program.id, program_machine.successor(program.phase)
            )
        return program

    def screening(
        self, state: ScreeningState = ScreeningState.CREATED, title: str = "Night Train"
    ) -> tuple[Program, Screening]:
        d, sub = self.d, self.submitter
        program = self.program(ProgramPhase.SUBMISSION)
        s = d.create_screening(sub, program.id, title, "Drama", "A long night")
        if state is ScreeningState.CREATED:
            return program, s

        s = d.submit_screening(sub, s.id)
        if state is ScreeningState.SUBMITTED:
            return program, s

        program = self.advance(program, ProgramPhase.ASSIGNMENT)
        s = d.assign_handler(self.programmer, s.id, self.staff.user_id)
        program = self.advance(program, ProgramPhase.REVIEW)
        s = d.review_screening(self.staff, s.id, 8, "Strong entry")
        if state is ScreeningState.REVIEWED:
            return program, s

        program = self.advance(program, ProgramPhase.SCHEDULING)
        s = d.approve_screening(sub, s.id)
        if state is ScreeningState.APPROVED:
            return program, s

        program = self.advance(program, ProgramPhase.FINAL_PUBLICATION)
        s = d.final_submit_screening(sub, s.id)
        if state is ScreeningState.FINAL_SUBMITTED:
            return program, s

        program = self.advance(program, ProgramPhase.DECISION)
        s = d.schedule_screening(self.programmer, s.id, date(2026, 5, 10), "Hall 1")
        if state is ScreeningState.SCHEDULED:
            return program, s

        raise ValueError(f"Scenario cannot build a {state.value} screening")


@pytest.fixture
def scenario(dispatcher, alice, bob, carol) -> Scenario:
    return Scenario(dispatcher, alice, bob, carol)


@pytest.fixture
def sql_scenario(sql_store, alice, bob, carol) -> Scenario:
    return Scenario(ActionDispatcher(sql_store, clock=lambda: FIXED_NOW), alice, bob, carol)
