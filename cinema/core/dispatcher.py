"""
Action dispatcher - the single entry point callers use.

For every action:

    load snapshot(s) -> evaluate permission -> apply state-machine operation
    -> persist with version check -> return fresh snapshot

Any failure raises a CinemaError before the store is written, so an entity is
never partially mutated. A concurrent writer that got there first makes the
persist step raise ConflictError; callers re-read and retry.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
import logging
from typing import Any

from cinema.core import program_machine, screening_machine
from cinema.core.policy import PermissionEvaluator
from cinema.core.roles import resolve
from cinema.core.validation import optional_text, require_date, require_text, validate_date_range
from cinema.domain.enums import Action, GlobalRole, ProgramPhase
from cinema.domain.errors import NotFoundError, UnauthenticatedError, ValidationError
from cinema.domain.models import Program, Screening, User
from cinema.security.context import Actor
from cinema.stores.interfaces import EntityStore

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cinema.audit")

Clock = Callable[[], datetime]
Snapshot = Program | Screening | None

PROGRAM_FIELDS = frozenset({"name", "description", "start_date", "end_date"})
SCREENING_FIELDS = frozenset({"title", "genre", "description"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionDispatcher:
    """
    Usage:
        dispatcher = ActionDispatcher(store)
        program = dispatcher.create_program(actor, "Spring Fest", "...", start, end)
        dispatcher.execute(actor, Action.CHANGE_PROGRAM_PHASE, {"program_id": program.id, "next_phase": "SUBMISSION"})
    """

    def __init__(
        self,
        store: EntityStore,
        evaluator: PermissionEvaluator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._evaluator = evaluator or PermissionEvaluator()
        self._clock = clock
        self._handlers: dict[Action, Callable[[Actor, dict[str, Any]], Snapshot]] = {
            Action.CREATE_PROGRAM: self._create_program,
            Action.UPDATE_PROGRAM: self._update_program,
            Action.DELETE_PROGRAM: self._delete_program,
            Action.CHANGE_PROGRAM_PHASE: self._change_program_phase,
            Action.ADD_PROGRAMMER: self._add_programmer,
            Action.ADD_STAFF: self._add_staff,
            Action.CREATE_SCREENING: self._create_screening,
            Action.UPDATE_SCREENING: self._update_screening,
            Action.SUBMIT_SCREENING: self._submit_screening,
            Action.WITHDRAW_SCREENING: self._withdraw_screening,
            Action.ASSIGN_HANDLER: self._assign_handler,
            Action.REVIEW_SCREENING: self._review_screening,
            Action.APPROVE_SCREENING: self._approve_screening,
            Action.FINAL_SUBMIT_SCREENING: self._final_submit_screening,
            Action.SCHEDULE_SCREENING: self._schedule_screening,
            Action.REJECT_SCREENING: self._reject_screening,
        }

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def evaluator(self) -> PermissionEvaluator:
        return self._evaluator

    # ---- Main entry point -----------------------------------------------------------

    def execute(self, actor: Actor | None, action: Action | str, payload: Mapping[str, Any] | None = None) -> Snapshot:
        try:
            action = Action(action)
        except ValueError:
            raise ValidationError("action", f"Unknown action: {action!r}") from None
        if actor is None or actor.global_role is GlobalRole.VISITOR:
            raise UnauthenticatedError("Authentication required")
        if not actor.active:
            raise UnauthenticatedError("Account is inactive")

        result = self._handlers[action](actor, dict(payload or {}))

        audit_logger.info(
            "audit action=%s actor=%s entity=%s state=%s",
            action.value,
            actor.user_id,
            _describe(result, payload),
            _state_of(result),
        )
        return result

    # ---- Typed operations -----------------------------------------------------------

    def create_program(self, actor: Actor | None, name: str, description: str, start_date: date, end_date: date) -> Program:
        return self.execute(
            actor,
            Action.CREATE_PROGRAM,
            {"name": name, "description": description, "start_date": start_date, "end_date": end_date},
        )

    def update_program(self, actor: Actor | None, program_id: int, fields: Mapping[str, Any]) -> Program:
        return self.execute(actor, Action.UPDATE_PROGRAM, {"program_id": program_id, "fields": dict(fields)})

    def delete_program(self, actor: Actor | None, program_id: int) -> None:
        self.execute(actor, Action.DELETE_PROGRAM, {"program_id": program_id})

    def change_program_phase(self, actor: Actor | None, program_id: int, next_phase: ProgramPhase | str) -> Program:
        return self.execute(actor, Action.CHANGE_PROGRAM_PHASE, {"program_id": program_id, "next_phase": next_phase})

    def add_programmer(self, actor: Actor | None, program_id: int, user_id: int) -> Program:
        return self.execute(actor, Action.ADD_PROGRAMMER, {"program_id": program_id, "user_id": user_id})

    def add_staff(self, actor: Actor | None, program_id: int, user_id: int) -> Program:
        return self.execute(actor, Action.ADD_STAFF, {"program_id": program_id, "user_id": user_id})

    def create_screening(
        self,
        actor: Actor | None,
        program_id: int,
        title: str,
        genre: str | None = None,
        description: str | None = None,
    ) -> Screening:
        return self.execute(
            actor,
            Action.CREATE_SCREENING,
            {"program_id": program_id, "title": title, "genre": genre, "description": description},
        )

    def update_screening(self, actor: Actor | None, screening_id: int, fields: Mapping[str, Any]) -> Screening:
        return self.execute(actor, Action.UPDATE_SCREENING, {"screening_id": screening_id, "fields": dict(fields)})

    def submit_screening(self, actor: Actor | None, screening_id: int) -> Screening:
        return self.execute(actor, Action.SUBMIT_SCREENING, {"screening_id": screening_id})

    def withdraw_screening(self, actor: Actor | None, screening_id: int) -> None:
        self.execute(actor, Action.WITHDRAW_SCREENING, {"screening_id": screening_id})

    def assign_handler(self, actor: Actor | None, screening_id: int, staff_id: int) -> Screening:
        return self.execute(actor, Action.ASSIGN_HANDLER, {"screening_id": screening_id, "staff_id": staff_id})

    def review_screening(self, actor: Actor | None, screening_id: int, score: int, comments: str | None = None) -> Screening:
        return self.execute(
            actor,
            Action.REVIEW_SCREENING,
            {"screening_id": screening_id, "score": score, "comments": comments},
        )

    def approve_screening(self, actor: Actor | None, screening_id: int) -> Screening:
        return self.execute(actor, Action.APPROVE_SCREENING, {"screening_id": screening_id})

    def final_submit_screening(self, actor: Actor | None, screening_id: int) -> Screening:
        return self.execute(actor, Action.FINAL_SUBMIT_SCREENING, {"screening_id": screening_id})

    def schedule_screening(self, actor: Actor | None, screening_id: int, scheduled_date: date | str, room: str) -> Screening:
        return self.execute(
            actor,
            Action.SCHEDULE_SCREENING,
            {"screening_id": screening_id, "date": scheduled_date, "room": room},
        )

    def reject_screening(self, actor: Actor | None, screening_id: int, reason: str) -> Screening:
        return self.execute(actor, Action.REJECT_SCREENING, {"screening_id": screening_id, "reason": reason})

    # ---- Program handlers -----------------------------------------------------------

    def _create_program(self, actor: Actor, payload: dict[str, Any]) -> Program:
        self._evaluator.can_perform(actor, Action.CREATE_PROGRAM).raise_if_denied()

        name = require_text("name", payload.get("name"), "Program name")
        description = require_text("description", payload.get("description"), "Program description")
        start = require_date("start_date", _as_date("start_date", payload.get("start_date")), "Start date")
        end = require_date("end_date", _as_date("end_date", payload.get("end_date")), "End date")
        validate_date_range(start, end)

        if self._store.program_name_exists(name):
            raise ValidationError("name", "Program name already exists")

        program = Program(
            id=None,
            name=name,
            description=description,
            start_date=start,
            end_date=end,
            creator_id=actor.user_id,
            programmer_ids=frozenset({actor.user_id}),
            created_at=self._clock(),
        )
        return self._store.add_program(program)

    def _update_program(self, actor: Actor, payload: dict[str, Any]) -> Program:
        program = self._load_program(payload)
        self._evaluator.can_perform(actor, Action.UPDATE_PROGRAM, program).raise_if_denied()

        fields = _fields(payload, PROGRAM_FIELDS)
        name = require_text("name", fields.get("name", program.name), "Program name")
        description = require_text("description", fields.get("description", program.description), "Program description")
        start = require_date(
            "start_date", _as_date("start_date", fields.get("start_date", program.start_date)), "Start date"
        )
        end = require_date("end_date", _as_date("end_date", fields.get("end_date", program.end_date)), "End date")
        validate_date_range(start, end)

        if name != program.name and self._store.program_name_exists(name, exclude_id=program.id):
            raise ValidationError("name", "Program name already exists")

        updated = program.evolve(name=name, description=description, start_date=start, end_date=end)
        return self._store.save_program(updated, program.version)

    def _delete_program(self, actor: Actor, payload: dict[str, Any]) -> None:
        program = self._load_program(payload)
        self._evaluator.can_perform(actor, Action.DELETE_PROGRAM, program).raise_if_denied()
        self._store.delete_program(program.id, program.version)
        return None

    def _change_program_phase(self, actor: Actor, payload: dict[str, Any]) -> Program:
        program = self._load_program(payload)
        next_phase = _as_phase(payload.get("next_phase"))
        self._evaluator.can_perform(
            actor, Action.CHANGE_PROGRAM_PHASE, program, target_phase=next_phase
        ).raise_if_denied()

        roles = resolve(actor.user_id, program)
        advanced = program_machine.advance(program, next_phase, roles)
        saved = self._store.save_program(advanced, program.version)
        logger.info("Program %s moved to %s by user %s", saved.id, saved.phase.value, actor.user_id)
        return saved

    def _add_programmer(self, actor: Actor, payload: dict[str, Any]) -> Program:
        program = self._load_program(payload)
        self._evaluator.can_perform(actor, Action.ADD_PROGRAMMER, program).raise_if_denied()

        member = self._load_member(payload)
        if member.id in program.effective_programmer_ids:
            raise ValidationError("user_id", "User is already a PROGRAMMER of this program")
        if member.id in program.staff_ids:
            raise ValidationError("user_id", "User is STAFF in this program; cannot also be PROGRAMMER")

        updated = program.evolve(programmer_ids=program.programmer_ids | {member.id})
        return self._store.save_program(updated, program.version)

    def _add_staff(self, actor: Actor, payload: dict[str, Any]) -> Program:
        program = self._load_program(payload)
        self._evaluator.can_perform(actor, Action.ADD_STAFF, program).raise_if_denied()

        member = self._load_member(payload)
        if member.id in program.effective_programmer_ids:
            raise ValidationError("user_id", "User is a PROGRAMMER of this program; cannot also be STAFF")
        if member.id in program.staff_ids:
            raise ValidationError("user_id", "User is already STAFF of this program")

        updated = program.evolve(staff_ids=program.staff_ids | {member.id})
        return self._store.save_program(updated, program.version)

    # ---- Screening handlers ---------------------------------------------------------

    def _create_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        program = self._load_program(payload)
        self._evaluator.can_perform(actor, Action.CREATE_SCREENING, program).raise_if_denied()

        screening = Screening(
            id=None,
            program_id=program.id,
            submitter_id=actor.user_id,
            title=require_text("title", payload.get("title"), "Title"),
            genre=optional_text(payload.get("genre")),
            description=optional_text(payload.get("description")),
            created_time=self._clock(),
        )
        return self._store.add_screening(screening)

    def _update_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.UPDATE_SCREENING, payload)
        fields = _fields(payload, SCREENING_FIELDS)
        updated = screening_machine.update_draft(
            screening,
            program,
            resolve(actor.user_id, program, screening),
            **fields,
        )
        return self._store.save_screening(updated, screening.version)

    def _submit_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.SUBMIT_SCREENING, payload)
        updated = screening_machine.submit(
            screening, program, resolve(actor.user_id, program, screening), now=self._clock()
        )
        return self._store.save_screening(updated, screening.version)

    def _withdraw_screening(self, actor: Actor, payload: dict[str, Any]) -> None:
        screening, program = self._authorize_screening(actor, Action.WITHDRAW_SCREENING, payload)
        screening_machine.withdraw(screening, program, resolve(actor.user_id, program, screening))
        self._store.delete_screening(screening.id, screening.version)
        return None

    def _assign_handler(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.ASSIGN_HANDLER, payload)
        staff_id = _as_id("staff_id", payload.get("staff_id"))
        updated = screening_machine.assign_handler(
            screening, program, resolve(actor.user_id, program, screening), staff_id=staff_id
        )
        return self._store.save_screening(updated, screening.version)

    def _review_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.REVIEW_SCREENING, payload)
        updated = screening_machine.review(
            screening,
            program,
            resolve(actor.user_id, program, screening),
            score=payload.get("score"),
            comments=payload.get("comments"),
            now=self._clock(),
        )
        return self._store.save_screening(updated, screening.version)

    def _approve_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.APPROVE_SCREENING, payload)
        updated = screening_machine.approve(screening, program, resolve(actor.user_id, program, screening))
        return self._store.save_screening(updated, screening.version)

    def _final_submit_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.FINAL_SUBMIT_SCREENING, payload)
        updated = screening_machine.final_submit(
            screening, program, resolve(actor.user_id, program, screening), now=self._clock()
        )
        return self._store.save_screening(updated, screening.version)

    def _schedule_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.SCHEDULE_SCREENING, payload)
        updated = screening_machine.schedule(
            screening,
            program,
            resolve(actor.user_id, program, screening),
            scheduled_date=_as_date("date", payload.get("date")),
            room=payload.get("room"),
        )
        return self._store.save_screening(updated, screening.version)

    def _reject_screening(self, actor: Actor, payload: dict[str, Any]) -> Screening:
        screening, program = self._authorize_screening(actor, Action.REJECT_SCREENING, payload)
        updated = screening_machine.reject(
            screening, program, resolve(actor.user_id, program, screening), reason=payload.get("reason")
        )
        return self._store.save_screening(updated, screening.version)

    # ---- Loading --------------------------------------------------------------------

    def _load_program(self, payload: Mapping[str, Any]) -> Program:
        program_id = _as_id("program_id", payload.get("program_id"))
        program = self._store.get_program(program_id)
        if program is None:
            raise NotFoundError("Program", program_id)
        return program

    def _load_screening(self, payload: Mapping[str, Any]) -> tuple[Screening, Program]:
        screening_id = _as_id("screening_id", payload.get("screening_id"))
        screening = self._store.get_screening(screening_id)
        if screening is None:
            raise NotFoundError("Screening", screening_id)
        program = self._store.get_program(screening.program_id)
        if program is None:
            raise NotFoundError("Program", screening.program_id)
        return screening, program

    def _authorize_screening(
        self, actor: Actor, action: Action, payload: Mapping[str, Any]
    ) -> tuple[Screening, Program]:
        screening, program = self._load_screening(payload)
        self._evaluator.can_perform(actor, action, program, screening).raise_if_denied()
        return screening, program

    def _load_member(self, payload: Mapping[str, Any]) -> User:
        user_id = _as_id("user_id", payload.get("user_id"))
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not user.active:
            raise ValidationError("user_id", "User account is inactive")
        if user.global_role is not GlobalRole.USER:
            raise ValidationError("user_id", "Only regular user accounts can hold program roles")
        return user


# ---- Payload helpers -----------------------------------------------------------------


def _as_id(field: str, value: Any) -> int:
    if value is None:
        raise ValidationError(field, f"{field} is required")
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(field, f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be an integer") from None


def _as_date(field: str, value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(field, f"{field} must be an ISO date (YYYY-MM-DD)") from None


def _as_phase(value: Any) -> ProgramPhase:
    if value is None:
        raise ValidationError("next_phase", "next_phase is required")
    try:
        return ProgramPhase(str(getattr(value, "value", value)).strip().upper())
    except ValueError:
        raise ValidationError("next_phase", f"Unknown program phase: {value!r}") from None


def _fields(payload: Mapping[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    fields = dict(payload.get("fields") or {})
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(sorted(unknown)[0], f"Field cannot be updated: {sorted(unknown)}")
    return fields


def _describe(result: Snapshot, payload: Mapping[str, Any] | None) -> str:
    if isinstance(result, Program):
        return f"program:{result.id}"
    if isinstance(result, Screening):
        return f"screening:{result.id}"
    payload = payload or {}
    if "screening_id" in payload:
        return f"screening:{payload['screening_id']}"
    return f"program:{payload.get('program_id')}"


def _state_of(result: Snapshot) -> str:
    if isinstance(result, Program):
        return result.phase.value
    if isinstance(result, Screening):
        return result.state.value
    return "DELETED"
