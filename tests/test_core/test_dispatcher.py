"""
Tests for the action dispatcher: end-to-end flow, membership rules and
optimistic concurrency. All run against the in-memory store.
"""
from __future__ import annotations

import logging
import threading
from datetime import date

import pytest

from cinema.core.dispatcher import ActionDispatcher
from cinema.domain.enums import Action, ProgramPhase, ScreeningState
from cinema.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)


def test_full_workflow_end_to_end(dispatcher, store, alice, bob, carol, now):
    d = dispatcher

    # Arrange: program with bob as staff, open for submissions
    program = d.create_program(alice, "Spring Fest", "Shorts", date(2026, 4, 1), date(2026, 4, 30))
    program = d.add_staff(alice, program.id, bob.user_id)
    program = d.change_program_phase(alice, program.id, ProgramPhase.SUBMISSION)

    # Act: walk the screening through every state
    s = d.create_screening(carol, program.id, "Night Train", "Drama", "A long night")
    s = d.submit_screening(carol, s.id)
    program = d.change_program_phase(alice, program.id, "ASSIGNMENT")
    s = d.assign_handler(alice, s.id, bob.user_id)
    program = d.change_program_phase(alice, program.id, "REVIEW")
    s = d.review_screening(bob, s.id, 8, "Great pacing")
    program = d.change_program_phase(alice, program.id, "SCHEDULING")
    s = d.approve_screening(carol, s.id)
    program = d.change_program_phase(alice, program.id, "FINAL_PUBLICATION")
    s = d.final_submit_screening(carol, s.id)
    program = d.change_program_phase(alice, program.id, "DECISION")
    s = d.schedule_screening(alice, s.id, "2026-04-12", "Hall 1")
    program = d.change_program_phase(alice, program.id, "ANNOUNCED")

    # Assert
    stored = store.get_screening(s.id)
    assert stored.state is ScreeningState.SCHEDULED
    assert stored.staff_member_id == bob.user_id
    assert stored.score == 8
    assert stored.scheduled_time == date(2026, 4, 12)
    assert stored.room == "Hall 1"
    assert stored.submitted_time == now
    assert stored.reviewed_time == now
    assert stored.final_submitted_time == now
    assert store.get_program(program.id).phase is ProgramPhase.ANNOUNCED


def test_create_program_makes_creator_a_programmer(dispatcher, alice, now):
    program = dispatcher.create_program(alice, "Noir Week", "Dark films", date(2026, 6, 1), date(2026, 6, 7))

    assert program.id is not None
    assert program.creator_id == alice.user_id
    assert alice.user_id in program.effective_programmer_ids
    assert program.phase is ProgramPhase.CREATED
    assert program.version == 1
    assert program.created_at == now


@pytest.mark.parametrize(
    "name, description, start, end, field",
    [
        ("", "d", date(2026, 1, 1), date(2026, 1, 2), "name"),
        ("X", None, date(2026, 1, 1), date(2026, 1, 2), "description"),
        ("X", "d", None, date(2026, 1, 2), "start_date"),
        ("X", "d", date(2026, 1, 3), date(2026, 1, 2), "dates"),
        ("X", "d", "not-a-date", date(2026, 1, 2), "start_date"),
    ],
)
def test_create_program_validates_fields(dispatcher, alice, name, description, start, end, field):
    with pytest.raises(ValidationError) as exc_info:
        dispatcher.create_program(alice, name, description, start, end)

    assert exc_info.value.field == field


def test_program_names_are_unique(dispatcher, alice, erin):
    dispatcher.create_program(alice, "Same", "d", date(2026, 1, 1), date(2026, 1, 2))

    with pytest.raises(ValidationError, match="already exists"):
        dispatcher.create_program(erin, "Same", "d", date(2026, 1, 1), date(2026, 1, 2))


def test_update_program_changes_only_given_fields(dispatcher, scenario, alice):
    program = scenario.program()

    updated = dispatcher.update_program(alice, program.id, {"description": "Revised"})

    assert updated.description == "Revised"
    assert updated.name == program.name
    assert updated.version == program.version + 1


def test_update_program_rejects_unknown_fields(dispatcher, scenario, alice):
    program = scenario.program()

    with pytest.raises(ValidationError) as exc_info:
        dispatcher.update_program(alice, program.id, {"phase": "ANNOUNCED"})

    assert exc_info.value.field == "phase"


def test_announced_program_cannot_be_updated(dispatcher, scenario, alice):
    program = scenario.program(ProgramPhase.ANNOUNCED)

    with pytest.raises(InvalidTransitionError):
        dispatcher.update_program(alice, program.id, {"description": "Late change"})


def test_delete_only_while_created(dispatcher, store, scenario, alice):
    created = scenario.program()
    dispatcher.delete_program(alice, created.id)
    assert store.get_program(created.id) is None

    program, screening = scenario.screening(ScreeningState.CREATED)
    with pytest.raises(InvalidTransitionError, match="only CREATED"):
        dispatcher.delete_program(alice, program.id)
    assert store.get_screening(screening.id) is not None


def test_program_delete_removes_its_screenings(store, scenario):
    program, screening = scenario.screening(ScreeningState.CREATED)

    store.delete_program(program.id, store.get_program(program.id).version)

    assert store.get_screening(screening.id) is None


def test_phase_must_advance_one_step(dispatcher, scenario, alice):
    program = scenario.program()

    with pytest.raises(InvalidTransitionError):
        dispatcher.change_program_phase(alice, program.id, ProgramPhase.REVIEW)
    with pytest.raises(ValidationError):
        dispatcher.change_program_phase(alice, program.id, "INTERMISSION")


def test_add_programmer_rules(dispatcher, scenario, alice, bob, erin, admin, dave):
    program = scenario.program()

    program = dispatcher.add_programmer(alice, program.id, erin.user_id)
    assert erin.user_id in program.programmer_ids

    with pytest.raises(ValidationError, match="already a PROGRAMMER"):
        dispatcher.add_programmer(alice, program.id, erin.user_id)
    with pytest.raises(ValidationError, match="cannot also be PROGRAMMER"):
        dispatcher.add_programmer(alice, program.id, bob.user_id)
    with pytest.raises(ValidationError, match="inactive"):
        dispatcher.add_programmer(alice, program.id, dave.user_id)
    with pytest.raises(ValidationError, match="regular user"):
        dispatcher.add_programmer(alice, program.id, admin.user_id)
    with pytest.raises(NotFoundError):
        dispatcher.add_programmer(alice, program.id, 999)


def test_new_programmer_gains_program_rights(dispatcher, scenario, alice, erin):
    program = scenario.program()
    dispatcher.add_programmer(alice, program.id, erin.user_id)

    advanced = dispatcher.change_program_phase(erin, program.id, ProgramPhase.SUBMISSION)

    assert advanced.phase is ProgramPhase.SUBMISSION


def test_add_staff_rules(dispatcher, scenario, alice, bob, erin):
    program = scenario.program(ProgramPhase.SUBMISSION)

    with pytest.raises(ValidationError, match="already STAFF"):
        dispatcher.add_staff(alice, program.id, bob.user_id)
    with pytest.raises(ValidationError, match="cannot also be STAFF"):
        dispatcher.add_staff(alice, program.id, alice.user_id)
    with pytest.raises(ForbiddenError):
        dispatcher.add_staff(bob, program.id, erin.user_id)

    program = scenario.advance(program, ProgramPhase.ASSIGNMENT)
    with pytest.raises(InvalidTransitionError, match="frozen"):
        dispatcher.add_staff(alice, program.id, erin.user_id)


def test_creator_cannot_submit_to_own_program_but_can_elsewhere(dispatcher, scenario, alice, erin):
    own = scenario.program(ProgramPhase.SUBMISSION)
    elsewhere = dispatcher.create_program(erin, "Erin's Fest", "d", date(2026, 8, 1), date(2026, 8, 2))
    elsewhere = dispatcher.change_program_phase(erin, elsewhere.id, ProgramPhase.SUBMISSION)

    with pytest.raises(ForbiddenError):
        dispatcher.create_screening(alice, own.id, "My Own Film")
    screening = dispatcher.create_screening(alice, elsewhere.id, "Guest Film")

    assert screening.submitter_id == alice.user_id


def test_create_screening_in_missing_program(dispatcher, carol):
    with pytest.raises(NotFoundError):
        dispatcher.create_screening(carol, 404, "Lost")


def test_create_screening_requires_title(dispatcher, scenario, carol):
    program = scenario.program(ProgramPhase.SUBMISSION)

    with pytest.raises(ValidationError) as exc_info:
        dispatcher.create_screening(carol, program.id, "   ")

    assert exc_info.value.field == "title"


def test_update_screening_only_by_submitter(dispatcher, scenario, carol, erin):
    _, screening = scenario.screening(ScreeningState.CREATED)

    updated = dispatcher.update_screening(carol, screening.id, {"genre": "Comedy"})
    assert updated.genre == "Comedy"

    with pytest.raises(ForbiddenError):
        dispatcher.update_screening(erin, screening.id, {"genre": "Horror"})


def test_update_screening_rejects_null_title(dispatcher, store, scenario, carol):
    _, screening = scenario.screening(ScreeningState.CREATED, title="Tide")

    with pytest.raises(ValidationError) as exc_info:
        dispatcher.update_screening(carol, screening.id, {"title": None})

    assert exc_info.value.field == "title"
    assert store.get_screening(screening.id).title == "Tide"


def test_withdraw_deletes_draft_only(dispatcher, store, scenario, carol):
    _, draft = scenario.screening(ScreeningState.CREATED, title="Draft")
    dispatcher.withdraw_screening(carol, draft.id)
    assert store.get_screening(draft.id) is None

    _, submitted = scenario.screening(ScreeningState.SUBMITTED, title="Sent")
    with pytest.raises(InvalidTransitionError):
        dispatcher.withdraw_screening(carol, submitted.id)


def test_submit_in_wrong_phase_leaves_screening_untouched(dispatcher, store, scenario, alice, carol):
    program, screening = scenario.screening(ScreeningState.CREATED)
    scenario.advance(program, ProgramPhase.ASSIGNMENT)

    with pytest.raises(InvalidTransitionError, match="SUBMISSION"):
        dispatcher.submit_screening(carol, screening.id)

    assert store.get_screening(screening.id) == screening


def test_handler_is_never_reassigned(dispatcher, scenario, alice, bob, erin):
    program, screening = scenario.screening(ScreeningState.SUBMITTED)
    program = dispatcher.add_staff(alice, program.id, erin.user_id)
    program = scenario.advance(program, ProgramPhase.ASSIGNMENT)
    dispatcher.assign_handler(alice, screening.id, bob.user_id)

    with pytest.raises(InvalidTransitionError, match="already assigned"):
        dispatcher.assign_handler(alice, screening.id, erin.user_id)


@pytest.mark.parametrize("staff_id", [3.9, "3.9", True])
def test_handler_id_must_be_an_integer(dispatcher, store, scenario, alice, staff_id):
    program, screening = scenario.screening(ScreeningState.SUBMITTED)
    scenario.advance(program, ProgramPhase.ASSIGNMENT)

    with pytest.raises(ValidationError) as exc_info:
        dispatcher.assign_handler(alice, screening.id, staff_id)

    assert exc_info.value.field == "staff_id"
    assert store.get_screening(screening.id).staff_member_id is None


@pytest.mark.parametrize("score, ok", [(-1, False), (0, True), (10, True), (11, False)])
def test_review_score_boundaries(dispatcher, store, scenario, alice, bob, score, ok):
    program, screening = scenario.screening(ScreeningState.SUBMITTED)
    program = scenario.advance(program, ProgramPhase.ASSIGNMENT)
    dispatcher.assign_handler(alice, screening.id, bob.user_id)
    scenario.advance(program, ProgramPhase.REVIEW)

    if ok:
        reviewed = dispatcher.review_screening(bob, screening.id, score)
        assert reviewed.score == score
        assert reviewed.state is ScreeningState.REVIEWED
    else:
        with pytest.raises(ValidationError):
            dispatcher.review_screening(bob, screening.id, score)
        assert store.get_screening(screening.id).state is ScreeningState.SUBMITTED


def test_reject_in_scheduling(dispatcher, scenario, alice):
    program, screening = scenario.screening(ScreeningState.REVIEWED)
    scenario.advance(program, ProgramPhase.SCHEDULING)

    rejected = dispatcher.reject_screening(alice, screening.id, "Too long")

    assert rejected.state is ScreeningState.REJECTED
    assert rejected.rejection_reason == "Too long"
    with pytest.raises(InvalidTransitionError, match="final state"):
        dispatcher.reject_screening(alice, screening.id, "Again")


def test_schedule_rejects_malformed_date(dispatcher, scenario, alice):
    program, screening = scenario.screening(ScreeningState.FINAL_SUBMITTED)
    scenario.advance(program, ProgramPhase.DECISION)

    with pytest.raises(ValidationError) as exc_info:
        dispatcher.schedule_screening(alice, screening.id, "12/04/2026", "Hall 1")

    assert exc_info.value.field == "date"


def test_admin_and_visitors_are_refused(dispatcher, scenario, admin, vera, dave):
    program = scenario.program()

    with pytest.raises(ForbiddenError):
        dispatcher.change_program_phase(admin, program.id, ProgramPhase.SUBMISSION)
    with pytest.raises(UnauthenticatedError):
        dispatcher.change_program_phase(vera, program.id, ProgramPhase.SUBMISSION)
    with pytest.raises(UnauthenticatedError):
        dispatcher.change_program_phase(dave, program.id, ProgramPhase.SUBMISSION)
    with pytest.raises(UnauthenticatedError):
        dispatcher.change_program_phase(None, program.id, ProgramPhase.SUBMISSION)


def test_execute_accepts_action_names(dispatcher, scenario, alice):
    program = scenario.program()

    result = dispatcher.execute(alice, "change_program_phase", {"program_id": program.id, "next_phase": "submission"})

    assert result.phase is ProgramPhase.SUBMISSION


def test_execute_rejects_unknown_action_names(dispatcher, alice):
    with pytest.raises(ValidationError) as exc_info:
        dispatcher.execute(alice, "publish_everything", {})

    assert exc_info.value.field == "action"


def test_stale_snapshot_write_is_a_conflict(store, scenario):
    program = scenario.program()
    store.save_program(program.evolve(description="first"), program.version)

    with pytest.raises(ConflictError):
        store.save_program(program.evolve(description="second"), program.version)


def test_concurrent_schedules_yield_exactly_one_conflict(store, scenario, alice):
    program, screening = scenario.screening(ScreeningState.FINAL_SUBMITTED)
    scenario.advance(program, ProgramPhase.DECISION)

    # Both threads read the same snapshot before either writes.
    barrier = threading.Barrier(2)
    real_get = store.get_screening

    def get_then_wait(screening_id):
        found = real_get(screening_id)
        barrier.wait(timeout=5)
        return found

    store.get_screening = get_then_wait
    dispatcher = ActionDispatcher(store)
    outcomes: list[object] = []

    def schedule(room: str) -> None:
        try:
            outcomes.append(dispatcher.schedule_screening(alice, screening.id, date(2026, 5, 20), room))
        except ConflictError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=schedule, args=(room,)) for room in ("Hall A", "Hall B")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    successes = [o for o in outcomes if not isinstance(o, ConflictError)]
    assert len(conflicts) == 1
    assert len(successes) == 1
    assert successes[0].state is ScreeningState.SCHEDULED


def test_successful_actions_write_an_audit_record(dispatcher, alice, caplog):
    with caplog.at_level(logging.INFO, logger="cinema.audit"):
        program = dispatcher.create_program(alice, "Audited", "d", date(2026, 2, 1), date(2026, 2, 2))

    records = [r for r in caplog.records if r.name == "cinema.audit"]
    assert len(records) == 1
    message = records[0].getMessage()
    assert f"action={Action.CREATE_PROGRAM.value}" in message
    assert f"program:{program.id}" in message
    assert "state=CREATED" in message
