"""Unit tests for AttendanceLedger.

These test exactly-once credit consumption and batch outcomes.
Run with: pytest tests/test_attendance_ledger.py -v
"""

import uuid

import pytest

from fakes import ROOM_1, STAFF_7, utc, window
from scheduling.domain.errors import (
    AuthorizationError,
    ParticipantNotFoundError,
    ReservationCancelledError,
    ReservationNotFoundError,
    ValidationError,
)
from scheduling.domain.models import AttendanceStatus, BatchOutcomeKind, ReservationKind
from scheduling.domain.participants import (
    AdditionalGuest,
    ClassRegistrant,
    MainClient,
    ParticipantKey,
    ParticipantSelector,
)
from scheduling.domain.policies import Actor
from scheduling.domain.value_objects import ReservationId

ATTENDED = AttendanceStatus.ATTENDED
NO_SHOW = AttendanceStatus.NO_SHOW


@pytest.fixture
def session(world):
    """1:1 session of client 9 with client 5 as guest, booked on trainer 7."""
    reservation = world.reservation_store.add(
        window(utc(2025, 1, 6, 10)),
        [ROOM_1, STAFF_7],
        client_id=9,
    )
    world.attendance_store.sync_slots(
        reservation.id,
        {MainClient(): 9, AdditionalGuest(5, 0): 5, AdditionalGuest(None, 0): None},
    )
    return reservation


@pytest.fixture
def group_class(world):
    reservation = world.reservation_store.add(
        window(utc(2025, 1, 6, 18)),
        [ROOM_1],
        kind=ReservationKind.CLASS_OCCURRENCE,
    )
    records = [world.attendance_store.add_slot(reservation.id, ClassRegistrant(c), c) for c in (11, 12, 13)]
    return reservation, records


def record_of(world, reservation, kind):
    return world.attendance_store.get_record(ParticipantKey(reservation_id=reservation.id, kind=kind))


class TestCheckIn:
    """Tests for single-participant check-in."""

    def test_attended_deducts_one_credit(self, world, session):
        world.pass_store.add_pass(9, 10)
        result = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert result.new_status is ATTENDED
        assert result.credit_deducted
        assert world.pass_store.passes[0].remaining_credits == 9
        record = record_of(world, session, MainClient())
        assert record.status is ATTENDED
        assert record.credit_deducted
        assert record.checked_in_at is not None
        assert record.charged_pass_id == 1

    def test_double_check_in_deducts_once(self, world, session):
        world.pass_store.add_pass(9, 10)
        world.ledger.check_in(session.id, MainClient(), ATTENDED)
        second = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert not second.credit_deducted
        assert world.pass_store.passes[0].remaining_credits == 9
        assert len(world.pass_store.deductions) == 1

    def test_flipping_status_never_charges_twice(self, world, session):
        world.pass_store.add_pass(9, 10)
        world.ledger.check_in(session.id, MainClient(), ATTENDED)
        world.ledger.check_in(session.id, MainClient(), NO_SHOW)
        again = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert not again.credit_deducted
        assert world.pass_store.passes[0].remaining_credits == 9

    def test_no_show_does_not_refund(self, world, session):
        world.pass_store.add_pass(9, 10)
        world.ledger.check_in(session.id, MainClient(), ATTENDED)
        world.ledger.check_in(session.id, MainClient(), NO_SHOW)
        record = record_of(world, session, MainClient())
        assert record.status is NO_SHOW
        assert record.credit_deducted
        assert world.pass_store.passes[0].remaining_credits == 9

    def test_no_show_never_deducts(self, world, session):
        world.pass_store.add_pass(9, 10)
        result = world.ledger.check_in(session.id, MainClient(), NO_SHOW)
        assert not result.credit_deducted
        assert world.pass_store.passes[0].remaining_credits == 10

    def test_empty_pass_still_records_attendance(self, world, session):
        world.pass_store.add_pass(9, 0)
        result = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert result.new_status is ATTENDED
        assert not result.credit_deducted
        record = record_of(world, session, MainClient())
        assert record.status is ATTENDED
        assert not record.credit_deducted

    def test_unexpected_deduction_error_keeps_attendance(self, world, session, monkeypatch):
        """A broken pass store never blocks or rolls back the attendance write."""
        world.pass_store.add_pass(9, 10)

        def unavailable(client_id, credits, at):
            raise RuntimeError("pass table unavailable")

        monkeypatch.setattr(world.pass_store, "deduct_credits", unavailable)
        result = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert result.new_status is ATTENDED
        assert not result.credit_deducted
        record = record_of(world, session, MainClient())
        assert record.status is ATTENDED
        assert not record.credit_deducted
        assert world.uow.commits == 1

    def test_check_in_is_audited(self, world, session):
        world.pass_store.add_pass(9, 10)
        world.ledger.check_in(session.id, MainClient(), ATTENDED, actor=Actor(user_id=4, staff_id=7))
        [change] = world.audit.records
        assert change.action == "checked_in"
        assert change.reservation_id == str(session.id)
        assert change.actor_user_id == 4
        assert change.before["status"] == "unset"
        assert change.after["status"] == "attended"
        assert change.after["creditDeducted"] is True
        assert change.changed_fields == ("checkedInAt", "creditDeducted", "status")

    def test_rejected_check_in_is_not_audited(self, world, session):
        with pytest.raises(AuthorizationError):
            world.ledger.check_in(session.id, MainClient(), ATTENDED, actor=Actor(user_id=4, staff_id=8))
        assert world.audit.records == []

    def test_explicit_credits_required_wins(self, world, session):
        world.pass_store.add_pass(9, 5)
        world.ledger.check_in(session.id, MainClient(), ATTENDED, credits_required=3)
        assert world.pass_store.passes[0].remaining_credits == 2

    @pytest.mark.parametrize("credits", [0, -1])
    def test_credits_required_below_one_is_rejected(self, world, session, credits):
        world.pass_store.add_pass(9, 5)
        with pytest.raises(ValidationError):
            world.ledger.check_in(session.id, MainClient(), ATTENDED, credits_required=credits)
        assert world.pass_store.passes[0].remaining_credits == 5
        assert record_of(world, session, MainClient()).status is AttendanceStatus.UNSET

    def test_deduction_retried_after_top_up(self, world, session):
        """A slot never charged is charged on the next Attended write."""
        world.ledger.check_in(session.id, MainClient(), ATTENDED)
        world.pass_store.add_pass(9, 5)
        result = world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert result.credit_deducted

    def test_guest_unit_is_charged_to_guest(self, world, session):
        world.pass_store.add_pass(5, 3)
        world.pass_store.add_pass(9, 3)
        result = world.ledger.check_in(session.id, AdditionalGuest(5, 0), ATTENDED)
        assert result.credit_deducted
        assert [p.remaining_credits for p in world.pass_store.passes] == [2, 3]

    def test_technical_guest_is_never_charged(self, world, session):
        result = world.ledger.check_in(session.id, AdditionalGuest(None, 0), ATTENDED)
        assert result.new_status is ATTENDED
        assert not result.credit_deducted
        assert world.pass_store.deductions == []

    def test_selector_resolved_against_reservation(self, world, session):
        world.pass_store.add_pass(5, 3)
        result = world.ledger.check_in(session.id, ParticipantSelector(client_id=5), ATTENDED)
        assert result.registration_id == record_of(world, session, AdditionalGuest(5, 0)).registration_id

    def test_credits_required_defaults_to_reservation(self, world):
        reservation = world.reservation_store.add(
            window(utc(2025, 1, 6, 10)), [ROOM_1], client_id=9, credits_required=2
        )
        world.attendance_store.sync_slots(reservation.id, {MainClient(): 9})
        world.pass_store.add_pass(9, 5)
        world.ledger.check_in(reservation.id, MainClient(), ATTENDED)
        assert world.pass_store.passes[0].remaining_credits == 3

    def test_soonest_expiring_pass_is_used(self, world, session):
        open_ended = world.pass_store.add_pass(9, 5)
        expiring = world.pass_store.add_pass(9, 5, valid_until=utc(2025, 2, 1))
        world.ledger.check_in(session.id, MainClient(), ATTENDED)
        assert expiring.remaining_credits == 4
        assert open_ended.remaining_credits == 5

    def test_unset_cannot_be_written(self, world, session):
        with pytest.raises(ValidationError):
            world.ledger.check_in(session.id, MainClient(), AttendanceStatus.UNSET)

    def test_unknown_participant(self, world, session):
        with pytest.raises(ParticipantNotFoundError):
            world.ledger.check_in(session.id, AdditionalGuest(5, 1), ATTENDED)

    def test_unknown_reservation(self, world):
        with pytest.raises(ReservationNotFoundError):
            world.ledger.check_in(ReservationId(uuid.uuid4()), MainClient(), ATTENDED)

    def test_cancelled_reservation(self, world, session):
        world.reservation_store.mark_cancelled(session.id, utc(2025, 1, 1))
        with pytest.raises(ReservationCancelledError):
            world.ledger.check_in(session.id, MainClient(), ATTENDED)

    def test_other_trainer_is_rejected_without_side_effects(self, world, session):
        world.pass_store.add_pass(9, 10)
        with pytest.raises(AuthorizationError):
            world.ledger.check_in(session.id, MainClient(), ATTENDED, actor=Actor(user_id=4, staff_id=8))
        assert record_of(world, session, MainClient()).status is AttendanceStatus.UNSET
        assert world.pass_store.passes[0].remaining_credits == 10

    def test_own_trainer_may_check_in(self, world, session):
        result = world.ledger.check_in(session.id, MainClient(), NO_SHOW, actor=Actor(user_id=4, staff_id=7))
        assert result.new_status is NO_SHOW


class TestCheckInBatch:
    """Tests for group-class batch check-in."""

    def test_each_item_reports_its_outcome(self, world, group_class):
        reservation, (first, second, third) = group_class
        world.pass_store.add_pass(11, 5)
        world.ledger.check_in(reservation.id, ClassRegistrant(12), NO_SHOW)

        outcomes = world.ledger.check_in_batch(
            reservation.id,
            [
                (str(first.registration_id), ATTENDED),
                (str(second.registration_id), ATTENDED),
                (str(third.registration_id), NO_SHOW),
                ("not-a-uuid", ATTENDED),
                (str(uuid.uuid4()), ATTENDED),
            ],
        )

        assert [o.outcome for o in outcomes] == [
            BatchOutcomeKind.CHECKED_IN,
            BatchOutcomeKind.SKIPPED,
            BatchOutcomeKind.CHECKED_IN,
            BatchOutcomeKind.FAILED,
            BatchOutcomeKind.FAILED,
        ]
        assert outcomes[0].result.credit_deducted
        assert outcomes[1].reason == "already_checked_in"
        assert outcomes[3].reason == "invalid_registration_id"
        assert outcomes[4].reason == "not_found"
        # One record for the earlier single check-in, one per checked-in item.
        assert [change.action for change in world.audit.records] == ["checked_in"] * 3

    def test_registration_of_other_reservation_is_not_found(self, world, group_class, session):
        reservation, _ = group_class
        main = record_of(world, session, MainClient())
        [outcome] = world.ledger.check_in_batch(reservation.id, [(str(main.registration_id), ATTENDED)])
        assert outcome.outcome is BatchOutcomeKind.FAILED
        assert outcome.reason == "not_found"

    def test_unexpected_error_fails_only_its_item(self, world, group_class, monkeypatch):
        reservation, (first, second, _) = group_class
        original = world.attendance_store.save_record

        def flaky(record):
            if record.registration_id == first.registration_id:
                raise RuntimeError("database went away")
            return original(record)

        monkeypatch.setattr(world.attendance_store, "save_record", flaky)
        outcomes = world.ledger.check_in_batch(
            reservation.id,
            [(str(first.registration_id), NO_SHOW), (str(second.registration_id), NO_SHOW)],
        )
        assert outcomes[0].outcome is BatchOutcomeKind.FAILED
        assert outcomes[0].reason == "internal_error"
        assert outcomes[1].outcome is BatchOutcomeKind.CHECKED_IN
