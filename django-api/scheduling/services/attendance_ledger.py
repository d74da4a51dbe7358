"""Attendance transitions with exactly-once credit consumption.

Status may be corrected any number of times. A credit is taken only when a
slot moves into ATTENDED while its persisted ``credit_deducted`` flag is
still false, so re-confirming or flipping ATTENDED -> NO_SHOW -> ATTENDED never
charges twice. Reverting to NO_SHOW does not refund a credit already taken.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace

from django.utils import timezone

from scheduling.domain.errors import (
    CreditDeductionError,
    DomainError,
    ParticipantNotFoundError,
    ReservationCancelledError,
    ReservationNotFoundError,
    ValidationError,
)
from scheduling.domain.models import (
    AttendanceRecord,
    AttendanceStatus,
    BatchItemOutcome,
    BatchOutcomeKind,
    CheckInResult,
    Reservation,
    ReservationKind,
)
from scheduling.domain.participants import ParticipantKey, ParticipantKind, ParticipantSelector
from scheduling.domain.policies import Actor, SYSTEM_ACTOR, ensure_can_manage
from scheduling.domain.value_objects import RegistrationId, ReservationId
from scheduling.services.audit import AuditSink, ChangeRecord, attendance_snapshot, changed_fields
from scheduling.stores.interfaces import AttendanceStore, PassStore, ReservationStore, UnitOfWork

logger = logging.getLogger(__name__)

ALREADY_CHECKED_IN = "already_checked_in"


class AttendanceLedger:
    def __init__(
        self,
        reservations: ReservationStore,
        attendance: AttendanceStore,
        passes: PassStore,
        uow: UnitOfWork,
        audit: AuditSink,
    ) -> None:
        self._reservations = reservations
        self._attendance = attendance
        self._passes = passes
        self._uow = uow
        self._audit = audit

    def check_in(
        self,
        reservation_id: ReservationId,
        participant: ParticipantKind | ParticipantSelector,
        status: AttendanceStatus,
        credits_required: int | None = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> CheckInResult:
        """Record attendance for one participant.

        Raises:
            ReservationNotFoundError: If the reservation does not exist.
            ParticipantNotFoundError: If the selector matches no active slot.
            AuthorizationError: If the actor may not manage the reservation.
            ValidationError: If credits_required is below 1.
        """
        self._ensure_settable(status)
        if credits_required is not None and credits_required < 1:
            raise ValidationError("credits_required must be at least 1")
        with self._uow.atomic():
            reservation = self._load(reservation_id, actor)
            if isinstance(participant, ParticipantSelector):
                participant = participant.resolve(
                    reservation.client_id,
                    reservation.kind is ReservationKind.CLASS_OCCURRENCE,
                )
            record = self._attendance.get_record(
                ParticipantKey(reservation_id=reservation_id, kind=participant),
                for_update=True,
            )
            if record is None:
                raise ParticipantNotFoundError(str(reservation_id))
            credits = reservation.credits_required if credits_required is None else credits_required
            return self._transition(reservation, record, status, credits, actor)

    def check_in_batch(
        self,
        reservation_id: ReservationId,
        items: Iterable[tuple[str, AttendanceStatus]],
        actor: Actor = SYSTEM_ACTOR,
    ) -> list[BatchItemOutcome]:
        """Check in group-class registrations one by one.

        Registrations that already carry a status are skipped. Each item runs
        in its own transaction and reports its own outcome.
        """
        reservation = self._load(reservation_id, actor)
        outcomes = []
        for raw_id, status in items:
            outcomes.append(self._batch_item(reservation, raw_id, status, actor))
        return outcomes

    def _batch_item(
        self,
        reservation: Reservation,
        raw_id: str,
        status: AttendanceStatus,
        actor: Actor,
    ) -> BatchItemOutcome:
        try:
            registration_id = RegistrationId.from_string(str(raw_id))
        except ValueError:
            return BatchItemOutcome(raw_id, BatchOutcomeKind.FAILED, reason="invalid_registration_id")
        try:
            self._ensure_settable(status)
            with self._uow.atomic():
                record = self._attendance.get_registration(reservation.id, registration_id, for_update=True)
                if record is None:
                    return BatchItemOutcome(raw_id, BatchOutcomeKind.FAILED, reason="not_found")
                if record.status is not AttendanceStatus.UNSET:
                    return BatchItemOutcome(raw_id, BatchOutcomeKind.SKIPPED, reason=ALREADY_CHECKED_IN)
                result = self._transition(reservation, record, status, reservation.credits_required, actor)
        except DomainError as exc:
            return BatchItemOutcome(raw_id, BatchOutcomeKind.FAILED, reason=exc.code.value.lower())
        except Exception:
            logger.exception("Check-in of registration %s in %s failed", raw_id, reservation.id)
            return BatchItemOutcome(raw_id, BatchOutcomeKind.FAILED, reason="internal_error")
        return BatchItemOutcome(raw_id, BatchOutcomeKind.CHECKED_IN, result=result)

    def _load(self, reservation_id: ReservationId, actor: Actor) -> Reservation:
        reservation = self._reservations.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(str(reservation_id))
        ensure_can_manage(actor, reservation.resource_keys)
        if reservation.is_cancelled:
            raise ReservationCancelledError()
        return reservation

    @staticmethod
    def _ensure_settable(status: AttendanceStatus) -> None:
        if status is AttendanceStatus.UNSET:
            raise ValidationError("Attendance can only be set to attended or no_show")

    def _transition(
        self,
        reservation: Reservation,
        record: AttendanceRecord,
        status: AttendanceStatus,
        credits: int,
        actor: Actor,
    ) -> CheckInResult:
        now = timezone.now()
        before = attendance_snapshot(record)
        record = replace(record, status=status, checked_in_at=now)
        deducted = False

        if status is AttendanceStatus.ATTENDED and not record.credit_deducted:
            if record.client_id is None:
                logger.debug("Slot %s has no client to charge", record.registration_id)
            else:
                try:
                    with self._uow.atomic():
                        charge = self._passes.deduct_credits(record.client_id, credits, now)
                except CreditDeductionError as exc:
                    # Attendance is still recorded; only the charge is missing.
                    logger.warning(
                        "Failed to deduct %d credit(s) for client %s in reservation %s: %s",
                        credits,
                        record.client_id,
                        reservation.id,
                        exc.message,
                    )
                except Exception:
                    # The savepoint is rolled back; the attendance write still goes through.
                    logger.exception(
                        "Credit deduction for client %s in reservation %s failed",
                        record.client_id,
                        reservation.id,
                    )
                else:
                    record = replace(
                        record,
                        credit_deducted=True,
                        credits_used=charge.credits,
                        charged_pass_id=charge.pass_id,
                    )
                    deducted = True
                    logger.info(
                        "Deducted %d credit(s) from pass %s for client %s (%d left)",
                        charge.credits,
                        charge.pass_id,
                        record.client_id,
                        charge.remaining_credits,
                    )

        self._attendance.save_record(record)
        after = attendance_snapshot(record)
        self._audit.record(
            ChangeRecord(
                action="checked_in",
                reservation_id=str(reservation.id),
                actor_user_id=actor.user_id,
                before=before,
                after=after,
                changed_fields=changed_fields(before, after),
            )
        )
        return CheckInResult(
            registration_id=record.registration_id,
            new_status=status,
            credit_deducted=deducted,
        )
