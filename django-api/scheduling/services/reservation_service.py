"""Reservation service - booking flows live here.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

Every mutating flow runs in one transaction that re-validates conflicts right
before writing. Notifications go out only after commit.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from django.utils import timezone

from scheduling.domain.errors import (
    CapacityReachedError,
    ConflictError,
    ReservationCancelledError,
    ReservationNotFoundError,
    ServiceTypeNotFoundError,
    UnknownResourceError,
    ValidationError,
)
from scheduling.domain.models import (
    AttendanceRecord,
    ConflictInfo,
    DatePreview,
    ExpansionResult,
    GuestAllocation,
    Reservation,
    ReservationDraft,
    ReservationKind,
)
from scheduling.domain.participants import (
    ClassRegistrant,
    GuestKey,
    GuestSpec,
    MainClient,
    ParticipantKey,
    ParticipantKind,
    guest_slots,
)
from scheduling.domain.policies import Actor, SYSTEM_ACTOR, ensure_can_manage
from scheduling.domain.value_objects import (
    Capacity,
    PriceQuote,
    RecurrencePattern,
    ReservationId,
    ResourceKey,
    TimeWindow,
)
from scheduling.services.audit import AuditSink, ChangeRecord, changed_fields, snapshot
from scheduling.services.conflict_detector import ConflictDetector
from scheduling.services.guest_aggregator import GuestAggregator
from scheduling.services.notifications import NotificationDispatcher, NotificationKind, send_safely
from scheduling.services.pricing_resolver import PricingResolver
from scheduling.services.recurrence_expander import RecurrenceExpander
from scheduling.stores.interfaces import AttendanceStore, ReservationStore, UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateReservation:
    resource_keys: frozenset[ResourceKey]
    window: TimeWindow
    service_type_id: int | None = None
    guests: tuple[int | GuestSpec, ...] = ()
    client_id: int | None = None
    kind: ReservationKind = ReservationKind.SESSION
    label: str = ""
    capacity: Capacity | None = None
    credits_required: int | None = None


@dataclass(frozen=True)
class UpdateReservation:
    """Fields left as None are unchanged. ``guests=()`` removes every guest."""

    window: TimeWindow | None = None
    resource_keys: frozenset[ResourceKey] | None = None
    guests: tuple[int | GuestSpec, ...] | None = None
    force_override: bool = False


@dataclass(frozen=True)
class CreateRecurringReservations:
    pattern: RecurrencePattern
    resource_keys: frozenset[ResourceKey]
    service_type_id: int | None = None
    guests: tuple[int | GuestSpec, ...] = ()
    client_id: int | None = None
    kind: ReservationKind = ReservationKind.CLASS_OCCURRENCE
    label: str = ""
    capacity: Capacity | None = None
    credits_required: int | None = None


@dataclass(frozen=True)
class _Pricing:
    main: PriceQuote | None = None
    allocations: dict[GuestKey, GuestAllocation] = field(default_factory=dict)


class ReservationService:
    """Service for reservation booking operations."""

    def __init__(
        self,
        reservations: ReservationStore,
        attendance: AttendanceStore,
        uow: UnitOfWork,
        detector: ConflictDetector,
        pricing: PricingResolver,
        guests: GuestAggregator,
        expander: RecurrenceExpander,
        notifier: NotificationDispatcher,
        audit: AuditSink,
        default_credits_required: int = 1,
    ) -> None:
        self._reservations = reservations
        self._attendance = attendance
        self._uow = uow
        self._detector = detector
        self._pricing = pricing
        self._guests = guests
        self._expander = expander
        self._notifier = notifier
        self._audit = audit
        self._default_credits = default_credits_required

    def get_reservation(self, reservation_id: ReservationId) -> Reservation:
        """Return a reservation by ID.

        Raises:
            ReservationNotFoundError: If the reservation does not exist.
        """
        reservation = self._reservations.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(str(reservation_id))
        return reservation

    def get_allocations(self, reservation_id: ReservationId) -> dict[GuestKey, GuestAllocation]:
        return self._reservations.get_allocations(reservation_id)

    def find_conflicts(
        self,
        resource_keys: Iterable[ResourceKey],
        window: TimeWindow,
        exclude_reservation_id: ReservationId | None = None,
    ) -> list[ConflictInfo]:
        return self._detector.detect_conflicts(resource_keys, window, exclude_reservation_id)

    def create(self, command: CreateReservation, actor: Actor = SYSTEM_ACTOR) -> Reservation:
        """Book a single reservation. There is no override: any conflict fails.

        Raises:
            AuthorizationError: If the actor may not book these resources.
            ValidationError: For unknown resources or service types.
            ConflictError: If the window is already taken.
        """
        ensure_can_manage(actor, command.resource_keys)
        self._validate_resources(command.resource_keys)
        pricing = self._price(command.service_type_id, command.client_id, command.guests)
        draft = self._draft(command, pricing, actor)

        with self._uow.atomic():
            self._detector.check_conflicts(draft.resource_keys, draft.window)
            reservation = self._persist(draft, pricing.allocations, actor)
        return reservation

    def update(
        self,
        reservation_id: ReservationId,
        command: UpdateReservation,
        actor: Actor = SYSTEM_ACTOR,
    ) -> Reservation:
        """Reschedule a reservation and/or replace its guest list.

        Raises:
            ReservationNotFoundError: If the reservation does not exist.
            AuthorizationError: If the actor may not manage it.
            ConflictError: On conflicts, unless ``force_override`` is set.
        """
        with self._uow.atomic():
            current = self._reservations.get_reservation(reservation_id, for_update=True)
            if current is None:
                raise ReservationNotFoundError(str(reservation_id))
            ensure_can_manage(actor, current.resource_keys)
            if command.resource_keys is not None:
                ensure_can_manage(actor, command.resource_keys)
            if current.is_cancelled:
                raise ReservationCancelledError()

            window = command.window or current.window
            resource_keys = command.resource_keys or current.resource_keys
            schedule_changed = window != current.window or resource_keys != current.resource_keys
            if command.resource_keys is not None:
                self._validate_resources(resource_keys)

            if schedule_changed:
                conflicts = self._detector.detect_conflicts(resource_keys, window, reservation_id)
                if conflicts and not command.force_override:
                    raise ConflictError(conflicts, requires_confirmation=True)
                if conflicts:
                    logger.warning(
                        "Reservation %s moved over %d conflict(s) with force override",
                        reservation_id,
                        len(conflicts),
                    )

            allocations_before = self._reservations.get_allocations(reservation_id)
            before = snapshot(current, allocations_before)

            updated = current
            if schedule_changed:
                updated = self._reservations.save_schedule(current.rescheduled(window, resource_keys))

            allocations_after = allocations_before
            if command.guests is not None:
                pricing = self._price(current.service_type_id, None, command.guests)
                diff = self._guests.diff(allocations_before, pricing.allocations)
                if not diff.is_empty:
                    self._reservations.apply_allocation_diff(reservation_id, diff)
                    allocations_after = self._reservations.get_allocations(reservation_id)
                    self._attendance.sync_slots(reservation_id, self._slots(updated, allocations_after))

            after = snapshot(updated, allocations_after)
            self._record_change("updated", updated, actor, before, after)
            self._notify_after_commit(NotificationKind.UPDATED, updated)
        return updated

    def cancel(self, reservation_id: ReservationId, actor: Actor = SYSTEM_ACTOR) -> Reservation:
        """Soft-delete a future reservation.

        Raises:
            ReservationNotFoundError: If the reservation does not exist.
            ValidationError: If it already started or is cancelled.
        """
        with self._uow.atomic():
            current = self._reservations.get_reservation(reservation_id, for_update=True)
            if current is None:
                raise ReservationNotFoundError(str(reservation_id))
            ensure_can_manage(actor, current.resource_keys)
            if current.is_cancelled:
                raise ReservationCancelledError()
            now = timezone.now()
            if current.window.start < now:
                raise ValidationError("Past reservations cannot be cancelled")

            cancelled = self._reservations.mark_cancelled(reservation_id, now)
            self._record_change("cancelled", cancelled, actor, snapshot(current), snapshot(cancelled))
            self._notify_after_commit(NotificationKind.CANCELLED, cancelled)
        return cancelled

    def preview_recurring(
        self,
        pattern: RecurrencePattern,
        resource_keys: frozenset[ResourceKey],
    ) -> list[DatePreview]:
        """Classify the pattern's dates. Never writes."""
        self._validate_resources(resource_keys)
        return self._expander.preview_dates(pattern, resource_keys)

    def create_recurring(
        self,
        command: CreateRecurringReservations,
        actor: Actor = SYSTEM_ACTOR,
    ) -> ExpansionResult:
        """Create one reservation per free date of the pattern.

        Raises:
            AllDatesConflictedError: If no date could be booked.
        """
        ensure_can_manage(actor, command.resource_keys)
        self._validate_resources(command.resource_keys)
        pricing = self._price(command.service_type_id, command.client_id, command.guests)
        first_window = self._expander.window_for(command.pattern, command.pattern.interval_start)
        template = ReservationDraft(
            kind=command.kind,
            resource_keys=command.resource_keys,
            window=first_window,
            label=command.label,
            client_id=command.client_id,
            service_type_id=command.service_type_id,
            pricing=pricing.main,
            capacity=command.capacity,
            credits_required=command.credits_required or self._default_credits,
            series_id=uuid.uuid4(),
            created_by=actor.user_id,
        )

        def create_occurrence(window: TimeWindow) -> Reservation:
            return self._persist(template.at_window(window), pricing.allocations, actor)

        result = self._expander.expand_and_create(command.pattern, command.resource_keys, create_occurrence)
        logger.info(
            "Series %s: %d occurrence(s) created, %d date(s) skipped",
            template.series_id,
            len(result.created),
            len(result.skipped),
        )
        return result

    def register_client(
        self,
        reservation_id: ReservationId,
        client_id: int,
        actor: Actor = SYSTEM_ACTOR,
    ) -> AttendanceRecord:
        """Add a client to a group class occurrence.

        Raises:
            ValidationError: If the reservation is not a class occurrence, the
                client is already registered or the class is full.
        """
        if client_id <= 0:
            raise ValidationError("Client id must be positive")
        with self._uow.atomic():
            reservation = self._reservations.get_reservation(reservation_id, for_update=True)
            if reservation is None:
                raise ReservationNotFoundError(str(reservation_id))
            ensure_can_manage(actor, reservation.resource_keys)
            if reservation.is_cancelled:
                raise ReservationCancelledError()
            if reservation.kind is not ReservationKind.CLASS_OCCURRENCE:
                raise ValidationError("Only class occurrences take registrations")

            participant = ParticipantKey(reservation_id=reservation_id, kind=ClassRegistrant(client_id))
            if self._attendance.get_record(participant) is not None:
                raise ValidationError("Client is already registered")
            if reservation.capacity is not None:
                taken = self._attendance.count_active_slots(reservation_id, ClassRegistrant)
                if taken >= reservation.capacity.value:
                    raise CapacityReachedError()
            record = self._attendance.add_slot(reservation_id, ClassRegistrant(client_id), client_id)
            self._record_change(
                "registered",
                reservation,
                actor,
                None,
                {"registrationId": str(record.registration_id), "clientId": client_id},
            )
        return record

    def _validate_resources(self, resource_keys: Iterable[ResourceKey]) -> None:
        keys = set(resource_keys)
        if not keys:
            raise ValidationError("At least one resource is required")
        unknown = self._reservations.unknown_resource_keys(keys)
        if unknown:
            raise UnknownResourceError(unknown)

    def _price(
        self,
        service_type_id: int | None,
        client_id: int | None,
        guests: Iterable[int | GuestSpec],
    ) -> _Pricing:
        guests = tuple(guests)
        if service_type_id is None:
            if guests:
                raise ValidationError("A service type is required to price guests")
            return _Pricing()
        try:
            self._pricing.get_service_type(service_type_id)
            main = None
            if client_id is not None:
                main = self._pricing.resolve_for_client(client_id, service_type_id)
            allocations = self._guests.normalize(guests, service_type_id) if guests else {}
        except ServiceTypeNotFoundError as exc:
            raise ValidationError(f"Unknown service type: {exc.service_type_id}") from exc
        return _Pricing(main=main, allocations=allocations)

    def _draft(self, command: CreateReservation, pricing: _Pricing, actor: Actor) -> ReservationDraft:
        return ReservationDraft(
            kind=command.kind,
            resource_keys=command.resource_keys,
            window=command.window,
            label=command.label,
            client_id=command.client_id,
            service_type_id=command.service_type_id,
            pricing=pricing.main,
            capacity=command.capacity,
            credits_required=command.credits_required or self._default_credits,
            created_by=actor.user_id,
        )

    def _persist(
        self,
        draft: ReservationDraft,
        allocations: Mapping[GuestKey, GuestAllocation],
        actor: Actor,
    ) -> Reservation:
        reservation = self._reservations.create_reservation(draft)
        if allocations:
            self._reservations.apply_allocation_diff(reservation.id, self._guests.diff({}, allocations))
        self._attendance.sync_slots(reservation.id, self._slots(reservation, allocations))
        self._record_change("created", reservation, actor, None, snapshot(reservation, allocations))
        self._notify_after_commit(NotificationKind.CREATED, reservation)
        return reservation

    @staticmethod
    def _slots(
        reservation: Reservation,
        allocations: Mapping[GuestKey, GuestAllocation],
    ) -> dict[ParticipantKind, int | None]:
        slots: dict[ParticipantKind, int | None] = {}
        if reservation.client_id is not None:
            slots[MainClient()] = reservation.client_id
        for key, allocation in allocations.items():
            for slot in guest_slots(key, allocation.quantity):
                slots[slot] = slot.client_id
        return slots

    def _record_change(self, action, reservation, actor, before, after) -> None:
        self._audit.record(
            ChangeRecord(
                action=action,
                reservation_id=str(reservation.id),
                actor_user_id=actor.user_id,
                before=before,
                after=after,
                changed_fields=changed_fields(before, after),
            )
        )

    def _notify_after_commit(self, kind: NotificationKind, reservation: Reservation) -> None:
        self._uow.on_commit(lambda: send_safely(self._notifier, kind, reservation))
