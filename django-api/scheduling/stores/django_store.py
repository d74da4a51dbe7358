"""Django ORM implementation of the scheduling stores.

Each method queries Django ORM and converts rows to domain models.
"""

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from functools import reduce
from operator import or_

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from scheduling import models as orm
from scheduling.domain.errors import CreditDeductionError
from scheduling.domain.models import (
    AllocationDiff,
    AttendanceRecord,
    AttendanceStatus,
    ClientPriceOverride,
    GuestAllocation,
    PassCharge,
    Reservation,
    ReservationDraft,
    ReservationKind,
    ReservationStatus,
    ServiceType,
)
from scheduling.domain.participants import (
    AdditionalGuest,
    ClassRegistrant,
    GuestKey,
    MainClient,
    ParticipantKey,
    ParticipantKind,
    RealClient,
    TECHNICAL_GUEST_BUCKET,
)
from scheduling.domain.value_objects import (
    Capacity,
    Money,
    PriceQuote,
    PriceSource,
    RegistrationId,
    ReservationId,
    ResourceKey,
    ResourceKind,
    TimeWindow,
)
from scheduling.stores.interfaces import (
    AttendanceStore,
    PassStore,
    PricingStore,
    ReservationStore,
    UnitOfWork,
)

_KIND_NAMES = {
    MainClient: "main_client",
    AdditionalGuest: "additional_guest",
    ClassRegistrant: "class_registrant",
}


class DjangoUnitOfWork(UnitOfWork):
    """Maps transaction boundaries onto django.db.transaction."""

    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()

    def on_commit(self, callback: Callable[[], None]) -> None:
        transaction.on_commit(callback)


def _quote_from_fields(entry_fee, trainer_fee, currency: str, source: str, price_code: str) -> PriceQuote | None:
    if not source or entry_fee is None or trainer_fee is None:
        return None
    return PriceQuote(
        entry_fee_brutto=Money(entry_fee),
        trainer_fee_brutto=Money(trainer_fee),
        currency=currency,
        source=PriceSource(source),
        price_code=price_code or None,
    )


def _quote_columns(quote: PriceQuote | None) -> dict:
    if quote is None:
        return {
            "entry_fee_brutto": None,
            "trainer_fee_brutto": None,
            "currency": "",
            "price_source": "",
            "price_code": "",
        }
    return {
        "entry_fee_brutto": quote.entry_fee_brutto.amount,
        "trainer_fee_brutto": quote.trainer_fee_brutto.amount,
        "currency": quote.currency,
        "price_source": quote.source.value,
        "price_code": quote.price_code or "",
    }


def _resource_q(resource_keys: Iterable[ResourceKey]) -> Q | None:
    clauses = [
        Q(resources__kind=key.kind.value, resources__resource_id=key.id)
        for key in resource_keys
    ]
    if not clauses:
        return None
    return reduce(or_, clauses)


def _reservation_to_domain(row: orm.Reservation) -> Reservation:
    return Reservation(
        id=ReservationId(row.id),
        kind=ReservationKind(row.kind),
        status=ReservationStatus(row.status),
        resource_keys=frozenset(
            ResourceKey(kind=ResourceKind(res.kind), id=res.resource_id)
            for res in row.resources.all()
        ),
        window=TimeWindow(start=row.starts_at, end=row.ends_at),
        created_at=row.created_at,
        label=row.label,
        client_id=row.client_id,
        service_type_id=row.service_type_id,
        pricing=_quote_from_fields(
            row.entry_fee_brutto,
            row.trainer_fee_brutto,
            row.currency,
            row.price_source,
            row.price_code,
        ),
        capacity=Capacity(row.capacity) if row.capacity is not None else None,
        credits_required=row.credits_required,
        series_id=row.series_id,
        cancelled_at=row.cancelled_at,
    )


class DjangoReservationStore(ReservationStore):
    """PostgreSQL-backed reservation store using Django ORM."""

    def find_overlapping(
        self,
        resource_keys: Iterable[ResourceKey],
        window: TimeWindow,
        exclude_reservation_id: ReservationId | None = None,
    ) -> list[Reservation]:
        shares_resource = _resource_q(resource_keys)
        if shares_resource is None:
            return []
        queryset = (
            orm.Reservation.objects.filter(
                status=ReservationStatus.SCHEDULED.value,
                starts_at__lt=window.end,
                ends_at__gt=window.start,
            )
            .filter(shares_resource)
            .distinct()
            .prefetch_related("resources")
            .order_by("starts_at")
        )
        if exclude_reservation_id is not None:
            queryset = queryset.exclude(pk=exclude_reservation_id.value)
        return [_reservation_to_domain(row) for row in queryset]

    def get_reservation(self, reservation_id: ReservationId, for_update: bool = False) -> Reservation | None:
        queryset = orm.Reservation.objects.prefetch_related("resources")
        if for_update:
            queryset = queryset.select_for_update()
        row = queryset.filter(pk=reservation_id.value).first()
        return _reservation_to_domain(row) if row else None

    def create_reservation(self, draft: ReservationDraft) -> Reservation:
        row = orm.Reservation.objects.create(
            kind=draft.kind.value,
            label=draft.label,
            starts_at=draft.window.start,
            ends_at=draft.window.end,
            client_id=draft.client_id,
            service_type_id=draft.service_type_id,
            capacity=draft.capacity.value if draft.capacity else None,
            credits_required=draft.credits_required,
            series_id=draft.series_id,
            created_by=draft.created_by,
            **_quote_columns(draft.pricing),
        )
        orm.ReservationResource.objects.bulk_create(
            orm.ReservationResource(reservation=row, kind=key.kind.value, resource_id=key.id)
            for key in draft.resource_keys
        )
        return self.get_reservation(ReservationId(row.id))

    def save_schedule(self, reservation: Reservation) -> Reservation:
        orm.Reservation.objects.filter(pk=reservation.id.value).update(
            starts_at=reservation.window.start,
            ends_at=reservation.window.end,
            updated_at=timezone.now(),
        )
        existing = {
            ResourceKey(kind=ResourceKind(res.kind), id=res.resource_id): res.pk
            for res in orm.ReservationResource.objects.filter(reservation_id=reservation.id.value)
        }
        stale = [pk for key, pk in existing.items() if key not in reservation.resource_keys]
        orm.ReservationResource.objects.filter(pk__in=stale).delete()
        orm.ReservationResource.objects.bulk_create(
            orm.ReservationResource(
                reservation_id=reservation.id.value, kind=key.kind.value, resource_id=key.id
            )
            for key in reservation.resource_keys
            if key not in existing
        )
        return self.get_reservation(reservation.id)

    def mark_cancelled(self, reservation_id: ReservationId, at: datetime) -> Reservation:
        orm.Reservation.objects.filter(pk=reservation_id.value).update(
            status=ReservationStatus.CANCELLED.value,
            cancelled_at=at,
            updated_at=at,
        )
        return self.get_reservation(reservation_id)

    def unknown_resource_keys(self, resource_keys: Iterable[ResourceKey]) -> set[ResourceKey]:
        keys = set(resource_keys)
        room_ids = {key.id for key in keys if key.kind is ResourceKind.ROOM}
        staff_ids = {key.id for key in keys if key.kind is ResourceKind.STAFF}
        known_rooms = set(
            orm.Room.objects.filter(pk__in=room_ids, is_active=True).values_list("pk", flat=True)
        )
        known_staff = set(
            orm.StaffMember.objects.filter(pk__in=staff_ids, is_active=True).values_list("pk", flat=True)
        )
        return {
            key
            for key in keys
            if (key.kind is ResourceKind.ROOM and key.id not in known_rooms)
            or (key.kind is ResourceKind.STAFF and key.id not in known_staff)
        }

    def get_allocations(self, reservation_id: ReservationId) -> dict[GuestKey, GuestAllocation]:
        allocations = {}
        for row in orm.GuestAllocation.objects.filter(reservation_id=reservation_id.value):
            key = TECHNICAL_GUEST_BUCKET if row.client_id is None else RealClient(row.client_id)
            allocations[key] = GuestAllocation(
                guest_key=key,
                quantity=row.quantity,
                pricing=_quote_from_fields(
                    row.entry_fee_brutto,
                    row.trainer_fee_brutto,
                    row.currency,
                    row.price_source,
                    row.price_code,
                ),
            )
        return allocations

    def apply_allocation_diff(self, reservation_id: ReservationId, diff: AllocationDiff) -> None:
        rows = orm.GuestAllocation.objects.filter(reservation_id=reservation_id.value)
        for key in diff.to_remove:
            rows.filter(**self._key_filter(key)).delete()
        for key, allocation in diff.to_update_quantity.items():
            rows.filter(**self._key_filter(key)).update(
                quantity=allocation.quantity, **_quote_columns(allocation.pricing)
            )
        orm.GuestAllocation.objects.bulk_create(
            orm.GuestAllocation(
                reservation_id=reservation_id.value,
                client_id=key.client_id if isinstance(key, RealClient) else None,
                quantity=allocation.quantity,
                **_quote_columns(allocation.pricing),
            )
            for key, allocation in diff.to_add.items()
        )

    @staticmethod
    def _key_filter(key: GuestKey) -> dict:
        if isinstance(key, RealClient):
            return {"client_id": key.client_id}
        return {"client_id__isnull": True}


class DjangoPricingStore(PricingStore):
    """Read-only price lookups using Django ORM."""

    def get_service_type(self, service_type_id: int) -> ServiceType | None:
        row = orm.ServiceType.objects.filter(pk=service_type_id).first()
        if row is None:
            return None
        return ServiceType(
            id=row.pk,
            name=row.name,
            default_entry_fee_brutto=Money(row.default_entry_fee_brutto),
            default_trainer_fee_brutto=Money(row.default_trainer_fee_brutto),
            is_active=row.is_active,
        )

    def find_override(self, client_id: int, service_type_id: int, at: datetime) -> ClientPriceOverride | None:
        row = (
            orm.ClientPriceOverride.objects.filter(
                client_id=client_id,
                service_type_id=service_type_id,
                is_active=True,
                valid_from__lte=at,
            )
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gt=at))
            .order_by("-valid_from", "-pk")
            .first()
        )
        if row is None:
            return None
        return ClientPriceOverride(
            id=row.pk,
            client_id=row.client_id,
            service_type_id=row.service_type_id,
            entry_fee_brutto=Money(row.entry_fee_brutto),
            trainer_fee_brutto=Money(row.trainer_fee_brutto),
            currency=row.currency,
            valid_from=row.valid_from,
            valid_until=row.valid_until,
            price_code=row.price_code or None,
            is_active=row.is_active,
        )


def _participant_kind(row: orm.AttendanceRecord) -> ParticipantKind:
    if row.participant_kind == "main_client":
        return MainClient()
    if row.participant_kind == "class_registrant":
        return ClassRegistrant(client_id=row.client_id)
    return AdditionalGuest(client_id=row.client_id, guest_index=row.guest_index)


def _kind_filter(kind: ParticipantKind) -> dict:
    lookup = {"participant_kind": _KIND_NAMES[type(kind)]}
    if isinstance(kind, AdditionalGuest):
        lookup["guest_index"] = kind.guest_index
        if kind.client_id is None:
            lookup["client_id__isnull"] = True
        else:
            lookup["client_id"] = kind.client_id
    elif isinstance(kind, ClassRegistrant):
        lookup["client_id"] = kind.client_id
    return lookup


def _record_to_domain(row: orm.AttendanceRecord) -> AttendanceRecord:
    return AttendanceRecord(
        registration_id=RegistrationId(row.id),
        participant=ParticipantKey(
            reservation_id=ReservationId(row.reservation_id),
            kind=_participant_kind(row),
        ),
        client_id=row.client_id,
        status=AttendanceStatus(row.status) if row.status else AttendanceStatus.UNSET,
        checked_in_at=row.checked_in_at,
        credit_deducted=row.credit_deducted,
        credits_used=row.credits_used,
        charged_pass_id=row.charged_pass_id,
    )


class DjangoAttendanceStore(AttendanceStore):
    """Attendance slots using Django ORM. Retired slots stay in the table."""

    def sync_slots(
        self,
        reservation_id: ReservationId,
        slots: dict[ParticipantKind, int | None],
    ) -> None:
        now = timezone.now()
        rows = orm.AttendanceRecord.objects.filter(
            reservation_id=reservation_id.value,
            participant_kind__in=["main_client", "additional_guest"],
        )
        seen = set()
        for row in rows:
            kind = _participant_kind(row)
            if kind in slots and kind not in seen:
                seen.add(kind)
                if row.retired_at is not None or row.client_id != slots[kind]:
                    row.retired_at = None
                    row.client_id = slots[kind]
                    row.save(update_fields=["retired_at", "client_id", "updated_at"])
            elif row.retired_at is None:
                row.retired_at = now
                row.save(update_fields=["retired_at", "updated_at"])
        orm.AttendanceRecord.objects.bulk_create(
            self._new_row(reservation_id, kind, client_id)
            for kind, client_id in slots.items()
            if kind not in seen
        )

    def add_slot(self, reservation_id: ReservationId, kind: ParticipantKind, client_id: int | None) -> AttendanceRecord:
        row = (
            orm.AttendanceRecord.objects.filter(reservation_id=reservation_id.value, **_kind_filter(kind))
            .order_by("created_at")
            .first()
        )
        if row is None:
            row = self._new_row(reservation_id, kind, client_id)
            row.save()
        elif row.retired_at is not None:
            row.retired_at = None
            row.save(update_fields=["retired_at", "updated_at"])
        return _record_to_domain(row)

    def count_active_slots(self, reservation_id: ReservationId, kind_type: type) -> int:
        return orm.AttendanceRecord.objects.filter(
            reservation_id=reservation_id.value,
            participant_kind=_KIND_NAMES[kind_type],
            retired_at__isnull=True,
        ).count()

    def get_record(self, participant: ParticipantKey, for_update: bool = False) -> AttendanceRecord | None:
        queryset = orm.AttendanceRecord.objects.filter(
            reservation_id=participant.reservation_id.value,
            retired_at__isnull=True,
            **_kind_filter(participant.kind),
        )
        if for_update:
            queryset = queryset.select_for_update()
        row = queryset.first()
        return _record_to_domain(row) if row else None

    def get_registration(
        self,
        reservation_id: ReservationId,
        registration_id: RegistrationId,
        for_update: bool = False,
    ) -> AttendanceRecord | None:
        queryset = orm.AttendanceRecord.objects.filter(
            pk=registration_id.value,
            reservation_id=reservation_id.value,
            retired_at__isnull=True,
        )
        if for_update:
            queryset = queryset.select_for_update()
        row = queryset.first()
        return _record_to_domain(row) if row else None

    def save_record(self, record: AttendanceRecord) -> AttendanceRecord:
        status = None if record.status is AttendanceStatus.UNSET else record.status.value
        orm.AttendanceRecord.objects.filter(pk=record.registration_id.value).update(
            status=status,
            checked_in_at=record.checked_in_at,
            credit_deducted=record.credit_deducted,
            credits_used=record.credits_used,
            charged_pass_id=record.charged_pass_id,
            updated_at=timezone.now(),
        )
        return record

    @staticmethod
    def _new_row(reservation_id: ReservationId, kind: ParticipantKind, client_id: int | None) -> orm.AttendanceRecord:
        return orm.AttendanceRecord(
            reservation_id=reservation_id.value,
            participant_kind=_KIND_NAMES[type(kind)],
            client_id=client_id,
            guest_index=kind.guest_index if isinstance(kind, AdditionalGuest) else 0,
        )


class DjangoPassStore(PassStore):
    """Credit passes using Django ORM with conditional decrements."""

    def _active(self, client_id: int, at: datetime):
        return orm.Pass.objects.filter(
            client_id=client_id,
            status="active",
            remaining_credits__gt=0,
            valid_from__lte=at,
        ).filter(Q(valid_until__isnull=True) | Q(valid_until__gte=at))

    def deduct_credits(self, client_id: int, credits: int, at: datetime) -> PassCharge:
        candidates = (
            self._active(client_id, at)
            .filter(remaining_credits__gte=credits)
            .order_by(F("valid_until").asc(nulls_last=True), "created_at", "pk")
            .values_list("pk", flat=True)
        )
        with transaction.atomic():
            for pass_id in candidates:
                # Compare-and-decrement: a concurrent check-in that drained the
                # pass first makes this update match zero rows.
                updated = orm.Pass.objects.filter(
                    pk=pass_id, status="active", remaining_credits__gte=credits
                ).update(remaining_credits=F("remaining_credits") - credits)
                if not updated:
                    continue
                orm.Pass.objects.filter(pk=pass_id, remaining_credits=0).update(status="depleted")
                remaining = orm.Pass.objects.values_list("remaining_credits", flat=True).get(pk=pass_id)
                return PassCharge(pass_id=pass_id, credits=credits, remaining_credits=remaining)
        raise CreditDeductionError(client_id=client_id, credits=credits)
