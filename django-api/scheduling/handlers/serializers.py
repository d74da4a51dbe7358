"""Serializers between the JSON wire format and domain objects.

Input serializers validate request bodies and build value objects once at the
boundary. Output serializers render domain models; they never touch the ORM.
"""

from rest_framework import serializers

from scheduling.domain.errors import ValidationError as DomainValidationError
from scheduling.domain.models import AttendanceStatus, ReservationKind
from scheduling.domain.participants import (
    AdditionalGuest,
    ClassRegistrant,
    MainClient,
    ParticipantSelector,
    RealClient,
    TechnicalGuest,
)
from scheduling.domain.value_objects import (
    Capacity,
    RecurrencePattern,
    ResourceKey,
    ResourceKind,
    TimeWindow,
)
from scheduling.services.guest_aggregator import GuestAggregator
from scheduling.services.reservation_service import (
    CreateRecurringReservations,
    CreateReservation,
    UpdateReservation,
)

SETTABLE_STATUSES = [AttendanceStatus.ATTENDED.value, AttendanceStatus.NO_SHOW.value]


class ResourceKeySerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=[kind.value for kind in ResourceKind])
    id = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        return ResourceKey(kind=ResourceKind(attrs["kind"]), id=attrs["id"])

    def to_representation(self, instance):
        return {"kind": instance.kind.value, "id": instance.id}


class WindowSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs):
        try:
            return TimeWindow(start=attrs["start"], end=attrs["end"])
        except ValueError as exc:
            raise serializers.ValidationError(str(exc)) from exc


class PatternSerializer(serializers.Serializer):
    dayOfWeek = serializers.IntegerField(min_value=1, max_value=7)
    timeOfDay = serializers.TimeField()
    durationMinutes = serializers.IntegerField(min_value=1)
    intervalStart = serializers.DateField()
    intervalEnd = serializers.DateField()
    skipDates = serializers.ListField(child=serializers.DateField(), required=False, default=list)

    def validate(self, attrs):
        try:
            return RecurrencePattern(
                day_of_week=attrs["dayOfWeek"],
                time_of_day=attrs["timeOfDay"],
                duration_minutes=attrs["durationMinutes"],
                interval_start=attrs["intervalStart"],
                interval_end=attrs["intervalEnd"],
                skip_dates=frozenset(attrs["skipDates"]),
            )
        except ValueError as exc:
            raise serializers.ValidationError(str(exc)) from exc


class GuestSpecField(serializers.Field):
    """A guest as an integer (negative = technical guest) or a tagged object."""

    default_error_messages = {
        "invalid": 'Expected an integer or {"kind": "client" | "technical_guest"}.',
    }

    def to_internal_value(self, data):
        if isinstance(data, dict):
            kind = data.get("kind")
            if kind == "technical_guest":
                return TechnicalGuest()
            if kind == "client":
                data = data.get("id")
                if isinstance(data, bool) or not isinstance(data, int) or data <= 0:
                    self.fail("invalid")
            else:
                self.fail("invalid")
        try:
            return GuestAggregator.parse([data])[0]
        except DomainValidationError as exc:
            raise serializers.ValidationError(exc.message) from exc

    def to_representation(self, value):
        if isinstance(value, RealClient):
            return {"kind": "client", "id": value.client_id}
        return {"kind": "technical_guest"}


def _capacity(value):
    return Capacity(value) if value is not None else None


class CreateReservationSerializer(serializers.Serializer):
    resourceKeys = ResourceKeySerializer(many=True, allow_empty=False)
    window = WindowSerializer()
    guestSpecs = serializers.ListField(child=GuestSpecField(), required=False, default=list)
    serviceTypeId = serializers.IntegerField(min_value=1)
    clientId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    kind = serializers.ChoiceField(
        choices=[kind.value for kind in ReservationKind],
        default=ReservationKind.SESSION.value,
    )
    label = serializers.CharField(max_length=255, required=False, default="", allow_blank=True)
    capacity = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    creditsRequired = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def to_command(self) -> CreateReservation:
        data = self.validated_data
        return CreateReservation(
            resource_keys=frozenset(data["resourceKeys"]),
            window=data["window"],
            service_type_id=data["serviceTypeId"],
            guests=tuple(data["guestSpecs"]),
            client_id=data.get("clientId"),
            kind=ReservationKind(data["kind"]),
            label=data["label"],
            capacity=_capacity(data.get("capacity")),
            credits_required=data.get("creditsRequired"),
        )


class UpdateReservationSerializer(serializers.Serializer):
    window = WindowSerializer(required=False)
    resourceKeys = ResourceKeySerializer(many=True, allow_empty=False, required=False)
    guestSpecs = serializers.ListField(child=GuestSpecField(), required=False)
    forceOverride = serializers.BooleanField(required=False, default=False)

    def to_command(self) -> UpdateReservation:
        data = self.validated_data
        keys = data.get("resourceKeys")
        guests = data.get("guestSpecs")
        return UpdateReservation(
            window=data.get("window"),
            resource_keys=frozenset(keys) if keys is not None else None,
            guests=tuple(guests) if guests is not None else None,
            force_override=data["forceOverride"],
        )


class ConflictQuerySerializer(serializers.Serializer):
    resourceKeys = ResourceKeySerializer(many=True, allow_empty=False)
    window = WindowSerializer()
    excludeReservationId = serializers.UUIDField(required=False, allow_null=True)


class PreviewSerializer(serializers.Serializer):
    pattern = PatternSerializer()
    resourceKeys = ResourceKeySerializer(many=True, allow_empty=False)


class RecurringReservationSerializer(serializers.Serializer):
    pattern = PatternSerializer()
    resourceKeys = ResourceKeySerializer(many=True, allow_empty=False)
    guestSpecs = serializers.ListField(child=GuestSpecField(), required=False, default=list)
    serviceTypeId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    clientId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    kind = serializers.ChoiceField(
        choices=[kind.value for kind in ReservationKind],
        default=ReservationKind.CLASS_OCCURRENCE.value,
    )
    label = serializers.CharField(max_length=255, required=False, default="", allow_blank=True)
    capacity = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    creditsRequired = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def to_command(self) -> CreateRecurringReservations:
        data = self.validated_data
        return CreateRecurringReservations(
            pattern=data["pattern"],
            resource_keys=frozenset(data["resourceKeys"]),
            service_type_id=data.get("serviceTypeId"),
            guests=tuple(data["guestSpecs"]),
            client_id=data.get("clientId"),
            kind=ReservationKind(data["kind"]),
            label=data["label"],
            capacity=_capacity(data.get("capacity")),
            credits_required=data.get("creditsRequired"),
        )


class CheckInSerializer(serializers.Serializer):
    attendanceStatus = serializers.ChoiceField(choices=SETTABLE_STATUSES)
    clientId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    guestIndex = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def selector(self) -> ParticipantSelector:
        return ParticipantSelector(
            client_id=self.validated_data.get("clientId"),
            guest_index=self.validated_data.get("guestIndex"),
        )

    def status(self) -> AttendanceStatus:
        return AttendanceStatus(self.validated_data["attendanceStatus"])


class BatchCheckInItemSerializer(serializers.Serializer):
    # Kept as a string so a malformed id fails only its own item.
    registrationId = serializers.CharField()
    attendanceStatus = serializers.ChoiceField(choices=SETTABLE_STATUSES)


class BatchCheckInSerializer(serializers.Serializer):
    registrations = BatchCheckInItemSerializer(many=True, allow_empty=False)

    def items(self) -> list[tuple[str, AttendanceStatus]]:
        return [
            (item["registrationId"], AttendanceStatus(item["attendanceStatus"]))
            for item in self.validated_data["registrations"]
        ]


class RegisterClientSerializer(serializers.Serializer):
    clientId = serializers.IntegerField(min_value=1)


class PricingQuerySerializer(serializers.Serializer):
    clientId = serializers.IntegerField(min_value=1)
    serviceTypeId = serializers.IntegerField(min_value=1)


class PriceQuoteSerializer(serializers.Serializer):
    entryFeeBrutto = serializers.DecimalField(source="entry_fee_brutto.amount", max_digits=10, decimal_places=2)
    trainerFeeBrutto = serializers.DecimalField(source="trainer_fee_brutto.amount", max_digits=10, decimal_places=2)
    currency = serializers.CharField()
    source = serializers.CharField(source="source.value")
    priceCode = serializers.CharField(source="price_code", allow_null=True)


class ReservationSerializer(serializers.Serializer):
    """Serializer for Reservation domain model."""

    id = serializers.CharField()
    kind = serializers.CharField(source="kind.value")
    status = serializers.CharField(source="status.value")
    resourceKeys = serializers.SerializerMethodField()
    window = WindowSerializer()
    label = serializers.CharField()
    clientId = serializers.IntegerField(source="client_id", allow_null=True)
    serviceTypeId = serializers.IntegerField(source="service_type_id", allow_null=True)
    pricing = PriceQuoteSerializer(allow_null=True)
    capacity = serializers.IntegerField(source="capacity.value", allow_null=True)
    creditsRequired = serializers.IntegerField(source="credits_required")
    seriesId = serializers.CharField(source="series_id", allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at")
    cancelledAt = serializers.DateTimeField(source="cancelled_at", allow_null=True)

    def get_resourceKeys(self, obj):
        keys = sorted(obj.resource_keys, key=lambda key: (key.kind.value, key.id))
        return ResourceKeySerializer(keys, many=True).data


class GuestAllocationSerializer(serializers.Serializer):
    guest = GuestSpecField(source="guest_key")
    quantity = serializers.IntegerField()
    pricing = PriceQuoteSerializer()


class ConflictSerializer(serializers.Serializer):
    reservationId = serializers.CharField(source="reservation_id")
    window = WindowSerializer()
    overlapMinutes = serializers.IntegerField(source="overlap_minutes")
    label = serializers.CharField()
    resourceKeys = serializers.SerializerMethodField()

    def get_resourceKeys(self, obj):
        return sorted(str(key) for key in obj.resource_keys)


class DatePreviewSerializer(serializers.Serializer):
    date = serializers.DateField()
    window = WindowSerializer()
    status = serializers.CharField(source="status.value")
    conflictLabel = serializers.CharField(source="conflict_label", allow_null=True)


class SkippedDateSerializer(serializers.Serializer):
    date = serializers.DateField()
    reason = serializers.CharField(source="reason.value")


class ParticipantField(serializers.Field):
    def to_representation(self, value):
        if isinstance(value, MainClient):
            return {"kind": "main_client"}
        if isinstance(value, AdditionalGuest):
            return {"kind": "additional_guest", "clientId": value.client_id, "guestIndex": value.guest_index}
        if isinstance(value, ClassRegistrant):
            return {"kind": "class_registrant", "clientId": value.client_id}
        raise TypeError(f"Unknown participant kind: {value!r}")


class AttendanceRecordSerializer(serializers.Serializer):
    registrationId = serializers.CharField(source="registration_id")
    participant = ParticipantField(source="participant.kind")
    clientId = serializers.IntegerField(source="client_id", allow_null=True)
    attendanceStatus = serializers.CharField(source="status.value")
    checkedInAt = serializers.DateTimeField(source="checked_in_at", allow_null=True)
    creditDeducted = serializers.BooleanField(source="credit_deducted")


class CheckInResultSerializer(serializers.Serializer):
    registrationId = serializers.CharField(source="registration_id")
    attendanceStatus = serializers.CharField(source="new_status.value")
    creditDeducted = serializers.BooleanField(source="credit_deducted")


class BatchItemOutcomeSerializer(serializers.Serializer):
    registrationId = serializers.CharField(source="registration_id")
    outcome = serializers.CharField(source="outcome.value")
    reason = serializers.CharField(allow_null=True)
    creditDeducted = serializers.BooleanField(source="result.credit_deducted", allow_null=True)
