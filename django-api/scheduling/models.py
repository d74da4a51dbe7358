"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q


class Room(models.Model):
    """Persistence model for bookable rooms."""

    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class StaffMember(models.Model):
    """Persistence model for trainers and other bookable staff."""

    name = models.CharField(max_length=255)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff_profile",
    )
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class ServiceType(models.Model):
    """Persistence model for service types and their default fees."""

    name = models.CharField(max_length=255)
    default_entry_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    default_trainer_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class ClientPriceOverride(models.Model):
    """Persistence model for client-specific price codes."""

    client_id = models.PositiveIntegerField()
    service_type = models.ForeignKey(
        ServiceType, on_delete=models.CASCADE, related_name="price_overrides"
    )
    entry_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    trainer_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3)
    price_code = models.CharField(max_length=64, blank=True)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["client_id", "service_type"], name="scheduling__client__0c1f4e_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.client_id} - {self.service_type_id} ({self.price_code})"


class Reservation(models.Model):
    """Persistence model for 1:1 sessions and class occurrences."""

    KIND_CHOICES = [("session", "Session"), ("class_occurrence", "Class occurrence")]
    STATUS_CHOICES = [("scheduled", "Scheduled"), ("cancelled", "Cancelled")]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    kind = models.CharField(max_length=32, choices=KIND_CHOICES)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="scheduled")
    label = models.CharField(max_length=255, blank=True)
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    client_id = models.PositiveIntegerField(null=True, blank=True)
    service_type = models.ForeignKey(
        ServiceType,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reservations",
    )
    entry_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    trainer_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, blank=True)
    price_source = models.CharField(max_length=32, blank=True)
    price_code = models.CharField(max_length=64, blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)
    credits_required = models.PositiveIntegerField(default=1)
    series_id = models.UUIDField(null=True, blank=True)
    created_by = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["status", "starts_at", "ends_at"], name="scheduling__status_5e2a9b_idx"),
            models.Index(fields=["series_id"], name="scheduling__series__a41d7c_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(ends_at__gt=F("starts_at")),
                name="scheduling_reservation_ends_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.label or self.kind} - {self.starts_at}"


class ReservationResource(models.Model):
    """One resource key held by a reservation."""

    KIND_CHOICES = [("room", "Room"), ("staff", "Staff")]

    reservation = models.ForeignKey(
        Reservation, on_delete=models.CASCADE, related_name="resources"
    )
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    resource_id = models.PositiveIntegerField()

    class Meta:
        indexes = [
            models.Index(fields=["kind", "resource_id"], name="scheduling__kind_7b3f21_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["reservation", "kind", "resource_id"],
                name="scheduling_unique_reservation_resource",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind}:{self.resource_id}"


class GuestAllocation(models.Model):
    """Priced guest group of a reservation. A null client_id is the technical-guest bucket."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reservation = models.ForeignKey(
        Reservation, on_delete=models.CASCADE, related_name="guest_allocations"
    )
    client_id = models.PositiveIntegerField(null=True, blank=True)
    quantity = models.PositiveIntegerField()
    entry_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    trainer_fee_brutto = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3)
    price_source = models.CharField(max_length=32)
    price_code = models.CharField(max_length=64, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="scheduling_allocation_quantity_positive",
            ),
            models.UniqueConstraint(
                fields=["reservation", "client_id"],
                condition=Q(client_id__isnull=False),
                name="scheduling_unique_client_allocation",
            ),
            models.UniqueConstraint(
                fields=["reservation"],
                condition=Q(client_id__isnull=True),
                name="scheduling_unique_technical_guest_allocation",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.client_id or 'technical guest'} x{self.quantity}"


class Pass(models.Model):
    """Prepaid credit pass of a client."""

    STATUS_CHOICES = [("active", "Active"), ("depleted", "Depleted"), ("expired", "Expired")]

    client_id = models.PositiveIntegerField()
    total_credits = models.PositiveIntegerField()
    remaining_credits = models.PositiveIntegerField()
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="active")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["client_id", "status"], name="scheduling__client__9d8e62_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(remaining_credits__gte=0),
                name="scheduling_pass_remaining_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.client_id}: {self.remaining_credits}/{self.total_credits}"


class AttendanceRecord(models.Model):
    """Attendance slot. Its primary key is the registration id."""

    KIND_CHOICES = [
        ("main_client", "Main client"),
        ("additional_guest", "Additional guest"),
        ("class_registrant", "Class registrant"),
    ]
    STATUS_CHOICES = [("attended", "Attended"), ("no_show", "No show")]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reservation = models.ForeignKey(
        Reservation, on_delete=models.CASCADE, related_name="attendance_records"
    )
    participant_kind = models.CharField(max_length=32, choices=KIND_CHOICES)
    client_id = models.PositiveIntegerField(null=True, blank=True)
    guest_index = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    credit_deducted = models.BooleanField(default=False)
    credits_used = models.PositiveIntegerField(default=0)
    charged_pass = models.ForeignKey(
        Pass, on_delete=models.SET_NULL, null=True, blank=True, related_name="charges"
    )
    retired_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["reservation", "participant_kind", "client_id", "guest_index"],
                name="scheduling__reserva_3c6f0d_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.participant_kind} {self.client_id}#{self.guest_index}: {self.status}"
