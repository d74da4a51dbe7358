import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
            ],
        ),
        migrations.CreateModel(
            name="ServiceType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("default_entry_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("default_trainer_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("is_active", models.BooleanField(default=True)),
            ],
        ),
        migrations.CreateModel(
            name="StaffMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="staff_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="ClientPriceOverride",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_id", models.PositiveIntegerField()),
                ("entry_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("trainer_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(max_length=3)),
                ("price_code", models.CharField(blank=True, max_length=64)),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "service_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_overrides",
                        to="scheduling.servicetype",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["client_id", "service_type"], name="scheduling__client__0c1f4e_idx")],
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "kind",
                    models.CharField(
                        choices=[("session", "Session"), ("class_occurrence", "Class occurrence")],
                        max_length=32,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("cancelled", "Cancelled")],
                        default="scheduled",
                        max_length=16,
                    ),
                ),
                ("label", models.CharField(blank=True, max_length=255)),
                ("starts_at", models.DateTimeField()),
                ("ends_at", models.DateTimeField()),
                ("client_id", models.PositiveIntegerField(blank=True, null=True)),
                ("entry_fee_brutto", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("trainer_fee_brutto", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("currency", models.CharField(blank=True, max_length=3)),
                ("price_source", models.CharField(blank=True, max_length=32)),
                ("price_code", models.CharField(blank=True, max_length=64)),
                ("capacity", models.PositiveIntegerField(blank=True, null=True)),
                ("credits_required", models.PositiveIntegerField(default=1)),
                ("series_id", models.UUIDField(blank=True, null=True)),
                ("created_by", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "service_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                        to="scheduling.servicetype",
                    ),
                ),
            ],
            options={
                "ordering": ["starts_at"],
                "indexes": [
                    models.Index(fields=["status", "starts_at", "ends_at"], name="scheduling__status_5e2a9b_idx"),
                    models.Index(fields=["series_id"], name="scheduling__series__a41d7c_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("ends_at__gt", models.F("starts_at"))),
                        name="scheduling_reservation_ends_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReservationResource",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("room", "Room"), ("staff", "Staff")], max_length=16)),
                ("resource_id", models.PositiveIntegerField()),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="resources",
                        to="scheduling.reservation",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["kind", "resource_id"], name="scheduling__kind_7b3f21_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("reservation", "kind", "resource_id"),
                        name="scheduling_unique_reservation_resource",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GuestAllocation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("client_id", models.PositiveIntegerField(blank=True, null=True)),
                ("quantity", models.PositiveIntegerField()),
                ("entry_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("trainer_fee_brutto", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(max_length=3)),
                ("price_source", models.CharField(max_length=32)),
                ("price_code", models.CharField(blank=True, max_length=64)),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="guest_allocations",
                        to="scheduling.reservation",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="scheduling_allocation_quantity_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("client_id__isnull", False)),
                        fields=("reservation", "client_id"),
                        name="scheduling_unique_client_allocation",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("client_id__isnull", True)),
                        fields=("reservation",),
                        name="scheduling_unique_technical_guest_allocation",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Pass",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_id", models.PositiveIntegerField()),
                ("total_credits", models.PositiveIntegerField()),
                ("remaining_credits", models.PositiveIntegerField()),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("depleted", "Depleted"), ("expired", "Expired")],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "indexes": [models.Index(fields=["client_id", "status"], name="scheduling__client__9d8e62_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("remaining_credits__gte", 0)),
                        name="scheduling_pass_remaining_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AttendanceRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "participant_kind",
                    models.CharField(
                        choices=[
                            ("main_client", "Main client"),
                            ("additional_guest", "Additional guest"),
                            ("class_registrant", "Class registrant"),
                        ],
                        max_length=32,
                    ),
                ),
                ("client_id", models.PositiveIntegerField(blank=True, null=True)),
                ("guest_index", models.PositiveIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        blank=True,
                        choices=[("attended", "Attended"), ("no_show", "No show")],
                        max_length=16,
                        null=True,
                    ),
                ),
                ("checked_in_at", models.DateTimeField(blank=True, null=True)),
                ("credit_deducted", models.BooleanField(default=False)),
                ("credits_used", models.PositiveIntegerField(default=0)),
                ("retired_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "charged_pass",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="charges",
                        to="scheduling.pass",
                    ),
                ),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_records",
                        to="scheduling.reservation",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["reservation", "participant_kind", "client_id", "guest_index"],
                        name="scheduling__reserva_3c6f0d_idx",
                    ),
                ],
            },
        ),
    ]
