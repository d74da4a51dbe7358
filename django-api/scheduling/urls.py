from django.urls import path

from scheduling.handlers import (
    BatchCheckInView,
    CheckInView,
    ConflictCheckView,
    PricingResolveView,
    RecurringPreviewView,
    RecurringReservationView,
    RegistrationView,
    ReservationDetailView,
    ReservationListView,
)

urlpatterns = [
    path("reservations", ReservationListView.as_view(), name="reservation-list"),
    path("reservations/conflicts", ConflictCheckView.as_view(), name="reservation-conflicts"),
    path(
        "reservations/recurring/preview",
        RecurringPreviewView.as_view(),
        name="reservation-recurring-preview",
    ),
    path("reservations/recurring", RecurringReservationView.as_view(), name="reservation-recurring"),
    path("reservations/<str:reservation_id>", ReservationDetailView.as_view(), name="reservation-detail"),
    path("reservations/<str:reservation_id>/checkin", CheckInView.as_view(), name="reservation-checkin"),
    path(
        "reservations/<str:reservation_id>/checkin/batch",
        BatchCheckInView.as_view(),
        name="reservation-checkin-batch",
    ),
    path(
        "reservations/<str:reservation_id>/registrations",
        RegistrationView.as_view(),
        name="reservation-registrations",
    ),
    path("pricing/resolve", PricingResolveView.as_view(), name="pricing-resolve"),
]
