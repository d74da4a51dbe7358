from scheduling.handlers.views import (
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

__all__ = [
    "BatchCheckInView",
    "CheckInView",
    "ConflictCheckView",
    "PricingResolveView",
    "RecurringPreviewView",
    "RecurringReservationView",
    "RegistrationView",
    "ReservationDetailView",
    "ReservationListView",
]
