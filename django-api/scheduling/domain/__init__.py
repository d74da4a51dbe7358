from scheduling.domain.models import (
    AttendanceRecord,
    AttendanceStatus,
    GuestAllocation,
    Reservation,
    ReservationKind,
    ReservationStatus,
)
from scheduling.domain.participants import (
    AdditionalGuest,
    ClassRegistrant,
    MainClient,
    ParticipantKey,
    RealClient,
    TechnicalGuest,
    TECHNICAL_GUEST_BUCKET,
)
from scheduling.domain.value_objects import (
    Capacity,
    Money,
    PriceQuote,
    PriceSource,
    RecurrencePattern,
    RegistrationId,
    ReservationId,
    ResourceKey,
    ResourceKind,
    TimeWindow,
)

__all__ = [
    "Reservation",
    "ReservationKind",
    "ReservationStatus",
    "GuestAllocation",
    "AttendanceRecord",
    "AttendanceStatus",
    "RealClient",
    "TechnicalGuest",
    "TECHNICAL_GUEST_BUCKET",
    "MainClient",
    "AdditionalGuest",
    "ClassRegistrant",
    "ParticipantKey",
    "ReservationId",
    "RegistrationId",
    "ResourceKey",
    "ResourceKind",
    "TimeWindow",
    "RecurrencePattern",
    "Money",
    "Capacity",
    "PriceQuote",
    "PriceSource",
]
