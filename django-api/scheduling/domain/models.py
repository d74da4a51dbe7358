"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in scheduling/models.py (persistence layer).
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from scheduling.domain.participants import GuestKey, ParticipantKey
from scheduling.domain.value_objects import (
    Capacity,
    Money,
    PriceQuote,
    RegistrationId,
    ReservationId,
    ResourceKey,
    TimeWindow,
)


class ReservationKind(Enum):
    SESSION = "session"
    CLASS_OCCURRENCE = "class_occurrence"


class ReservationStatus(Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class AttendanceStatus(Enum):
    UNSET = "unset"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class ServiceType:
    """Bookable service with its default fees."""

    id: int
    name: str
    default_entry_fee_brutto: Money
    default_trainer_fee_brutto: Money
    is_active: bool = True


@dataclass(frozen=True)
class ClientPriceOverride:
    """Client-specific fees for one service type (a "price code")."""

    id: int
    client_id: int
    service_type_id: int
    entry_fee_brutto: Money
    trainer_fee_brutto: Money
    currency: str
    valid_from: datetime
    valid_until: datetime | None = None
    price_code: str | None = None
    is_active: bool = True

    def is_valid_at(self, at: datetime) -> bool:
        if not self.is_active or at < self.valid_from:
            return False
        return self.valid_until is None or at < self.valid_until


@dataclass(frozen=True)
class GuestAllocation:
    """Priced, deduplicated group of guests attached to a reservation."""

    guest_key: GuestKey
    quantity: int
    pricing: PriceQuote

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("Allocation quantity must be at least 1")


@dataclass(frozen=True)
class AllocationDiff:
    """Three-way difference between a stored and a desired allocation set."""

    to_add: dict[GuestKey, GuestAllocation] = field(default_factory=dict)
    to_update_quantity: dict[GuestKey, GuestAllocation] = field(default_factory=dict)
    to_remove: frozenset[GuestKey] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update_quantity or self.to_remove)


@dataclass(frozen=True)
class ReservationDraft:
    """Everything needed to persist a new reservation."""

    kind: ReservationKind
    resource_keys: frozenset[ResourceKey]
    window: TimeWindow
    label: str = ""
    client_id: int | None = None
    service_type_id: int | None = None
    pricing: PriceQuote | None = None
    capacity: Capacity | None = None
    credits_required: int = 1
    series_id: UUID | None = None
    created_by: int | None = None

    def at_window(self, window: TimeWindow) -> "ReservationDraft":
        return replace(self, window=window)


@dataclass(frozen=True)
class Reservation:
    """Domain representation of a scheduled use of resources."""

    id: ReservationId
    kind: ReservationKind
    status: ReservationStatus
    resource_keys: frozenset[ResourceKey]
    window: TimeWindow
    created_at: datetime
    label: str = ""
    client_id: int | None = None
    service_type_id: int | None = None
    pricing: PriceQuote | None = None
    capacity: Capacity | None = None
    credits_required: int = 1
    series_id: UUID | None = None
    cancelled_at: datetime | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.status is ReservationStatus.CANCELLED

    def rescheduled(self, window: TimeWindow, resource_keys: frozenset[ResourceKey]) -> "Reservation":
        return replace(self, window=window, resource_keys=resource_keys)


@dataclass(frozen=True)
class AttendanceRecord:
    """Attendance slot of one participant.

    ``credit_deducted`` is tracked separately from ``status`` so correcting a
    status can never charge the same slot twice.
    """

    registration_id: RegistrationId
    participant: ParticipantKey
    client_id: int | None
    status: AttendanceStatus = AttendanceStatus.UNSET
    checked_in_at: datetime | None = None
    credit_deducted: bool = False
    credits_used: int = 0
    charged_pass_id: int | None = None


@dataclass(frozen=True)
class PassCharge:
    """Result of a successful credit decrement."""

    pass_id: int
    credits: int
    remaining_credits: int


@dataclass(frozen=True)
class ConflictInfo:
    reservation_id: ReservationId
    window: TimeWindow
    overlap_minutes: int
    label: str
    resource_keys: frozenset[ResourceKey] = frozenset()


class PreviewStatus(Enum):
    OK = "ok"
    CONFLICT = "conflict"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DatePreview:
    date: date
    window: TimeWindow
    status: PreviewStatus
    conflict_label: str | None = None
    conflicts: tuple[ConflictInfo, ...] = ()


class SkipReason(Enum):
    SKIP_DATES = "skip_dates"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class SkippedDate:
    date: date
    reason: SkipReason
    conflicts: tuple[ConflictInfo, ...] = ()


@dataclass(frozen=True)
class ExpansionResult:
    created: list[Reservation]
    skipped: list[SkippedDate]


@dataclass(frozen=True)
class CheckInResult:
    registration_id: RegistrationId
    new_status: AttendanceStatus
    credit_deducted: bool


class BatchOutcomeKind(Enum):
    CHECKED_IN = "checked_in"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchItemOutcome:
    registration_id: str
    outcome: BatchOutcomeKind
    reason: str | None = None
    result: CheckInResult | None = None
