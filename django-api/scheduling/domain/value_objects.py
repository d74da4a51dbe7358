"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Self
from uuid import UUID


@dataclass(frozen=True)
class ReservationId:
    """Unique identifier for a Reservation."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RegistrationId:
    """Unique identifier for one attendance slot."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("TimeWindow bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError("TimeWindow end must be after start")

    def overlaps(self, other: "TimeWindow") -> bool:
        # Touching endpoints never overlap.
        return self.start < other.end and other.start < self.end

    def overlap_minutes(self, other: "TimeWindow") -> int:
        if not self.overlaps(other):
            return 0
        overlap = min(self.end, other.end) - max(self.start, other.start)
        return int(overlap.total_seconds() // 60)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class ResourceKind(Enum):
    ROOM = "room"
    STAFF = "staff"


@dataclass(frozen=True)
class ResourceKey:
    """A room or staff member that must never be double-booked."""

    kind: ResourceKind
    id: int

    def __post_init__(self) -> None:
        if self.id <= 0:
            raise ValueError("Resource id must be positive")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def room(cls, room_id: int) -> Self:
        return cls(kind=ResourceKind.ROOM, id=room_id)

    @classmethod
    def staff(cls, staff_id: int) -> Self:
        return cls(kind=ResourceKind.STAFF, id=staff_id)


@dataclass(frozen=True)
class RecurrencePattern:
    """Weekly pattern consumed by the recurrence expander.

    ``day_of_week`` follows ISO numbering: 1 is Monday, 7 is Sunday.
    """

    day_of_week: int
    time_of_day: time
    duration_minutes: int
    interval_start: date
    interval_end: date
    skip_dates: frozenset[date] = frozenset()

    def __post_init__(self) -> None:
        if not 1 <= self.day_of_week <= 7:
            raise ValueError("day_of_week must be between 1 (Monday) and 7 (Sunday)")
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        if self.interval_end < self.interval_start:
            raise ValueError("interval_end cannot be before interval_start")
        object.__setattr__(self, "skip_dates", frozenset(self.skip_dates))

    def candidate_dates(self) -> list[date]:
        """Every matching weekday from interval_start through interval_end inclusive."""
        offset = (self.day_of_week - self.interval_start.isoweekday()) % 7
        current = self.interval_start + timedelta(days=offset)
        dates = []
        while current <= self.interval_end:
            dates.append(current)
            current += timedelta(weeks=1)
        return dates


class PriceSource(Enum):
    CLIENT_OVERRIDE = "client_price_code"
    SERVICE_DEFAULT = "service_type_default"


@dataclass(frozen=True)
class PriceQuote:
    """Fee snapshot for one participant allocation."""

    entry_fee_brutto: Money
    trainer_fee_brutto: Money
    currency: str
    source: PriceSource
    price_code: str | None = None
