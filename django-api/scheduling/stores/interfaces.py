"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime

from scheduling.domain.models import (
    AllocationDiff,
    AttendanceRecord,
    ClientPriceOverride,
    GuestAllocation,
    PassCharge,
    Reservation,
    ReservationDraft,
    ServiceType,
)
from scheduling.domain.participants import GuestKey, ParticipantKey, ParticipantKind
from scheduling.domain.value_objects import RegistrationId, ReservationId, ResourceKey, TimeWindow


class UnitOfWork(ABC):
    """Transaction boundary for one mutating operation."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Return a context manager that commits on success and rolls back on error.

        Nested calls create savepoints.
        """
        ...

    @abstractmethod
    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run callback once the outermost transaction commits."""
        ...


class ReservationStore(ABC):
    """Interface for reservation persistence operations."""

    @abstractmethod
    def find_overlapping(
        self,
        resource_keys: Iterable[ResourceKey],
        window: TimeWindow,
        exclude_reservation_id: ReservationId | None = None,
    ) -> list[Reservation]:
        """Return scheduled reservations sharing a resource key whose window overlaps."""
        ...

    @abstractmethod
    def get_reservation(self, reservation_id: ReservationId, for_update: bool = False) -> Reservation | None:
        """Return a reservation by ID (cancelled ones included), or None if not found."""
        ...

    @abstractmethod
    def create_reservation(self, draft: ReservationDraft) -> Reservation:
        """Persist a new scheduled reservation."""
        ...

    @abstractmethod
    def save_schedule(self, reservation: Reservation) -> Reservation:
        """Persist a changed window and resource key set."""
        ...

    @abstractmethod
    def mark_cancelled(self, reservation_id: ReservationId, at: datetime) -> Reservation:
        """Soft-delete a reservation. The row is kept for the audit trail."""
        ...

    @abstractmethod
    def unknown_resource_keys(self, resource_keys: Iterable[ResourceKey]) -> set[ResourceKey]:
        """Return the keys that name no active room or staff member."""
        ...

    @abstractmethod
    def get_allocations(self, reservation_id: ReservationId) -> dict[GuestKey, GuestAllocation]:
        """Return the reservation's guest allocations keyed by guest."""
        ...

    @abstractmethod
    def apply_allocation_diff(self, reservation_id: ReservationId, diff: AllocationDiff) -> None:
        """Insert, update and delete allocation rows as described by diff."""
        ...


class PricingStore(ABC):
    """Interface for read-only price lookups."""

    @abstractmethod
    def get_service_type(self, service_type_id: int) -> ServiceType | None:
        """Return a service type by ID, or None if not found."""
        ...

    @abstractmethod
    def find_override(self, client_id: int, service_type_id: int, at: datetime) -> ClientPriceOverride | None:
        """Return the active override valid at ``at`` with the latest valid_from."""
        ...


class AttendanceStore(ABC):
    """Interface for attendance slot persistence."""

    @abstractmethod
    def sync_slots(
        self,
        reservation_id: ReservationId,
        slots: dict[ParticipantKind, int | None],
    ) -> None:
        """Make exactly ``slots`` addressable for the reservation.

        Keys are participant kinds, values the client charged for that slot.
        Missing slots are created, or revived when retired earlier. Slots not
        listed are retired, never deleted.
        """
        ...

    @abstractmethod
    def add_slot(self, reservation_id: ReservationId, kind: ParticipantKind, client_id: int | None) -> AttendanceRecord:
        """Create (or revive) a single slot and return it."""
        ...

    @abstractmethod
    def count_active_slots(self, reservation_id: ReservationId, kind_type: type) -> int:
        """Count non-retired slots of the given participant kind class."""
        ...

    @abstractmethod
    def get_record(self, participant: ParticipantKey, for_update: bool = False) -> AttendanceRecord | None:
        """Return the active slot for a participant, or None."""
        ...

    @abstractmethod
    def get_registration(
        self,
        reservation_id: ReservationId,
        registration_id: RegistrationId,
        for_update: bool = False,
    ) -> AttendanceRecord | None:
        """Return an active slot of the reservation by registration ID, or None."""
        ...

    @abstractmethod
    def save_record(self, record: AttendanceRecord) -> AttendanceRecord:
        """Persist status, check-in time and credit fields of a slot."""
        ...


class PassStore(ABC):
    """Interface for prepaid credit passes."""

    @abstractmethod
    def deduct_credits(self, client_id: int, credits: int, at: datetime) -> PassCharge:
        """Atomically take ``credits`` from the client's soonest-expiring active pass.

        Raises:
            CreditDeductionError: If no active pass holds enough credits.
        """
        ...
