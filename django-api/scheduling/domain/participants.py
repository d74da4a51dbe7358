"""Tagged variants for guests and attendance slots.

Guest specs arrive from the wire as integers (a negative value marks one
anonymous technical-guest slot). They are parsed once into ``RealClient`` /
``TechnicalGuest`` values and never re-inspected for their sign afterwards.
"""

from dataclasses import dataclass

from scheduling.domain.value_objects import ReservationId


@dataclass(frozen=True)
class RealClient:
    """A guest backed by a client record."""

    client_id: int

    def __post_init__(self) -> None:
        if self.client_id <= 0:
            raise ValueError("Client id must be positive")


@dataclass(frozen=True)
class TechnicalGuest:
    """One anonymous guest slot with no client record."""


@dataclass(frozen=True)
class TechnicalGuestBucket:
    """Allocation key shared by every technical guest of a reservation."""


GuestSpec = RealClient | TechnicalGuest
GuestKey = RealClient | TechnicalGuestBucket

TECHNICAL_GUEST_BUCKET = TechnicalGuestBucket()


@dataclass(frozen=True)
class MainClient:
    """The reservation's own client."""


@dataclass(frozen=True)
class AdditionalGuest:
    """One unit of a guest allocation.

    ``client_id`` is None for technical guests. ``guest_index`` tells apart
    repeated units of the same allocation and runs from 0 to quantity - 1.
    """

    client_id: int | None
    guest_index: int = 0

    def __post_init__(self) -> None:
        if self.guest_index < 0:
            raise ValueError("guest_index cannot be negative")

    @property
    def guest_key(self) -> GuestKey:
        if self.client_id is None:
            return TECHNICAL_GUEST_BUCKET
        return RealClient(self.client_id)


@dataclass(frozen=True)
class ClassRegistrant:
    """A client registered for a group class occurrence."""

    client_id: int


ParticipantKind = MainClient | AdditionalGuest | ClassRegistrant


@dataclass(frozen=True)
class ParticipantKey:
    reservation_id: ReservationId
    kind: ParticipantKind


def guest_slots(guest_key: GuestKey, quantity: int) -> list[AdditionalGuest]:
    """Expand one allocation into its addressable attendance slots."""
    client_id = guest_key.client_id if isinstance(guest_key, RealClient) else None
    return [AdditionalGuest(client_id=client_id, guest_index=i) for i in range(quantity)]


@dataclass(frozen=True)
class ParticipantSelector:
    """Optional client id and guest index as sent by a check-in request."""

    client_id: int | None = None
    guest_index: int | None = None

    def resolve(self, main_client_id: int | None, is_class: bool) -> ParticipantKind:
        if self.client_id is None:
            if self.guest_index is None:
                return MainClient()
            return AdditionalGuest(client_id=None, guest_index=self.guest_index)
        if self.client_id == main_client_id and self.guest_index is None:
            return MainClient()
        if is_class:
            return ClassRegistrant(self.client_id)
        return AdditionalGuest(client_id=self.client_id, guest_index=self.guest_index or 0)
