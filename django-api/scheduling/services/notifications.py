"""Fire-and-forget notifications sent after a successful commit."""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from scheduling.domain.models import Reservation

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"


class NotificationDispatcher(ABC):
    @abstractmethod
    def send(self, kind: NotificationKind, reservation: Reservation) -> None:
        ...


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records what would be sent."""

    def send(self, kind: NotificationKind, reservation: Reservation) -> None:
        logger.info(
            "Notify %s for reservation %s (client %s)",
            kind.value,
            reservation.id,
            reservation.client_id,
        )


def send_safely(dispatcher: NotificationDispatcher, kind: NotificationKind, reservation: Reservation) -> None:
    """Delivery problems are logged and never reach the caller."""
    try:
        dispatcher.send(kind, reservation)
    except Exception:
        logger.exception("Failed to send %s notification for reservation %s", kind.value, reservation.id)
