"""Before/after snapshots of reservation mutations.

The core hands structured change records to an ``AuditSink``; where the sink
persists them is not its concern.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from scheduling.domain.models import AttendanceRecord, GuestAllocation, Reservation
from scheduling.domain.participants import RealClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeRecord:
    action: str
    reservation_id: str
    actor_user_id: int | None
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    changed_fields: tuple[str, ...] = field(default=())


def snapshot(
    reservation: Reservation,
    allocations: Mapping[Any, GuestAllocation] | None = None,
) -> dict[str, Any]:
    """JSON-friendly view of the audited reservation fields."""
    data = {
        "status": reservation.status.value,
        "start": reservation.window.start.isoformat(),
        "end": reservation.window.end.isoformat(),
        "resourceKeys": sorted(str(key) for key in reservation.resource_keys),
        "label": reservation.label,
        "clientId": reservation.client_id,
    }
    if allocations is not None:
        data["guests"] = sorted(
            (
                {
                    "clientId": a.guest_key.client_id if isinstance(a.guest_key, RealClient) else None,
                    "quantity": a.quantity,
                }
                for a in allocations.values()
            ),
            key=lambda guest: (guest["clientId"] is None, guest["clientId"] or 0),
        )
    return data


def attendance_snapshot(record: AttendanceRecord) -> dict[str, Any]:
    return {
        "registrationId": str(record.registration_id),
        "status": record.status.value,
        "creditDeducted": record.credit_deducted,
        "checkedInAt": record.checked_in_at.isoformat() if record.checked_in_at else None,
    }


def changed_fields(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> tuple[str, ...]:
    before = before or {}
    after = after or {}
    return tuple(sorted(key for key in before.keys() | after.keys() if before.get(key) != after.get(key)))


class AuditSink(ABC):
    @abstractmethod
    def record(self, change: ChangeRecord) -> None:
        ...


class LoggingAuditSink(AuditSink):
    """Writes change records to the ``scheduling.audit`` logger."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("scheduling.audit")

    def record(self, change: ChangeRecord) -> None:
        self._logger.info(
            "reservation.%s %s fields=%s",
            change.action,
            change.reservation_id,
            ",".join(change.changed_fields) or "-",
            extra={
                "audit": {
                    "action": change.action,
                    "reservationId": change.reservation_id,
                    "actorUserId": change.actor_user_id,
                    "before": change.before,
                    "after": change.after,
                    "changedFields": list(change.changed_fields),
                }
            },
        )
