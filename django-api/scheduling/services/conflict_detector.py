"""Finds reservations that would double-book a resource."""

import logging
from collections.abc import Iterable

from scheduling.domain.errors import ConflictError
from scheduling.domain.models import ConflictInfo
from scheduling.domain.value_objects import ReservationId, ResourceKey, TimeWindow
from scheduling.stores.interfaces import ReservationStore

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Pure read over scheduled reservations. Safe on a read replica."""

    def __init__(self, store: ReservationStore) -> None:
        self._store = store

    def detect_conflicts(
        self,
        resource_keys: Iterable[ResourceKey],
        window: TimeWindow,
        exclude_reservation_id: ReservationId | None = None,
    ) -> list[ConflictInfo]:
        """Return every scheduled reservation sharing a key whose window overlaps."""
        keys = frozenset(resource_keys)
        if not keys:
            return []
        conflicts = []
        for reservation in self._store.find_overlapping(keys, window, exclude_reservation_id):
            shared = keys & reservation.resource_keys
            if reservation.is_cancelled or not shared or not window.overlaps(reservation.window):
                continue
            if exclude_reservation_id is not None and reservation.id == exclude_reservation_id:
                continue
            conflicts.append(
                ConflictInfo(
                    reservation_id=reservation.id,
                    window=reservation.window,
                    overlap_minutes=window.overlap_minutes(reservation.window),
                    label=reservation.label or reservation.kind.value,
                    resource_keys=shared,
                )
            )
        conflicts.sort(key=lambda conflict: (conflict.window.start, str(conflict.reservation_id)))
        if conflicts:
            logger.info(
                "%d conflict(s) for %s in [%s, %s)",
                len(conflicts),
                ", ".join(sorted(str(key) for key in keys)),
                window.start.isoformat(),
                window.end.isoformat(),
            )
        return conflicts

    def check_conflicts(
        self,
        resource_keys: Iterable[ResourceKey],
        window: TimeWindow,
        exclude_reservation_id: ReservationId | None = None,
    ) -> None:
        """Strict variant for flows with no override.

        Raises:
            ConflictError: If any conflict exists.
        """
        conflicts = self.detect_conflicts(resource_keys, window, exclude_reservation_id)
        if conflicts:
            raise ConflictError(conflicts)
