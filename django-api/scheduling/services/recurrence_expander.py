"""Expands weekly patterns into dated occurrences.

Dates are processed one after another in chronological order so the
created/skipped report is stable. Every occurrence is committed in its own
transaction: a failure on one date never rolls back dates created before it,
and a batch that stops half way is a valid partial result.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta, timezone as dt_timezone, tzinfo

from scheduling.domain.errors import AllDatesConflictedError, ConflictError
from scheduling.domain.models import (
    DatePreview,
    ExpansionResult,
    PreviewStatus,
    Reservation,
    SkippedDate,
    SkipReason,
)
from scheduling.domain.value_objects import RecurrencePattern, ResourceKey, TimeWindow
from scheduling.services.conflict_detector import ConflictDetector
from scheduling.stores.interfaces import UnitOfWork

logger = logging.getLogger(__name__)

ReservationFactory = Callable[[TimeWindow], Reservation]


class RecurrenceExpander:
    def __init__(self, detector: ConflictDetector, uow: UnitOfWork, tz: tzinfo) -> None:
        self._detector = detector
        self._uow = uow
        self._tz = tz

    def window_for(self, pattern: RecurrencePattern, day: date) -> TimeWindow:
        """Wall-clock start in the studio time zone, fixed elapsed duration."""
        start = datetime.combine(day, pattern.time_of_day, tzinfo=self._tz).astimezone(dt_timezone.utc)
        return TimeWindow(start=start, end=start + timedelta(minutes=pattern.duration_minutes))

    def preview_dates(self, pattern: RecurrencePattern, resource_keys: Iterable[ResourceKey]) -> list[DatePreview]:
        """Classify every candidate date without writing anything."""
        keys = frozenset(resource_keys)
        previews = []
        for day in pattern.candidate_dates():
            window = self.window_for(pattern, day)
            if day in pattern.skip_dates:
                previews.append(DatePreview(date=day, window=window, status=PreviewStatus.SKIPPED))
                continue
            conflicts = self._detector.detect_conflicts(keys, window)
            if conflicts:
                previews.append(
                    DatePreview(
                        date=day,
                        window=window,
                        status=PreviewStatus.CONFLICT,
                        conflict_label=conflicts[0].label,
                        conflicts=tuple(conflicts),
                    )
                )
            else:
                previews.append(DatePreview(date=day, window=window, status=PreviewStatus.OK))
        return previews

    def expand_and_create(
        self,
        pattern: RecurrencePattern,
        resource_keys: Iterable[ResourceKey],
        reservation_factory: ReservationFactory,
    ) -> ExpansionResult:
        """Create one reservation per free candidate date.

        Conflicts are re-checked inside each date's transaction; an earlier
        preview is never trusted.

        Raises:
            AllDatesConflictedError: If no occurrence was created.
        """
        keys = frozenset(resource_keys)
        created: list[Reservation] = []
        skipped: list[SkippedDate] = []

        for day in pattern.candidate_dates():
            if day in pattern.skip_dates:
                skipped.append(SkippedDate(date=day, reason=SkipReason.SKIP_DATES))
                continue

            window = self.window_for(pattern, day)
            try:
                with self._uow.atomic():
                    conflicts = self._detector.detect_conflicts(keys, window)
                    if conflicts:
                        raise ConflictError(conflicts)
                    reservation = reservation_factory(window)
            except ConflictError as exc:
                logger.info("Skipping %s: %d conflict(s)", day.isoformat(), len(exc.conflicts))
                skipped.append(SkippedDate(date=day, reason=SkipReason.CONFLICT, conflicts=exc.conflicts))
                continue
            except Exception:
                logger.exception(
                    "Occurrence on %s failed after %d created and %d skipped",
                    day.isoformat(),
                    len(created),
                    len(skipped),
                )
                raise
            created.append(reservation)

        if not created:
            raise AllDatesConflictedError(skipped)

        logger.info("Recurrence expanded: %d created, %d skipped", len(created), len(skipped))
        return ExpansionResult(created=created, skipped=skipped)
