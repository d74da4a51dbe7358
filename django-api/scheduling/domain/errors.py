"""Domain error codes for the scheduling module."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from scheduling.domain.models import ConflictInfo, SkippedDate


class ErrorCode(Enum):
    """Domain error codes."""

    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    SERVICE_TYPE_NOT_FOUND = "SERVICE_TYPE_NOT_FOUND"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    INVALID_RESERVATION_ID = "INVALID_RESERVATION_ID"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNKNOWN_RESOURCE = "UNKNOWN_RESOURCE"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    CAPACITY_REACHED = "CAPACITY_REACHED"
    CONFLICT = "CONFLICT"
    ALL_DATES_CONFLICTED = "ALL_DATES_CONFLICTED"
    CREDIT_DEDUCTION_FAILED = "CREDIT_DEDUCTION_FAILED"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    """Base for lookups that found nothing."""


class ValidationError(DomainError):
    """Raised for malformed input. Never retried."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.VALIDATION_FAILED) -> None:
        super().__init__(code=code, message=message)


class ReservationNotFoundError(NotFoundError):
    """Raised when a reservation is not found."""

    def __init__(self, reservation_id: str) -> None:
        super().__init__(
            code=ErrorCode.RESERVATION_NOT_FOUND,
            message="Reservation not found",
        )
        self.reservation_id = reservation_id


class ServiceTypeNotFoundError(NotFoundError):
    """Raised when a service type is not found."""

    def __init__(self, service_type_id: int) -> None:
        super().__init__(
            code=ErrorCode.SERVICE_TYPE_NOT_FOUND,
            message="Service type not found",
        )
        self.service_type_id = service_type_id


class ParticipantNotFoundError(NotFoundError):
    """Raised when a participant selector matches no attendance slot."""

    def __init__(self, reservation_id: str) -> None:
        super().__init__(
            code=ErrorCode.PARTICIPANT_NOT_FOUND,
            message="Participant not found in this reservation",
        )
        self.reservation_id = reservation_id


class InvalidReservationIdError(DomainError):
    """Raised when a reservation or registration ID is invalid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_RESERVATION_ID,
            message="Invalid reservation ID format",
        )


class UnknownResourceError(ValidationError):
    """Raised when a resource key names no known room or staff member."""

    def __init__(self, resource_keys: Iterable) -> None:
        self.resource_keys = tuple(sorted(str(key) for key in resource_keys))
        super().__init__(
            f"Unknown resources: {', '.join(self.resource_keys)}",
            code=ErrorCode.UNKNOWN_RESOURCE,
        )


class ReservationCancelledError(ValidationError):
    """Raised when mutating a reservation that was already cancelled."""

    def __init__(self) -> None:
        super().__init__("Reservation is cancelled", code=ErrorCode.RESERVATION_CANCELLED)


class CapacityReachedError(ValidationError):
    """Raised when a class occurrence has no free places left."""

    def __init__(self) -> None:
        super().__init__("Class occurrence is full", code=ErrorCode.CAPACITY_REACHED)


class ConflictError(DomainError):
    """Raised when a window collides with existing reservations."""

    def __init__(self, conflicts: Iterable[ConflictInfo], requires_confirmation: bool = True) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message="The requested time overlaps an existing reservation",
        )
        self.conflicts = tuple(conflicts)
        self.requires_confirmation = requires_confirmation


class AllDatesConflictedError(DomainError):
    """Raised when a recurrence batch created no occurrence at all."""

    def __init__(self, skipped: Iterable[SkippedDate]) -> None:
        super().__init__(
            code=ErrorCode.ALL_DATES_CONFLICTED,
            message="No occurrence could be created for the requested dates",
        )
        self.skipped = tuple(skipped)


class CreditDeductionError(DomainError):
    """Raised when no active pass can cover the requested credits."""

    def __init__(self, client_id: int, credits: int) -> None:
        super().__init__(
            code=ErrorCode.CREDIT_DEDUCTION_FAILED,
            message="No active pass with enough remaining credits",
        )
        self.client_id = client_id
        self.credits = credits


class AuthorizationError(DomainError):
    """Raised when the actor may not perform the operation."""

    def __init__(self, message: str = "Not allowed to manage this reservation") -> None:
        super().__init__(code=ErrorCode.FORBIDDEN, message=message)
