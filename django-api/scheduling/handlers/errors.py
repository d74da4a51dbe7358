"""Maps domain errors to HTTP responses.

Installed as the REST framework ``EXCEPTION_HANDLER``. Responses carry the
error code and the user-safe message only; internals never reach the client.
"""

import logging

from rest_framework import exceptions, status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from scheduling.domain.errors import (
    AllDatesConflictedError,
    AuthorizationError,
    ConflictError,
    DomainError,
    ErrorCode,
    InvalidReservationIdError,
    NotFoundError,
    ValidationError,
)
from scheduling.domain.policies import Actor
from scheduling.handlers.serializers import ConflictSerializer, SkippedDateSerializer

logger = logging.getLogger(__name__)


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InvalidReservationIdError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, (ValidationError, AllDatesConflictedError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_400_BAD_REQUEST


def domain_error_response(exc: DomainError) -> Response:
    body = {"code": exc.code.value, "message": exc.message}
    if isinstance(exc, ConflictError):
        body["conflicts"] = ConflictSerializer(exc.conflicts, many=True).data
        body["requiresConfirmation"] = exc.requires_confirmation
    elif isinstance(exc, AllDatesConflictedError):
        body["skippedDates"] = SkippedDateSerializer(exc.skipped, many=True).data
    elif hasattr(exc, "resource_keys"):
        body["resourceKeys"] = list(exc.resource_keys)
    return Response(body, status=_status_for(exc))


def exception_handler(exc: Exception, context: dict) -> Response | None:
    if isinstance(exc, DomainError):
        logger.info("Request failed with %s: %s", exc.code.value, exc.message)
        return domain_error_response(exc)
    if isinstance(exc, exceptions.ValidationError):
        return Response(
            {
                "code": ErrorCode.VALIDATION_FAILED.value,
                "message": "Request body is invalid",
                "fields": exc.detail,
            },
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    return drf_exception_handler(exc, context)


def actor_from_request(request: Request) -> Actor:
    """Resolve the authenticated user into an ``Actor``.

    Superusers and Django staff users act as admins. A linked staff profile
    gives the user their own staff resource key.
    """
    user = request.user
    profile = getattr(user, "staff_profile", None)
    return Actor(
        user_id=user.pk,
        staff_id=profile.pk if profile is not None and profile.is_active else None,
        is_admin=bool(user.is_superuser or user.is_staff),
    )
