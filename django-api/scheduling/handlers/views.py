"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses (see handlers/errors.py)
- Never contain business logic
- Never expose internal error details
"""

from functools import cached_property

from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from scheduling.domain.errors import InvalidReservationIdError
from scheduling.domain.value_objects import ReservationId
from scheduling.handlers.dependencies import Services, build_services
from scheduling.handlers.errors import actor_from_request
from scheduling.handlers.serializers import (
    AttendanceRecordSerializer,
    BatchCheckInSerializer,
    BatchItemOutcomeSerializer,
    CheckInResultSerializer,
    CheckInSerializer,
    ConflictQuerySerializer,
    ConflictSerializer,
    CreateReservationSerializer,
    DatePreviewSerializer,
    GuestAllocationSerializer,
    PreviewSerializer,
    PriceQuoteSerializer,
    PricingQuerySerializer,
    RecurringReservationSerializer,
    RegisterClientSerializer,
    ReservationSerializer,
    SkippedDateSerializer,
    UpdateReservationSerializer,
)


def parse_reservation_id(raw: str) -> ReservationId:
    try:
        return ReservationId.from_string(raw)
    except ValueError as exc:
        raise InvalidReservationIdError() from exc


class SchedulingView(APIView):
    @cached_property
    def services(self) -> Services:
        return build_services()

    def reservation_body(self, reservation) -> dict:
        allocations = self.services.reservations.get_allocations(reservation.id)
        return {
            "reservation": ReservationSerializer(reservation).data,
            "guests": GuestAllocationSerializer(list(allocations.values()), many=True).data,
        }


class ReservationListView(SchedulingView):
    """Handler for POST /api/reservations"""

    def post(self, request: Request) -> Response:
        serializer = CreateReservationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = self.services.reservations.create(serializer.to_command(), actor_from_request(request))
        return Response(self.reservation_body(reservation), status=status.HTTP_201_CREATED)


class ReservationDetailView(SchedulingView):
    """Handler for GET, PATCH and DELETE /api/reservations/{reservation_id}"""

    def get(self, request: Request, reservation_id: str) -> Response:
        reservation = self.services.reservations.get_reservation(parse_reservation_id(reservation_id))
        return Response(self.reservation_body(reservation))

    def patch(self, request: Request, reservation_id: str) -> Response:
        rid = parse_reservation_id(reservation_id)
        serializer = UpdateReservationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = self.services.reservations.update(rid, serializer.to_command(), actor_from_request(request))
        return Response(self.reservation_body(reservation))

    def delete(self, request: Request, reservation_id: str) -> Response:
        self.services.reservations.cancel(parse_reservation_id(reservation_id), actor_from_request(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class ConflictCheckView(SchedulingView):
    """Handler for POST /api/reservations/conflicts"""

    def post(self, request: Request) -> Response:
        serializer = ConflictQuerySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        exclude = data.get("excludeReservationId")
        conflicts = self.services.reservations.find_conflicts(
            data["resourceKeys"],
            data["window"],
            ReservationId(exclude) if exclude else None,
        )
        return Response({"conflicts": ConflictSerializer(conflicts, many=True).data})


class RecurringPreviewView(SchedulingView):
    """Handler for POST /api/reservations/recurring/preview"""

    def post(self, request: Request) -> Response:
        serializer = PreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        previews = self.services.reservations.preview_recurring(
            serializer.validated_data["pattern"],
            frozenset(serializer.validated_data["resourceKeys"]),
        )
        return Response({"dates": DatePreviewSerializer(previews, many=True).data})


class RecurringReservationView(SchedulingView):
    """Handler for POST /api/reservations/recurring"""

    def post(self, request: Request) -> Response:
        serializer = RecurringReservationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.services.reservations.create_recurring(serializer.to_command(), actor_from_request(request))
        return Response(
            {
                "created": ReservationSerializer(result.created, many=True).data,
                "skippedDates": SkippedDateSerializer(result.skipped, many=True).data,
            },
            status=status.HTTP_201_CREATED,
        )


class CheckInView(SchedulingView):
    """Handler for POST /api/reservations/{reservation_id}/checkin"""

    def post(self, request: Request, reservation_id: str) -> Response:
        rid = parse_reservation_id(reservation_id)
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.services.attendance.check_in(
            rid,
            serializer.selector(),
            serializer.status(),
            actor=actor_from_request(request),
        )
        return Response(CheckInResultSerializer(result).data)


class BatchCheckInView(SchedulingView):
    """Handler for POST /api/reservations/{reservation_id}/checkin/batch"""

    def post(self, request: Request, reservation_id: str) -> Response:
        rid = parse_reservation_id(reservation_id)
        serializer = BatchCheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcomes = self.services.attendance.check_in_batch(rid, serializer.items(), actor_from_request(request))
        return Response({"results": BatchItemOutcomeSerializer(outcomes, many=True).data})


class RegistrationView(SchedulingView):
    """Handler for POST /api/reservations/{reservation_id}/registrations"""

    def post(self, request: Request, reservation_id: str) -> Response:
        rid = parse_reservation_id(reservation_id)
        serializer = RegisterClientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = self.services.reservations.register_client(
            rid,
            serializer.validated_data["clientId"],
            actor_from_request(request),
        )
        return Response(
            {"registration": AttendanceRecordSerializer(record).data},
            status=status.HTTP_201_CREATED,
        )


class PricingResolveView(SchedulingView):
    """Handler for GET /api/pricing/resolve"""

    def get(self, request: Request) -> Response:
        serializer = PricingQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        quote = self.services.pricing.resolve_for_client(
            serializer.validated_data["clientId"],
            serializer.validated_data["serviceTypeId"],
        )
        return Response({"quote": PriceQuoteSerializer(quote).data})
