"""Builds services from the Django stores and the SCHEDULING settings."""

from dataclasses import dataclass
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils.module_loading import import_string

from scheduling.services.attendance_ledger import AttendanceLedger
from scheduling.services.conflict_detector import ConflictDetector
from scheduling.services.guest_aggregator import GuestAggregator
from scheduling.services.pricing_resolver import PricingResolver
from scheduling.services.recurrence_expander import RecurrenceExpander
from scheduling.services.reservation_service import ReservationService
from scheduling.stores.django_store import (
    DjangoAttendanceStore,
    DjangoPassStore,
    DjangoPricingStore,
    DjangoReservationStore,
    DjangoUnitOfWork,
)


@dataclass(frozen=True)
class Services:
    reservations: ReservationService
    attendance: AttendanceLedger
    pricing: PricingResolver


def build_services() -> Services:
    config = settings.SCHEDULING
    uow = DjangoUnitOfWork()
    reservation_store = DjangoReservationStore()
    attendance_store = DjangoAttendanceStore()
    audit = import_string(config["AUDIT_SINK"])()

    pricing = PricingResolver(DjangoPricingStore(), currency=config["CURRENCY"])
    detector = ConflictDetector(reservation_store)
    expander = RecurrenceExpander(detector, uow, ZoneInfo(config["TIME_ZONE"]))

    reservations = ReservationService(
        reservations=reservation_store,
        attendance=attendance_store,
        uow=uow,
        detector=detector,
        pricing=pricing,
        guests=GuestAggregator(pricing),
        expander=expander,
        notifier=import_string(config["NOTIFICATION_DISPATCHER"])(),
        audit=audit,
        default_credits_required=config["DEFAULT_CREDITS_REQUIRED"],
    )
    ledger = AttendanceLedger(reservation_store, attendance_store, DjangoPassStore(), uow, audit)
    return Services(reservations=reservations, attendance=ledger, pricing=pricing)
