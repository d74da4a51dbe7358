"""Normalizes raw guest lists into deduplicated, priced allocations."""

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime

from scheduling.domain.errors import ValidationError
from scheduling.domain.models import AllocationDiff, GuestAllocation
from scheduling.domain.participants import (
    GuestKey,
    GuestSpec,
    RealClient,
    TechnicalGuest,
    TECHNICAL_GUEST_BUCKET,
)
from scheduling.services.pricing_resolver import PricingResolver

logger = logging.getLogger(__name__)


class GuestAggregator:
    """Collapses guest specs into one allocation per distinct guest."""

    def __init__(self, pricing: PricingResolver) -> None:
        self._pricing = pricing

    @staticmethod
    def parse(raw_guests: Iterable[int | GuestSpec]) -> list[GuestSpec]:
        """Turn wire tokens into tagged guest specs.

        A negative integer stands for one technical-guest slot; its value only
        kept tokens unique on the caller side and is dropped here.

        Raises:
            ValidationError: For zero or non-integer tokens.
        """
        specs: list[GuestSpec] = []
        for token in raw_guests:
            if isinstance(token, (RealClient, TechnicalGuest)):
                specs.append(token)
            elif isinstance(token, bool) or not isinstance(token, int):
                raise ValidationError(f"Invalid guest id: {token!r}")
            elif token < 0:
                specs.append(TechnicalGuest())
            elif token > 0:
                specs.append(RealClient(token))
            else:
                raise ValidationError("Guest id 0 is not allowed")
        return specs

    def normalize(
        self,
        guests: Iterable[int | GuestSpec],
        service_type_id: int,
        at: datetime | None = None,
    ) -> dict[GuestKey, GuestAllocation]:
        """Return one allocation per distinct guest, keyed by guest.

        Repeated clients raise the quantity of their allocation and every
        technical guest lands in the shared bucket. Pricing is resolved once
        per allocation, not per unit.
        """
        counts: Counter[GuestKey] = Counter()
        for spec in self.parse(guests):
            key = TECHNICAL_GUEST_BUCKET if isinstance(spec, TechnicalGuest) else spec
            counts[key] += 1

        allocations: dict[GuestKey, GuestAllocation] = {}
        for key, quantity in counts.items():
            if isinstance(key, RealClient):
                pricing = self._pricing.resolve_for_client(key.client_id, service_type_id, at)
            else:
                pricing = self._pricing.resolve_for_technical_guest(service_type_id)
            allocations[key] = GuestAllocation(guest_key=key, quantity=quantity, pricing=pricing)
        return allocations

    @staticmethod
    def diff(
        current: Mapping[GuestKey, GuestAllocation],
        desired: Mapping[GuestKey, GuestAllocation],
    ) -> AllocationDiff:
        """Set difference that makes ``current`` equal to ``desired``.

        Allocations whose quantity is unchanged keep their stored price
        snapshot.
        """
        to_add = {key: allocation for key, allocation in desired.items() if key not in current}
        to_update = {
            key: allocation
            for key, allocation in desired.items()
            if key in current and current[key].quantity != allocation.quantity
        }
        to_remove = frozenset(key for key in current if key not in desired)
        diff = AllocationDiff(to_add=to_add, to_update_quantity=to_update, to_remove=to_remove)
        logger.debug(
            "Guest allocation diff: %d to add, %d to update, %d to remove",
            len(to_add),
            len(to_update),
            len(to_remove),
        )
        return diff
