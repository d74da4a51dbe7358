"""Resolves per-client fee quotes for a service type."""

import logging
from datetime import datetime

from django.utils import timezone

from scheduling.domain.errors import ServiceTypeNotFoundError
from scheduling.domain.models import ServiceType
from scheduling.domain.value_objects import PriceQuote, PriceSource
from scheduling.stores.interfaces import PricingStore

logger = logging.getLogger(__name__)


class PricingResolver:
    """Client price code first, service type default otherwise.

    Read-only: it never writes, so concurrent calls need no coordination.
    """

    def __init__(self, store: PricingStore, currency: str) -> None:
        self._store = store
        self._currency = currency

    def resolve_for_client(self, client_id: int, service_type_id: int, at: datetime | None = None) -> PriceQuote:
        """Return the fees a client pays for a service type at an instant.

        Raises:
            ServiceTypeNotFoundError: If the service type does not exist.
        """
        service_type = self.get_service_type(service_type_id)
        at = at or timezone.now()
        override = self._store.find_override(client_id, service_type_id, at)
        if override is not None and override.is_valid_at(at):
            logger.debug(
                "Price code %s applies to client %s for service type %s",
                override.price_code or override.id,
                client_id,
                service_type_id,
            )
            return PriceQuote(
                entry_fee_brutto=override.entry_fee_brutto,
                trainer_fee_brutto=override.trainer_fee_brutto,
                currency=override.currency,
                source=PriceSource.CLIENT_OVERRIDE,
                price_code=override.price_code,
            )
        return self._default_quote(service_type)

    def resolve_for_technical_guest(self, service_type_id: int) -> PriceQuote:
        """Technical guests have no client record, so they always pay the default."""
        return self._default_quote(self.get_service_type(service_type_id))

    def get_service_type(self, service_type_id: int) -> ServiceType:
        service_type = self._store.get_service_type(service_type_id)
        if service_type is None:
            raise ServiceTypeNotFoundError(service_type_id)
        return service_type

    def _default_quote(self, service_type: ServiceType) -> PriceQuote:
        return PriceQuote(
            entry_fee_brutto=service_type.default_entry_fee_brutto,
            trainer_fee_brutto=service_type.default_trainer_fee_brutto,
            currency=self._currency,
            source=PriceSource.SERVICE_DEFAULT,
        )
