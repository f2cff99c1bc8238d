"""
Rate shopping across the enabled shipping modules.

Every enabled carrier is quoted concurrently. A carrier that raises is
logged and skipped; the caller gets whatever the others returned, possibly
an empty list, never an error.
"""
import asyncio
import logging
from typing import List

from gangrun.models.shipment import ShippingAddress, ShippingPackage, ShippingRate
from gangrun.modules.shipping.registry import ShippingModuleRegistry

logger = logging.getLogger(__name__)


class RateShoppingService:
    def __init__(self, registry: ShippingModuleRegistry):
        self.registry = registry

    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        sort_by_price: bool = False,
    ) -> List[ShippingRate]:
        """
        Combined rates from all enabled modules.

        Rates keep module priority order (and each carrier's own order within
        it) unless ``sort_by_price`` is set.
        """
        modules = self.registry.get_enabled_modules()
        if not modules:
            logger.warning("No shipping modules enabled")
            return []

        results = await asyncio.gather(
            *(m.provider.get_rates(from_address, to_address, packages) for m in modules),
            return_exceptions=True,
        )

        rates: List[ShippingRate] = []
        for module, result in zip(modules, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Skipping {module.code.value} rates: {type(result).__name__}: {result}"
                )
                continue
            logger.debug(f"{module.code.value} returned {len(result)} rates")
            rates.extend(result)

        if sort_by_price:
            rates.sort(key=lambda r: r.rate_amount)
        return rates
