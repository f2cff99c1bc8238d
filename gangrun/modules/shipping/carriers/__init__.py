"""
Carrier Registry and Factory

- Carrier implementations register themselves with @register_carrier
- create_carrier() instantiates a carrier by CarrierCode
- Enablement and priority live in the ShippingModuleRegistry, not here
"""
from typing import Dict, List, Type
import logging

from gangrun.core.exceptions import ShippingModuleNotFoundError
from gangrun.models.carrier import CarrierCode
from gangrun.modules.shipping.carriers.base import BaseCarrier

logger = logging.getLogger(__name__)

# Registry of carrier implementations
_CARRIER_REGISTRY: Dict[CarrierCode, Type[BaseCarrier]] = {}


def register_carrier(carrier_code: CarrierCode):
    """
    Decorator to register a carrier implementation.

    Usage:
        @register_carrier(CarrierCode.FEDEX)
        class FedExCarrier(BaseCarrier):
            ...
    """
    def decorator(cls: Type[BaseCarrier]):
        _CARRIER_REGISTRY[carrier_code] = cls
        logger.debug(f"Registered carrier: {carrier_code.value} -> {cls.__name__}")
        return cls
    return decorator


def get_carrier_class(carrier_code: CarrierCode) -> Type[BaseCarrier]:
    """
    Look up the implementation registered for a carrier code.

    Raises:
        ShippingModuleNotFoundError: No implementation registered
    """
    try:
        carrier_cls = _CARRIER_REGISTRY.get(CarrierCode(carrier_code))
    except ValueError:
        carrier_cls = None
    if carrier_cls is None:
        raise ShippingModuleNotFoundError(
            f"No implementation registered for carrier: {carrier_code}",
            details={"carrier": str(carrier_code)},
        )
    return carrier_cls


def create_carrier(carrier_code: CarrierCode, **kwargs) -> BaseCarrier:
    """Instantiate the carrier registered for ``carrier_code``."""
    return get_carrier_class(carrier_code)(**kwargs)


def get_registered_carriers() -> List[CarrierCode]:
    """Get list of all registered carrier codes."""
    return list(_CARRIER_REGISTRY.keys())


# Import carriers to trigger registration
# These imports must be at the bottom to avoid circular imports
from gangrun.modules.shipping.carriers.fedex import FedExCarrier  # noqa: E402, F401
from gangrun.modules.shipping.carriers.southwest_cargo import SouthwestCargoCarrier  # noqa: E402, F401
from gangrun.modules.shipping.carriers.ups import UPSCarrier  # noqa: E402, F401
