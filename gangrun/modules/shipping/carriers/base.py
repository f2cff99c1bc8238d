"""
Base Carrier Interface

All carriers (FedEx, UPS, Southwest Cargo) implement BaseCarrier and
exchange the dataclasses in gangrun.models.shipment. Each carrier provides its
own:
  - Rate calculation
  - Label creation
  - Tracking
  - Address validation
  - Cancellation
"""
from abc import ABC, abstractmethod
from typing import List

from gangrun.models.carrier import CarrierCode
from gangrun.models.shipment import (
    AddressValidationResult,
    CancelResult,
    PackageDimensions,
    ShippingAddress,
    ShippingLabel,
    ShippingPackage,
    ShippingRate,
    TrackingEvent,
    TrackingInfo,
    TrackingStatus,
)
from gangrun.modules.shipping.weight import round_weight

__all__ = [
    "AddressValidationResult",
    "BaseCarrier",
    "CancelResult",
    "PackageDimensions",
    "ShippingAddress",
    "ShippingLabel",
    "ShippingPackage",
    "ShippingRate",
    "TrackingEvent",
    "TrackingInfo",
    "TrackingStatus",
]


# =============================================================================
# Base Carrier Interface
# =============================================================================

class BaseCarrier(ABC):
    """
    Abstract base class for all shipping carriers.

    ``markup_percentage`` is applied to every quoted charge;
    ``test_mode`` routes API carriers to their sandbox endpoints.
    """

    def __init__(self, markup_percentage: float = 0.0, test_mode: bool = False):
        self.markup_percentage = markup_percentage
        self.test_mode = test_mode

    @property
    @abstractmethod
    def carrier_code(self) -> CarrierCode:
        """Return the carrier code enum value."""
        pass

    @property
    @abstractmethod
    def carrier_name(self) -> str:
        """Return the human-readable carrier name."""
        pass

    @abstractmethod
    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[ShippingRate]:
        """
        Get shipping rates from the carrier.

        Args:
            from_address: Origin address
            to_address: Destination address
            packages: Packages to ship

        Returns:
            List of ShippingRate for available services (may be empty)
        """
        pass

    @abstractmethod
    async def create_label(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_code: str,
    ) -> ShippingLabel:
        """
        Create a shipment and generate its label.

        Raises:
            ShippingLabelError: When the carrier rejects the shipment
        """
        pass

    @abstractmethod
    async def track(self, tracking_number: str) -> TrackingInfo:
        """
        Get tracking information for a shipment.

        Raises:
            ShippingTrackingError: When tracking data cannot be fetched
        """
        pass

    @abstractmethod
    async def validate_address(self, address: ShippingAddress) -> AddressValidationResult:
        """Validate an address. Carrier errors yield an invalid result."""
        pass

    @abstractmethod
    async def cancel_shipment(self, tracking_number: str) -> CancelResult:
        """Cancel a shipment. Carrier errors yield an unsuccessful result."""
        pass

    @abstractmethod
    def get_tracking_url(self, tracking_number: str) -> str:
        """Get the public tracking URL for a shipment."""
        pass

    async def close(self):
        """Release network resources. Table-rate carriers hold none."""
        pass

    def apply_markup(self, amount: float) -> float:
        """Carrier charge with the configured markup, rounded to cents."""
        return round_weight(amount * (1 + (self.markup_percentage or 0) / 100), 2)
