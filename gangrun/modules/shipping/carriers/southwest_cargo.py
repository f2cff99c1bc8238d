"""
Southwest Cargo Carrier Implementation

Airport-to-airport freight with no public rating API. Rates come from the
weight-tiered table below; labels and tracking are generated locally and the
shipment is handed over at the Southwest Cargo counter.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from gangrun.models.carrier import (
    CarrierCode,
    SOUTHWEST_CARGO_SERVICE_CODES,
    SOUTHWEST_CARGO_STATES,
)
from gangrun.modules.shipping.carriers import register_carrier
from gangrun.modules.shipping.carriers.base import (
    AddressValidationResult,
    BaseCarrier,
    CancelResult,
    ShippingAddress,
    ShippingLabel,
    ShippingPackage,
    ShippingRate,
    TrackingEvent,
    TrackingInfo,
    TrackingStatus,
)
from gangrun.modules.shipping.weight import billable_weight, total_weight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateTier:
    """One weight bracket. ``max_weight`` of None is the open-ended top tier."""
    max_weight: Optional[float]
    base_rate: float
    additional_per_pound: float
    handling_fee: float

    def rate_for(self, weight: float) -> float:
        return self.base_rate + weight * self.additional_per_pound + self.handling_fee


@dataclass(frozen=True)
class ServiceLevel:
    service_code: str
    estimated_days: int
    is_guaranteed: bool
    tiers: Tuple[RateTier, ...]

    @property
    def service_name(self) -> str:
        return SOUTHWEST_CARGO_SERVICE_CODES[self.service_code]

    def tier_for(self, weight: float) -> RateTier:
        for tier in self.tiers:
            if tier.max_weight is None or weight <= tier.max_weight:
                return tier
        return self.tiers[-1]


PICKUP = ServiceLevel(
    service_code="SOUTHWEST_CARGO_PICKUP",
    estimated_days=3,
    is_guaranteed=False,
    tiers=(
        RateTier(max_weight=50, base_rate=80.00, additional_per_pound=0.00, handling_fee=0.00),
        RateTier(max_weight=100, base_rate=102.00, additional_per_pound=0.31, handling_fee=0.00),
        RateTier(max_weight=None, base_rate=133.00, additional_per_pound=0.25, handling_fee=0.00),
    ),
)

DASH = ServiceLevel(
    service_code="SOUTHWEST_CARGO_DASH",
    estimated_days=1,
    is_guaranteed=True,
    tiers=(
        RateTier(max_weight=50, base_rate=75.00, additional_per_pound=0.00, handling_fee=10.00),
        RateTier(max_weight=100, base_rate=88.00, additional_per_pound=0.35, handling_fee=10.00),
        RateTier(max_weight=None, base_rate=120.00, additional_per_pound=0.40, handling_fee=13.00),
    ),
)

SERVICE_LEVELS = (PICKUP, DASH)


def generate_tracking_number() -> str:
    """SWC followed by 10 digits."""
    return "SWC" + "".join(random.choices("0123456789", k=10))


@register_carrier(CarrierCode.SOUTHWEST_CARGO)
class SouthwestCargoCarrier(BaseCarrier):
    """Southwest Cargo table-rate carrier."""

    def __init__(
        self,
        markup_percentage: float = 0.0,
        test_mode: bool = False,
        minimum_weight: float = 1.0,
    ):
        super().__init__(markup_percentage=markup_percentage, test_mode=test_mode)
        self.minimum_weight = minimum_weight

    @classmethod
    def from_settings(cls, settings, test_mode: Optional[bool] = None, **kwargs) -> "SouthwestCargoCarrier":
        return cls(
            markup_percentage=settings.SOUTHWEST_CARGO_MARKUP_PERCENTAGE,
            test_mode=bool(test_mode),
            minimum_weight=settings.SOUTHWEST_CARGO_MINIMUM_WEIGHT,
            **kwargs,
        )

    @property
    def carrier_code(self) -> CarrierCode:
        return CarrierCode.SOUTHWEST_CARGO

    @property
    def carrier_name(self) -> str:
        return "Southwest Cargo"

    def serves_state(self, state: Optional[str]) -> bool:
        return (state or "").strip().upper() in SOUTHWEST_CARGO_STATES

    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[ShippingRate]:
        """Pickup and Dash rates, or [] when the destination state is not served."""
        if not self.serves_state(to_address.state):
            logger.debug(f"Southwest Cargo does not serve {to_address.state}")
            return []

        weight = billable_weight(total_weight(packages), self.minimum_weight)

        return [
            ShippingRate(
                carrier=CarrierCode.SOUTHWEST_CARGO,
                service_code=level.service_code,
                service_name=level.service_name,
                rate_amount=self.apply_markup(level.tier_for(weight).rate_for(weight)),
                estimated_days=level.estimated_days,
                is_guaranteed=level.is_guaranteed,
            )
            for level in SERVICE_LEVELS
        ]

    async def create_label(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_code: str,
    ) -> ShippingLabel:
        """Airway bill is written at the counter; only a reference number is issued."""
        tracking_number = generate_tracking_number()
        logger.info(f"Southwest Cargo reference {tracking_number} issued for {service_code}")
        return ShippingLabel(
            tracking_number=tracking_number,
            label_url="",
            label_format="PDF",
            carrier=CarrierCode.SOUTHWEST_CARGO,
        )

    async def track(self, tracking_number: str) -> TrackingInfo:
        return TrackingInfo(
            tracking_number=tracking_number,
            carrier=CarrierCode.SOUTHWEST_CARGO,
            status=TrackingStatus.IN_TRANSIT,
            events=[
                TrackingEvent(
                    timestamp=datetime.now(timezone.utc),
                    location="Southwest Cargo",
                    status="in_transit",
                    description="Shipment in transit via Southwest Cargo",
                ),
            ],
        )

    async def validate_address(self, address: ShippingAddress) -> AddressValidationResult:
        if self.serves_state(address.state):
            return AddressValidationResult(is_valid=True, original_address=address)
        return AddressValidationResult(
            is_valid=False,
            original_address=address,
            messages=[f"Southwest Cargo does not serve {address.state}"],
        )

    async def cancel_shipment(self, tracking_number: str) -> CancelResult:
        return CancelResult(success=True, tracking_number=tracking_number)

    def get_tracking_url(self, tracking_number: str) -> str:
        return f"https://www.swacargo.com/swacargo_com_ui/tracking?awbNumber={tracking_number}"
