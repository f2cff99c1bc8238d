"""
UPS Carrier Implementation

- Implements BaseCarrier over UPSClient
- Registered via @register_carrier decorator
- get_rates never raises: any UPS failure yields an empty rate list
"""
import logging
from typing import List, Optional

import httpx

from gangrun.core.exceptions import ShippingLabelError, ShippingTrackingError
from gangrun.models.carrier import (
    CarrierCode,
    DEFAULT_TRANSIT_DAYS,
    UPS_ESTIMATED_DAYS,
    UPS_SERVICE_CODES,
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
from gangrun.services.ups_client import UPSAPIError, UPSClient, UPSCredentials

logger = logging.getLogger(__name__)

# UPS activity type to TrackingStatus mapping
UPS_STATUS_MAP = {
    "D": TrackingStatus.DELIVERED,
    "DELIVERED": TrackingStatus.DELIVERED,
    "I": TrackingStatus.IN_TRANSIT,
    "IN TRANSIT": TrackingStatus.IN_TRANSIT,
    "O": TrackingStatus.IN_TRANSIT,
    "OUT FOR DELIVERY": TrackingStatus.IN_TRANSIT,
    "P": TrackingStatus.IN_TRANSIT,
    "PICKUP": TrackingStatus.IN_TRANSIT,
    "X": TrackingStatus.EXCEPTION,
    "EXCEPTION": TrackingStatus.EXCEPTION,
    "RS": TrackingStatus.EXCEPTION,
    "M": TrackingStatus.PENDING,
    "MV": TrackingStatus.PENDING,
}


@register_carrier(CarrierCode.UPS)
class UPSCarrier(BaseCarrier):
    """UPS shipping carrier."""

    def __init__(
        self,
        markup_percentage: float = 0.0,
        test_mode: bool = False,
        client_id: str = "",
        client_secret: str = "",
        account_number: str = "",
        timeout: float = 30.0,
        max_retries: int = 3,
        shipper_name: str = "GangRun Printing",
        client: Optional[UPSClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(markup_percentage=markup_percentage, test_mode=test_mode)
        self.credentials = UPSCredentials(
            client_id=client_id,
            client_secret=client_secret,
            account_number=account_number,
            use_sandbox=test_mode,
        )
        self.timeout = timeout
        self.max_retries = max_retries
        self.shipper_name = shipper_name
        self._transport = transport
        self._ups_client = client

    @classmethod
    def from_settings(cls, settings, test_mode: Optional[bool] = None, **kwargs) -> "UPSCarrier":
        return cls(
            markup_percentage=settings.UPS_MARKUP_PERCENTAGE,
            test_mode=settings.UPS_TEST_MODE if test_mode is None else test_mode,
            client_id=settings.UPS_CLIENT_ID,
            client_secret=settings.UPS_CLIENT_SECRET,
            account_number=settings.UPS_ACCOUNT_NUMBER,
            timeout=settings.SHIPPING_HTTP_TIMEOUT_SECONDS,
            max_retries=settings.SHIPPING_HTTP_MAX_RETRIES,
            shipper_name=settings.SHIPPER_NAME,
            **kwargs,
        )

    @property
    def carrier_code(self) -> CarrierCode:
        return CarrierCode.UPS

    @property
    def carrier_name(self) -> str:
        return "UPS"

    def _get_ups_client(self) -> UPSClient:
        if self._ups_client is None:
            self._ups_client = UPSClient(
                self.credentials,
                timeout=self.timeout,
                max_retries=self.max_retries,
                shipper_name=self.shipper_name,
                transport=self._transport,
            )
        return self._ups_client

    async def close(self):
        if self._ups_client is not None:
            await self._ups_client.close()

    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[ShippingRate]:
        """Markup-applied rates for the services GangRun offers; [] on any UPS failure."""
        if not (self.credentials.client_id and self.credentials.client_secret):
            logger.debug("UPS credentials not configured, no rates")
            return []
        if not packages:
            logger.debug("No packages to rate, skipping UPS")
            return []

        try:
            ups_rates = await self._get_ups_client().get_rates(from_address, to_address, packages)
        except UPSAPIError as e:
            logger.error(f"UPS get rates error: {e.message}")
            return []

        rates = []
        for ups_rate in ups_rates:
            if ups_rate.service_code not in UPS_SERVICE_CODES:
                continue

            estimated_days = ups_rate.business_days_in_transit or UPS_ESTIMATED_DAYS.get(
                ups_rate.service_code, DEFAULT_TRANSIT_DAYS
            )
            rates.append(ShippingRate(
                carrier=CarrierCode.UPS,
                service_code=ups_rate.service_code,
                service_name=UPS_SERVICE_CODES[ups_rate.service_code],
                rate_amount=self.apply_markup(ups_rate.total_charges),
                currency=ups_rate.currency,
                estimated_days=estimated_days,
                delivery_date=ups_rate.estimated_delivery,
                is_guaranteed=ups_rate.guaranteed_delivery,
            ))

        return rates

    async def create_label(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_code: str,
    ) -> ShippingLabel:
        """Buy a UPS label; the image comes back inline as a data URL."""
        try:
            result = await self._get_ups_client().create_shipment(
                from_address, to_address, packages, service_code
            )
        except UPSAPIError as e:
            logger.error(f"UPS create shipment error: {e.message}")
            raise ShippingLabelError(
                "Failed to create UPS shipping label",
                carrier=CarrierCode.UPS.value,
                details={"cause": e.message, "code": e.code},
            ) from e

        # UPS returns the label image inline, not a hosted URL
        label_url = f"data:image/{result.label_format.lower()};base64,{result.label_data}" if result.label_data else ""
        return ShippingLabel(
            tracking_number=result.tracking_number,
            label_url=label_url,
            label_format=result.label_format,
            carrier=CarrierCode.UPS,
        )

    async def track(self, tracking_number: str) -> TrackingInfo:
        """Normalized tracking for a UPS 1Z number."""
        try:
            result = await self._get_ups_client().track_shipment(tracking_number)
        except UPSAPIError as e:
            logger.error(f"UPS tracking error: {e.message}")
            raise ShippingTrackingError(
                "Failed to track UPS shipment",
                carrier=CarrierCode.UPS.value,
                tracking_number=tracking_number,
            ) from e

        events = [
            TrackingEvent(
                timestamp=ups_event.event_time,
                location=f"{ups_event.city}, {ups_event.state}" if ups_event.city else "",
                status=ups_event.event_type,
                description=ups_event.description,
            )
            for ups_event in result.events
        ]

        return TrackingInfo(
            tracking_number=tracking_number,
            carrier=CarrierCode.UPS,
            status=self.map_status(result.status),
            current_location=(events[0].location or None) if events else None,
            actual_delivery=result.delivery_date if result.delivered else None,
            events=events,
        )

    async def validate_address(self, address: ShippingAddress) -> AddressValidationResult:
        """Street-level check; UPS errors become an invalid result."""
        try:
            is_valid, classification, messages = await self._get_ups_client().validate_address(address)
        except UPSAPIError as e:
            logger.error(f"UPS address validation error: {e.message}")
            return AddressValidationResult(
                is_valid=False,
                original_address=address,
                messages=[f"Validation error: {e.message}"],
            )

        return AddressValidationResult(
            is_valid=is_valid,
            original_address=address,
            classification=classification,
            messages=messages,
        )

    async def cancel_shipment(self, tracking_number: str) -> CancelResult:
        """
        Void a UPS shipment.

        For single-package shipments UPS accepts the tracking number as the
        shipment identification number.
        """
        try:
            success = await self._get_ups_client().void_shipment(tracking_number)
        except UPSAPIError as e:
            logger.error(f"UPS void shipment error: {e.message}")
            return CancelResult(success=False, tracking_number=tracking_number, error_message=e.message)

        return CancelResult(success=success, tracking_number=tracking_number)

    def get_tracking_url(self, tracking_number: str) -> str:
        return f"https://www.ups.com/track?tracknum={tracking_number}"

    def map_status(self, carrier_status: Optional[str]) -> TrackingStatus:
        """Unknown UPS codes map to PENDING."""
        status_upper = (carrier_status or "").upper().strip()
        if status_upper in UPS_STATUS_MAP:
            return UPS_STATUS_MAP[status_upper]

        logger.warning(f"Unknown UPS status: {carrier_status}, defaulting to PENDING")
        return TrackingStatus.PENDING
