"""
FedEx Carrier Implementation

- Implements BaseCarrier over FedExClient
- Registered via @register_carrier decorator
- Rate quoting never fails: without an API key, or when the live call
  fails, rates come from the TestModeRates table
"""
import enum
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from gangrun.core.exceptions import ShippingLabelError, ShippingTrackingError
from gangrun.models.carrier import (
    CarrierCode,
    DEFAULT_TRANSIT_DAYS,
    FEDEX_DEFAULT_TRANSIT_DAYS,
    FEDEX_SERVICE_CODES,
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
from gangrun.modules.shipping.weight import total_weight
from gangrun.services.fedex_client import FedExAPIError, FedExClient, FedExCredentials

logger = logging.getLogger(__name__)


class RateMode(str, enum.Enum):
    """Where FedEx rates come from."""
    LIVE = "Live"
    TEST_MODE_RATES = "TestModeRates"


# (service_type, base fee, per pound) over the summed package weight
TEST_MODE_RATE_TABLE = (
    ("FEDEX_GROUND", 12.00, 0.85),
    ("FEDEX_2_DAY", 25.00, 1.50),
    ("STANDARD_OVERNIGHT", 45.00, 2.00),
)

FEDEX_STATUS_MAP = {
    "PU": TrackingStatus.IN_TRANSIT,
    "OD": TrackingStatus.IN_TRANSIT,
    "DE": TrackingStatus.IN_TRANSIT,
    "DL": TrackingStatus.DELIVERED,
    "RS": TrackingStatus.EXCEPTION,
    "CA": TrackingStatus.EXCEPTION,
}

HOME_DELIVERY_NAME = "FedEx Home Delivery"


def estimate_transit_days(
    service_type: str,
    from_zip: Optional[str] = None,
    to_zip: Optional[str] = None,
) -> int:
    """
    Transit days when FedEx gives no delivery timestamp.

    Ground estimates compare the numeric 3-digit zip prefixes. Numeric
    proximity is only a rough stand-in for distance (e.g. 100xx and 199xx are
    both East Coast).
    """
    default = FEDEX_DEFAULT_TRANSIT_DAYS.get(service_type, DEFAULT_TRANSIT_DAYS)
    if not (from_zip and to_zip):
        return default

    if service_type == "STANDARD_OVERNIGHT":
        return 1
    if service_type == "FEDEX_2_DAY":
        return 2

    try:
        zip_diff = abs(int(from_zip[:3]) - int(to_zip[:3]))
    except ValueError:
        return default

    if zip_diff <= 50:
        return 1
    if zip_diff <= 150:
        return 2
    if zip_diff <= 300:
        return 3
    if zip_diff <= 500:
        return 4
    return 5


def days_until(delivery: datetime, now: Optional[datetime] = None) -> int:
    """Whole days (rounded up) from now until ``delivery``."""
    now = now or datetime.now(timezone.utc)
    return math.ceil((delivery - now).total_seconds() / 86400)


@register_carrier(CarrierCode.FEDEX)
class FedExCarrier(BaseCarrier):
    """
    FedEx shipping carrier.

    Pass ``client`` to reuse a configured FedExClient, or ``transport`` to
    route the lazily built client through a mock transport.
    """

    def __init__(
        self,
        markup_percentage: float = 0.0,
        test_mode: bool = False,
        api_key: str = "",
        secret_key: str = "",
        account_number: str = "",
        api_endpoint: Optional[str] = None,
        force_test_rates: bool = False,
        timeout: float = 30.0,
        max_retries: int = 3,
        shipper_name: str = "GangRun Printing",
        shipper_phone: str = "1234567890",
        client: Optional[FedExClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(markup_percentage=markup_percentage, test_mode=test_mode)
        self.credentials = FedExCredentials(
            api_key=api_key,
            secret_key=secret_key,
            account_number=account_number,
            use_sandbox=test_mode,
            api_endpoint=api_endpoint,
        )
        self.force_test_rates = force_test_rates
        self.timeout = timeout
        self.max_retries = max_retries
        self.shipper_name = shipper_name
        self.shipper_phone = shipper_phone
        self._transport = transport
        self._client = client

    @classmethod
    def from_settings(cls, settings, test_mode: Optional[bool] = None, **kwargs) -> "FedExCarrier":
        return cls(
            markup_percentage=settings.FEDEX_MARKUP_PERCENTAGE,
            test_mode=settings.FEDEX_TEST_MODE if test_mode is None else test_mode,
            api_key=settings.FEDEX_API_KEY,
            secret_key=settings.FEDEX_SECRET_KEY,
            account_number=settings.FEDEX_ACCOUNT_NUMBER,
            api_endpoint=settings.FEDEX_API_ENDPOINT,
            timeout=settings.SHIPPING_HTTP_TIMEOUT_SECONDS,
            max_retries=settings.SHIPPING_HTTP_MAX_RETRIES,
            shipper_name=settings.SHIPPER_NAME,
            shipper_phone=settings.SHIPPER_PHONE,
            **kwargs,
        )

    @property
    def carrier_code(self) -> CarrierCode:
        return CarrierCode.FEDEX

    @property
    def carrier_name(self) -> str:
        return "FedEx"

    @property
    def rate_mode(self) -> RateMode:
        if self.force_test_rates or not self.credentials.api_key:
            return RateMode.TEST_MODE_RATES
        return RateMode.LIVE

    def _get_client(self) -> FedExClient:
        if self._client is None:
            self._client = FedExClient(
                self.credentials,
                timeout=self.timeout,
                max_retries=self.max_retries,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()

    # ==================== Rating ====================

    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[ShippingRate]:
        """Get FedEx rates; falls back to TestModeRates on any API failure."""
        if self.rate_mode is RateMode.TEST_MODE_RATES:
            return self.get_test_mode_rates(packages, from_address.zip_code, to_address.zip_code)

        try:
            details = await self._get_client().get_rate_quotes(from_address, to_address, packages)
        except FedExAPIError as e:
            logger.warning(f"FedEx live rates failed ({e.code}): {e.message} - using TestModeRates")
            return self.get_test_mode_rates(packages, from_address.zip_code, to_address.zip_code)

        rates = []
        for detail in details:
            # Only include services we actually use
            if detail.service_type not in FEDEX_SERVICE_CODES:
                continue

            service_name = FEDEX_SERVICE_CODES[detail.service_type]
            if detail.service_type == "FEDEX_GROUND" and to_address.is_residential:
                service_name = HOME_DELIVERY_NAME

            estimated_days = estimate_transit_days(
                detail.service_type, from_address.zip_code, to_address.zip_code
            )
            if detail.delivery_timestamp:
                diff_days = days_until(detail.delivery_timestamp)
                if diff_days > 0:
                    estimated_days = diff_days

            rates.append(ShippingRate(
                carrier=CarrierCode.FEDEX,
                service_code=detail.service_type,
                service_name=service_name,
                rate_amount=self.apply_markup(detail.total_charge),
                currency=detail.currency,
                estimated_days=estimated_days,
                delivery_date=detail.delivery_timestamp,
                is_guaranteed=detail.guaranteed,
            ))

        return rates

    def get_test_mode_rates(
        self,
        packages: List[ShippingPackage],
        from_zip: Optional[str] = None,
        to_zip: Optional[str] = None,
    ) -> List[ShippingRate]:
        """Estimated rates for Ground, 2Day and Standard Overnight."""
        weight = total_weight(packages)
        return [
            ShippingRate(
                carrier=CarrierCode.FEDEX,
                service_code=service_type,
                service_name=FEDEX_SERVICE_CODES[service_type],
                rate_amount=self.apply_markup(base_fee + weight * per_pound),
                estimated_days=estimate_transit_days(service_type, from_zip, to_zip),
                is_guaranteed=False,
            )
            for service_type, base_fee, per_pound in TEST_MODE_RATE_TABLE
        ]

    # ==================== Labels ====================

    async def create_label(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_code: str,
    ) -> ShippingLabel:
        if not self.credentials.api_key:
            raise ShippingLabelError("FedEx API credentials not configured", carrier=CarrierCode.FEDEX.value)

        try:
            result = await self._get_client().create_shipment(
                from_address,
                to_address,
                packages,
                service_code,
                shipper_name=self.shipper_name,
                shipper_phone=self.shipper_phone,
            )
        except FedExAPIError as e:
            logger.error(f"FedEx create label error: {e.message}")
            raise ShippingLabelError(
                "Failed to create FedEx shipping label",
                carrier=CarrierCode.FEDEX.value,
                details={"cause": e.message, "code": e.code},
            ) from e

        return ShippingLabel(
            tracking_number=result.tracking_number,
            label_url=result.label_url,
            label_format="PDF",
            carrier=CarrierCode.FEDEX,
        )

    # ==================== Tracking ====================

    async def track(self, tracking_number: str) -> TrackingInfo:
        if not self.credentials.api_key:
            raise ShippingTrackingError(
                "FedEx API credentials not configured",
                carrier=CarrierCode.FEDEX.value,
                tracking_number=tracking_number,
            )

        try:
            result = await self._get_client().track_shipment(tracking_number)
        except FedExAPIError as e:
            logger.error(f"FedEx tracking error: {e.message}")
            raise ShippingTrackingError(
                "Failed to track FedEx shipment",
                carrier=CarrierCode.FEDEX.value,
                tracking_number=tracking_number,
            ) from e

        events = [
            TrackingEvent(
                timestamp=scan.timestamp or datetime.now(timezone.utc),
                location=f"{scan.city}, {scan.state}" if scan.city else "",
                status=scan.status,
                description=scan.description,
            )
            for scan in result.events
        ]

        return TrackingInfo(
            tracking_number=tracking_number,
            carrier=CarrierCode.FEDEX,
            status=self.map_status(result.status_code),
            current_location=result.current_location,
            estimated_delivery=result.estimated_delivery,
            actual_delivery=result.actual_delivery,
            events=events,
        )

    def map_status(self, carrier_status: Optional[str]) -> TrackingStatus:
        """Map FedEx status code to normalized TrackingStatus."""
        return FEDEX_STATUS_MAP.get((carrier_status or "").upper(), TrackingStatus.PENDING)

    def get_tracking_url(self, tracking_number: str) -> str:
        return f"https://www.fedex.com/fedextrack/?trknbr={tracking_number}"

    # ==================== Address Validation ====================

    async def validate_address(self, address: ShippingAddress) -> AddressValidationResult:
        """Valid when FedEx classifies the address as BUSINESS or RESIDENTIAL."""
        if not self.credentials.api_key:
            return AddressValidationResult(
                is_valid=False,
                original_address=address,
                messages=["FedEx API credentials not configured"],
            )

        try:
            classification, messages = await self._get_client().resolve_address(address)
        except FedExAPIError as e:
            logger.error(f"FedEx address validation error: {e.message}")
            return AddressValidationResult(
                is_valid=False,
                original_address=address,
                messages=[f"Validation error: {e.message}"],
            )

        return AddressValidationResult(
            is_valid=classification in ("BUSINESS", "RESIDENTIAL"),
            original_address=address,
            classification=classification,
            messages=messages,
        )

    # ==================== Cancellation ====================

    async def cancel_shipment(self, tracking_number: str) -> CancelResult:
        if not self.credentials.api_key:
            return CancelResult(
                success=False,
                tracking_number=tracking_number,
                error_message="FedEx API credentials not configured",
            )

        try:
            success = await self._get_client().cancel_shipment(tracking_number)
        except FedExAPIError as e:
            logger.error(f"FedEx cancel shipment error: {e.message}")
            return CancelResult(success=False, tracking_number=tracking_number, error_message=e.message)

        return CancelResult(success=success, tracking_number=tracking_number)
