"""
FedEx REST API Client

Implements FedEx OAuth 2.0 (client credentials) and the shipping APIs:
- Rating (rate quotes)
- Ship (label creation, cancellation)
- Track
- Address Validation

Every failure (network, HTTP status, malformed reply) surfaces as
FedExAPIError so callers have a single exception to handle.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from gangrun.core.exceptions import CarrierAPIError
from gangrun.core.http_client import RateLimitExceeded, ResilientHTTPClient, RetryConfig
from gangrun.models.shipment import ShippingAddress, ShippingPackage
from gangrun.modules.shipping.weight import round_weight
from gangrun.services.oauth import TokenCache

logger = logging.getLogger(__name__)

# FedEx API URLs
FEDEX_PRODUCTION_URL = "https://apis.fedex.com"
FEDEX_SANDBOX_URL = "https://apis-sandbox.fedex.com"

OAUTH_TOKEN_PATH = "/oauth/token"
RATE_PATH = "/rate/v1/rates/quotes"
SHIP_PATH = "/ship/v1/shipments"
CANCEL_PATH = "/ship/v1/shipments/cancel"
TRACK_PATH = "/track/v1/trackingnumbers"
ADDRESS_RESOLVE_PATH = "/address/v1/addresses/resolve"

# Used when a package has dimensions but no length
DEFAULT_PACKAGE_LENGTH = 10


@dataclass
class FedExCredentials:
    """FedEx API credentials."""
    api_key: str
    secret_key: str
    account_number: str
    use_sandbox: bool = False
    api_endpoint: Optional[str] = None

    @property
    def base_url(self) -> str:
        if self.use_sandbox:
            return FEDEX_SANDBOX_URL
        return self.api_endpoint or FEDEX_PRODUCTION_URL


@dataclass
class FedExRateDetail:
    """One entry of a FedEx rate reply."""
    service_type: str
    total_charge: float
    currency: str = "USD"
    delivery_timestamp: Optional[datetime] = None
    guaranteed: bool = False
    raw_response: Dict = field(default_factory=dict)


@dataclass
class FedExShipmentResult:
    """Tracking number and label of a created shipment."""
    tracking_number: str
    label_url: str
    raw_response: Dict = field(default_factory=dict)


@dataclass
class FedExScanEvent:
    timestamp: Optional[datetime]
    city: str
    state: str
    status: str
    description: str


@dataclass
class FedExTrackingResult:
    """Latest status and scan history for a tracking number."""
    tracking_number: str
    status_code: str
    current_location: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    events: List[FedExScanEvent] = field(default_factory=list)


class FedExAPIError(CarrierAPIError):
    """FedEx API error with details."""
    default_code = "FEDEX_API_ERROR"


def parse_fedex_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from a FedEx reply, None if absent or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparsable FedEx timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FedExClient:
    """
    FedEx API client.

    Holds one OAuth token (see TokenCache) and one HTTP connection pool.
    Call close() when done, or use as an async context manager.
    """

    def __init__(
        self,
        credentials: FedExCredentials,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self._http = ResilientHTTPClient(
            base_url=credentials.base_url,
            retry_config=RetryConfig(max_retries=max_retries),
            timeout=timeout,
            transport=transport,
        )
        self._tokens = TokenCache(self._fetch_token, name="FedEx OAuth")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close HTTP client."""
        await self._http.close()

    async def _fetch_token(self) -> Tuple[str, int]:
        try:
            response = await self._http.post(
                OAUTH_TOKEN_PATH,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.credentials.api_key,
                    "client_secret": self.credentials.secret_key,
                },
            )
        except (httpx.HTTPError, RateLimitExceeded) as e:
            logger.error(f"FedEx OAuth request failed: {e}")
            raise FedExAPIError(f"Network error during authentication: {e}", code="NETWORK_ERROR")

        if response.status_code != 200:
            logger.error(f"FedEx OAuth failed: {response.status_code}")
            raise FedExAPIError(
                "Failed to authenticate with FedEx",
                code="AUTH_FAILED",
                details={"status": response.status_code},
            )

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            return data["access_token"], int(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise FedExAPIError(f"Malformed FedEx token response: {e}", code="AUTH_FAILED")

    async def _make_request(self, method: str, path: str, data: Optional[Dict] = None) -> Dict:
        """Make authenticated API request."""
        token = await self._tokens.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-locale": "en_US",
        }

        try:
            response = await self._http.request(method, path, headers=headers, json=data)
        except (httpx.HTTPError, RateLimitExceeded) as e:
            logger.error(f"FedEx API request failed: {e}")
            raise FedExAPIError(f"Network error: {e}", code="NETWORK_ERROR")

        logger.debug(f"FedEx API {method} {path} -> {response.status_code}")

        if response.status_code == 401:
            self._tokens.invalidate()

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"raw": response.text[:500]}

            error_msg = "FedEx API error"
            error_code = str(response.status_code)
            errors = error_data.get("errors") if isinstance(error_data, dict) else None
            if errors:
                error_msg = errors[0].get("message", error_msg)
                error_code = errors[0].get("code", error_code)

            logger.error(f"FedEx API error: {error_code} - {error_msg}")
            raise FedExAPIError(error_msg, code=error_code, details=error_data)

        try:
            body = response.json()
        except ValueError as e:
            raise FedExAPIError(f"Invalid JSON from FedEx: {e}", code="PARSE_ERROR")
        if not isinstance(body, dict):
            raise FedExAPIError("FedEx reply is not a JSON object", code="PARSE_ERROR")
        return body

    # ==================== Request builders ====================

    @staticmethod
    def format_address(address: ShippingAddress) -> Dict[str, Any]:
        """Convert to FedEx API address format."""
        return {
            "streetLines": [line for line in (address.street, address.street2) if line],
            "city": address.city,
            "stateOrProvinceCode": address.state,
            "postalCode": address.zip_code,
            "countryCode": address.country or "US",
            "residential": bool(address.is_residential),
        }

    @staticmethod
    def format_packages(packages: List[ShippingPackage]) -> List[Dict[str, Any]]:
        """One requestedPackageLineItem per package."""
        items = []
        for index, pkg in enumerate(packages, start=1):
            item: Dict[str, Any] = {
                "sequenceNumber": index,
                "weight": {"units": "LB", "value": round_weight(pkg.weight)},
            }
            if pkg.dimensions:
                item["dimensions"] = {
                    "length": math.ceil(pkg.dimensions.length or DEFAULT_PACKAGE_LENGTH),
                    "width": math.ceil(pkg.dimensions.width),
                    "height": math.ceil(pkg.dimensions.height),
                    "units": "IN",
                }
            items.append(item)
        return items

    # ==================== Rating ====================

    async def get_rate_quotes(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[FedExRateDetail]:
        """
        Request rate quotes for every service FedEx offers on this lane.

        Returns:
            Unfiltered rate details (empty when the reply has none)
        """
        request_data = {
            "accountNumber": {"value": self.credentials.account_number},
            "requestedShipment": {
                "shipper": {"address": self.format_address(from_address)},
                "recipient": {"address": self.format_address(to_address)},
                "shipDateStamp": date.today().isoformat(),
                "pickupType": "DROPOFF_AT_FEDEX_LOCATION",
                "rateRequestType": ["LIST", "ACCOUNT"],
                "requestedPackageLineItems": self.format_packages(packages),
            },
        }

        response = await self._make_request("POST", RATE_PATH, data=request_data)

        try:
            details = (response.get("output") or {}).get("rateReplyDetails") or []
            rates = []
            for detail in details:
                rated = (detail.get("ratedShipmentDetails") or [{}])[0]
                charge = rated.get("totalNetCharge")
                if charge is None:
                    charge = rated.get("totalNetFedExCharge", 0)
                date_detail = (detail.get("commit") or {}).get("dateDetail") or {}

                rates.append(FedExRateDetail(
                    service_type=detail.get("serviceType", ""),
                    total_charge=float(charge),
                    currency=rated.get("currency", "USD"),
                    delivery_timestamp=parse_fedex_timestamp(detail.get("deliveryTimestamp")),
                    guaranteed=date_detail.get("dayOfWeek") is not None,
                    raw_response=detail,
                ))
            return rates
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Rate reply parsing failed: {e}")
            raise FedExAPIError(f"Rate reply parsing failed: {e}", code="RATE_ERROR")

    # ==================== Shipping ====================

    async def create_shipment(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_type: str,
        shipper_name: str = "GangRun Printing",
        shipper_phone: str = "1234567890",
    ) -> FedExShipmentResult:
        """Create a shipment and get a 4x6 PDF label."""
        request_data = {
            "labelResponseOptions": "URL_ONLY",
            "accountNumber": {"value": self.credentials.account_number},
            "requestedShipment": {
                "shipper": {
                    "address": self.format_address(from_address),
                    "contact": {
                        "personName": "Shipping Department",
                        "phoneNumber": shipper_phone,
                        "companyName": shipper_name,
                    },
                },
                "recipients": [{
                    "address": self.format_address(to_address),
                    "contact": {
                        "personName": to_address.street2 or "Recipient",
                        "phoneNumber": shipper_phone,
                    },
                }],
                "shipDatestamp": date.today().isoformat(),
                "serviceType": service_type,
                "packagingType": "YOUR_PACKAGING",
                "pickupType": "DROPOFF_AT_FEDEX_LOCATION",
                "blockInsightVisibility": False,
                "shippingChargesPayment": {"paymentType": "SENDER"},
                "labelSpecification": {
                    "labelFormatType": "COMMON2D",
                    "imageType": "PDF",
                    "labelStockType": "PAPER_4X6",
                },
                "requestedPackageLineItems": self.format_packages(packages),
            },
        }

        response = await self._make_request("POST", SHIP_PATH, data=request_data)

        try:
            shipment = response["output"]["transactionShipments"][0]
            package = shipment["completedShipmentDetail"]["completedPackageDetails"][0]
            tracking_number = package["trackingIds"][0]["trackingNumber"]
            label_url = ""
            for document in shipment.get("pieceResponses", [{}])[0].get("packageDocuments", []):
                label_url = document.get("url", "") or label_url
            return FedExShipmentResult(
                tracking_number=tracking_number,
                label_url=label_url,
                raw_response=response,
            )
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Create shipment reply parsing failed: {e}")
            raise FedExAPIError(f"Create shipment failed: {e}", code="SHIP_ERROR")

    async def cancel_shipment(self, tracking_number: str) -> bool:
        """Cancel a shipment. True when FedEx confirms the cancellation."""
        request_data = {
            "accountNumber": {"value": self.credentials.account_number},
            "trackingNumber": tracking_number,
        }
        response = await self._make_request("PUT", CANCEL_PATH, data=request_data)
        output = response.get("output") or {}
        return output.get("cancelledShipment", True) is not False

    # ==================== Tracking ====================

    async def track_shipment(self, tracking_number: str) -> FedExTrackingResult:
        """Get latest status and scan events for a tracking number."""
        request_data = {
            "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": tracking_number}}],
            "includeDetailedScans": True,
        }

        response = await self._make_request("POST", TRACK_PATH, data=request_data)

        try:
            result = response["output"]["completeTrackResults"][0]["trackResults"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise FedExAPIError(f"No tracking information found: {e}", code="NOT_FOUND")

        events = []
        for scan in result.get("scanEvents") or []:
            location = scan.get("scanLocation") or {}
            events.append(FedExScanEvent(
                timestamp=parse_fedex_timestamp(scan.get("date")),
                city=location.get("city", ""),
                state=location.get("stateOrProvinceCode", ""),
                status=scan.get("derivedStatus") or scan.get("eventType", ""),
                description=scan.get("eventDescription", ""),
            ))

        latest = result.get("latestStatusDetail") or {}
        date_times = {
            entry.get("type"): entry.get("dateTime")
            for entry in result.get("dateAndTimes") or []
        }

        return FedExTrackingResult(
            tracking_number=tracking_number,
            status_code=latest.get("code", ""),
            current_location=(latest.get("scanLocation") or {}).get("city"),
            estimated_delivery=parse_fedex_timestamp(
                result.get("estimatedDeliveryTimestamp") or date_times.get("ESTIMATED_DELIVERY")
            ),
            actual_delivery=parse_fedex_timestamp(
                result.get("actualDeliveryTimestamp") or date_times.get("ACTUAL_DELIVERY")
            ),
            events=events,
        )

    # ==================== Address Validation ====================

    async def resolve_address(self, address: ShippingAddress) -> Tuple[str, List[str]]:
        """
        Resolve an address.

        Returns:
            Tuple of (classification, messages). Classification is BUSINESS,
            RESIDENTIAL, MIXED or UNKNOWN.
        """
        request_data = {"addressesToValidate": [{"address": self.format_address(address)}]}
        response = await self._make_request("POST", ADDRESS_RESOLVE_PATH, data=request_data)

        try:
            resolved = response["output"]["resolvedAddresses"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise FedExAPIError(f"No resolved address returned: {e}", code="VALIDATION_ERROR")

        messages = [
            alert.get("message", "")
            for alert in (response["output"].get("alerts") or [])
            if alert.get("message")
        ]
        return resolved.get("classification", "UNKNOWN"), messages
