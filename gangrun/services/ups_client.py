"""
UPS API Client

Thin async wrapper over the UPS REST endpoints GangRun uses:
- Address Validation (street level)
- Rating (Shop request with time in transit)
- Shipping (4x6 labels)
- Tracking
- Void

Transport, HTTP and parse failures all come back as UPSAPIError.
"""
import base64
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from gangrun.core.exceptions import CarrierAPIError
from gangrun.core.http_client import RateLimitExceeded, ResilientHTTPClient, RetryConfig
from gangrun.models.shipment import ShippingAddress, ShippingPackage
from gangrun.modules.shipping.weight import round_weight
from gangrun.services.oauth import TokenCache

logger = logging.getLogger(__name__)

UPS_PRODUCTION_URL = "https://onlinetools.ups.com"
UPS_SANDBOX_URL = "https://wwwcie.ups.com"

OAUTH_TOKEN_PATH = "/security/v1/oauth/token"

ADDRESS_VALIDATION_PATH = "/api/addressvalidation/v1/1"  # request option 1: street level
RATING_PATH = "/api/rating/v2403/Rate"
SHIPPING_PATH = "/api/shipments/v2403/ship"
TRACKING_PATH = "/api/track/v1/details"
VOID_PATH = "/api/shipments/v2403/void"

DEFAULT_PACKAGE_LENGTH = 10
MAX_PARTY_NAME_LENGTH = 35


@dataclass
class UPSCredentials:
    """OAuth client pair plus the shipper account rates are billed to."""
    client_id: str
    client_secret: str
    account_number: str
    use_sandbox: bool = False

    @property
    def base_url(self) -> str:
        return UPS_SANDBOX_URL if self.use_sandbox else UPS_PRODUCTION_URL


@dataclass
class UPSRate:
    """One RatedShipment entry. Charges are UPS's, no markup."""
    service_code: str
    total_charges: float
    currency: str = "USD"
    guaranteed_delivery: bool = False
    estimated_delivery: Optional[datetime] = None
    business_days_in_transit: Optional[int] = None
    raw_response: Dict = field(default_factory=dict)


@dataclass
class UPSShipmentResult:
    shipment_id: str
    tracking_number: str
    label_data: str  # base64 image
    label_format: str
    total_charges: float
    raw_response: Dict = field(default_factory=dict)


@dataclass
class UPSTrackingEvent:
    event_type: str
    description: str
    event_time: datetime
    city: str = ""
    state: str = ""


@dataclass
class UPSTrackingResult:
    """Package status with its activity scan, newest first."""
    tracking_number: str
    status: str
    status_description: str
    events: List[UPSTrackingEvent] = field(default_factory=list)
    delivered: bool = False
    delivery_date: Optional[datetime] = None


class UPSAPIError(CarrierAPIError):
    default_code = "UPS_API_ERROR"


def format_ups_address(name: str, address: ShippingAddress) -> Dict[str, Any]:
    """Shipper/ShipTo/ShipFrom node for rating and shipping requests."""
    lines = [line for line in (address.street, address.street2) if line] or [address.street]
    party = {
        "Name": name[:MAX_PARTY_NAME_LENGTH],
        "Address": {
            "AddressLine": lines,
            "City": address.city,
            "StateProvinceCode": address.state[:5] if address.state else "",
            "PostalCode": address.zip_code,
            "CountryCode": address.country or "US",
        },
    }
    if address.is_residential:
        party["Address"]["ResidentialAddressIndicator"] = ""
    return party


def format_ups_package(package: ShippingPackage) -> Dict[str, Any]:
    """Package node; weight rounds half-up to a tenth of a pound."""
    node = {
        "PackagingType": {"Code": "02"},  # customer supplied
        "PackageWeight": {
            "UnitOfMeasurement": {"Code": "LBS"},
            "Weight": str(round_weight(package.weight)),
        },
    }
    dims = package.dimensions
    if dims:
        node["Dimensions"] = {
            "UnitOfMeasurement": {"Code": "IN"},
            "Length": str(math.ceil(dims.length or DEFAULT_PACKAGE_LENGTH)),
            "Width": str(math.ceil(dims.width)),
            "Height": str(math.ceil(dims.height)),
        }
    return node


def package_node(packages: List[ShippingPackage], packaging_key: str = "PackagingType") -> Union[Dict, List[Dict]]:
    """
    Build the Shipment.Package value.

    UPS wants a bare object for one package and an array otherwise.

    Raises:
        UPSAPIError: when there are no packages to send
    """
    if not packages:
        raise UPSAPIError("At least one package is required", code="NO_PACKAGES")

    nodes = [format_ups_package(pkg) for pkg in packages]
    if packaging_key != "PackagingType":
        for node in nodes:
            node[packaging_key] = node.pop("PackagingType")
    return nodes if len(nodes) > 1 else nodes[0]


def _as_list(value) -> List:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _first_error(error_data: Any, default_code: str) -> Tuple[str, str]:
    """(message, code) from a UPS ``response.errors`` envelope."""
    message, code = "UPS API error", default_code
    if isinstance(error_data, dict):
        errors = (error_data.get("response") or {}).get("errors") or []
        if errors:
            message = errors[0].get("message", message)
            code = errors[0].get("code", code)
    return message, code


def _parse_ups_datetime(date_str: str, time_str: str, time_format: str) -> Optional[datetime]:
    if not date_str:
        return None
    try:
        parsed = datetime.strptime(f"{date_str} {time_str}", f"%Y%m%d {time_format}")
    except ValueError:
        logger.debug(f"Unparsable UPS date: {date_str!r} {time_str!r}")
        return None
    return parsed.replace(tzinfo=timezone.utc)


class UPSClient:
    """
    Async UPS REST client.

    Bearer tokens come from a shared TokenCache and are dropped on any 401,
    so the next call re-authenticates.
    """

    def __init__(
        self,
        credentials: UPSCredentials,
        timeout: float = 30.0,
        max_retries: int = 3,
        shipper_name: str = "GangRun Printing",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.shipper_name = shipper_name
        self._http = ResilientHTTPClient(
            base_url=credentials.base_url,
            retry_config=RetryConfig(max_retries=max_retries),
            timeout=timeout,
            transport=transport,
        )
        self._tokens = TokenCache(self._fetch_token, name="UPS OAuth")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        await self._http.close()

    async def _fetch_token(self) -> Tuple[str, int]:
        basic = base64.b64encode(
            f"{self.credentials.client_id}:{self.credentials.client_secret}".encode()
        ).decode()

        try:
            response = await self._http.post(
                OAUTH_TOKEN_PATH,
                headers={
                    "Authorization": f"Basic {basic}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials"},
            )
        except (httpx.HTTPError, RateLimitExceeded) as e:
            logger.error(f"UPS OAuth request failed: {e}")
            raise UPSAPIError(f"Network error during authentication: {e}", code="NETWORK_ERROR")

        if response.status_code != 200:
            logger.error(f"UPS OAuth failed: {response.status_code} - {response.text[:500]}")
            raise UPSAPIError(
                "Failed to authenticate with UPS",
                code="AUTH_FAILED",
                details={"status": response.status_code},
            )

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            return data["access_token"], int(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise UPSAPIError(f"Malformed UPS token response: {e}", code="AUTH_FAILED")

    async def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Dict:
        """Send one bearer-authenticated call and return its JSON object."""
        token = await self._tokens.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "transId": f"gangrun_{datetime.now().strftime('%Y%m%d%H%M%S%f')}",
            "transactionSrc": "GangRun Printing",
        }

        try:
            response = await self._http.request(method, path, headers=headers, json=data, params=params)
        except (httpx.HTTPError, RateLimitExceeded) as e:
            logger.error(f"UPS API request failed: {e}")
            raise UPSAPIError(f"Network error: {e}", code="NETWORK_ERROR")

        logger.debug(f"UPS API {method} {path} -> {response.status_code}")

        if response.status_code == 401:
            self._tokens.invalidate()

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"raw": response.text[:500]}
            error_msg, error_code = _first_error(error_data, str(response.status_code))
            logger.error(f"UPS API error: {error_code} - {error_msg}")
            raise UPSAPIError(error_msg, code=error_code, details=error_data)

        try:
            body = response.json()
        except ValueError as e:
            raise UPSAPIError(f"Invalid JSON from UPS: {e}", code="PARSE_ERROR")
        if not isinstance(body, dict):
            raise UPSAPIError("UPS reply is not a JSON object", code="PARSE_ERROR")
        return body

    # ==================== Address Validation ====================

    async def validate_address(self, address: ShippingAddress) -> Tuple[bool, Optional[str], List[str]]:
        """
        Street-level check of a US address.

        Returns:
            (is_valid, classification, messages). Classification is
            BUSINESS, RESIDENTIAL or None when UPS could not tell.
        """
        request_data = {
            "XAVRequest": {
                "AddressKeyFormat": {
                    "AddressLine": [line for line in (address.street, address.street2) if line],
                    "PoliticalDivision2": address.city,
                    "PoliticalDivision1": address.state,
                    "PostcodePrimaryLow": address.zip_code,
                    "CountryCode": address.country or "US",
                }
            }
        }

        response = await self._make_request("POST", ADDRESS_VALIDATION_PATH, data=request_data)
        xav = response.get("XAVResponse") or {}

        if "NoCandidatesIndicator" in xav:
            return False, None, ["UPS found no matching address"]

        messages = []
        if "AmbiguousAddressIndicator" in xav:
            messages.append("UPS matched more than one candidate address")

        classification = {"1": "BUSINESS", "2": "RESIDENTIAL"}.get(
            (xav.get("AddressClassification") or {}).get("Code")
        )
        if classification:
            messages.append(f"UPS classification: {classification.lower()}")

        return "ValidAddressIndicator" in xav, classification, messages

    # ==================== Rating ====================

    async def get_rates(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
    ) -> List[UPSRate]:
        """
        Shop rates for every available service, with time in transit.

        Returns:
            Unfiltered rates in reply order
        """
        shipper = format_ups_address(self.shipper_name, from_address)
        shipper["ShipperNumber"] = self.credentials.account_number

        request_data = {
            "RateRequest": {
                "Request": {
                    "RequestOption": "Shop",
                    "SubVersion": "2403",
                    "TransactionReference": {
                        "CustomerContext": "GangRun Printing Rate Request",
                    },
                },
                "Shipment": {
                    "Shipper": shipper,
                    "ShipTo": format_ups_address("Customer", to_address),
                    "ShipFrom": format_ups_address(self.shipper_name, from_address),
                    "Package": package_node(packages),
                    "DeliveryTimeInformation": {"PackageBillType": "03"},
                },
            }
        }

        response = await self._make_request(
            "POST",
            RATING_PATH,
            data=request_data,
            params={"additionalinfo": "timeintransit"},
        )

        try:
            return [
                self._parse_rated_shipment(rs)
                for rs in _as_list((response.get("RateResponse") or {}).get("RatedShipment"))
            ]
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unreadable UPS rate reply: {e}")
            raise UPSAPIError(f"Rate request failed: {e}", code="RATE_ERROR")

    @staticmethod
    def _parse_rated_shipment(rs: Dict) -> UPSRate:
        charges = rs.get("TotalCharges") or {}
        guaranteed = rs.get("GuaranteedDelivery") or {}
        arrival_summary = ((rs.get("TimeInTransit") or {}).get("ServiceSummary") or {}).get("EstimatedArrival") or {}

        transit_days = guaranteed.get("BusinessDaysInTransit") or arrival_summary.get("BusinessDaysInTransit")
        arrival = arrival_summary.get("Arrival") or {}
        estimated_delivery = _parse_ups_datetime(
            arrival.get("Date") or arrival_summary.get("Date", ""),
            (arrival.get("Time") or arrival_summary.get("Time") or "180000")[:4],
            "%H%M",
        )

        return UPSRate(
            service_code=(rs.get("Service") or {}).get("Code", ""),
            total_charges=float(charges.get("MonetaryValue", 0)),
            currency=charges.get("CurrencyCode", "USD"),
            guaranteed_delivery=guaranteed.get("BusinessDaysInTransit") is not None,
            estimated_delivery=estimated_delivery,
            business_days_in_transit=int(transit_days) if transit_days else None,
            raw_response=rs,
        )

    # ==================== Shipping (Label Creation) ====================

    async def create_shipment(
        self,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        packages: List[ShippingPackage],
        service_code: str,
        label_format: str = "GIF",
    ) -> UPSShipmentResult:
        """Create a shipment and get its 4x6 label."""
        shipper = format_ups_address(self.shipper_name, from_address)
        shipper["ShipperNumber"] = self.credentials.account_number

        request_data = {
            "ShipmentRequest": {
                "Request": {
                    "SubVersion": "2403",
                    "TransactionReference": {
                        "CustomerContext": f"GangRun Ship {datetime.now().isoformat()}",
                    },
                },
                "Shipment": {
                    "Description": "Printed Materials",
                    "Shipper": shipper,
                    "ShipTo": format_ups_address(to_address.street2 or "Recipient", to_address),
                    "ShipFrom": format_ups_address(self.shipper_name, from_address),
                    "PaymentInformation": {
                        "ShipmentCharge": {
                            "Type": "01",  # transportation
                            "BillShipper": {"AccountNumber": self.credentials.account_number},
                        },
                    },
                    "Service": {"Code": service_code},
                    # Shipping calls the packaging node "Packaging", Rating "PackagingType"
                    "Package": package_node(packages, packaging_key="Packaging"),
                },
                "LabelSpecification": {
                    "LabelImageFormat": {"Code": label_format},
                    "LabelStockSize": {"Height": "6", "Width": "4"},
                },
            }
        }

        response = await self._make_request("POST", SHIPPING_PATH, data=request_data)

        try:
            results = response["ShipmentResponse"]["ShipmentResults"]
            first_package = _as_list(results.get("PackageResults"))[0]
            charges = (results.get("ShipmentCharges") or {}).get("TotalCharges") or {}

            return UPSShipmentResult(
                shipment_id=results.get("ShipmentIdentificationNumber", ""),
                tracking_number=first_package["TrackingNumber"],
                label_data=(first_package.get("ShippingLabel") or {}).get("GraphicImage", ""),
                label_format=label_format,
                total_charges=float(charges.get("MonetaryValue", 0)),
                raw_response=response,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unreadable UPS shipment reply: {e}")
            raise UPSAPIError(f"Create shipment failed: {e}", code="SHIP_ERROR")

    # ==================== Tracking ====================

    async def track_shipment(self, tracking_number: str) -> UPSTrackingResult:
        response = await self._make_request(
            "GET",
            f"{TRACKING_PATH}/{tracking_number}",
            params={"locale": "en_US", "returnSignature": "false"},
        )

        shipments = _as_list((response.get("trackResponse") or {}).get("shipment"))
        tracked = _as_list(shipments[0].get("package")) if shipments else []
        if not tracked:
            raise UPSAPIError(f"UPS has no tracking data for {tracking_number}", code="NOT_FOUND")

        package = tracked[0]
        current = package.get("currentStatus") or {}

        events = []
        for activity in _as_list(package.get("activity")):
            scan_status = activity.get("status") or {}
            where = (activity.get("location") or {}).get("address") or {}
            when = _parse_ups_datetime(activity.get("date", ""), activity.get("time") or "000000", "%H%M%S")
            events.append(UPSTrackingEvent(
                event_type=scan_status.get("type", ""),
                description=scan_status.get("description", ""),
                event_time=when or datetime.now(timezone.utc),
                city=where.get("city", ""),
                state=where.get("stateProvince", ""),
            ))

        current_code = current.get("code", "")
        latest = events[0] if events else None
        delivered = current_code.upper() in ("D", "DELIVERED") or (latest is not None and latest.event_type == "D")

        return UPSTrackingResult(
            tracking_number=tracking_number,
            status=latest.event_type if latest else current_code,
            status_description=current.get("description", ""),
            events=events,
            delivered=delivered,
            delivery_date=latest.event_time if delivered and latest else None,
        )

    # ==================== Void Shipment ====================

    async def void_shipment(self, shipment_id: str) -> bool:
        """True when UPS reports summary status code 1. Only valid before pickup."""
        response = await self._make_request("DELETE", f"{VOID_PATH}/cancel/{shipment_id}")

        summary = (response.get("VoidShipmentResponse") or {}).get("SummaryResult") or {}
        if (summary.get("Status") or {}).get("Code") == "1":
            logger.info(f"UPS void accepted for {shipment_id}")
            return True

        logger.warning(f"UPS void not accepted for {shipment_id}: {summary}")
        return False
