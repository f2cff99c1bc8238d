"""
Shipment records exchanged between the carriers and their callers.

Plain dataclasses; persistence belongs to the calling application.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from gangrun.models.carrier import CarrierCode


class TrackingStatus(str, enum.Enum):
    """
    Carrier-agnostic tracking status.

    Each carrier maps its own status codes onto these four values.
    """
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    EXCEPTION = "exception"


@dataclass
class ShippingAddress:
    """Ship-from or ship-to address."""
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "US"
    street2: Optional[str] = None
    is_residential: bool = False


@dataclass
class PackageDimensions:
    """Package dimensions in inches."""
    length: float
    width: float
    height: float


@dataclass
class ShippingPackage:
    """A single package: weight in pounds, optional dimensions."""
    weight: float
    dimensions: Optional[PackageDimensions] = None


@dataclass
class ShippingRate:
    """Shipping rate quote, markup already applied."""
    carrier: CarrierCode
    service_code: str
    service_name: str
    rate_amount: float
    estimated_days: int
    currency: str = "USD"
    delivery_date: Optional[datetime] = None
    is_guaranteed: bool = False


@dataclass
class ShippingLabel:
    """Label produced by a carrier."""
    tracking_number: str
    label_url: str
    label_format: str
    carrier: CarrierCode


@dataclass
class TrackingEvent:
    """A single tracking scan."""
    timestamp: datetime
    location: str
    status: str  # carrier-specific status
    description: str


@dataclass
class TrackingInfo:
    """Full tracking information."""
    tracking_number: str
    carrier: CarrierCode
    status: TrackingStatus
    current_location: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    events: List[TrackingEvent] = field(default_factory=list)


@dataclass
class AddressValidationResult:
    """Result of address validation."""
    is_valid: bool
    original_address: ShippingAddress
    classification: Optional[str] = None  # BUSINESS, RESIDENTIAL, MIXED, UNKNOWN
    messages: List[str] = field(default_factory=list)


@dataclass
class CancelResult:
    """Result of cancelling (voiding) a shipment."""
    success: bool
    tracking_number: str
    error_message: Optional[str] = None
