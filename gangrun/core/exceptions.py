"""
GangRun Exception Hierarchy

All exceptions include code, message, and details for logging and for the
route handlers that serialize failures.

Exception Hierarchy:
    GangRunBaseError
    ├── PricingError
    │   └── PricingInputError
    └── ShippingError
        ├── ShippingQuoteError
        ├── ShippingValidationError
        ├── ShippingLabelError
        ├── ShippingTrackingError
        ├── CarrierAPIError
        │   ├── FedExAPIError  (gangrun.services.fedex_client)
        │   └── UPSAPIError    (gangrun.services.ups_client)
        └── ShippingModuleError
            └── ShippingModuleNotFoundError
"""
from typing import Optional, Dict, Any


class GangRunBaseError(Exception):
    """
    Base exception for all GangRun custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "GANGRUN_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# PRICING ERRORS
# =============================================================================

class PricingError(GangRunBaseError):
    """Base exception for pricing errors."""
    default_code = "PRICING_ERROR"


class PricingInputError(PricingError):
    """
    Caller contract violation: the selected size/quantity mode is missing
    the linked catalog data it needs.
    """
    default_code = "PRICING_INPUT_INVALID"
    default_severity = "P1"

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["field"] = field
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(GangRunBaseError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"


class ShippingQuoteError(ShippingError):
    """Failed to get shipping quote."""
    default_code = "SHIPPING_QUOTE_FAILED"


class ShippingValidationError(ShippingError):
    """Address validation failed."""
    default_code = "SHIPPING_VALIDATION_FAILED"
    default_severity = "P2"


class ShippingLabelError(ShippingError):
    """Failed to create shipping label."""
    default_code = "SHIPPING_LABEL_FAILED"

    def __init__(self, message: str, carrier: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["carrier"] = carrier
        super().__init__(message, details=details, **kwargs)


class ShippingTrackingError(ShippingError):
    """Failed to fetch tracking information."""
    default_code = "SHIPPING_TRACKING_FAILED"
    default_severity = "P2"

    def __init__(
        self,
        message: str,
        carrier: Optional[str] = None,
        tracking_number: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "carrier": carrier,
            "tracking_number": tracking_number,
        })
        super().__init__(message, details=details, **kwargs)


class CarrierAPIError(ShippingError):
    """Carrier API call failed (auth, network, HTTP status or parse error)."""
    default_code = "CARRIER_API_ERROR"


class ShippingModuleError(ShippingError):
    """Invalid shipping module registry operation."""
    default_code = "SHIPPING_MODULE_ERROR"
    default_severity = "P2"


class ShippingModuleNotFoundError(ShippingModuleError):
    """No module registered for the requested carrier."""
    default_code = "SHIPPING_MODULE_NOT_FOUND"
