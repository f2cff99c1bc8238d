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

__all__ = [
    "AddressValidationResult",
    "CancelResult",
    "CarrierCode",
    "PackageDimensions",
    "ShippingAddress",
    "ShippingLabel",
    "ShippingPackage",
    "ShippingRate",
    "TrackingEvent",
    "TrackingInfo",
    "TrackingStatus",
]
