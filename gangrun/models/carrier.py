"""
Carrier identifiers and service code reference tables.

CarrierCode values are the identifiers stored on orders and used as
registry keys for the shipping modules.
"""
import enum


class CarrierCode(str, enum.Enum):
    """Supported shipping carriers."""
    FEDEX = "FEDEX"
    UPS = "UPS"
    SOUTHWEST_CARGO = "SOUTHWEST_CARGO"


# FedEx services we quote. Anything else in a rate reply is dropped.
FEDEX_SERVICE_CODES = {
    "FEDEX_GROUND": "FedEx Ground",
    "GROUND_HOME_DELIVERY": "FedEx Home Delivery",
    "FEDEX_2_DAY": "FedEx 2Day",
    "STANDARD_OVERNIGHT": "FedEx Standard Overnight",
}

# Conservative transit estimates when no zip codes are available
FEDEX_DEFAULT_TRANSIT_DAYS = {
    "FEDEX_GROUND": 3,
    "GROUND_HOME_DELIVERY": 3,
    "FEDEX_2_DAY": 2,
    "STANDARD_OVERNIGHT": 1,
}

# UPS domestic services we quote
UPS_SERVICE_CODES = {
    "01": "UPS Next Day Air",
    "02": "UPS 2nd Day Air",
    "03": "UPS Ground",
    "12": "UPS 3 Day Select",
    "13": "UPS Next Day Air Saver",
}

UPS_ESTIMATED_DAYS = {
    "03": 5,
    "12": 3,
    "02": 2,
    "01": 1,
    "13": 1,
}

SOUTHWEST_CARGO_SERVICE_CODES = {
    "SOUTHWEST_CARGO_PICKUP": "Southwest Cargo Pickup",
    "SOUTHWEST_CARGO_DASH": "Southwest Cargo Dash",
}

# States with a Southwest Cargo airport counter we ship through
SOUTHWEST_CARGO_STATES = frozenset({
    "TX", "OK", "NM", "AR", "LA", "AZ", "CA", "NV", "CO", "UT",
    "FL", "GA", "AL", "TN", "MS", "SC", "NC", "KY", "MO", "KS",
})

DEFAULT_TRANSIT_DAYS = 3
