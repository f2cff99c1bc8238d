"""
Pytest configuration and fixtures for GangRun tests.
"""
import pytest

from gangrun.core.config import Settings
from gangrun.models.shipment import ShippingAddress, ShippingPackage

# Carrier credentials a developer may have exported locally
CREDENTIAL_ENV_VARS = (
    "FEDEX_API_KEY",
    "FEDEX_SECRET_KEY",
    "FEDEX_ACCOUNT_NUMBER",
    "FEDEX_API_ENDPOINT",
    "FEDEX_TEST_MODE",
    "FEDEX_MARKUP_PERCENTAGE",
    "UPS_CLIENT_ID",
    "UPS_CLIENT_SECRET",
    "UPS_ACCOUNT_NUMBER",
    "UPS_TEST_MODE",
    "UPS_MARKUP_PERCENTAGE",
    "SOUTHWEST_CARGO_MARKUP_PERCENTAGE",
    "SOUTHWEST_CARGO_MINIMUM_WEIGHT",
)


@pytest.fixture(autouse=True)
def clean_carrier_env(monkeypatch):
    """Run every test without real carrier credentials."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    """Build Settings from keyword overrides, ignoring any .env file."""
    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)
    return _make


@pytest.fixture
def origin() -> ShippingAddress:
    return ShippingAddress(
        street="1300 Commerce St",
        city="Dallas",
        state="TX",
        zip_code="75201",
    )


@pytest.fixture
def destination() -> ShippingAddress:
    return ShippingAddress(
        street="200 W Washington St",
        city="Phoenix",
        state="AZ",
        zip_code="85004",
    )


@pytest.fixture
def residential_destination() -> ShippingAddress:
    return ShippingAddress(
        street="4502 N Central Ave",
        city="Phoenix",
        state="AZ",
        zip_code="85004",
        is_residential=True,
    )


@pytest.fixture
def packages():
    """Two boxes, 12 lb total."""
    return [ShippingPackage(weight=10.0), ShippingPackage(weight=2.0)]
