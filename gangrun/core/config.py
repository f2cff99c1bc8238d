"""
Application configuration

Carrier credentials and rate settings come from the environment (or a .env
file). Missing FedEx credentials are not an error: the FedEx carrier switches
to TestModeRates. UPS is only registered as enabled when its OAuth client
credentials are present.
"""
import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "GangRun Printing"
    LOG_LEVEL: str = "INFO"

    # FedEx REST API
    FEDEX_API_KEY: str = ""
    FEDEX_SECRET_KEY: str = ""
    FEDEX_ACCOUNT_NUMBER: str = ""
    FEDEX_API_ENDPOINT: Optional[str] = None  # Overrides production URL
    FEDEX_TEST_MODE: bool = False  # Sandbox endpoints
    FEDEX_MARKUP_PERCENTAGE: float = 0.0

    # UPS OAuth
    UPS_CLIENT_ID: str = ""
    UPS_CLIENT_SECRET: str = ""
    UPS_ACCOUNT_NUMBER: str = ""
    UPS_TEST_MODE: bool = False
    UPS_MARKUP_PERCENTAGE: float = 0.0

    # Southwest Cargo (table rates, no API)
    SOUTHWEST_CARGO_MARKUP_PERCENTAGE: float = 0.0
    SOUTHWEST_CARGO_MINIMUM_WEIGHT: float = 1.0  # lbs

    # Outbound HTTP
    SHIPPING_HTTP_TIMEOUT_SECONDS: float = 30.0
    SHIPPING_HTTP_MAX_RETRIES: int = 3

    # Shipper contact printed on labels
    SHIPPER_NAME: str = "GangRun Printing"
    SHIPPER_PHONE: str = "1234567890"

    @field_validator(
        "FEDEX_MARKUP_PERCENTAGE",
        "UPS_MARKUP_PERCENTAGE",
        "SOUTHWEST_CARGO_MARKUP_PERCENTAGE",
    )
    @classmethod
    def validate_markup(cls, v):
        if v < 0:
            raise ValueError("Markup percentage cannot be negative")
        return v

    @field_validator("SOUTHWEST_CARGO_MINIMUM_WEIGHT")
    @classmethod
    def validate_minimum_weight(cls, v):
        if v <= 0:
            raise ValueError("Minimum billable weight must be greater than 0")
        return v

    @field_validator("SHIPPING_HTTP_MAX_RETRIES")
    @classmethod
    def validate_max_retries(cls, v):
        if v < 0:
            raise ValueError("SHIPPING_HTTP_MAX_RETRIES cannot be negative")
        return v

    @property
    def fedex_configured(self) -> bool:
        return bool(self.FEDEX_API_KEY)

    @property
    def ups_configured(self) -> bool:
        return bool(self.UPS_CLIENT_ID and self.UPS_CLIENT_SECRET)


settings = Settings()

if not settings.fedex_configured:
    logger.info("FEDEX_API_KEY not set - FedEx will quote TestModeRates")
