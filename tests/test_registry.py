"""
Tests for the shipping module registry and the carrier factory.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from gangrun.core.exceptions import ShippingModuleError, ShippingModuleNotFoundError
from gangrun.models.carrier import CarrierCode
from gangrun.modules.shipping.carriers import (
    create_carrier,
    get_carrier_class,
    get_registered_carriers,
)
from gangrun.modules.shipping.carriers.fedex import FedExCarrier
from gangrun.modules.shipping.carriers.southwest_cargo import SouthwestCargoCarrier
from gangrun.modules.shipping.carriers.ups import UPSCarrier
from gangrun.modules.shipping.registry import (
    ModuleConfig,
    ShippingModule,
    ShippingModuleRegistry,
    build_default_registry,
)


class TestCarrierFactory:

    def test_all_carriers_registered(self):
        assert set(get_registered_carriers()) == {
            CarrierCode.FEDEX,
            CarrierCode.UPS,
            CarrierCode.SOUTHWEST_CARGO,
        }

    def test_get_carrier_class(self):
        assert get_carrier_class(CarrierCode.FEDEX) is FedExCarrier
        assert get_carrier_class("UPS") is UPSCarrier

    def test_unknown_carrier(self):
        with pytest.raises(ShippingModuleNotFoundError):
            get_carrier_class("dhl")

    def test_create_carrier_passes_kwargs(self):
        carrier = create_carrier(CarrierCode.SOUTHWEST_CARGO, markup_percentage=5.0)

        assert isinstance(carrier, SouthwestCargoCarrier)
        assert carrier.markup_percentage == 5.0


class TestDefaultRegistry:

    def test_default_lineup(self, make_settings):
        registry = build_default_registry(make_settings())

        enabled = registry.get_enabled_modules()
        assert [m.code for m in enabled] == [CarrierCode.FEDEX, CarrierCode.SOUTHWEST_CARGO]
        assert [m.config.priority for m in enabled] == [1, 2]
        assert not registry.is_enabled(CarrierCode.UPS)
        assert len(registry.get_all_modules()) == 3

    def test_ups_enabled_with_credentials(self, make_settings):
        registry = build_default_registry(
            make_settings(UPS_CLIENT_ID="client", UPS_CLIENT_SECRET="secret")
        )

        assert [m.code for m in registry.get_enabled_modules()] == [
            CarrierCode.FEDEX,
            CarrierCode.SOUTHWEST_CARGO,
            CarrierCode.UPS,
        ]

    def test_markup_flows_to_providers(self, make_settings):
        registry = build_default_registry(
            make_settings(FEDEX_MARKUP_PERCENTAGE=10, SOUTHWEST_CARGO_MARKUP_PERCENTAGE=5)
        )

        assert registry.get_module(CarrierCode.FEDEX).provider.markup_percentage == 10
        assert registry.get_module(CarrierCode.SOUTHWEST_CARGO).provider.markup_percentage == 5


class TestRegistryOperations:

    @pytest.fixture
    def registry(self):
        registry = ShippingModuleRegistry()
        registry.register(ShippingModule(
            code=CarrierCode.SOUTHWEST_CARGO,
            name="Southwest Cargo",
            provider=SouthwestCargoCarrier(),
            config=ModuleConfig(priority=5),
        ))
        registry.register(ShippingModule(
            code=CarrierCode.FEDEX,
            name="FedEx",
            provider=FedExCarrier(),
            config=ModuleConfig(priority=5),
        ))
        return registry

    def test_ties_keep_registration_order(self, registry):
        assert [m.code for m in registry.get_enabled_modules()] == [
            CarrierCode.SOUTHWEST_CARGO,
            CarrierCode.FEDEX,
        ]

    def test_priority_reorders(self, registry):
        registry.update_module_config(CarrierCode.FEDEX, priority=1)

        assert registry.get_enabled_modules()[0].code == CarrierCode.FEDEX

    def test_disable_and_enable(self, registry):
        registry.disable_module(CarrierCode.FEDEX)
        assert not registry.is_enabled(CarrierCode.FEDEX)
        assert [m.code for m in registry.get_enabled_modules()] == [CarrierCode.SOUTHWEST_CARGO]

        registry.enable_module(CarrierCode.FEDEX)
        assert registry.is_enabled(CarrierCode.FEDEX)

    def test_is_enabled_false_for_unregistered(self, registry):
        assert registry.is_enabled(CarrierCode.UPS) is False

    def test_unregistered_module_operations_raise(self, registry):
        with pytest.raises(ShippingModuleNotFoundError):
            registry.get_module(CarrierCode.UPS)
        with pytest.raises(ShippingModuleNotFoundError):
            registry.enable_module(CarrierCode.UPS)
        with pytest.raises(ShippingModuleNotFoundError):
            registry.update_module_config(CarrierCode.UPS, priority=1)

    def test_update_config_returns_config(self, registry):
        config = registry.update_module_config(CarrierCode.FEDEX, enabled=False, test_mode=True)

        assert config == ModuleConfig(enabled=False, priority=5, test_mode=True)

    def test_update_config_rejects_unknown_keys(self, registry):
        with pytest.raises(ShippingModuleError) as exc_info:
            registry.update_module_config(CarrierCode.FEDEX, weight_limit=70)

        assert exc_info.value.details["keys"] == ["weight_limit"]
        assert registry.get_module(CarrierCode.FEDEX).config.priority == 5

    def test_register_replaces_existing(self, registry):
        replacement = SouthwestCargoCarrier(markup_percentage=20)
        registry.register(ShippingModule(
            code=CarrierCode.SOUTHWEST_CARGO,
            name="Southwest Cargo",
            provider=replacement,
        ))

        assert registry.get_module(CarrierCode.SOUTHWEST_CARGO).provider is replacement
        assert len(registry.get_all_modules()) == 2


@pytest.mark.asyncio
async def test_close_closes_every_provider():
    registry = ShippingModuleRegistry()
    providers = [MagicMock(close=AsyncMock()), MagicMock(close=AsyncMock())]
    for code, provider in zip((CarrierCode.FEDEX, CarrierCode.UPS), providers):
        registry.register(ShippingModule(code=code, name=code.value, provider=provider))

    await registry.close()

    for provider in providers:
        provider.close.assert_awaited_once()
