"""
Tests for concurrent rate shopping across the shipping module registry.
"""
import pytest

from gangrun.core.exceptions import ShippingQuoteError
from gangrun.models.carrier import CarrierCode
from gangrun.modules.shipping.carriers.southwest_cargo import SouthwestCargoCarrier
from gangrun.modules.shipping.registry import (
    ModuleConfig,
    ShippingModule,
    ShippingModuleRegistry,
    build_default_registry,
)
from gangrun.services.rate_shopping import RateShoppingService


class BrokenCarrier(SouthwestCargoCarrier):
    """Southwest Cargo whose rating always blows up."""

    async def get_rates(self, from_address, to_address, packages):
        raise ShippingQuoteError("rate table unavailable")


@pytest.mark.asyncio
async def test_combines_enabled_modules_in_priority_order(make_settings, origin, destination, packages):
    registry = build_default_registry(make_settings())

    rates = await RateShoppingService(registry).get_rates(origin, destination, packages)
    await registry.close()

    assert [r.carrier for r in rates] == [
        CarrierCode.FEDEX,
        CarrierCode.FEDEX,
        CarrierCode.FEDEX,
        CarrierCode.SOUTHWEST_CARGO,
        CarrierCode.SOUTHWEST_CARGO,
    ]


@pytest.mark.asyncio
async def test_sort_by_price(make_settings, origin, destination, packages):
    registry = build_default_registry(make_settings())

    rates = await RateShoppingService(registry).get_rates(
        origin, destination, packages, sort_by_price=True
    )

    amounts = [r.rate_amount for r in rates]
    assert amounts == sorted(amounts)
    assert amounts[0] == 22.20


@pytest.mark.asyncio
async def test_disabled_module_not_quoted(make_settings, origin, destination, packages):
    registry = build_default_registry(make_settings())
    registry.disable_module(CarrierCode.FEDEX)

    rates = await RateShoppingService(registry).get_rates(origin, destination, packages)

    assert {r.carrier for r in rates} == {CarrierCode.SOUTHWEST_CARGO}


@pytest.mark.asyncio
async def test_failing_carrier_is_skipped(make_settings, origin, destination, packages):
    registry = build_default_registry(make_settings())
    registry.register(ShippingModule(
        code=CarrierCode.SOUTHWEST_CARGO,
        name="Southwest Cargo",
        provider=BrokenCarrier(),
        config=ModuleConfig(priority=2),
    ))

    rates = await RateShoppingService(registry).get_rates(origin, destination, packages)

    assert len(rates) == 3
    assert {r.carrier for r in rates} == {CarrierCode.FEDEX}


@pytest.mark.asyncio
async def test_no_enabled_modules(origin, destination, packages):
    registry = ShippingModuleRegistry()

    assert await RateShoppingService(registry).get_rates(origin, destination, packages) == []


@pytest.mark.asyncio
async def test_every_carrier_failing_yields_empty(origin, destination, packages):
    registry = ShippingModuleRegistry()
    registry.register(ShippingModule(
        code=CarrierCode.SOUTHWEST_CARGO,
        name="Southwest Cargo",
        provider=BrokenCarrier(),
    ))

    assert await RateShoppingService(registry).get_rates(origin, destination, packages) == []
