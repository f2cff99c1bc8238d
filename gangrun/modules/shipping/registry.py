"""
Shipping Module Registry

Runtime kill-switch and ordering for the configured carriers. The registry is
a plain object owned by the composing application (build one with
build_default_registry). State is in memory only; a restart reverts to the
defaults.
"""
import logging
from dataclasses import dataclass, field, fields
from typing import Dict, List

from gangrun.core.exceptions import ShippingModuleError, ShippingModuleNotFoundError
from gangrun.models.carrier import CarrierCode
from gangrun.modules.shipping.carriers import BaseCarrier
from gangrun.modules.shipping.carriers.fedex import FedExCarrier
from gangrun.modules.shipping.carriers.southwest_cargo import SouthwestCargoCarrier
from gangrun.modules.shipping.carriers.ups import UPSCarrier

logger = logging.getLogger(__name__)


@dataclass
class ModuleConfig:
    enabled: bool = True
    priority: int = 100  # lower is quoted first
    test_mode: bool = False


@dataclass
class ShippingModule:
    """Registry entry binding a carrier to its provider and config."""
    code: CarrierCode
    name: str
    provider: BaseCarrier
    config: ModuleConfig = field(default_factory=ModuleConfig)


CONFIG_KEYS = frozenset(f.name for f in fields(ModuleConfig))


class ShippingModuleRegistry:
    """In-memory registry of shipping modules keyed by CarrierCode."""

    def __init__(self):
        self._modules: Dict[CarrierCode, ShippingModule] = {}

    def register(self, module: ShippingModule) -> None:
        if module.code in self._modules:
            logger.warning(f"Replacing shipping module {module.code.value}")
        self._modules[module.code] = module
        logger.info(
            f"Registered shipping module {module.code.value} "
            f"(enabled={module.config.enabled}, priority={module.config.priority})"
        )

    def get_module(self, code: CarrierCode) -> ShippingModule:
        module = self._modules.get(code)
        if module is None:
            raise ShippingModuleNotFoundError(
                f"Shipping module not registered: {code}",
                details={"carrier": str(code)},
            )
        return module

    def get_all_modules(self) -> List[ShippingModule]:
        return list(self._modules.values())

    def get_enabled_modules(self) -> List[ShippingModule]:
        """Enabled modules, ascending priority. Ties keep registration order."""
        enabled = [m for m in self._modules.values() if m.config.enabled]
        return sorted(enabled, key=lambda m: m.config.priority)

    def is_enabled(self, code: CarrierCode) -> bool:
        """False for unregistered carriers."""
        module = self._modules.get(code)
        return bool(module and module.config.enabled)

    def enable_module(self, code: CarrierCode) -> None:
        self.get_module(code).config.enabled = True
        logger.info(f"Shipping module {code} enabled")

    def disable_module(self, code: CarrierCode) -> None:
        self.get_module(code).config.enabled = False
        logger.info(f"Shipping module {code} disabled")

    def update_module_config(self, code: CarrierCode, **changes) -> ModuleConfig:
        """
        Update config fields in place.

        Raises:
            ShippingModuleNotFoundError: Unknown carrier
            ShippingModuleError: Unknown config key
        """
        module = self.get_module(code)
        unknown = set(changes) - CONFIG_KEYS
        if unknown:
            raise ShippingModuleError(
                f"Unknown module config keys: {', '.join(sorted(unknown))}",
                details={"carrier": str(code), "keys": sorted(unknown)},
            )

        for key, value in changes.items():
            setattr(module.config, key, value)
        logger.info(f"Shipping module {code} config updated: {changes}")
        return module.config

    async def close(self) -> None:
        """Close provider HTTP clients."""
        for module in self._modules.values():
            await module.provider.close()


def build_default_registry(settings) -> ShippingModuleRegistry:
    """
    Registry with the standard carrier line-up:

    - FedEx, priority 1, enabled
    - Southwest Cargo, priority 2, enabled
    - UPS, priority 3, enabled only when client id and secret are set
    """
    registry = ShippingModuleRegistry()

    registry.register(ShippingModule(
        code=CarrierCode.FEDEX,
        name="FedEx",
        provider=FedExCarrier.from_settings(settings),
        config=ModuleConfig(enabled=True, priority=1, test_mode=settings.FEDEX_TEST_MODE),
    ))
    registry.register(ShippingModule(
        code=CarrierCode.SOUTHWEST_CARGO,
        name="Southwest Cargo",
        provider=SouthwestCargoCarrier.from_settings(settings),
        config=ModuleConfig(enabled=True, priority=2, test_mode=False),
    ))
    registry.register(ShippingModule(
        code=CarrierCode.UPS,
        name="UPS",
        provider=UPSCarrier.from_settings(settings),
        config=ModuleConfig(
            enabled=settings.ups_configured,
            priority=3,
            test_mode=settings.UPS_TEST_MODE,
        ),
    ))

    return registry
