"""
Pricing Module

Base price formula (base_price_engine.py) and the sides multiplier rule
that feeds it (sides.py).
"""
from gangrun.modules.pricing.base_price_engine import (
    BasePriceEngine,
    BasePriceResult,
    PricingInput,
    StandardQuantity,
    StandardSize,
    base_price_engine,
)
from gangrun.modules.pricing.sides import PaperException, Sides, resolve_sides_multiplier

__all__ = [
    "BasePriceEngine",
    "BasePriceResult",
    "PaperException",
    "PricingInput",
    "Sides",
    "StandardQuantity",
    "StandardSize",
    "base_price_engine",
    "resolve_sides_multiplier",
]
