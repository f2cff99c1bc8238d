"""
Weight and rounding helpers shared by the carrier implementations.

Rounding is half-up (2.25 -> 2.3), not Python's banker's rounding, so a
package never bills below the weight printed on the scale ticket.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable


def round_weight(value: float, precision: int = 1) -> float:
    """Round ``value`` half-up to ``precision`` decimal places."""
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def total_weight(packages: Iterable) -> float:
    """Sum of package weights in pounds."""
    return sum(pkg.weight for pkg in packages)


def billable_weight(weight: float, minimum: float = 1.0) -> float:
    """Rounded weight, floored to the carrier's minimum billable weight."""
    return max(round_weight(weight), minimum)
