"""
Sides multiplier rule.

Double-sided printing on a paper stock flagged as TEXT_PAPER costs the
exception's double-sided multiplier (1.75 by default). Every other
combination, including double-sided cardstock, is 1.0.
"""
import enum
from dataclasses import dataclass
from typing import Optional


class Sides(str, enum.Enum):
    SINGLE = "single"
    DOUBLE = "double"


class PaperExceptionType(str, enum.Enum):
    TEXT_PAPER = "TEXT_PAPER"
    CARDSTOCK = "CARDSTOCK"


DEFAULT_TEXT_PAPER_MULTIPLIER = 1.75


@dataclass(frozen=True)
class PaperException:
    """Pricing exception attached to a paper stock."""
    paper_stock_id: str
    exception_type: str = PaperExceptionType.TEXT_PAPER.value
    double_sided_multiplier: float = DEFAULT_TEXT_PAPER_MULTIPLIER
    description: Optional[str] = None


def resolve_sides_multiplier(sides: str, paper_exception: Optional[PaperException] = None) -> float:
    """
    Multiplier to pass to BasePriceEngine as ``sides_multiplier``.

    Raises:
        ValueError: ``sides`` is neither "single" nor "double"
    """
    sides = Sides(sides)
    if (
        sides is Sides.DOUBLE
        and paper_exception is not None
        and paper_exception.exception_type == PaperExceptionType.TEXT_PAPER
    ):
        return paper_exception.double_sided_multiplier
    return 1.0
