"""
Base Price Engine

Formula: Base Price = Paper Stock × Sides Multiplier × Size × Quantity

Rules:
1. Size = pre-calculated catalog value for standard sizes, width × height
   for custom sizes
2. Quantity = display value for standard quantities of 5000 and up; below
   5000 the adjustment value (when set) or the calculation value
3. Custom quantities above 5000 must be multiples of 5000
4. The sides multiplier is resolved by the caller (see sides.py)

Invalid input never raises: the result carries base_price 0 and the full
list of validation errors. PricingInputError is reserved for callers that
reach the size/quantity resolvers without the linked catalog data.
"""
import enum
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from gangrun.core.exceptions import PricingInputError

logger = logging.getLogger(__name__)

FORMULA = "Paper Stock × Sides Multiplier × Size × Quantity"

# Quantities at or above this are priced exactly as displayed
QUANTITY_THRESHOLD = 5000
CUSTOM_QUANTITY_INCREMENT = 5000


class SizeSelection(str, enum.Enum):
    STANDARD = "standard"
    CUSTOM = "custom"


class QuantitySelection(str, enum.Enum):
    STANDARD = "standard"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StandardSize:
    """Admin-curated size. ``pre_calculated_value`` is the billed area."""
    id: str
    name: str
    display_name: str
    width: float
    height: float
    pre_calculated_value: float
    sort_order: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class StandardQuantity:
    """
    Admin-curated quantity.

    Only ``display_value`` is ever shown to customers; ``calculation_value``
    and ``adjustment_value`` are internal.
    """
    id: str
    display_value: int
    calculation_value: int
    adjustment_value: Optional[int] = None
    sort_order: int = 0
    is_active: bool = True

    def customer_view(self) -> Dict[str, Any]:
        """Fields safe to send to the storefront."""
        return {
            "id": self.id,
            "display_value": self.display_value,
            "sort_order": self.sort_order,
        }


@dataclass(frozen=True)
class PricingInput:
    size_selection: str
    quantity_selection: str
    base_paper_price: float
    sides_multiplier: float
    standard_size: Optional[StandardSize] = None
    custom_width: Optional[float] = None
    custom_height: Optional[float] = None
    standard_quantity: Optional[StandardQuantity] = None
    custom_quantity: Optional[int] = None


@dataclass
class PriceBreakdown:
    base_paper_price: float
    size: float
    quantity: float
    sides_multiplier: float
    formula: str = FORMULA
    calculation: str = ""


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class BasePriceResult:
    base_price: float
    breakdown: PriceBreakdown
    validation: ValidationResult

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _format_number(value: float) -> str:
    """24.0 -> '24', 0.002 -> '0.002'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _is_positive(value) -> bool:
    return bool(value) and value > 0


class BasePriceEngine:
    """Stateless; one shared instance is fine."""

    def calculate_base_price(self, pricing_input: PricingInput) -> BasePriceResult:
        validation = self.validate_input(pricing_input)

        if not validation.is_valid:
            logger.debug(f"Pricing input rejected: {validation.errors}")
            return BasePriceResult(
                base_price=0,
                breakdown=PriceBreakdown(
                    base_paper_price=pricing_input.base_paper_price,
                    size=0,
                    quantity=0,
                    sides_multiplier=pricing_input.sides_multiplier or 1,
                    calculation="Invalid input",
                ),
                validation=validation,
            )

        size = self.calculate_size(pricing_input)
        quantity = self.calculate_quantity(pricing_input)
        sides_multiplier = pricing_input.sides_multiplier

        base_price = pricing_input.base_paper_price * sides_multiplier * size * quantity

        calculation = (
            f"({_format_number(pricing_input.base_paper_price)} × "
            f"{_format_number(sides_multiplier)} × {_format_number(size)} × "
            f"{_format_number(quantity)}) = {_format_number(base_price)}"
        )

        return BasePriceResult(
            base_price=base_price,
            breakdown=PriceBreakdown(
                base_paper_price=pricing_input.base_paper_price,
                size=size,
                quantity=quantity,
                sides_multiplier=sides_multiplier,
                calculation=calculation,
            ),
            validation=validation,
        )

    def calculate_size(self, pricing_input: PricingInput) -> float:
        """
        Custom: width × height. Standard: the pre-calculated value, never
        recomputed from the catalog width and height.
        """
        if pricing_input.size_selection == SizeSelection.CUSTOM:
            if not (pricing_input.custom_width and pricing_input.custom_height):
                raise PricingInputError("Custom size requires width and height", field="custom_width")
            return pricing_input.custom_width * pricing_input.custom_height

        if pricing_input.standard_size is None:
            raise PricingInputError("Standard size selection requires size data", field="standard_size")
        return pricing_input.standard_size.pre_calculated_value

    def calculate_quantity(self, pricing_input: PricingInput) -> float:
        if pricing_input.quantity_selection == QuantitySelection.CUSTOM:
            quantity = pricing_input.custom_quantity
            if not quantity:
                raise PricingInputError(
                    "Custom quantity selection requires quantity value", field="custom_quantity"
                )
            if quantity > QUANTITY_THRESHOLD and quantity % CUSTOM_QUANTITY_INCREMENT != 0:
                raise PricingInputError(_increment_error(quantity), field="custom_quantity")
            return quantity

        qty = pricing_input.standard_quantity
        if qty is None:
            raise PricingInputError(
                "Standard quantity selection requires quantity data", field="standard_quantity"
            )

        if qty.display_value >= QUANTITY_THRESHOLD:
            return qty.display_value
        if qty.adjustment_value is not None:
            return qty.adjustment_value
        return qty.calculation_value

    def validate_input(self, pricing_input: PricingInput) -> ValidationResult:
        errors = []

        if not _is_positive(pricing_input.base_paper_price):
            errors.append("Base paper price must be greater than 0")

        if pricing_input.size_selection == SizeSelection.CUSTOM:
            if not _is_positive(pricing_input.custom_width):
                errors.append("Custom width must be greater than 0")
            if not _is_positive(pricing_input.custom_height):
                errors.append("Custom height must be greater than 0")
        elif pricing_input.size_selection == SizeSelection.STANDARD:
            if pricing_input.standard_size is None:
                errors.append("Standard size data is required")
            elif not _is_positive(pricing_input.standard_size.pre_calculated_value):
                errors.append("Standard size must have valid pre-calculated value")
        else:
            errors.append('Size selection must be either "standard" or "custom"')

        if pricing_input.quantity_selection == QuantitySelection.CUSTOM:
            quantity = pricing_input.custom_quantity
            if not _is_positive(quantity):
                errors.append("Custom quantity must be greater than 0")
            elif quantity > QUANTITY_THRESHOLD and quantity % CUSTOM_QUANTITY_INCREMENT != 0:
                errors.append(_increment_error(quantity))
        elif pricing_input.quantity_selection == QuantitySelection.STANDARD:
            qty = pricing_input.standard_quantity
            if qty is None:
                errors.append("Standard quantity data is required")
            else:
                if not _is_positive(qty.display_value):
                    errors.append("Standard quantity must have valid display value")
                if not _is_positive(qty.calculation_value):
                    errors.append("Standard quantity must have valid calculation value")
        else:
            errors.append('Quantity selection must be either "standard" or "custom"')

        if not _is_positive(pricing_input.sides_multiplier):
            errors.append("Sides multiplier must be greater than 0")

        return ValidationResult(is_valid=not errors, errors=errors)

    def format_calculation_breakdown(self, result: BasePriceResult) -> List[str]:
        """Fixed-format report for the admin pricing screen."""
        breakdown = result.breakdown
        lines = [
            "BASE PRICING FORMULA CALCULATION:",
            "",
            f"Formula: {breakdown.formula}",
            "",
            "Components:",
            f"  Base Paper Price: ${(breakdown.base_paper_price or 0):.8f}",
            f"  Size: {_format_number(breakdown.size)} square inches",
            f"  Quantity: {_format_number(breakdown.quantity)}",
            f"  Sides Multiplier: {_format_number(breakdown.sides_multiplier)}x",
            "",
            f"Calculation: {breakdown.calculation}",
            "",
            f"BASE PRICE: ${result.base_price:.2f}",
        ]

        if not result.validation.is_valid:
            lines.append("")
            lines.append("VALIDATION ERRORS:")
            lines.extend(f"  - {error}" for error in result.validation.errors)

        return lines

    def quick_calculate_price(
        self,
        base_paper_price: float,
        size: float,
        quantity: float,
        sides_multiplier: float = 1.0,
    ) -> float:
        """Bare formula, no validation. For inputs already known to be good."""
        return base_paper_price * sides_multiplier * size * quantity


def _increment_error(quantity) -> str:
    return (
        f"Custom quantities above {QUANTITY_THRESHOLD} must be in increments of "
        f"{CUSTOM_QUANTITY_INCREMENT}. Received: {quantity}. "
        f"Valid examples: 10000, 15000, 20000, 55000, 60000, etc."
    )


base_price_engine = BasePriceEngine()
