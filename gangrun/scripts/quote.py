#!/usr/bin/env python3
"""
GangRun Quote CLI

Operator tool for pricing a print job and rate-shopping a shipment from the
command line.

Usage:
    # Standard 4x6 (pre-calculated 24 sq in), 5000 pieces, single-sided
    gangrun-quote price --paper-price 0.00145833333 --standard-size 24 --standard-quantity 5000

    # Custom 4x6, displayed 200 priced as 250, double-sided text paper
    gangrun-quote price --paper-price 0.002 --custom-size 4x6 \\
        --standard-quantity 200:250 --sides double --text-paper

    # Rate-shop one 12 lb package
    gangrun-quote rates --from-zip 75201 --from-state TX --to-zip 60601 --to-state IL --weight 12

Environment:
    FEDEX_API_KEY / FEDEX_SECRET_KEY / FEDEX_ACCOUNT_NUMBER - live FedEx rates
    UPS_CLIENT_ID / UPS_CLIENT_SECRET / UPS_ACCOUNT_NUMBER  - enables UPS
    LOG_LEVEL - logging level (default: INFO)
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from gangrun.core.config import Settings
from gangrun.models.shipment import ShippingAddress, ShippingPackage
from gangrun.modules.pricing.base_price_engine import (
    PricingInput,
    StandardQuantity,
    StandardSize,
    base_price_engine,
)
from gangrun.modules.pricing.sides import PaperException, resolve_sides_multiplier
from gangrun.modules.shipping.registry import build_default_registry
from gangrun.services.rate_shopping import RateShoppingService


def parse_dimensions(value: str) -> Tuple[float, float]:
    """'4x6' -> (4.0, 6.0)"""
    try:
        width, height = value.lower().split("x")
        return float(width), float(height)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}")


def parse_standard_quantity(value: str) -> StandardQuantity:
    """'DISPLAY[:CALCULATION[:ADJUSTMENT]]' -> StandardQuantity"""
    try:
        parts = [int(p) for p in value.split(":")]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected DISPLAY[:CALCULATION[:ADJUSTMENT]], got {value!r}")
    if not 1 <= len(parts) <= 3:
        raise argparse.ArgumentTypeError(f"Expected DISPLAY[:CALCULATION[:ADJUSTMENT]], got {value!r}")

    display = parts[0]
    calculation = parts[1] if len(parts) > 1 else display
    adjustment = parts[2] if len(parts) > 2 else None
    return StandardQuantity(
        id="cli",
        display_value=display,
        calculation_value=calculation,
        adjustment_value=adjustment,
    )


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_price(args) -> int:
    """Print the base price breakdown."""
    paper_exception = PaperException(paper_stock_id="cli") if args.text_paper else None
    sides_multiplier = resolve_sides_multiplier(args.sides, paper_exception)

    if args.custom_size:
        width, height = args.custom_size
        size_fields = {"size_selection": "custom", "custom_width": width, "custom_height": height}
    else:
        size_fields = {
            "size_selection": "standard",
            "standard_size": StandardSize(
                id="cli",
                name="cli",
                display_name=f"{args.standard_size} sq in",
                width=0,
                height=0,
                pre_calculated_value=args.standard_size,
            ),
        }

    if args.quantity is not None:
        quantity_fields = {"quantity_selection": "custom", "custom_quantity": args.quantity}
    else:
        quantity_fields = {"quantity_selection": "standard", "standard_quantity": args.standard_quantity}

    pricing_input = PricingInput(
        base_paper_price=args.paper_price,
        sides_multiplier=sides_multiplier,
        **size_fields,
        **quantity_fields,
    )

    result = base_price_engine.calculate_base_price(pricing_input)
    for line in base_price_engine.format_calculation_breakdown(result):
        print(line)

    return 0 if result.validation.is_valid else 1


async def _shop_rates(args, settings: Settings) -> List:
    registry = build_default_registry(settings)
    try:
        service = RateShoppingService(registry)
        return await service.get_rates(
            ShippingAddress(street=args.from_street, city=args.from_city, state=args.from_state, zip_code=args.from_zip),
            ShippingAddress(
                street=args.to_street,
                city=args.to_city,
                state=args.to_state,
                zip_code=args.to_zip,
                is_residential=args.residential,
            ),
            [ShippingPackage(weight=args.weight)],
            sort_by_price=args.sort_by_price,
        )
    finally:
        await registry.close()


def cmd_rates(args) -> int:
    """Print one line per available shipping rate."""
    settings = Settings()
    rates = asyncio.run(_shop_rates(args, settings))

    if not rates:
        print("No shipping options available")
        return 1

    for rate in rates:
        guaranteed = "  guaranteed" if rate.is_guaranteed else ""
        print(
            f"{rate.carrier.value:<16} {rate.service_name:<28} "
            f"${rate.rate_amount:>8.2f}  {rate.estimated_days}d{guaranteed}"
        )
    return 0


# =============================================================================
# MAIN
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="GangRun pricing and shipping quotes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Price command
    price = subparsers.add_parser("price", help="Calculate a base price")
    price.add_argument("--paper-price", type=float, required=True, help="Paper price per sq in")
    size = price.add_mutually_exclusive_group(required=True)
    size.add_argument("--standard-size", type=float, help="Pre-calculated size value (sq in)")
    size.add_argument("--custom-size", type=parse_dimensions, help="Custom size as WIDTHxHEIGHT")
    quantity = price.add_mutually_exclusive_group(required=True)
    quantity.add_argument("--quantity", type=int, help="Custom quantity")
    quantity.add_argument(
        "--standard-quantity",
        type=parse_standard_quantity,
        help="Standard quantity as DISPLAY[:CALCULATION[:ADJUSTMENT]]",
    )
    price.add_argument("--sides", choices=["single", "double"], default="single")
    price.add_argument("--text-paper", action="store_true", help="Paper stock is a text paper exception")
    price.set_defaults(func=cmd_price)

    # Rates command
    rates = subparsers.add_parser("rates", help="Rate-shop a single package")
    rates.add_argument("--from-zip", required=True)
    rates.add_argument("--from-state", required=True)
    rates.add_argument("--from-city", default="")
    rates.add_argument("--from-street", default="")
    rates.add_argument("--to-zip", required=True)
    rates.add_argument("--to-state", required=True)
    rates.add_argument("--to-city", default="")
    rates.add_argument("--to-street", default="")
    rates.add_argument("--weight", type=float, required=True, help="Package weight (lb)")
    rates.add_argument("--residential", action="store_true", help="Destination is residential")
    rates.add_argument("--sort-by-price", action="store_true")
    rates.set_defaults(func=cmd_rates)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    logging.basicConfig(
        level=Settings().LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
