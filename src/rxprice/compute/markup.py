"""Pharmacy cash-price markup model.

Each chain marks up wholesale within its own range; the position inside
the range is fixed per pharmacy name via ``normalized_hash``:

    markup = low + (high - low) × normalized_hash(pharmacy_name)
    cash   = round2(wholesale × markup)

Generic ranges span 1.25×–1.75× (Costco lowest, CVS highest); brand
ranges span 3.0×–5.0×.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from rxprice.compute.variation import normalized_hash, round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkupRange:
    """Inclusive-low, exclusive-high markup multiplier range."""

    low: Decimal
    high: Decimal

    def interpolate(self, fraction: Decimal) -> Decimal:
        return self.low + (self.high - self.low) * fraction


def _range(low: str, high: str) -> MarkupRange:
    return MarkupRange(Decimal(low), Decimal(high))


# Chain substring -> (generic range, brand range), checked in order
CHAIN_MARKUP_RANGES: tuple[tuple[str, MarkupRange, MarkupRange], ...] = (
    ("costco", _range("1.25", "1.35"), _range("3.0", "3.3")),
    ("walmart", _range("1.30", "1.40"), _range("3.1", "3.5")),
    ("kroger", _range("1.35", "1.45"), _range("3.2", "3.7")),
    ("target", _range("1.40", "1.50"), _range("3.3", "3.8")),
    ("rite aid", _range("1.45", "1.55"), _range("3.4", "4.0")),
    ("walgreens", _range("1.50", "1.65"), _range("3.6", "4.5")),
    ("cvs", _range("1.55", "1.75"), _range("3.8", "5.0")),
)
DEFAULT_GENERIC_RANGE = _range("1.40", "1.55")
DEFAULT_BRAND_RANGE = _range("3.3", "4.0")


def markup_range(pharmacy_name: str, is_brand: bool) -> MarkupRange:
    """Select the chain-specific markup range for a pharmacy."""
    lower_name = pharmacy_name.lower()
    for chain, generic_range, brand_range in CHAIN_MARKUP_RANGES:
        if chain in lower_name:
            return brand_range if is_brand else generic_range
    return DEFAULT_BRAND_RANGE if is_brand else DEFAULT_GENERIC_RANGE


def pharmacy_markup(pharmacy_name: str, is_brand: bool) -> Decimal:
    """Deterministic cash-price multiplier for a pharmacy.

    Args:
        pharmacy_name: Pharmacy display name (e.g. "CVS Pharmacy #1234").
        is_brand: Whether the brand markup range applies.

    Returns:
        Multiplier within the chain's range; identical for identical inputs.
    """
    return markup_range(pharmacy_name, is_brand).interpolate(
        normalized_hash(pharmacy_name)
    )


def calculate_cash_price(
    wholesale_cost: Decimal,
    pharmacy_name: str,
    is_brand: bool,
) -> Decimal:
    """Cash price at a pharmacy: wholesale × markup, rounded to cents."""
    markup = pharmacy_markup(pharmacy_name, is_brand)
    cash_price = round2(wholesale_cost * markup)
    logger.debug(
        f"Cash price at {pharmacy_name}: ${wholesale_cost} × {markup:.4f} = ${cash_price}"
    )
    return cash_price
