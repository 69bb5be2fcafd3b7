"""Pricing computation for the prescription pricing engine.

This module handles:
- Dosing frequency detection and days-supply conversion
- The wholesale cost cascade
- Pharmacy markup, insurance copay and coupon models
- Per-pharmacy quote composition and best-option selection
"""

from rxprice.compute.copay import (
    classify_drug_tier,
    classify_plan_type,
    lookup_formulary_copay,
    resolve_copay,
)
from rxprice.compute.coupons import COUPON_PROVIDERS, accepts_coupons, quote_coupon
from rxprice.compute.dosing import (
    KNOWN_DOSING_SCHEDULES,
    adjust_quantity,
    resolve_dosing_profile,
)
from rxprice.compute.markup import calculate_cash_price, markup_range, pharmacy_markup
from rxprice.compute.orchestrator import (
    PricingOrchestrator,
    build_orchestrator,
    quote_pharmacy,
    quote_sync,
    select_best_option,
)
from rxprice.compute.variation import normalized_hash, round2, stable_hash, stable_variation
from rxprice.compute.wholesale import WholesaleCostResolver, WholesaleQuery, first_success

__all__ = [
    # Dosing
    "KNOWN_DOSING_SCHEDULES",
    "adjust_quantity",
    "resolve_dosing_profile",
    # Wholesale
    "WholesaleCostResolver",
    "WholesaleQuery",
    "first_success",
    # Markup and coupons
    "calculate_cash_price",
    "markup_range",
    "pharmacy_markup",
    "COUPON_PROVIDERS",
    "accepts_coupons",
    "quote_coupon",
    # Copay
    "classify_drug_tier",
    "classify_plan_type",
    "lookup_formulary_copay",
    "resolve_copay",
    # Orchestration
    "PricingOrchestrator",
    "build_orchestrator",
    "quote_pharmacy",
    "quote_sync",
    "select_best_option",
    # Variation
    "normalized_hash",
    "round2",
    "stable_hash",
    "stable_variation",
]
