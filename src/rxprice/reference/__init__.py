"""Static reference data: curated pricing tables, plans and geography."""

from rxprice.reference.curated import (
    BrandMedicationEntry,
    CuratedPricingTables,
    GenericPriceEntry,
    load_curated_tables,
)
from rxprice.reference.geography import STATE_NAMES, zip_to_state
from rxprice.reference.plans import (
    KNOWN_PLANS,
    TIER_COPAYS_BY_PLAN_TYPE,
    PlanType,
)

__all__ = [
    "BrandMedicationEntry",
    "CuratedPricingTables",
    "GenericPriceEntry",
    "load_curated_tables",
    "STATE_NAMES",
    "zip_to_state",
    "KNOWN_PLANS",
    "TIER_COPAYS_BY_PLAN_TYPE",
    "PlanType",
]
