"""Upstream pricing and coverage sources.

This module handles:
- Typed records and abstract interfaces for each upstream collaborator
- HTTP adapters (Cost Plus Drugs, NADAC, Part D spending, CMS regional)
- Regional lookup paging and TTL caching
- Table-backed insurance formulary lookups
"""

from rxprice.sources.base import (
    AcquisitionCost,
    AcquisitionCostSource,
    CommodityQuote,
    CommoditySource,
    FormularyCopay,
    FormularyService,
    RegionalPrice,
    RegionalPricingSource,
    SpendingRecord,
    SpendingSource,
)
from rxprice.sources.cache import TTLCache
from rxprice.sources.cost_plus import CostPlusDrugsSource
from rxprice.sources.formulary import TableFormulary, map_insurance_to_plans
from rxprice.sources.nadac import NADACSource
from rxprice.sources.part_d import PartDSpendingSource
from rxprice.sources.regional import (
    CMSGeographyClient,
    RegionalPricingLookup,
    find_regional_match,
)

__all__ = [
    # Records
    "AcquisitionCost",
    "CommodityQuote",
    "FormularyCopay",
    "RegionalPrice",
    "SpendingRecord",
    # Interfaces
    "AcquisitionCostSource",
    "CommoditySource",
    "FormularyService",
    "RegionalPricingSource",
    "SpendingSource",
    # Implementations
    "CMSGeographyClient",
    "CostPlusDrugsSource",
    "NADACSource",
    "PartDSpendingSource",
    "RegionalPricingLookup",
    "TableFormulary",
    "TTLCache",
    "find_regional_match",
    "map_insurance_to_plans",
]
