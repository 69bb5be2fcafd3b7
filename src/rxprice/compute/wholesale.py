"""Wholesale cost resolution cascade.

Layers are tried in strict priority order; the first one producing a
strictly positive price wins:

1. Curated generic table       -> generic, tier1
2. Curated brand table         -> table tier, brand
3. Commodity wholesale API     -> quoted total, else unit × quantity
4. Acquisition + spending data (queried concurrently)
   - both:   factor = spending / acquisition;
             brand if spending > $5/unit or factor > 3
             brand -> acquisition × quantity, generic -> spending × quantity
   - acquisition only: acquisition × quantity × 1.15
   - spending only:    brand -> spending × quantity × 0.20, else × 1
5. Regional claims (state from ZIP, else national); brand if > $5/unit
6. Flat estimate: $0.25 × quantity, generic tier1

Every upstream call runs in a worker thread under a timeout; failures and
timeouts count as "not found". The resolver never raises for missing data.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Sequence, TypeVar

from rxprice.compute.variation import round2
from rxprice.config import Settings
from rxprice.models import DrugTier, PriceSource, WholesaleResolution
from rxprice.reference.curated import CuratedPricingTables
from rxprice.reference.geography import zip_to_state
from rxprice.sources.base import (
    AcquisitionCost,
    AcquisitionCostSource,
    CommoditySource,
    RegionalPricingSource,
    SpendingRecord,
    SpendingSource,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACQUISITION_ONLY_MARKUP = Decimal("1.15")
BRAND_SPENDING_TO_WHOLESALE = Decimal("0.20")
ESTIMATED_UNIT_PRICE = Decimal("0.25")
DEFAULT_UPSTREAM_TIMEOUT = 10.0
DEFAULT_REGIONAL_MAX_PAGES = 20


@dataclass(frozen=True)
class WholesaleQuery:
    """Inputs shared by every cascade layer."""

    name: str
    strength: str
    quantity: int
    form: str | None = None
    zip_code: str | None = None


Layer = Callable[[WholesaleQuery], Awaitable[WholesaleResolution | None]]


async def first_success(
    layers: Sequence[Layer],
    query: WholesaleQuery,
) -> WholesaleResolution | None:
    """Run layers in order and return the first non-None resolution."""
    for layer in layers:
        resolution = await layer(query)
        if resolution is not None:
            return resolution
    return None


async def call_upstream(
    label: str,
    timeout: float,
    func: Callable[..., T | None],
    *args: object,
) -> T | None:
    """Run a blocking upstream call in a thread, mapping failure to None.

    Args:
        label: Source name for log messages.
        timeout: Seconds to wait before treating the source as empty.
        func: Blocking lookup.
        *args: Arguments for ``func``.

    Returns:
        The lookup result, or None on exception or timeout.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{label} timed out after {timeout}s")
        return None
    except Exception as exc:
        logger.warning(f"{label} failed: {exc}")
        return None


def _positive(value: Decimal | None) -> bool:
    return value is not None and value > 0


def _tier_for(is_brand: bool) -> DrugTier:
    return DrugTier.TIER3 if is_brand else DrugTier.TIER1


class WholesaleCostResolver:
    """Resolve one wholesale basis per request through the source cascade.

    Args:
        tables: Curated generic/brand pricing tables.
        commodity: Commodity wholesale API.
        acquisition: Acquisition-cost dataset.
        spending: Spending-based dataset.
        regional: Regional claims lookup.
        settings: Supplies brand thresholds and the upstream timeouts. The
            regional scan fetches several pages, so it is bounded by
            ``Settings.regional_timeout_seconds`` rather than the per-call
            timeout.
    """

    def __init__(
        self,
        tables: CuratedPricingTables,
        commodity: CommoditySource | None = None,
        acquisition: AcquisitionCostSource | None = None,
        spending: SpendingSource | None = None,
        regional: RegionalPricingSource | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.tables = tables
        self.commodity = commodity
        self.acquisition = acquisition
        self.spending = spending
        self.regional = regional

        if settings is not None:
            self.brand_unit_threshold = settings.brand_unit_price_threshold
            self.brand_factor_threshold = settings.brand_markup_factor_threshold
            self.timeout = settings.upstream_timeout_seconds
            self.regional_timeout = settings.regional_timeout_seconds
        else:
            self.brand_unit_threshold = Decimal("5.00")
            self.brand_factor_threshold = Decimal("3")
            self.timeout = DEFAULT_UPSTREAM_TIMEOUT
            self.regional_timeout = DEFAULT_UPSTREAM_TIMEOUT * DEFAULT_REGIONAL_MAX_PAGES

    @property
    def layers(self) -> tuple[Layer, ...]:
        """Cascade layers in priority order (flat estimate excluded)."""
        return (
            self.from_generic_table,
            self.from_brand_table,
            self.from_commodity,
            self.from_government_datasets,
            self.from_regional_claims,
        )

    async def resolve(
        self,
        name: str,
        strength: str,
        quantity: int,
        form: str | None = None,
        zip_code: str | None = None,
    ) -> WholesaleResolution:
        """Wholesale cost for ``quantity`` dispensed units.

        Raises:
            ValueError: If ``quantity`` is less than 1.
        """
        if quantity < 1:
            raise ValueError(f"Quantity must be >= 1, got {quantity}")

        query = WholesaleQuery(name, strength, quantity, form, zip_code)
        resolution = await first_success(self.layers, query)
        if resolution is None:
            resolution = self.estimate(query)

        logger.info(
            f"Wholesale for {name} {strength} x{quantity}: ${resolution.wholesale_cost} "
            f"({resolution.source.value}, brand={resolution.is_brand}, {resolution.tier.value})"
        )
        return resolution

    async def from_generic_table(self, query: WholesaleQuery) -> WholesaleResolution | None:
        entry = self.tables.find_generic(query.name, query.strength, query.form)
        if entry is None or not _positive(entry.wholesale_per_unit):
            return None
        return WholesaleResolution(
            wholesale_cost=round2(entry.wholesale_per_unit * query.quantity),
            is_brand=False,
            tier=DrugTier.TIER1,
            source=PriceSource.GENERIC_TABLE,
            quantity=query.quantity,
            unit_price=entry.wholesale_per_unit,
        )

    async def from_brand_table(self, query: WholesaleQuery) -> WholesaleResolution | None:
        entry = self.tables.find_brand(query.name)
        if entry is None or not _positive(entry.wholesale_per_unit):
            return None
        logger.info(f"Curated brand match: {entry.brand_name} ({entry.tier.value})")
        return WholesaleResolution(
            wholesale_cost=round2(entry.wholesale_per_unit * query.quantity),
            is_brand=True,
            tier=entry.tier,
            source=PriceSource.BRAND_TABLE,
            quantity=query.quantity,
            unit_price=entry.wholesale_per_unit,
        )

    async def from_commodity(self, query: WholesaleQuery) -> WholesaleResolution | None:
        if self.commodity is None:
            return None

        quote = await call_upstream(
            "Commodity API",
            self.timeout,
            self.commodity.search,
            query.name,
            query.strength,
            query.quantity,
        )
        if quote is None:
            return None

        if _positive(quote.total_quote):
            cost = quote.total_quote
        elif _positive(quote.unit_price):
            cost = quote.unit_price * query.quantity
        else:
            return None

        return WholesaleResolution(
            wholesale_cost=round2(cost),
            is_brand=quote.is_brand,
            tier=_tier_for(quote.is_brand),
            source=PriceSource.COMMODITY_API,
            quantity=query.quantity,
            unit_price=quote.unit_price,
        )

    async def from_government_datasets(
        self, query: WholesaleQuery
    ) -> WholesaleResolution | None:
        acquisition, spending = await asyncio.gather(
            self._search_acquisition(query),
            self._search_spending(query),
        )
        if acquisition is not None and not _positive(acquisition.unit_price):
            acquisition = None
        if spending is not None and not _positive(spending.unit_price):
            spending = None

        if acquisition is not None and spending is not None:
            return self._combine(query, acquisition, spending)
        if acquisition is not None:
            return self._acquisition_only(query, acquisition)
        if spending is not None:
            return self._spending_only(query, spending)
        return None

    async def from_regional_claims(
        self, query: WholesaleQuery
    ) -> WholesaleResolution | None:
        if self.regional is None:
            return None

        state = zip_to_state(query.zip_code)
        regional = await call_upstream(
            "Regional claims",
            self.regional_timeout,
            self.regional.search,
            query.name,
            state,
        )
        if regional is None or not _positive(regional.price_per_unit):
            return None

        is_brand = regional.price_per_unit > self.brand_unit_threshold
        return WholesaleResolution(
            wholesale_cost=round2(regional.price_per_unit * query.quantity),
            is_brand=is_brand,
            tier=_tier_for(is_brand),
            source=PriceSource.REGIONAL_CLAIMS,
            quantity=query.quantity,
            unit_price=regional.price_per_unit,
        )

    def estimate(self, query: WholesaleQuery) -> WholesaleResolution:
        """Flat per-unit estimate used when no source has data."""
        logger.warning(f"No pricing data for {query.name}; using estimated wholesale")
        return WholesaleResolution(
            wholesale_cost=round2(ESTIMATED_UNIT_PRICE * query.quantity),
            is_brand=False,
            tier=DrugTier.TIER1,
            source=PriceSource.ESTIMATE,
            quantity=query.quantity,
            unit_price=ESTIMATED_UNIT_PRICE,
        )

    async def _search_acquisition(self, query: WholesaleQuery) -> AcquisitionCost | None:
        if self.acquisition is None:
            return None
        return await call_upstream(
            "Acquisition cost", self.timeout, self.acquisition.search, query.name, query.strength
        )

    async def _search_spending(self, query: WholesaleQuery) -> SpendingRecord | None:
        if self.spending is None:
            return None
        return await call_upstream("Spending", self.timeout, self.spending.search, query.name)

    def _combine(
        self,
        query: WholesaleQuery,
        acquisition: AcquisitionCost,
        spending: SpendingRecord,
    ) -> WholesaleResolution:
        factor = spending.unit_price / acquisition.unit_price
        is_brand = (
            spending.unit_price > self.brand_unit_threshold
            or factor > self.brand_factor_threshold
        )
        # Brand: acquisition approximates pharmacy wholesale
        unit_price = acquisition.unit_price if is_brand else spending.unit_price
        logger.info(
            f"Acquisition ${acquisition.unit_price} vs spending ${spending.unit_price} "
            f"for {query.name}: factor {factor:.2f}, brand={is_brand}"
        )
        return WholesaleResolution(
            wholesale_cost=round2(unit_price * query.quantity),
            is_brand=is_brand,
            tier=_tier_for(is_brand),
            source=PriceSource.ACQUISITION_AND_SPENDING,
            quantity=query.quantity,
            unit_price=unit_price,
        )

    def _acquisition_only(
        self, query: WholesaleQuery, acquisition: AcquisitionCost
    ) -> WholesaleResolution:
        return WholesaleResolution(
            wholesale_cost=round2(
                acquisition.unit_price * query.quantity * ACQUISITION_ONLY_MARKUP
            ),
            is_brand=False,
            tier=DrugTier.TIER1 if acquisition.is_otc else DrugTier.TIER2,
            source=PriceSource.ACQUISITION_COST,
            quantity=query.quantity,
            unit_price=acquisition.unit_price,
        )

    def _spending_only(
        self, query: WholesaleQuery, spending: SpendingRecord
    ) -> WholesaleResolution:
        is_brand = spending.unit_price > self.brand_unit_threshold
        cost = spending.unit_price * query.quantity
        if is_brand:
            cost = cost * BRAND_SPENDING_TO_WHOLESALE
        return WholesaleResolution(
            wholesale_cost=round2(cost),
            is_brand=is_brand,
            tier=_tier_for(is_brand),
            source=PriceSource.SPENDING,
            quantity=query.quantity,
            unit_price=spending.unit_price,
        )
