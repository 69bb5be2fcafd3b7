"""Per-pharmacy price quotes.

Request flow:
    dosing profile -> dispensed units -> one wholesale basis
    -> one formulary lookup -> per pharmacy: cash, copay, membership, coupon

Per pharmacy:
    cash       = round2(wholesale × markup)
    insurance  = copay (capped at cash)
    membership = round2(insurance × 0.80)
    best       = cheapest of membership, coupon, insurance, cash
                 (ties go to the earlier option)
    savings    = cash - insurance

Quotes keep the request's pharmacy order; sorting is left to callers.
"""

import asyncio
import logging
from decimal import Decimal

import requests

from rxprice.compute.copay import lookup_formulary_copay, resolve_copay
from rxprice.compute.coupons import quote_coupon
from rxprice.compute.dosing import adjust_quantity, resolve_dosing_profile
from rxprice.compute.markup import calculate_cash_price
from rxprice.compute.variation import round2
from rxprice.compute.wholesale import (
    DEFAULT_UPSTREAM_TIMEOUT,
    WholesaleCostResolver,
    call_upstream,
)
from rxprice.config import Settings
from rxprice.models import (
    BestOption,
    Pharmacy,
    PharmacyQuote,
    PricingRequest,
    PricingResult,
    WholesaleResolution,
)
from rxprice.reference.curated import load_curated_tables
from rxprice.sources.base import FormularyCopay, FormularyService
from rxprice.sources.cost_plus import CostPlusDrugsSource
from rxprice.sources.formulary import TableFormulary
from rxprice.sources.nadac import NADACSource
from rxprice.sources.part_d import PartDSpendingSource
from rxprice.sources.regional import RegionalPricingLookup

logger = logging.getLogger(__name__)

MEMBERSHIP_FACTOR = Decimal("0.80")


def select_best_option(
    membership_price: Decimal,
    coupon_price: Decimal | None,
    insurance_price: Decimal,
    cash_price: Decimal,
) -> BestOption:
    """Cheapest payment option; ties resolve in BestOption order."""
    options = [
        (BestOption.MEMBERSHIP, membership_price),
        (BestOption.COUPON, coupon_price),
        (BestOption.INSURANCE, insurance_price),
        (BestOption.CASH, cash_price),
    ]
    best_option, _ = min(
        ((option, price) for option, price in options if price is not None),
        key=lambda item: item[1],
    )
    return best_option


def quote_pharmacy(
    request: PricingRequest,
    pharmacy: Pharmacy,
    wholesale: WholesaleResolution,
    formulary_copay: FormularyCopay | None,
) -> PharmacyQuote:
    """Price one pharmacy from the shared request-level inputs.

    Args:
        request: Pricing request.
        pharmacy: Pharmacy to quote.
        wholesale: Shared wholesale basis.
        formulary_copay: Shared formulary result, if the drug is covered.

    Returns:
        PharmacyQuote for ``pharmacy``.
    """
    cash_price = calculate_cash_price(wholesale.wholesale_cost, pharmacy.name, wholesale.is_brand)
    copay = resolve_copay(
        formulary_copay=formulary_copay,
        insurance_plan=request.insurance_plan,
        cash_price=cash_price,
        is_brand=wholesale.is_brand,
        deductible_met=request.deductible_met,
        pharmacy_name=pharmacy.name,
        medication_name=request.generic_name,
        plan_description=request.plan_description,
        tier_hint=wholesale.tier,
    )
    insurance_price = copay.copay
    membership_price = round2(insurance_price * MEMBERSHIP_FACTOR)
    coupon = quote_coupon(cash_price, pharmacy.name)

    best_option = select_best_option(
        membership_price,
        coupon.price if coupon else None,
        insurance_price,
        cash_price,
    )

    return PharmacyQuote(
        pharmacy=pharmacy,
        wholesale_cost=wholesale.wholesale_cost,
        cash_price=cash_price,
        insurance_price=insurance_price,
        membership_price=membership_price,
        savings=cash_price - insurance_price,
        best_option=best_option,
        copay=copay,
        price_source=wholesale.source,
        coupon=coupon,
    )


class PricingOrchestrator:
    """Compose dosing, wholesale, copay and coupon models into quotes.

    Args:
        wholesale: Wholesale cost resolver.
        formulary: Insurance formulary service, if coverage data exists.
        timeout: Formulary lookup timeout in seconds.
    """

    def __init__(
        self,
        wholesale: WholesaleCostResolver,
        formulary: FormularyService | None = None,
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
    ) -> None:
        self.wholesale = wholesale
        self.formulary = formulary
        self.timeout = timeout

    async def price(self, request: PricingRequest) -> PricingResult:
        """Price a request, keeping the shared intermediate results."""
        dosing = resolve_dosing_profile(request.generic_name, request.form)
        quantity = adjust_quantity(request.days_supply, dosing)

        wholesale = await self.wholesale.resolve(
            request.generic_name,
            request.strength,
            quantity,
            form=request.form,
            zip_code=request.zip_code,
        )

        formulary_copay = await call_upstream(
            "Formulary",
            self.timeout,
            lookup_formulary_copay,
            self.formulary,
            request.rxcui,
            request.insurance_plan,
        )

        quotes = tuple(
            quote_pharmacy(request, pharmacy, wholesale, formulary_copay)
            for pharmacy in request.pharmacies
        )
        logger.info(
            f"Priced {request.generic_name} at {len(quotes)} pharmacies "
            f"({quantity} units, {dosing.frequency.value})"
        )
        return PricingResult(
            request=request,
            dosing=dosing,
            quantity=quantity,
            wholesale=wholesale,
            quotes=quotes,
        )

    async def quote(self, request: PricingRequest) -> list[PharmacyQuote]:
        """One quote per candidate pharmacy, in request order."""
        result = await self.price(request)
        return list(result.quotes)

    def quote_sync(self, request: PricingRequest) -> list[PharmacyQuote]:
        """Run ``quote`` from synchronous code."""
        return asyncio.run(self.quote(request))


def build_orchestrator(
    settings: Settings | None = None,
    session: requests.Session | None = None,
) -> PricingOrchestrator:
    """Wire curated tables, HTTP sources and formulary data from settings.

    Args:
        settings: Application settings (loaded from the environment if None).
        session: Shared requests session for the HTTP sources.

    Returns:
        Ready-to-use PricingOrchestrator.
    """
    settings = settings or Settings.from_env()
    session = session or requests.Session()
    timeout = settings.upstream_timeout_seconds

    wholesale = WholesaleCostResolver(
        tables=load_curated_tables(settings.data_dir),
        commodity=CostPlusDrugsSource(session, timeout),
        acquisition=NADACSource(session, timeout),
        spending=PartDSpendingSource(session, timeout),
        regional=RegionalPricingLookup.from_settings(settings, session),
        settings=settings,
    )
    return PricingOrchestrator(
        wholesale=wholesale,
        formulary=TableFormulary.from_data_dir(settings.data_dir),
        timeout=timeout,
    )


def quote_sync(
    request: PricingRequest,
    orchestrator: PricingOrchestrator | None = None,
) -> list[PharmacyQuote]:
    """Quote a request from synchronous code, building a default orchestrator."""
    return (orchestrator or build_orchestrator()).quote_sync(request)
