"""Integration tests for the prescription pricing engine - complete pipeline.

These tests run requests end to end through dosing, the wholesale
cascade, formulary and copay resolution, markup and coupons, using the
packaged curated tables and in-memory upstream sources (no network).

Run with: pytest tests/test_integration.py -v
"""

import asyncio
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from rxprice.compute.orchestrator import (
    MEMBERSHIP_FACTOR,
    PricingOrchestrator,
    build_orchestrator,
    quote_sync,
    select_best_option,
)
from rxprice.compute.variation import round2
from rxprice.compute.wholesale import WholesaleCostResolver
from rxprice.config import Settings
from rxprice.models import (
    BestOption,
    CopaySource,
    DosingFrequency,
    DrugTier,
    Pharmacy,
    PriceSource,
    PricingRequest,
    PricingResult,
)
from rxprice.reference.curated import CuratedPricingTables
from rxprice.sources.base import (
    AcquisitionCost,
    FormularyCopay,
    FormularyService,
    RegionalPrice,
)
from stubs import StubAcquisition, StubCommodity, StubFormulary, StubRegional, StubSpending

OZEMPIC_DISPLAY_NAME = "semaglutide 0.5 MG/DOSE Pen Injector [Ozempic]"


def _orchestrator(
    tables: CuratedPricingTables,
    formulary: FormularyService | None = None,
    regional: StubRegional | None = None,
) -> PricingOrchestrator:
    wholesale = WholesaleCostResolver(
        tables,
        commodity=StubCommodity(),
        acquisition=StubAcquisition(),
        spending=StubSpending(),
        regional=regional or StubRegional(),
    )
    return PricingOrchestrator(wholesale, formulary=formulary, timeout=1.0)


def _price(orchestrator: PricingOrchestrator, request: PricingRequest) -> PricingResult:
    return asyncio.run(orchestrator.price(request))


class TestGenericPipeline:
    """Metformin through the curated generic table."""

    def test_cash_quotes(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """Every pharmacy gets a cash-priced quote in request order."""
        request = PricingRequest.create(
            "Metformin Hydrochloride 500 MG Oral Tablet", "500mg", 30, sample_pharmacies
        )

        result = _price(_orchestrator(curated_tables), request)

        assert result.quantity == 30
        assert result.dosing.frequency == DosingFrequency.DAILY
        assert result.wholesale.source == PriceSource.GENERIC_TABLE
        assert [quote.pharmacy for quote in result.quotes] == sample_pharmacies
        for quote in result.quotes:
            assert quote.wholesale_cost == Decimal("1.20")
            assert Decimal("1.50") <= quote.cash_price <= Decimal("2.10")
            assert quote.insurance_price == quote.cash_price
            assert quote.savings == Decimal("0.00")
            assert quote.membership_price == round2(quote.cash_price * MEMBERSHIP_FACTOR)
            assert quote.best_option in (BestOption.MEMBERSHIP, BestOption.COUPON)
            assert quote.is_estimated is False

    def test_regional_not_queried(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """A curated hit should stop the cascade before upstream sources."""
        regional = StubRegional(RegionalPrice(Decimal("9.99"), "Massachusetts"))
        request = PricingRequest.create(
            "metformin", "500mg", 30, sample_pharmacies, zip_code="02139"
        )

        _price(_orchestrator(curated_tables, regional=regional), request)

        assert regional.calls == []

    def test_price_ordering(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """Membership never exceeds insurance, and insurance never exceeds cash."""
        request = PricingRequest.create(
            "atorvastatin", "20mg", 90, sample_pharmacies, insurance_plan="blue_cross_ppo"
        )

        result = _price(_orchestrator(curated_tables), request)

        for quote in result.quotes:
            assert quote.membership_price <= quote.insurance_price <= quote.cash_price
            assert quote.best_price <= quote.cash_price

    def test_deterministic(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """Identical requests produce identical quotes."""
        request = PricingRequest.create(
            "lisinopril", "10mg", 30, sample_pharmacies, insurance_plan="aetna"
        )

        first = _price(_orchestrator(curated_tables), request)
        second = _price(_orchestrator(curated_tables), request)

        assert first.quotes == second.quotes


class TestBrandPipeline:
    """Ozempic through dosing adjustment and the curated brand table."""

    def test_weekly_dosing_and_specialty_copay(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """30 days of a weekly pen is 4 units; cash is specialty-priced."""
        request = PricingRequest.create(
            OZEMPIC_DISPLAY_NAME,
            "0.5mg",
            30,
            sample_pharmacies,
            insurance_plan="aetna",
            form="pen injector",
        )

        result = _price(_orchestrator(curated_tables), request)

        assert request.generic_name == "semaglutide"
        assert result.quantity == 4
        assert result.wholesale.wholesale_cost == Decimal("900.00")
        assert result.wholesale.is_brand is True
        for quote in result.quotes:
            assert Decimal("2700.00") <= quote.cash_price <= Decimal("4500.00")
            assert quote.copay.source == CopaySource.MODEL
            assert quote.copay.tier_name == "Tier 4"
            assert Decimal("123.20") <= quote.insurance_price <= Decimal("156.80")
            assert quote.savings == quote.cash_price - quote.insurance_price
            assert quote.best_option == BestOption.MEMBERSHIP

    def test_formulary_copay_used(
        self,
        curated_tables: CuratedPricingTables,
        sample_pharmacies: list[Pharmacy],
        sample_formulary_copay: FormularyCopay,
    ) -> None:
        """A covered drug uses the formulary copay, looked up once per request."""
        formulary = StubFormulary(sample_formulary_copay)
        request = PricingRequest.create(
            OZEMPIC_DISPLAY_NAME,
            "0.5mg",
            30,
            sample_pharmacies,
            insurance_plan="aetna",
            rxcui="1991302",
        )

        result = _price(_orchestrator(curated_tables, formulary=formulary), request)

        assert formulary.calls == [("1991302", "aetna")]
        for quote in result.quotes:
            assert quote.copay.covered is True
            assert quote.copay.source == CopaySource.FORMULARY
            assert Decimal("9.00") <= quote.insurance_price <= Decimal("11.00")

    def test_formulary_failure_falls_back_to_model(
        self, curated_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """A failing formulary is treated as no coverage."""
        formulary = MagicMock(spec=FormularyService)
        formulary.best_copay.side_effect = RuntimeError("coverage table unavailable")
        request = PricingRequest.create(
            OZEMPIC_DISPLAY_NAME, "0.5mg", 30, sample_pharmacies, "aetna", rxcui="1991302"
        )

        result = _price(_orchestrator(curated_tables, formulary=formulary), request)

        assert all(quote.copay.source == CopaySource.MODEL for quote in result.quotes)


class TestFallbacks:
    """Requests that no source can price."""

    def test_estimate_flagged(
        self, empty_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """Unknown drugs are priced from the flat estimate and flagged."""
        request = PricingRequest.create("zzzunknowndrug", "10mg", 30, sample_pharmacies)

        result = _price(_orchestrator(empty_tables), request)

        assert result.is_estimate is True
        assert result.wholesale.wholesale_cost == Decimal("7.50")
        assert all(quote.to_display_dict()["pricing_estimated"] for quote in result.quotes)

    def test_tier_hint_reaches_copay(
        self, empty_tables: CuratedPricingTables, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """An acquisition-cost-only generic is modeled at tier 2."""
        wholesale = WholesaleCostResolver(
            empty_tables, acquisition=StubAcquisition(AcquisitionCost(Decimal("2.00")))
        )
        request = PricingRequest.create(
            "losartan", "50mg", 30, sample_pharmacies, insurance_plan="aetna"
        )

        result = _price(PricingOrchestrator(wholesale, timeout=1.0), request)

        assert result.wholesale.tier == DrugTier.TIER2
        assert all(quote.copay.tier_name == "Tier 2" for quote in result.quotes)

    def test_no_pharmacies(self, curated_tables: CuratedPricingTables) -> None:
        """A request without pharmacies yields no quotes."""
        request = PricingRequest.create("metformin", "500mg", 30)
        assert _orchestrator(curated_tables).quote_sync(request) == []


class TestBestOption:
    """Tests for best-option selection."""

    def test_cheapest_wins(self) -> None:
        """The lowest price is selected."""
        assert (
            select_best_option(Decimal("8"), Decimal("5"), Decimal("10"), Decimal("12"))
            == BestOption.COUPON
        )

    def test_ties_follow_priority(self) -> None:
        """Ties resolve membership, coupon, insurance, cash."""
        assert (
            select_best_option(Decimal("5"), Decimal("5"), Decimal("5"), Decimal("5"))
            == BestOption.MEMBERSHIP
        )
        assert (
            select_best_option(Decimal("6"), None, Decimal("5"), Decimal("5"))
            == BestOption.INSURANCE
        )


class TestBuildOrchestrator:
    """Tests for orchestrator wiring from settings."""

    def test_wiring(self, test_settings: Settings) -> None:
        """Settings flow into the resolver, cache and formulary."""
        orchestrator = build_orchestrator(test_settings, session=MagicMock())

        assert orchestrator.formulary is None
        assert orchestrator.timeout == 1.0
        assert orchestrator.wholesale.timeout == 1.0
        assert orchestrator.wholesale.regional is not None

    def test_quote_sync_with_curated_drug(
        self, test_settings: Settings, sample_pharmacies: list[Pharmacy]
    ) -> None:
        """Curated drugs are quoted without touching the network."""
        session = MagicMock()
        orchestrator = build_orchestrator(test_settings, session=session)
        request = PricingRequest.create("metformin", "500mg", 30, sample_pharmacies)

        quotes = quote_sync(request, orchestrator)

        assert len(quotes) == len(sample_pharmacies)
        session.get.assert_not_called()

    @pytest.mark.parametrize("days_supply,expected_units", [(30, 4), (90, 12)])
    def test_weekly_units(
        self,
        curated_tables: CuratedPricingTables,
        days_supply: int,
        expected_units: int,
    ) -> None:
        """Weekly injectables scale with the requested days supply."""
        request = PricingRequest.create("Ozempic", "1mg", days_supply)

        result = _price(_orchestrator(curated_tables), request)

        assert result.quantity == expected_units
        assert result.wholesale.wholesale_cost == Decimal("225.00") * expected_units
