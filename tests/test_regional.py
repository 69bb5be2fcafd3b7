"""Tests for regional claims lookup and the TTL cache."""

from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import polars as pl
import pytest

from rxprice.config import Settings
from rxprice.sources.base import RegionalPrice
from rxprice.sources.cache import TTLCache
from rxprice.sources.regional import (
    CMS_GEO_URL,
    CMSGeographyClient,
    RegionalPricingLookup,
    find_regional_match,
)


def _row(
    generic: str,
    geo_level: str,
    geo_code: str,
    geo_desc: str,
    cost: str,
    fills: str,
    brand: str = "",
) -> dict[str, Any]:
    return {
        "Prscrbr_Geo_Lvl": geo_level,
        "Prscrbr_Geo_Cd": geo_code,
        "Prscrbr_Geo_Desc": geo_desc,
        "Brnd_Name": brand,
        "Gnrc_Name": generic,
        "Tot_Clms": "12",
        "Tot_30day_Fills": fills,
        "Tot_Drug_Cst": cost,
        "Tot_Benes": "5",
    }


NATIONAL_ROW = _row("Losartan Potassium", "National", "", "National", "600", "10")
MA_ROW = _row("Losartan Potassium", "State", "25", "Massachusetts", "900.00", "10")
TX_ROW = _row("Losartan Potassium", "State", "48", "Texas", "1200", "10")
OTHER_ROW = _row("Lisinopril", "National", "", "National", "300", "10")


class FakePages:
    """Page fetcher serving fixed pages and recording offsets."""

    def __init__(self, pages: list[list[dict[str, Any]] | None]) -> None:
        self.pages = pages
        self.offsets: list[int] = []

    def __call__(self, offset: int, size: int) -> list[dict[str, Any]] | None:
        self.offsets.append(offset)
        index = offset // size
        return self.pages[index] if index < len(self.pages) else []


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestFindRegionalMatch:
    """Tests for matching rows within a single page."""

    def test_state_match_by_description(self) -> None:
        """A state code should match the full state description."""
        page = pl.DataFrame([NATIONAL_ROW, TX_ROW, MA_ROW])

        result = find_regional_match(page, "losartan", "MA")

        assert result is not None
        assert result.price_per_unit == Decimal("3")
        assert result.state == "Massachusetts"

    def test_national_preferred(self) -> None:
        """Without a state, national rows win over earlier state rows."""
        page = pl.DataFrame([MA_ROW, NATIONAL_ROW])

        result = find_regional_match(page, "losartan", None)

        assert result is not None
        assert result.price_per_unit == Decimal("2")
        assert result.state == "National"

    def test_brand_name_match(self) -> None:
        """Brand names should match too."""
        page = pl.DataFrame(
            [_row("Apixaban", "National", "", "National", "3900", "10", brand="Eliquis")]
        )

        result = find_regional_match(page, "eliquis", None)

        assert result is not None
        assert result.price_per_unit == Decimal("13")

    def test_zero_fills_skipped(self) -> None:
        """Rows with zero fills cannot produce a unit price."""
        page = pl.DataFrame([_row("Losartan", "National", "", "National", "600", "0")])
        assert find_regional_match(page, "losartan", None) is None

    def test_no_state_row(self) -> None:
        """A state with no rows gives None."""
        page = pl.DataFrame([NATIONAL_ROW, MA_ROW])
        assert find_regional_match(page, "losartan", "TX") is None

    def test_missing_columns(self) -> None:
        """Pages without the expected schema are unusable."""
        page = pl.DataFrame({"Gnrc_Name": ["Losartan"]})
        assert find_regional_match(page, "losartan", None) is None


class TestRegionalPricingLookup:
    """Tests for paged lookup and caching."""

    def test_scans_pages_until_match(self) -> None:
        """Later pages are fetched until a row matches."""
        pages = FakePages([[OTHER_ROW], [OTHER_ROW, MA_ROW], [NATIONAL_ROW]])
        lookup = RegionalPricingLookup(pages, page_size=2)

        result = lookup.search("losartan", "MA")

        assert result is not None
        assert result.price_per_unit == Decimal("3")
        assert pages.offsets == [0, 2]

    def test_stops_when_exhausted(self) -> None:
        """An empty page ends the scan."""
        pages = FakePages([[OTHER_ROW]])
        lookup = RegionalPricingLookup(pages, page_size=1, max_pages=5)

        assert lookup.search("losartan", None) is None
        assert pages.offsets == [0, 1]

    def test_respects_max_pages(self) -> None:
        """No more than max_pages pages are scanned."""
        pages = FakePages([[OTHER_ROW]] * 10)
        lookup = RegionalPricingLookup(pages, page_size=1, max_pages=3)

        assert lookup.search("losartan", None) is None
        assert pages.offsets == [0, 1, 2]

    def test_failed_page(self) -> None:
        """A failed fetch means no data."""
        lookup = RegionalPricingLookup(FakePages([None]), page_size=1)
        assert lookup.search("losartan", None) is None

    def test_cache_hit(self) -> None:
        """A cached result should not refetch."""
        pages = FakePages([[NATIONAL_ROW]])
        lookup = RegionalPricingLookup(pages, page_size=1, cache=TTLCache(60.0))

        first = lookup.search("Losartan", None)
        second = lookup.search("losartan", None)

        assert first == second
        assert pages.offsets == [0]

    def test_cache_key_includes_state(self) -> None:
        """Different states are cached separately."""
        pages = FakePages([[NATIONAL_ROW, MA_ROW, TX_ROW]])
        lookup = RegionalPricingLookup(pages, page_size=5, cache=TTLCache(60.0))

        ma = lookup.search("losartan", "MA")
        tx = lookup.search("losartan", "TX")

        assert ma is not None and tx is not None
        assert ma.price_per_unit != tx.price_per_unit
        assert pages.offsets == [0, 0]

    def test_misses_not_cached(self) -> None:
        """Only found results are cached."""
        pages = FakePages([[OTHER_ROW]])
        cache: TTLCache[RegionalPrice] = TTLCache(60.0)
        lookup = RegionalPricingLookup(pages, page_size=1, cache=cache)

        lookup.search("losartan", None)

        assert len(cache) == 0

    def test_cache_expiry(self) -> None:
        """Entries older than the TTL are refetched."""
        clock = FakeClock()
        pages = FakePages([[NATIONAL_ROW]])
        lookup = RegionalPricingLookup(pages, page_size=1, cache=TTLCache(60.0, clock=clock))

        lookup.search("losartan", None)
        clock.now = 59.0
        lookup.search("losartan", None)
        clock.now = 120.0
        lookup.search("losartan", None)

        assert pages.offsets == [0, 0]

    def test_from_settings_cache_disabled(self, test_settings: Settings) -> None:
        """CACHE_ENABLED=false builds a lookup without a cache."""
        lookup = RegionalPricingLookup.from_settings(test_settings, session=MagicMock())
        assert lookup.cache is None

    def test_from_settings_cache_enabled(self, test_settings: Settings) -> None:
        """Enabled caching uses the configured TTL."""
        test_settings.cache_enabled = True
        test_settings.cache_ttl_hours = 2
        lookup = RegionalPricingLookup.from_settings(test_settings, session=MagicMock())
        assert lookup.cache is not None
        assert lookup.cache.ttl_seconds == 7200.0


class TestTTLCache:
    """Tests for the TTL cache."""

    def test_get_set(self) -> None:
        """Stored values should be returned until expiry."""
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(10.0, clock=clock)
        cache.set("k", "v")
        clock.now = 9.9
        assert cache.get("k") == "v"
        clock.now = 10.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_sweeps_expired_entries(self) -> None:
        """Writes evict expired entries that are never read again."""
        clock = FakeClock()
        cache: TTLCache[int] = TTLCache(10.0, clock=clock)
        for index in range(1000):
            cache.set(f"drug-{index}", index)
        assert len(cache) == 1000

        clock.now = 5.0
        cache.set("fresh-a", 1)
        assert len(cache) == 1001

        clock.now = 10.0
        cache.set("fresh-b", 2)
        assert len(cache) == 2
        assert cache.get("fresh-a") == 1

    def test_clear(self) -> None:
        """clear() should drop every entry."""
        cache: TTLCache[int] = TTLCache(10.0)
        cache.set("a", 1)
        cache.clear()
        assert cache.get("a") is None

    def test_rejects_non_positive_ttl(self) -> None:
        """A zero TTL is a configuration error."""
        with pytest.raises(ValueError):
            TTLCache(0)


class TestCMSGeographyClient:
    """Tests for raw page fetching."""

    def test_fetch_page_params(self) -> None:
        """Pages are requested by size and offset with the API key header."""
        session = MagicMock()
        session.get.return_value.status_code = 200
        session.get.return_value.json.return_value = [NATIONAL_ROW]
        client = CMSGeographyClient(session=session, timeout=3.0, api_key="secret")

        records = client.fetch_page(2000, 1000)

        assert records == [NATIONAL_ROW]
        args, kwargs = session.get.call_args
        assert args[0] == CMS_GEO_URL
        assert kwargs["params"] == {"size": 1000, "offset": 2000}
        assert kwargs["headers"]["X-API-Key"] == "secret"
        assert kwargs["timeout"] == 3.0

    def test_unexpected_payload(self) -> None:
        """Non-list payloads are treated as failures."""
        session = MagicMock()
        session.get.return_value.status_code = 200
        session.get.return_value.json.return_value = {"error": "bad"}
        client = CMSGeographyClient(session=session)

        assert client.fetch_page(0, 10) is None
