"""Regional historical claims pricing (CMS Part D Prescribers by Geography and Drug).

API: https://data.cms.gov/data-api/v1/dataset/c8ea3f8e-3a09-4fea-86f2-8902fb4b0920/data

The dataset is only paged by ``size``/``offset`` (no server-side name
filter), so lookups scan pages until a usable row is found:

    price_per_unit = Tot_Drug_Cst / Tot_30day_Fills / 30

Found results are cached for ``CACHE_TTL_HOURS`` keyed by
(drug name, state or "national").
"""

import logging
from decimal import Decimal
from typing import Any, Callable

import polars as pl
import requests

from rxprice.config import Settings
from rxprice.ingest.normalizers import REGIONAL_CLAIMS_COLUMN_MAP, apply_column_mapping
from rxprice.reference.geography import STATE_NAMES
from rxprice.sources.base import RegionalPrice, RegionalPricingSource
from rxprice.sources.cache import TTLCache
from rxprice.sources.http import DEFAULT_TIMEOUT_SECONDS, get_json

logger = logging.getLogger(__name__)

CMS_GEO_URL = (
    "https://data.cms.gov/data-api/v1/dataset/"
    "c8ea3f8e-3a09-4fea-86f2-8902fb4b0920/data"
)
NATIONAL = "national"
DAYS_PER_FILL = 30

REQUIRED_COLUMNS = {
    "geo_level",
    "geo_code",
    "geo_desc",
    "brand_name",
    "generic_name",
    "total_30day_fills",
    "total_drug_cost",
}

# (offset, size) -> records, [] when exhausted, None on failure
PageFetcher = Callable[[int, int], list[dict[str, Any]] | None]


class CMSGeographyClient:
    """Raw page access to the prescribers-by-geography dataset."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        api_key: str | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_key = api_key

    def fetch_page(self, offset: int, size: int) -> list[dict[str, Any]] | None:
        headers = {"X-API-Key": self.api_key} if self.api_key else None
        data = get_json(
            self.session,
            CMS_GEO_URL,
            "CMS regional",
            params={"size": size, "offset": offset},
            headers=headers,
            timeout=self.timeout,
        )
        if data is None:
            return None
        if not isinstance(data, list):
            logger.warning(f"CMS regional returned unexpected payload at offset {offset}")
            return None
        return data


def find_regional_match(
    page: pl.DataFrame,
    name: str,
    state: str | None,
) -> RegionalPrice | None:
    """Find a usable claims row for a drug within one dataset page.

    Rows match when the generic or brand name contains ``name``
    (case-insensitive). With a state, the row's geography code or
    description must be that state; without one, national rows are
    preferred over state rows. Rows with zero 30-day fills are skipped.

    Args:
        page: Raw page records (dataset column names).
        name: Cleaned drug name.
        state: 2-letter state code, or None for national.

    Returns:
        RegionalPrice, or None if the page has no usable row.
    """
    df = apply_column_mapping(page, REGIONAL_CLAIMS_COLUMN_MAP)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        logger.warning(f"CMS regional page missing columns: {sorted(missing)}")
        return None

    lower_name = name.lower()
    df = df.with_columns(
        pl.col("generic_name").cast(pl.Utf8).fill_null("").str.to_lowercase(),
        pl.col("brand_name").cast(pl.Utf8).fill_null("").str.to_lowercase(),
        pl.col("geo_level").cast(pl.Utf8).fill_null(""),
        pl.col("geo_code").cast(pl.Utf8).fill_null(""),
        pl.col("geo_desc").cast(pl.Utf8).fill_null(""),
        pl.col("total_drug_cost").cast(pl.Float64, strict=False).fill_null(0.0),
        pl.col("total_30day_fills").cast(pl.Float64, strict=False).fill_null(0.0),
    )

    name_match = pl.col("generic_name").str.contains(lower_name, literal=True) | pl.col(
        "brand_name"
    ).str.contains(lower_name, literal=True)

    if state:
        code = state.upper()
        location = pl.col("geo_code").is_in([code]) | pl.col("geo_desc").is_in(
            [code, STATE_NAMES.get(code, code)]
        )
        matches = df.filter(name_match & location)
    else:
        matches = df.filter(
            name_match & pl.col("geo_level").is_in(["National", "State"])
        ).sort(pl.col("geo_level") != "National", maintain_order=True)

    usable = matches.filter(pl.col("total_30day_fills") > 0)
    if usable.height == 0:
        if matches.height > 0:
            logger.debug(f"CMS regional rows for {name} have no 30-day fills")
        return None

    row = usable.row(0, named=True)
    price_per_fill = Decimal(str(row["total_drug_cost"])) / Decimal(
        str(row["total_30day_fills"])
    )
    return RegionalPrice(
        price_per_unit=price_per_fill / DAYS_PER_FILL,
        state=row["geo_desc"] or None,
    )


class RegionalPricingLookup(RegionalPricingSource):
    """Page-scanning regional price lookup with a TTL cache.

    Args:
        fetch_page: Page fetcher, usually ``CMSGeographyClient.fetch_page``.
        page_size: Records per page.
        max_pages: Maximum pages scanned per lookup.
        cache: Result cache; None disables caching.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_size: int = 1000,
        max_pages: int = 20,
        cache: TTLCache[RegionalPrice] | None = None,
    ) -> None:
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.max_pages = max_pages
        self.cache = cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: requests.Session | None = None,
    ) -> "RegionalPricingLookup":
        client = CMSGeographyClient(
            session=session,
            timeout=settings.upstream_timeout_seconds,
            api_key=settings.cms_api_key,
        )
        cache: TTLCache[RegionalPrice] | None = None
        if settings.cache_enabled:
            cache = TTLCache(settings.cache_ttl_seconds)
        return cls(
            fetch_page=client.fetch_page,
            page_size=settings.regional_page_size,
            max_pages=settings.regional_max_pages,
            cache=cache,
        )

    def search(self, name: str, state: str | None) -> RegionalPrice | None:
        cache_key = (name.lower(), state.upper() if state else NATIONAL)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Regional cache hit for {cache_key}")
                return cached

        for page_number in range(self.max_pages):
            offset = page_number * self.page_size
            records = self.fetch_page(offset, self.page_size)
            if records is None:
                return None
            if not records:
                logger.debug(f"CMS regional dataset exhausted at offset {offset}")
                break

            match = find_regional_match(
                pl.DataFrame(records, infer_schema_length=None), name, state
            )
            if match is not None:
                logger.info(
                    f"Regional price for {name} ({state or 'national'}): "
                    f"${match.price_per_unit:.4f}/unit from page {page_number}"
                )
                if self.cache is not None:
                    self.cache.set(cache_key, match)
                return match

        logger.info(f"No regional price for {name} ({state or 'national'})")
        return None
