"""Configuration management for the prescription pricing engine."""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        log_level: Logging verbosity level.
        data_dir: Directory searched for curated-table override files.
        cache_enabled: Whether to cache regional pricing lookups.
        cache_ttl_hours: Regional pricing cache time-to-live in hours.
        upstream_timeout_seconds: Per-call timeout for upstream data sources.
        cms_api_key: Optional key sent to the CMS datastore APIs.
        brand_unit_price_threshold: Unit price above which a drug is brand.
        brand_markup_factor_threshold: Spending/acquisition ratio above which
            a drug is brand.
        regional_page_size: Records requested per regional dataset page.
        regional_max_pages: Maximum regional dataset pages scanned.
    """

    log_level: str
    data_dir: Path
    cache_enabled: bool
    cache_ttl_hours: int
    upstream_timeout_seconds: float = 10.0
    cms_api_key: str | None = None
    brand_unit_price_threshold: Decimal = Decimal("5.00")
    brand_markup_factor_threshold: Decimal = Decimal("3")
    regional_page_size: int = 1000
    regional_max_pages: int = 20

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with loaded configuration.
        """
        load_dotenv()

        log_level = os.getenv("LOG_LEVEL", "INFO")
        data_dir = Path(os.getenv("DATA_DIR", "./data/reference"))
        cache_enabled = os.getenv("CACHE_ENABLED", "true").lower() == "true"
        cache_ttl_hours = int(os.getenv("CACHE_TTL_HOURS", "24"))
        upstream_timeout = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10"))
        cms_api_key = os.getenv("CMS_API_KEY") or None
        brand_unit_threshold = Decimal(os.getenv("BRAND_UNIT_PRICE_THRESHOLD", "5.00"))
        brand_factor_threshold = Decimal(
            os.getenv("BRAND_MARKUP_FACTOR_THRESHOLD", "3")
        )
        regional_page_size = int(os.getenv("REGIONAL_PAGE_SIZE", "1000"))
        regional_max_pages = int(os.getenv("REGIONAL_MAX_PAGES", "20"))

        logger.debug(
            f"Loaded settings: log_level={log_level}, "
            f"data_dir={data_dir}, cache_enabled={cache_enabled}, "
            f"cache_ttl_hours={cache_ttl_hours}"
        )

        return cls(
            log_level=log_level,
            data_dir=data_dir,
            cache_enabled=cache_enabled,
            cache_ttl_hours=cache_ttl_hours,
            upstream_timeout_seconds=upstream_timeout,
            cms_api_key=cms_api_key,
            brand_unit_price_threshold=brand_unit_threshold,
            brand_markup_factor_threshold=brand_factor_threshold,
            regional_page_size=regional_page_size,
            regional_max_pages=regional_max_pages,
        )

    @property
    def regional_timeout_seconds(self) -> float:
        """Budget for one regional scan: the per-call timeout for every page."""
        return self.upstream_timeout_seconds * self.regional_max_pages

    @property
    def cache_ttl_seconds(self) -> float:
        """Regional pricing cache window in seconds."""
        return float(self.cache_ttl_hours * 60 * 60)

    def configure_logging(self) -> None:
        """Install the root logging handler at the configured level."""
        logging.basicConfig(level=self.log_level.upper(), format=LOG_FORMAT)
        logger.debug(f"Logging configured at {self.log_level.upper()}")

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured data directory exists: {self.data_dir}")
