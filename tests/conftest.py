"""Shared pytest fixtures for pricing engine tests."""

import os
from collections.abc import Generator
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from rxprice.config import Settings
from rxprice.models import Pharmacy
from rxprice.reference.curated import CuratedPricingTables, load_curated_tables
from rxprice.sources.base import FormularyCopay


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Set up mock environment variables for testing.

    Yields:
        Dictionary of mock environment variables.
    """
    env_vars = {
        "LOG_LEVEL": "DEBUG",
        "DATA_DIR": "/tmp/test_data",
        "CACHE_ENABLED": "false",
        "CACHE_TTL_HOURS": "1",
        "UPSTREAM_TIMEOUT_SECONDS": "2.5",
        "BRAND_UNIT_PRICE_THRESHOLD": "7.50",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with caching off, a short timeout and an empty data dir.

    Returns:
        Settings instance configured for testing.
    """
    return Settings(
        log_level="DEBUG",
        data_dir=tmp_path,
        cache_enabled=False,
        cache_ttl_hours=24,
        upstream_timeout_seconds=1.0,
    )


@pytest.fixture
def curated_tables() -> CuratedPricingTables:
    """Packaged curated pricing tables."""
    return load_curated_tables()


@pytest.fixture
def empty_tables() -> CuratedPricingTables:
    """Curated tables with no rows, forcing upstream layers."""
    return CuratedPricingTables([], [])


@pytest.fixture
def sample_pharmacies() -> list[Pharmacy]:
    """Mix of chain and independent pharmacies."""
    return [
        Pharmacy(name="Costco Pharmacy", address="1 Warehouse Way", distance_miles=4.2),
        Pharmacy(name="CVS Pharmacy #1234", address="10 Main St", distance_miles=0.8),
        Pharmacy(name="Walgreens #5678", address="22 Elm St", distance_miles=1.5),
        Pharmacy(name="Walmart Pharmacy", distance_miles=6.0),
        Pharmacy(name="Kroger Pharmacy"),
        Pharmacy(name="Neighborhood Apothecary"),
    ]


@pytest.fixture
def sample_formulary_copay() -> FormularyCopay:
    """Covered copay for a preferred generic."""
    return FormularyCopay(
        copay=Decimal("10.00"),
        plan_name="Aetna Medicare H9999-003",
        tier_name="Preferred Generic",
    )
