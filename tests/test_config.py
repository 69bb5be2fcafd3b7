"""Tests for pricing engine configuration management."""

import logging
import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from rxprice.config import Settings


class TestSettings:
    """Tests for Settings dataclass and loading."""

    def test_from_env_defaults(self) -> None:
        """Settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True), patch("rxprice.config.load_dotenv"):
            settings = Settings.from_env()
            assert settings.log_level == "INFO"
            assert settings.data_dir == Path("./data/reference")
            assert settings.cache_enabled is True
            assert settings.cache_ttl_hours == 24
            assert settings.upstream_timeout_seconds == 10.0
            assert settings.cms_api_key is None
            assert settings.brand_unit_price_threshold == Decimal("5.00")
            assert settings.brand_markup_factor_threshold == Decimal("3")
            assert settings.regional_page_size == 1000
            assert settings.regional_max_pages == 20

    def test_from_env_custom(self, mock_env_vars: dict[str, str]) -> None:
        """Settings should load custom values from env."""
        settings = Settings.from_env()
        assert settings.log_level == "DEBUG"
        assert settings.data_dir == Path("/tmp/test_data")
        assert settings.cache_enabled is False
        assert settings.cache_ttl_hours == 1
        assert settings.upstream_timeout_seconds == 2.5
        assert settings.brand_unit_price_threshold == Decimal("7.50")

    def test_cache_enabled_case_insensitive(self) -> None:
        """CACHE_ENABLED should be case-insensitive."""
        with patch.dict(os.environ, {"CACHE_ENABLED": "TRUE"}, clear=False):
            settings = Settings.from_env()
            assert settings.cache_enabled is True

    def test_empty_api_key_is_none(self) -> None:
        """An empty CMS_API_KEY should be treated as unset."""
        with patch.dict(os.environ, {"CMS_API_KEY": ""}, clear=False):
            settings = Settings.from_env()
            assert settings.cms_api_key is None

    def test_cache_ttl_seconds(self, test_settings: Settings) -> None:
        """TTL hours should convert to seconds."""
        assert test_settings.cache_ttl_seconds == 24 * 3600

    def test_regional_timeout_seconds(self, test_settings: Settings) -> None:
        """The regional scan budget covers every page."""
        assert test_settings.regional_timeout_seconds == 20.0

    def test_ensure_directories(self, tmp_path: Path) -> None:
        """ensure_directories should create data_dir."""
        settings = Settings(
            log_level="INFO",
            data_dir=tmp_path / "reference",
            cache_enabled=True,
            cache_ttl_hours=24,
        )
        settings.ensure_directories()
        assert (tmp_path / "reference").is_dir()

    def test_configure_logging(self, test_settings: Settings) -> None:
        """configure_logging should install a handler at the configured level."""
        with patch("rxprice.config.logging.basicConfig") as basic_config:
            test_settings.configure_logging()
        basic_config.assert_called_once()
        assert basic_config.call_args.kwargs["level"] == "DEBUG"
        assert "%(name)s" in basic_config.call_args.kwargs["format"]
        assert logging.getLogger("rxprice") is not None
