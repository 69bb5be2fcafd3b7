"""Tests for dosing frequency detection and quantity adjustment."""

import pytest

from rxprice.compute.dosing import (
    DAILY_ORAL,
    KNOWN_DOSING_SCHEDULES,
    adjust_quantity,
    resolve_dosing_profile,
)
from rxprice.models import DosingFrequency


class TestResolveDosingProfile:
    """Tests for dosing profile classification."""

    @pytest.mark.parametrize(
        "name,frequency,units",
        [
            ("ozempic", DosingFrequency.WEEKLY, 4),
            ("semaglutide", DosingFrequency.WEEKLY, 4),
            ("tirzepatide", DosingFrequency.WEEKLY, 4),
            ("adalimumab", DosingFrequency.WEEKLY, 4),
            ("liraglutide", DosingFrequency.DAILY, 30),
            ("lantus", DosingFrequency.DAILY, 30),
            ("invega sustenna", DosingFrequency.MONTHLY, 1),
            ("breo ellipta", DosingFrequency.DAILY, 30),
        ],
    )
    def test_known_schedules(self, name: str, frequency: DosingFrequency, units: int) -> None:
        """Known drugs should use their fixed schedule."""
        profile = resolve_dosing_profile(name)
        assert profile.frequency == frequency
        assert profile.units_per_30_days == units

    def test_case_insensitive_substring(self) -> None:
        """Matching should ignore case and allow surrounding text."""
        profile = resolve_dosing_profile("Ozempic Pen")
        assert profile.frequency == DosingFrequency.WEEKLY
        assert profile.days_per_unit == 7

    def test_injection_form_defaults_daily(self) -> None:
        """Unknown injectables are assumed daily."""
        profile = resolve_dosing_profile("exenatide", form="Pen Injector")
        assert profile.frequency == DosingFrequency.DAILY
        assert "injection" in profile.description.lower()

    def test_weekly_injection_from_name(self) -> None:
        """Injectables named weekly are weekly."""
        profile = resolve_dosing_profile("exenatide weekly", form="injection")
        assert profile.frequency == DosingFrequency.WEEKLY
        assert profile.units_per_30_days == 4

    def test_inhaler_form(self) -> None:
        """Unknown inhalers are daily."""
        profile = resolve_dosing_profile("albuterol", form="Aerosol")
        assert profile.frequency == DosingFrequency.DAILY
        assert "inhaler" in profile.description.lower()

    def test_default_daily_oral(self) -> None:
        """Everything else is daily oral, 1 day per unit."""
        profile = resolve_dosing_profile("metformin", form="tablet")
        assert profile == DAILY_ORAL
        assert profile.days_per_unit == 1
        assert profile.units_per_30_days == 30

    def test_schedule_table_read_only(self) -> None:
        """The schedule table should not be mutable at runtime."""
        with pytest.raises(TypeError):
            KNOWN_DOSING_SCHEDULES["metformin"] = DAILY_ORAL  # type: ignore[index]


class TestAdjustQuantity:
    """Tests for days-supply to unit conversion."""

    @pytest.mark.parametrize("requested,expected", [(30, 4), (28, 4), (90, 12), (31, 31), (8, 8)])
    def test_weekly_conversion(self, requested: int, expected: int) -> None:
        """Weekly drugs convert only 28, 30 and 90."""
        profile = resolve_dosing_profile("ozempic")
        assert adjust_quantity(requested, profile) == expected

    def test_monthly_conversion(self) -> None:
        """Monthly depot injections dispense one unit per 30 days."""
        profile = resolve_dosing_profile("invega sustenna")
        assert adjust_quantity(30, profile) == 1
        assert adjust_quantity(90, profile) == 3

    @pytest.mark.parametrize("requested", [1, 28, 30, 90, 45])
    def test_daily_unchanged(self, requested: int) -> None:
        """Daily drugs dispense one unit per day."""
        assert adjust_quantity(requested, DAILY_ORAL) == requested

    def test_rejects_non_positive(self) -> None:
        """Requests below one unit are caller bugs."""
        with pytest.raises(ValueError):
            adjust_quantity(0, DAILY_ORAL)
