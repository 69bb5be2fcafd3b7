"""Dosing frequency detection and quantity adjustment.

Wholesale prices are per dispensed unit, but patients ask for a days
supply. For daily oral drugs the two coincide; for a weekly GLP-1 pen a
30-day supply is only 4 pens.

Example: Ozempic, 30-day request
- Known schedule: weekly, 7 days/unit, 4 units per 30 days
- Actual units: ceil(30 / 30 × 4) = 4
"""

import logging
import math
from types import MappingProxyType

from rxprice.models import DosingFrequency, DosingProfile

logger = logging.getLogger(__name__)

# Requested values treated as a days supply for non-daily drugs
DAYS_SUPPLY_VALUES = frozenset({28, 30, 90})

WEEKLY_INJECTION = DosingProfile(
    DosingFrequency.WEEKLY, 7, 4, "Weekly injection (4 doses per month)"
)
WEEKLY_BIOLOGIC = DosingProfile(
    DosingFrequency.WEEKLY, 7, 4, "Weekly or bi-weekly injection (2-4 doses per month)"
)
DAILY_INJECTION = DosingProfile(
    DosingFrequency.DAILY, 1, 30, "Daily injection (30 doses per month)"
)
MEALTIME_INSULIN = DosingProfile(
    DosingFrequency.DAILY, 1, 30, "Multiple daily injections (as needed with meals)"
)
MONTHLY_INJECTION = DosingProfile(
    DosingFrequency.MONTHLY, 30, 1, "Monthly injection (1 dose per month)"
)
DAILY_INHALER = DosingProfile(
    DosingFrequency.DAILY, 1, 30, "Daily inhaler (typically 1-2 inhalations per day)"
)
DAILY_ORAL = DosingProfile(
    DosingFrequency.DAILY, 1, 30, "Daily oral medication (30 doses per month)"
)

# Lowercase name substring -> schedule, checked in insertion order
KNOWN_DOSING_SCHEDULES = MappingProxyType(
    {
        # GLP-1 agonists
        "ozempic": WEEKLY_INJECTION,
        "semaglutide": WEEKLY_INJECTION,
        "wegovy": WEEKLY_INJECTION,
        "trulicity": WEEKLY_INJECTION,
        "dulaglutide": WEEKLY_INJECTION,
        "mounjaro": WEEKLY_INJECTION,
        "tirzepatide": WEEKLY_INJECTION,
        "victoza": DAILY_INJECTION,
        "liraglutide": DAILY_INJECTION,
        # Biologic DMARDs
        "humira": WEEKLY_BIOLOGIC,
        "adalimumab": WEEKLY_BIOLOGIC,
        "enbrel": WEEKLY_BIOLOGIC,
        "etanercept": WEEKLY_BIOLOGIC,
        # Long-acting insulins
        "lantus": DAILY_INJECTION,
        "basaglar": DAILY_INJECTION,
        "tresiba": DAILY_INJECTION,
        "toujeo": DAILY_INJECTION,
        # Rapid-acting insulins
        "humalog": MEALTIME_INSULIN,
        "novolog": MEALTIME_INSULIN,
        "apidra": MEALTIME_INSULIN,
        # Monthly depot injections
        "invega sustenna": MONTHLY_INJECTION,
        "paliperidone palmitate": MONTHLY_INJECTION,
        "risperdal consta": MONTHLY_INJECTION,
        # Inhalers
        "advair": DAILY_INHALER,
        "symbicort": DAILY_INHALER,
        "breo ellipta": DAILY_INHALER,
    }
)


def resolve_dosing_profile(medication_name: str, form: str | None = None) -> DosingProfile:
    """Classify how often a medication is administered.

    Args:
        medication_name: Cleaned generic (or brand) name.
        form: Dosage form, e.g. "Pen Injector", "Tablet", "Inhaler".

    Returns:
        Known schedule, else a form-based guess, else daily oral dosing.
    """
    lower_name = medication_name.lower()
    lower_form = (form or "").lower()

    for known_name, profile in KNOWN_DOSING_SCHEDULES.items():
        if known_name in lower_name:
            logger.debug(
                f"Known dosing schedule for {medication_name}: {profile.frequency.value} "
                f"({profile.units_per_30_days} units/30 days)"
            )
            return profile

    if "pen injector" in lower_form or "injection" in lower_form:
        if "weekly" in lower_name:
            return WEEKLY_INJECTION
        return DAILY_INJECTION

    if "inhaler" in lower_form or "aerosol" in lower_form:
        return DAILY_INHALER

    return DAILY_ORAL


def adjust_quantity(requested: int, profile: DosingProfile) -> int:
    """Convert a requested days supply into dispensed units.

    Daily profiles pass through unchanged. Non-daily profiles reinterpret
    only the conventional days-supply values 28, 30 and 90; anything else
    is assumed to already be a unit count.

    Args:
        requested: Requested days supply (or units).
        profile: Dosing profile from ``resolve_dosing_profile``.

    Returns:
        Dispensed unit count.

    Raises:
        ValueError: If ``requested`` is less than 1.
    """
    if requested < 1:
        raise ValueError(f"Requested quantity must be >= 1, got {requested}")

    if profile.is_daily:
        return requested

    if requested in DAYS_SUPPLY_VALUES:
        actual = math.ceil(requested * profile.units_per_30_days / 30)
        logger.info(
            f"Converted {requested} days to {actual} units ({profile.frequency.value})"
        )
        return actual

    return requested
