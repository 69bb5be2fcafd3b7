"""Insurance copay resolution.

Step 1 - real formulary (once per request):
    best covered copay for (rxcui, insurance selection), then per pharmacy
    copay × stable_variation(pharmacy + medication, ±10%), floored at $1.00

Step 2 - tier model (no coverage):
    plan type from plan keywords (default PPO), drug tier 1-4 from
    brand status, the wholesale tier hint and specialty
    (cash > $500), base copay per (plan type, tier),
    × 2.5 for HDHP before the deductible, × stable_variation(±12%)

Cash (no insurance) selections pay the cash price. Every insurance
price is capped at the pharmacy's cash price.
"""

import logging
import re
from decimal import Decimal

from rxprice.compute.variation import round2, stable_variation
from rxprice.models import NO_INSURANCE_PLANS, CopayRecord, CopaySource, DrugTier
from rxprice.reference.plans import (
    PLAN_TYPE_KEYWORDS,
    TIER_COPAYS_BY_PLAN_TYPE,
    PlanType,
    describe_plan,
    display_plan_name,
)
from rxprice.sources.base import FormularyCopay, FormularyService

logger = logging.getLogger(__name__)

FORMULARY_VARIATION = Decimal("0.10")
MODEL_VARIATION = Decimal("0.12")
MINIMUM_COVERED_COPAY = Decimal("1.00")
SPECIALTY_CASH_THRESHOLD = Decimal("500")
HDHP_PRE_DEDUCTIBLE_MULTIPLIER = Decimal("2.5")
DEFAULT_PLAN_TYPE = PlanType.PPO
NO_INSURANCE_PLAN_NAME = "No Insurance"

# Whole-word keyword patterns; "pos" must not match "depot"
_PLAN_TYPE_PATTERNS = tuple(
    (plan_type, re.compile(r"\b(?:" + "|".join(map(re.escape, keywords)) + r")\b"))
    for plan_type, keywords in PLAN_TYPE_KEYWORDS
)


def is_cash_selection(insurance_plan: str) -> bool:
    return insurance_plan.strip().lower() in NO_INSURANCE_PLANS


def classify_plan_type(plan_text: str) -> PlanType:
    """Classify plan structure from plan name/description keywords."""
    text = re.sub(r"[^a-z0-9]+", " ", plan_text.lower())
    for plan_type, pattern in _PLAN_TYPE_PATTERNS:
        if pattern.search(text):
            return plan_type
    return DEFAULT_PLAN_TYPE


def classify_drug_tier(
    is_brand: bool,
    is_specialty: bool,
    tier_hint: DrugTier = DrugTier.TIER1,
) -> int:
    """Formulary tier from brand status, cash price and the wholesale tier hint.

    4 specialty (expensive or hinted tier4), 3 brand, 2 non-preferred
    generic (hinted tier2), 1 generic.
    """
    if is_specialty or tier_hint == DrugTier.TIER4:
        return 4
    if is_brand:
        return 3
    return min(tier_hint.number, 2)


def lookup_formulary_copay(
    formulary: FormularyService | None,
    rxcui: str | None,
    insurance_plan: str,
) -> FormularyCopay | None:
    """Query the formulary once for a request.

    Missing RXCUI, cash selections and formulary failures all mean "not
    covered"; the tier model handles them.
    """
    if formulary is None or not rxcui or is_cash_selection(insurance_plan):
        return None

    try:
        return formulary.best_copay(rxcui, insurance_plan)
    except Exception as exc:
        logger.warning(f"Formulary lookup failed for RXCUI {rxcui} ({insurance_plan}): {exc}")
        return None


def model_copay(
    insurance_plan: str,
    cash_price: Decimal,
    is_brand: bool,
    deductible_met: bool,
    seed: str,
    plan_description: str = "",
    tier_hint: DrugTier = DrugTier.TIER1,
) -> tuple[Decimal, PlanType, int]:
    """Tier-model copay before capping.

    Returns:
        Tuple of (copay, plan_type, tier).
    """
    plan_type = classify_plan_type(describe_plan(insurance_plan, plan_description))
    tier = classify_drug_tier(
        is_brand=is_brand,
        is_specialty=cash_price > SPECIALTY_CASH_THRESHOLD,
        tier_hint=tier_hint,
    )

    copay = TIER_COPAYS_BY_PLAN_TYPE[plan_type][tier]
    if plan_type == PlanType.HDHP and not deductible_met:
        copay = copay * HDHP_PRE_DEDUCTIBLE_MULTIPLIER

    return round2(copay * stable_variation(seed, MODEL_VARIATION)), plan_type, tier


def resolve_copay(
    formulary_copay: FormularyCopay | None,
    insurance_plan: str,
    cash_price: Decimal,
    is_brand: bool,
    deductible_met: bool,
    pharmacy_name: str,
    medication_name: str,
    plan_description: str = "",
    tier_hint: DrugTier = DrugTier.TIER1,
) -> CopayRecord:
    """Insurance price at one pharmacy.

    Args:
        formulary_copay: Request-level result of ``lookup_formulary_copay``.
        insurance_plan: Insurance selection id.
        cash_price: Pharmacy cash price (upper bound for the copay).
        is_brand: Brand classification from wholesale resolution.
        deductible_met: Whether the patient's deductible is met.
        pharmacy_name: Pharmacy display name (variation seed).
        medication_name: Cleaned medication name (variation seed).
        plan_description: Free-text plan description.
        tier_hint: Tier hint from wholesale resolution.

    Returns:
        CopayRecord with the amount owed and its provenance.
    """
    if is_cash_selection(insurance_plan):
        return CopayRecord(
            covered=False,
            copay=cash_price,
            plan_name=NO_INSURANCE_PLAN_NAME,
            tier_name="",
            source=CopaySource.MODEL,
        )

    seed = f"{pharmacy_name}|{medication_name}"

    if formulary_copay is not None:
        varied = round2(formulary_copay.copay * stable_variation(seed, FORMULARY_VARIATION))
        copay = min(max(varied, MINIMUM_COVERED_COPAY), cash_price)
        logger.debug(
            f"Formulary copay at {pharmacy_name}: ${formulary_copay.copay} -> ${copay}"
        )
        return CopayRecord(
            covered=True,
            copay=copay,
            plan_name=formulary_copay.plan_name,
            tier_name=formulary_copay.tier_name,
            source=CopaySource.FORMULARY,
        )

    modeled, plan_type, tier = model_copay(
        insurance_plan,
        cash_price,
        is_brand,
        deductible_met,
        seed,
        plan_description=plan_description,
        tier_hint=tier_hint,
    )
    copay = min(modeled, cash_price)
    logger.debug(
        f"Model copay at {pharmacy_name}: {plan_type.value} tier {tier} -> ${copay}"
    )
    return CopayRecord(
        covered=False,
        copay=copay,
        plan_name=display_plan_name(insurance_plan),
        tier_name=f"Tier {tier}",
        source=CopaySource.MODEL,
    )
