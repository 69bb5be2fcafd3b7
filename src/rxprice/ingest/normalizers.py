"""Name, strength and price normalization for pricing lookups.

This module handles:
- Cleaning display medication names down to a lookup name
- Strength normalization ("500 MG" -> "500mg")
- Price string parsing ("$1,234.50" -> Decimal)
- Fuzzy drug name matching
- Column mapping for upstream/curated datasets
"""

import logging
import re
from decimal import Decimal, InvalidOperation

import polars as pl
from thefuzz import fuzz  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Column mapping configurations for curated and upstream datasets
# Maps raw column names to standardized names
GENERIC_PRICING_COLUMN_MAP = {
    "Generic Name": "generic_name",
    "Strength": "strength",
    "Form": "form",
    "Wholesale Price Per Unit": "wholesale_per_unit",
    "Retail Price Per Unit": "retail_per_unit",
    "Source": "source",
}

BRAND_MEDICATION_COLUMN_MAP = {
    "Brand Name": "brand_name",
    "Generic Name": "generic_name",
    "Wholesale Price Per Unit": "wholesale_per_unit",
    "Retail Price Per Unit": "retail_per_unit",
    "Tier": "tier",
    "Category": "category",
}

# CMS Part D Prescribers by Geography and Drug
REGIONAL_CLAIMS_COLUMN_MAP = {
    "Prscrbr_Geo_Lvl": "geo_level",
    "Prscrbr_Geo_Cd": "geo_code",
    "Prscrbr_Geo_Desc": "geo_desc",
    "Brnd_Name": "brand_name",
    "Gnrc_Name": "generic_name",
    "Tot_Clms": "total_claims",
    "Tot_30day_Fills": "total_30day_fills",
    "Tot_Drug_Cst": "total_drug_cost",
    "Tot_Benes": "total_beneficiaries",
}

FORMULARY_COLUMN_MAP = {
    "RXCUI": "rxcui",
    "Plan Name": "plan_name",
    "Insurer Name": "insurer_name",
    "Tier Name": "tier_name",
    "Copay": "copay",
    "Is Active": "is_active",
}

# Bracketed brand annotations, e.g. "[Ozempic]"
_BRACKETED = re.compile(r"\[[^\]]*\]|\([^)]*\)")

# Strength / concentration tokens, e.g. "500 MG", "0.25 MG/DOSE", "100 UNIT/ML", "1%"
_STRENGTH = re.compile(
    r"\d+(?:\.\d+)?\s*"
    r"(?:mcg|mg|gm|g|ml|unt|units?|meq|iu|%)"
    r"(?:\s*/\s*(?:\d+(?:\.\d+)?\s*)?(?:ml|dose|actuat|actuation|hr|day|g|mg))?",
)

# Leading volume prefixes such as "0.3 ML"
_VOLUME_PREFIX = re.compile(r"^\d+(?:\.\d+)?\s*ml\s+")

SALT_SUFFIXES = (
    "sodium",
    "hydrochloride",
    "hcl",
    "sulfate",
    "citrate",
    "calcium",
    "potassium",
    "besylate",
    "maleate",
    "mesylate",
    "succinate",
    "tartrate",
    "fumarate",
)

FORM_WORDS = (
    "oral",
    "tablets",
    "tablet",
    "capsules",
    "capsule",
    "film coated",
    "extended release",
    "delayed release",
    "chewable",
    "er",
    "xr",
    "xl",
    "dr",
    "pen injector",
    "auto-injector",
    "prefilled syringe",
    "injectable",
    "injection",
    "solution",
    "suspension",
    "inhaler",
    "inhalation",
    "aerosol",
    "powder",
    "cream",
    "topical",
)

_FORMS = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in FORM_WORDS) + r")\b"
)


def _strip_salts(name: str) -> str:
    """Drop salt words that qualify a preceding drug word.

    "metformin hydrochloride" -> "metformin", while "potassium citrate"
    and "calcium carbonate" are left alone: a salt is only dropped when
    the word before it is neither a salt nor a separator.
    """
    words = name.split()
    kept = [
        word
        for index, word in enumerate(words)
        if word not in SALT_SUFFIXES
        or index == 0
        or words[index - 1] in SALT_SUFFIXES
        or not words[index - 1][0].isalpha()
    ]
    return " ".join(kept)


def clean_medication_name(display_name: str) -> str:
    """Reduce a display medication name to a lookup name.

    Examples:
        "Metformin Hydrochloride 500 MG Oral Tablet" -> "metformin"
        "semaglutide 0.5 MG/DOSE Pen Injector [Ozempic]" -> "semaglutide"
        "Ozempic" -> "ozempic"

    Args:
        display_name: Medication name as shown to the user.

    Returns:
        Lower-case lookup name, or "" if nothing remains.
    """
    if not display_name:
        return ""

    name = display_name.lower().strip()
    name = _BRACKETED.sub(" ", name)
    name = _VOLUME_PREFIX.sub("", name)
    name = _STRENGTH.sub(" ", name)
    name = _FORMS.sub(" ", name)
    name = _strip_salts(name)

    # Keep combination separators tight: "fluticasone / salmeterol"
    name = re.sub(r"\s*/\s*", "/", name)
    name = re.sub(r"[^a-z0-9/\- ]", " ", name)
    name = re.sub(r"\s+", " ", name).strip(" /-")

    if name != display_name.lower().strip():
        logger.debug(f"Cleaned medication name '{display_name}' -> '{name}'")

    return name


def normalize_strength(strength: str | None) -> str:
    """Normalize a strength string for comparison.

    Args:
        strength: Raw strength (e.g. "500 MG", "0.5 mg").

    Returns:
        Lower-case strength without whitespace (e.g. "500mg").
    """
    if not strength:
        return ""
    return re.sub(r"\s+", "", str(strength).lower())


def parse_strength_value(strength: str | None) -> float | None:
    """Extract the leading numeric value of a strength string.

    Args:
        strength: Strength string (e.g. "850mg").

    Returns:
        Numeric strength, or None if the string has no leading number.
    """
    match = re.match(r"\s*(\d+(?:\.\d+)?)", strength or "")
    if not match:
        return None
    return float(match.group(1))


def parse_price(value: object) -> Decimal | None:
    """Parse an upstream price value into a Decimal.

    Handles "$1,234.50"-style strings as well as plain numbers.

    Args:
        value: Raw price value.

    Returns:
        Decimal price, or None if the value is missing or unparseable.
    """
    if value is None:
        return None

    text = str(value).replace("$", "").replace(",", "").strip()
    if not text:
        return None

    try:
        price = Decimal(text)
    except InvalidOperation:
        logger.debug(f"Unparseable price value: {value!r}")
        return None

    if not price.is_finite():
        return None
    return price


def fuzzy_match_drug_name(
    name: str,
    candidates: list[str],
    threshold: int = 90,
) -> str | None:
    """Find best fuzzy match for a drug name.

    Args:
        name: Drug name to match.
        candidates: List of candidate names to match against.
        threshold: Minimum similarity score (0-100).

    Returns:
        Best matching candidate name, or None if no match above threshold.
    """
    if not name or not candidates:
        return None

    best_match = None
    best_score = 0

    name_upper = name.upper()
    for candidate in candidates:
        if candidate is None:
            continue
        score = fuzz.ratio(name_upper, candidate.upper())
        if score > best_score and score >= threshold:
            best_score = score
            best_match = candidate

    if best_match:
        logger.debug(f"Fuzzy match '{name}' -> '{best_match}' (score: {best_score})")

    return best_match


def apply_column_mapping(
    df: pl.DataFrame,
    column_map: dict[str, str],
) -> pl.DataFrame:
    """Rename columns according to a mapping.

    Only renames columns that exist in the DataFrame.

    Args:
        df: DataFrame to rename columns in.
        column_map: Mapping of old names to new names.

    Returns:
        DataFrame with renamed columns.
    """
    renames = {
        old_name: new_name
        for old_name, new_name in column_map.items()
        if old_name in df.columns and old_name != new_name
    }

    if renames:
        df = df.rename(renames)
        logger.debug(f"Renamed {len(renames)} columns")

    return df


def require_columns(df: pl.DataFrame, required: set[str], table: str) -> None:
    """Raise if a dataset is missing required columns.

    Raises:
        ValueError: If any required column is absent.
    """
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"{table} is missing columns: {sorted(missing)}")
