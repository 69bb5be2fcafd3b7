"""Curated generic and brand medication pricing tables.

Both tables ship as CSV package data and are loaded once into read-only
structures. A file with the same stem in ``Settings.data_dir``
(``generic_pricing.csv|.xlsx`` / ``brand_medications.csv|.xlsx``)
replaces the packaged table.

Generic prices come from Cost Plus Drugs and NADAC observations; brand
prices from Part D average spending and manufacturer list prices. All
prices are per dispensed unit (tablet, capsule, pen, vial).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

import polars as pl

from rxprice.ingest.loaders import find_override_file, load_file_auto
from rxprice.ingest.normalizers import (
    BRAND_MEDICATION_COLUMN_MAP,
    GENERIC_PRICING_COLUMN_MAP,
    apply_column_mapping,
    fuzzy_match_drug_name,
    normalize_strength,
    parse_strength_value,
    require_columns,
)
from rxprice.models import DrugTier

logger = logging.getLogger(__name__)

PACKAGED_DATA_DIR = Path(__file__).parent / "data"
GENERIC_TABLE_STEM = "generic_pricing"
BRAND_TABLE_STEM = "brand_medications"


@dataclass(frozen=True)
class GenericPriceEntry:
    """One row of the curated generic-pricing table."""

    generic_name: str
    strength: str
    form: str
    wholesale_per_unit: Decimal
    retail_per_unit: Decimal
    source: str


@dataclass(frozen=True)
class BrandMedicationEntry:
    """One row of the curated brand-medication table."""

    brand_name: str
    generic_name: str
    wholesale_per_unit: Decimal
    retail_per_unit: Decimal
    tier: DrugTier
    category: str


def _to_decimal(value: object) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


class CuratedPricingTables:
    """Read-only lookups over the curated generic and brand tables."""

    def __init__(
        self,
        generic_entries: Iterable[GenericPriceEntry],
        brand_entries: Iterable[BrandMedicationEntry],
    ) -> None:
        self._generic: tuple[GenericPriceEntry, ...] = tuple(generic_entries)
        self._brands: Mapping[str, BrandMedicationEntry] = MappingProxyType(
            {entry.generic_name.lower(): entry for entry in brand_entries}
        )
        self._generic_names: tuple[str, ...] = tuple(
            dict.fromkeys(entry.generic_name for entry in self._generic)
        )

    @property
    def generic_entries(self) -> tuple[GenericPriceEntry, ...]:
        return self._generic

    @property
    def brand_entries(self) -> Mapping[str, BrandMedicationEntry]:
        return self._brands

    @classmethod
    def from_dataframes(
        cls,
        generic_df: pl.DataFrame,
        brand_df: pl.DataFrame,
    ) -> "CuratedPricingTables":
        """Build tables from raw (or already standardized) DataFrames.

        Raises:
            ValueError: If either frame is missing required columns.
        """
        generic_df = apply_column_mapping(generic_df, GENERIC_PRICING_COLUMN_MAP)
        brand_df = apply_column_mapping(brand_df, BRAND_MEDICATION_COLUMN_MAP)

        require_columns(
            generic_df,
            {"generic_name", "strength", "form", "wholesale_per_unit"},
            "Generic pricing table",
        )
        require_columns(
            brand_df,
            {"brand_name", "generic_name", "wholesale_per_unit", "tier"},
            "Brand medication table",
        )

        generic_entries = [
            GenericPriceEntry(
                generic_name=str(row["generic_name"]).lower().strip(),
                strength=normalize_strength(row["strength"]),
                form=str(row["form"] or "").lower().strip(),
                wholesale_per_unit=_to_decimal(row["wholesale_per_unit"]),
                retail_per_unit=_to_decimal(row.get("retail_per_unit")),
                source=str(row.get("source") or "curated"),
            )
            for row in generic_df.iter_rows(named=True)
        ]

        brand_entries = [
            BrandMedicationEntry(
                brand_name=str(row["brand_name"]).strip(),
                generic_name=str(row["generic_name"]).lower().strip(),
                wholesale_per_unit=_to_decimal(row["wholesale_per_unit"]),
                retail_per_unit=_to_decimal(row.get("retail_per_unit")),
                tier=DrugTier(str(row["tier"]).lower().strip()),
                category=str(row.get("category") or ""),
            )
            for row in brand_df.iter_rows(named=True)
        ]

        logger.info(
            f"Loaded {len(generic_entries)} generic prices and "
            f"{len(brand_entries)} brand medications"
        )
        return cls(generic_entries, brand_entries)

    @classmethod
    def load(cls, data_dir: Path | None = None) -> "CuratedPricingTables":
        """Load the packaged tables, honoring overrides in ``data_dir``."""
        generic_path = find_override_file(data_dir, GENERIC_TABLE_STEM) or (
            PACKAGED_DATA_DIR / f"{GENERIC_TABLE_STEM}.csv"
        )
        brand_path = find_override_file(data_dir, BRAND_TABLE_STEM) or (
            PACKAGED_DATA_DIR / f"{BRAND_TABLE_STEM}.csv"
        )
        return cls.from_dataframes(
            load_file_auto(generic_path), load_file_auto(brand_path)
        )

    def find_generic(
        self,
        generic_name: str,
        strength: str,
        form: str | None = None,
    ) -> GenericPriceEntry | None:
        """Look up curated generic pricing.

        Tries an exact (name, strength, form) match, then the closest
        numeric strength for the same name. Names missing from the table
        are fuzzy-matched before giving up.

        Args:
            generic_name: Cleaned generic name.
            strength: Requested strength (e.g. "500 mg").
            form: Optional dosage form filter for the exact match.

        Returns:
            Matching entry, or None.
        """
        clean_name = generic_name.lower().strip()
        clean_strength = normalize_strength(strength)
        clean_form = form.lower().strip() if form else None

        if clean_name not in self._generic_names:
            matched = fuzzy_match_drug_name(clean_name, list(self._generic_names))
            if matched is None:
                logger.debug(f"No curated generic pricing for {generic_name}")
                return None
            clean_name = matched

        candidates = [e for e in self._generic if e.generic_name == clean_name]

        for entry in candidates:
            if entry.strength == clean_strength and (
                clean_form is None or entry.form == clean_form
            ):
                logger.info(
                    f"Curated generic match: {clean_name} {entry.strength} "
                    f"- ${entry.wholesale_per_unit}/unit"
                )
                return entry

        requested = parse_strength_value(clean_strength)
        if requested is None:
            return None

        closest = min(
            candidates,
            key=lambda e: abs((parse_strength_value(e.strength) or 0.0) - requested),
        )
        logger.info(
            f"Curated generic closest strength: {clean_name} {closest.strength} "
            f"(requested {strength})"
        )
        return closest

    def find_brand(self, medication_name: str) -> BrandMedicationEntry | None:
        """Look up a curated brand medication.

        Matches the generic key exactly, then a generic name contained in
        ``medication_name``, then a brand name contained in it.

        Args:
            medication_name: Cleaned generic or brand name.

        Returns:
            Matching entry, or None.
        """
        lower_name = medication_name.lower().strip()
        if not lower_name:
            return None

        if lower_name in self._brands:
            return self._brands[lower_name]

        for generic_name, entry in self._brands.items():
            if generic_name in lower_name:
                return entry

        for entry in self._brands.values():
            if entry.brand_name.lower() in lower_name:
                return entry

        return None


@lru_cache(maxsize=4)
def load_curated_tables(data_dir: Path | None = None) -> CuratedPricingTables:
    """Process-wide curated tables, loaded once per ``data_dir``."""
    return CuratedPricingTables.load(data_dir)
