"""Insurance formulary lookup over a plan drug-coverage table.

Coverage rows (rxcui, plan_name, insurer_name, tier_name, copay,
is_active) are held in a polars DataFrame. An insurance selection is
mapped to plan ids; rows for those plans are preferred, falling back to
any active coverage for the drug, and the lowest copay wins.
"""

import functools
import logging
import operator
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType

import polars as pl

from rxprice.ingest.loaders import find_override_file, load_file_auto
from rxprice.ingest.normalizers import FORMULARY_COLUMN_MAP, apply_column_mapping, require_columns
from rxprice.sources.base import FormularyCopay, FormularyService

logger = logging.getLogger(__name__)

FORMULARY_TABLE_STEM = "formulary_coverage"
TRUTHY_VALUES = ["true", "1", "yes", "y"]

# Insurance selection -> contract/plan ids present in coverage plan names
INSURANCE_PLAN_IDS = MappingProxyType(
    {
        "medicare": ("H1234-001", "S5678-002", "H9999-003", "S1111-004"),
        "medicare_advantage": ("H1234-001", "H9999-003"),
        "medicare_part_d": ("S5678-002", "S1111-004"),
        "medicaid": ("H1234-001",),
        "marketplace": ("12345MA0010001",),
        "bcbs": ("12345MA0010001",),
        "blue_cross_ppo": ("12345MA0010001",),
        "blue_cross_hmo": ("12345MA0010001",),
        "aetna": ("H9999-003",),
        "cigna": ("S1111-004",),
        "united": ("H1234-001",),
        "united_healthcare": ("H1234-001",),
        "humana": ("S5678-002",),
        "no_insurance": (),
        "cash": (),
    }
)


def map_insurance_to_plans(insurance_selection: str) -> tuple[str, ...]:
    """Plan ids for an insurance selection (empty for cash / unknown)."""
    return INSURANCE_PLAN_IDS.get(insurance_selection.strip().lower(), ())


class TableFormulary(FormularyService):
    """Formulary service backed by an in-memory coverage table.

    Args:
        coverage: Coverage rows; raw "Plan Name"-style headers are mapped.

    Raises:
        ValueError: If required coverage columns are missing.
    """

    def __init__(self, coverage: pl.DataFrame) -> None:
        df = apply_column_mapping(coverage, FORMULARY_COLUMN_MAP)
        require_columns(
            df,
            {"rxcui", "plan_name", "insurer_name", "tier_name", "copay"},
            "Formulary coverage table",
        )

        if "is_active" not in df.columns:
            active = pl.lit(True)
        elif df.schema["is_active"] == pl.Utf8:
            active = pl.col("is_active").str.to_lowercase().is_in(TRUTHY_VALUES)
        else:
            active = pl.col("is_active").cast(pl.Boolean, strict=False)

        self._coverage = (
            df.with_columns(
                pl.col("rxcui").cast(pl.Utf8).str.strip_chars(),
                pl.col("plan_name").cast(pl.Utf8).fill_null(""),
                pl.col("insurer_name").cast(pl.Utf8).fill_null(""),
                pl.col("tier_name").cast(pl.Utf8).fill_null(""),
                pl.col("copay").cast(pl.Float64, strict=False),
                active.fill_null(False).alias("is_active"),
            )
            .filter(pl.col("is_active") & pl.col("copay").is_not_null())
        )
        logger.info(f"Loaded {self._coverage.height} active formulary coverage rows")

    @property
    def coverage(self) -> pl.DataFrame:
        return self._coverage

    @classmethod
    def from_file(cls, path: Path) -> "TableFormulary":
        return cls(load_file_auto(path))

    @classmethod
    def from_data_dir(cls, data_dir: Path) -> "TableFormulary | None":
        """Load ``formulary_coverage.csv|.xlsx`` from ``data_dir`` if present."""
        path = find_override_file(data_dir, FORMULARY_TABLE_STEM)
        if path is None:
            logger.info(f"No formulary coverage file in {data_dir}; copays will be modeled")
            return None
        return cls.from_file(path)

    def best_copay(self, rxcui: str, insurance_selection: str) -> FormularyCopay | None:
        """Lowest active copay for a drug under an insurance selection.

        Args:
            rxcui: RxNorm concept id.
            insurance_selection: Insurance selection id (e.g. "aetna").

        Returns:
            FormularyCopay, or None when the selection has no plans or the
            drug is not covered.
        """
        plan_ids = map_insurance_to_plans(insurance_selection)
        if not plan_ids or not rxcui:
            return None

        coverage = self._coverage.filter(pl.col("rxcui") == rxcui.strip())
        if coverage.height == 0:
            logger.debug(f"RXCUI {rxcui} not in formulary")
            return None

        selection = insurance_selection.strip().lower()
        plan_match = functools.reduce(
            operator.or_,
            [pl.col("plan_name").str.contains(plan_id, literal=True) for plan_id in plan_ids],
        ) | pl.col("insurer_name").str.to_lowercase().str.contains(selection, literal=True)

        relevant = coverage.filter(plan_match)
        if relevant.height == 0:
            relevant = coverage

        best = relevant.sort("copay", maintain_order=True).row(0, named=True)
        logger.info(
            f"Formulary copay for RXCUI {rxcui} ({insurance_selection}): "
            f"${best['copay']} via {best['plan_name']} {best['tier_name']}"
        )
        return FormularyCopay(
            copay=Decimal(str(best["copay"])),
            plan_name=best["plan_name"],
            tier_name=best["tier_name"],
        )
