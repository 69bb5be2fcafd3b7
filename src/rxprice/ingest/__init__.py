"""Data ingestion module for the pricing engine.

This module handles:
- Loading curated tables and coverage files (CSV / Excel)
- Normalizing medication names, strengths and prices
- Mapping upstream dataset columns to standard names
"""

from rxprice.ingest.loaders import (
    detect_file_type,
    find_override_file,
    load_csv_to_polars,
    load_excel_to_polars,
    load_file_auto,
)
from rxprice.ingest.normalizers import (
    apply_column_mapping,
    clean_medication_name,
    fuzzy_match_drug_name,
    normalize_strength,
    parse_price,
    parse_strength_value,
    require_columns,
)

__all__ = [
    # Loaders
    "load_excel_to_polars",
    "load_csv_to_polars",
    "load_file_auto",
    "detect_file_type",
    "find_override_file",
    # Normalizers
    "apply_column_mapping",
    "clean_medication_name",
    "fuzzy_match_drug_name",
    "normalize_strength",
    "parse_price",
    "parse_strength_value",
    "require_columns",
]
