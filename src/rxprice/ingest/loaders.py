"""File loading utilities for curated pricing tables and coverage data."""

import logging
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

import pandas as pd
import polars as pl

logger = logging.getLogger(__name__)

# Columns that should always be read as strings (identifiers and strengths
# like "0.5mg" or RXCUI "0860975" must not be coerced to numbers)
STRING_COLUMN_NAMES = {
    "rxcui",
    "RXCUI",
    "strength",
    "Strength",
    "plan_id",
    "Plan ID",
}

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")


def load_excel_to_polars(
    file: BinaryIO | Path | str,
    sheet_name: str | int = 0,
) -> pl.DataFrame:
    """Load Excel file into Polars DataFrame.

    Uses pandas as intermediate step for Excel parsing (openpyxl backend),
    then converts to Polars for downstream processing.

    Identifier and strength columns are read as strings.

    Args:
        file: File path, path string, or file-like object.
        sheet_name: Sheet name or index to load. Defaults to first sheet.

    Returns:
        Polars DataFrame with loaded data.

    Raises:
        ValueError: If file cannot be parsed as Excel.
    """
    logger.info(f"Loading Excel file, sheet: {sheet_name}")

    try:
        if isinstance(file, str):
            file = Path(file)

        # First pass: read headers to detect string columns
        pdf_headers = pd.read_excel(
            file, sheet_name=sheet_name, engine="openpyxl", nrows=0
        )

        dtype_overrides: dict[str, type] = {
            col: str for col in pdf_headers.columns if col in STRING_COLUMN_NAMES
        }

        if hasattr(file, "seek"):
            file.seek(0)

        pdf = pd.read_excel(
            file,
            sheet_name=sheet_name,
            engine="openpyxl",
            dtype=dtype_overrides if dtype_overrides else None,
        )

        df = pl.from_pandas(pdf)

        logger.info(f"Loaded {df.height} rows, {df.width} columns")
        return df

    except Exception as e:
        logger.error(f"Failed to load Excel file: {e}")
        raise ValueError(f"Cannot parse Excel file: {e}") from e


def load_csv_to_polars(
    file: BinaryIO | Path | str,
    encoding: str = "utf8",
    infer_schema_length: int = 10000,
) -> pl.DataFrame:
    """Load CSV file into Polars DataFrame.

    Identifier and strength columns are read as strings.

    Args:
        file: File path, path string, or file-like object.
        encoding: Character encoding.
        infer_schema_length: Number of rows to scan for schema inference.

    Returns:
        Polars DataFrame with loaded data.

    Raises:
        ValueError: If file cannot be parsed as CSV.
    """
    logger.info(f"Loading CSV file with encoding: {encoding}")

    try:
        if isinstance(file, str):
            file = Path(file)

        source: Path | BytesIO
        if isinstance(file, Path):
            source = file
        else:
            content = file.read()
            if isinstance(content, str):
                content = content.encode(encoding)
            source = BytesIO(content)

        # First pass: read headers to detect string columns
        df_headers = pl.read_csv(source, encoding=encoding, n_rows=0)
        schema_overrides = {
            col: pl.String for col in df_headers.columns if col in STRING_COLUMN_NAMES
        }

        if isinstance(source, BytesIO):
            source.seek(0)

        df = pl.read_csv(
            source,
            encoding=encoding,
            infer_schema_length=infer_schema_length,
            truncate_ragged_lines=True,
            schema_overrides=schema_overrides if schema_overrides else None,
        )

        # Drop completely empty columns
        non_empty_cols = [col for col in df.columns if df[col].null_count() < df.height]
        if df.height > 0 and len(non_empty_cols) < len(df.columns):
            dropped_count = len(df.columns) - len(non_empty_cols)
            logger.info(f"Dropped {dropped_count} empty columns")
            df = df.select(non_empty_cols)

        logger.info(f"Loaded {df.height} rows, {df.width} columns")
        return df

    except Exception as e:
        logger.error(f"Failed to load CSV file: {e}")
        raise ValueError(f"Cannot parse CSV file: {e}") from e


def detect_file_type(filename: str) -> str:
    """Detect file type from filename extension.

    Args:
        filename: Name of the file (with extension).

    Returns:
        File type string: "excel" or "csv".

    Raises:
        ValueError: If file type is not supported.
    """
    lower_name = filename.lower()

    if lower_name.endswith((".xlsx", ".xls")):
        return "excel"
    elif lower_name.endswith(".csv"):
        return "csv"
    else:
        raise ValueError(
            f"Unsupported file type: {filename}. Supported types: .xlsx, .xls, .csv"
        )


def load_file_auto(
    file: BinaryIO | Path | str,
    filename: str | None = None,
    sheet_name: str | int = 0,
    encoding: str = "utf8",
) -> pl.DataFrame:
    """Auto-detect file type and load appropriately.

    Args:
        file: File path, path string, or file-like object.
        filename: Filename for type detection (required if file is BinaryIO).
        sheet_name: Sheet name for Excel files.
        encoding: Encoding for CSV files.

    Returns:
        Polars DataFrame with loaded data.

    Raises:
        ValueError: If file type cannot be determined or file cannot be loaded.
    """
    if filename is None:
        if isinstance(file, Path):
            filename = file.name
        elif isinstance(file, str):
            filename = Path(file).name
        else:
            raise ValueError("filename must be provided for file-like objects")

    file_type = detect_file_type(filename)

    if file_type == "excel":
        return load_excel_to_polars(file, sheet_name=sheet_name)
    else:
        return load_csv_to_polars(file, encoding=encoding)


def find_override_file(data_dir: Path | None, stem: str) -> Path | None:
    """Find a user-supplied replacement for a packaged table.

    Args:
        data_dir: Directory to search (None disables overrides).
        stem: File stem, e.g. "generic_pricing".

    Returns:
        Path to the first existing ``stem`` file with a supported suffix.
    """
    if data_dir is None or not data_dir.is_dir():
        return None

    for suffix in SUPPORTED_SUFFIXES:
        candidate = data_dir / f"{stem}{suffix}"
        if candidate.is_file():
            logger.info(f"Using override table {candidate}")
            return candidate

    return None
