"""
Utility functions for loading and profiling the loan dataset.
Loan Default Risk Analysis
"""

import logging
import time
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


def load_loans(path) -> pd.DataFrame:
    """
    Load the raw loan table from disk.

    Supports CSV (optionally gzip-compressed) and parquet files. All
    columns are read as-is; type coercion is left to the cleaner and the
    individual aggregations so that bad values stay visible.

    Parameters
    ----------
    path : str or Path
        Location of the ``.csv``, ``.csv.gz`` or ``.parquet`` file.

    Returns
    -------
    pd.DataFrame
        Raw loan records, one row per loan.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Loan dataset not found: {path}")

    start = time.time()
    suffixes = [s.lower() for s in path.suffixes]

    if suffixes and suffixes[-1] == ".parquet":
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path, low_memory=False)

    elapsed = time.time() - start
    logger.info(
        "Loaded %s: %s rows x %s columns (%.1fs)",
        path.name, f"{len(df):,}", len(df.columns), elapsed,
    )
    return df


def get_missing_info(df: pd.DataFrame, columns=None, table_name: str = "") -> pd.DataFrame:
    """
    Compute missing value statistics for the given columns.

    Whitespace-only strings are counted as missing, matching how the
    cleaner treats them.

    Parameters
    ----------
    df : pd.DataFrame
        Input DataFrame to analyze.
    columns : iterable of str, optional
        Columns to report on. Defaults to every column.
    table_name : str
        Label for the source table (used in output).

    Returns
    -------
    pd.DataFrame
        Per-column missing value report sorted by missing percentage (desc).
        Columns with no missing values are omitted.
    """
    columns = list(df.columns) if columns is None else list(columns)
    subset = df[columns]

    total = missing_mask(subset).sum()
    percent = (total / max(len(df), 1)) * 100

    missing_df = pd.DataFrame({
        "Table": table_name,
        "Column": total.index,
        "Missing_Count": total.values,
        "Missing_Pct": percent.values.round(2),
        "Dtype": subset.dtypes.astype(str).values,
    })

    missing_df = missing_df[missing_df["Missing_Count"] > 0]
    missing_df = missing_df.sort_values(
        ["Missing_Pct", "Column"], ascending=[False, True]
    ).reset_index(drop=True)

    return missing_df


def missing_mask(df: pd.DataFrame) -> pd.DataFrame:
    """Boolean frame marking nulls and blank strings."""
    mask = df.isna()
    for col in df.columns:
        if pd.api.types.is_numeric_dtype(df[col]):
            continue
        blank = df[col].map(lambda v: isinstance(v, str) and v.strip() == "")
        mask[col] = mask[col] | blank.astype(bool)
    return mask


def to_numeric(series: pd.Series) -> pd.Series:
    """
    Coerce a column to floats, stripping a trailing percent sign.

    Values that still cannot be parsed become NaN so callers can count and
    drop them.
    """
    if pd.api.types.is_numeric_dtype(series):
        return series.astype(float)
    cleaned = series.astype(str).str.strip().str.rstrip("%").str.strip()
    return pd.to_numeric(cleaned, errors="coerce")
