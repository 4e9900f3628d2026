"""
Cleaning stage for the loan default risk report.

Builds the ``loans_clean`` snapshot that every aggregation reads:
rows missing a required field are dropped, and two columns are derived
(``term_clean`` and ``income_flag``).
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from loan_default_risk.constants import (
    REPORTED_INCOME,
    REQUIRED_COLUMNS,
    TERM_SUFFIX,
    ZERO_INCOME,
)
from loan_default_risk.exceptions import MalformedTermValueError, MissingColumnsError
from loan_default_risk.utils import get_missing_info, missing_mask, to_numeric

logger = logging.getLogger(__name__)


@dataclass
class CleaningResult:
    loans: pd.DataFrame

    raw_rows: int
    dropped_missing: int

    term_errors: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=["id", "term"])
    )
    missing_report: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def clean_rows(self) -> int:
        return len(self.loans)


# ====================================================================
# Term parsing
# ====================================================================

def parse_term(value) -> int:
    """
    Convert a raw term string such as ``"36 months"`` to months.

    Leading and trailing whitespace is ignored (Lending Club exports carry
    a leading space, e.g. ``" 36 months"``).

    Raises
    ------
    MalformedTermValueError
        If the value is not ``<positive int> months``.
    """
    if not isinstance(value, str):
        raise MalformedTermValueError(value)

    text = value.strip()
    if not text.endswith(TERM_SUFFIX):
        raise MalformedTermValueError(value)

    number = text[: -len(TERM_SUFFIX)].strip()
    if not (number.isascii() and number.isdigit()) or int(number) <= 0:
        raise MalformedTermValueError(value)

    return int(number)


def _parse_term_or_none(value):
    try:
        return parse_term(value)
    except MalformedTermValueError:
        return None


# ====================================================================
# Cleaner
# ====================================================================

def clean_loans(raw: pd.DataFrame, strict: bool = False) -> CleaningResult:
    """
    Produce the cleaned loan snapshot from raw records.

    Steps:
        1. Drop rows where any required column is null or blank.
        2. Derive ``term_clean`` by stripping the ``" months"`` suffix.
           Rows whose term does not match are reported in ``term_errors``
           and left out of the snapshot (or raise when ``strict``).
        3. Derive ``income_flag``: "Zero Income" when ``annual_inc == 0``,
           otherwise "Reported Income".

    The input frame is never modified, and cleaning the same input twice
    gives identical snapshots.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw loan records containing at least the required columns.
    strict : bool
        If True, a malformed term raises instead of being excluded.

    Returns
    -------
    CleaningResult
        Cleaned snapshot plus the data-quality counts gathered on the way.
    """
    missing_cols = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing_cols:
        raise MissingColumnsError(missing_cols)

    raw_rows = len(raw)
    missing_report = get_missing_info(raw, columns=REQUIRED_COLUMNS, table_name="loans_data")

    # -- Step 1: completeness filter -------------------------------------------
    complete = ~missing_mask(raw[list(REQUIRED_COLUMNS)]).any(axis=1)
    df = raw.loc[complete].copy()
    dropped_missing = raw_rows - len(df)
    logger.info(
        "Dropped %s of %s rows with missing required fields",
        f"{dropped_missing:,}", f"{raw_rows:,}",
    )

    # -- Step 2: term_clean ----------------------------------------------------
    terms = df["term"].map(_parse_term_or_none)
    bad_term = terms.isna()
    term_errors = df.loc[bad_term, ["id", "term"]].reset_index(drop=True)

    if len(term_errors):
        if strict:
            raise MalformedTermValueError(
                term_errors["term"].iloc[0], loan_ids=term_errors["id"].tolist()
            )
        logger.warning(
            "Excluded %d rows with malformed term values (e.g. %r)",
            len(term_errors), term_errors["term"].iloc[0],
        )

    df = df.loc[~bad_term].copy()
    df["term_clean"] = terms[~bad_term].astype("int64")

    # -- Step 3: income_flag ---------------------------------------------------
    income = to_numeric(df["annual_inc"])
    df["income_flag"] = np.where(income == 0, ZERO_INCOME, REPORTED_INCOME)

    df = df.reset_index(drop=True)
    logger.info("Cleaned snapshot: %s rows", f"{len(df):,}")

    return CleaningResult(
        loans=df,
        raw_rows=raw_rows,
        dropped_missing=dropped_missing,
        term_errors=term_errors,
        missing_report=missing_report,
    )
