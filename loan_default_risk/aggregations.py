"""
Default-rate aggregations over the cleaned loan snapshot.

Each function takes the ``loans_clean`` DataFrame and returns an
``AggregationResult`` holding one summary table. The tables share a
common shape: the grouping key, ``total_loans`` and ``default_rate``
(percentage of "Charged Off" loans, two decimals).

Rows whose bucketing field cannot be parsed are left out of that one
aggregation and counted in ``AggregationResult.excluded``; they never
affect the other aggregations.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from loan_default_risk.constants import (
    CENTURY_PIVOT,
    CREDIT_AGE_BAND_EDGES,
    CREDIT_AGE_BANDS,
    DEFAULT_STATUS,
    DTI_BAND_THRESHOLDS,
    DTI_BANDS,
    INCOME_BAND_THRESHOLDS,
    INCOME_BANDS,
    INTEREST_BAND_THRESHOLDS,
    INTEREST_BANDS,
    LOAN_SIZE_BANDS,
    LOAN_SIZE_THRESHOLDS,
    MONTH_ABBREVIATIONS,
    TOP_EXPOSURE_LIMIT,
    UTILIZATION_BAND_THRESHOLDS,
    UTILIZATION_BANDS,
)
from loan_default_risk.exceptions import (
    MalformedDateValueError,
    UnknownAggregationError,
    UnparseableOrdinalError,
)
from loan_default_risk.utils import to_numeric

logger = logging.getLogger(__name__)


@dataclass
class AggregationResult:
    name: str
    table: pd.DataFrame = field(default_factory=pd.DataFrame)

    excluded: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# ====================================================================
# Field parsers
# ====================================================================

_DATE_PATTERN = re.compile(r"^([A-Za-z]{3})-(\d{2}|\d{4})$")
_EMP_LENGTH_PATTERN = re.compile(r"^(<\s*)?(\d+)\s*(\+)?\s*(years?)?$", re.IGNORECASE)


def _split_date(value):
    if not isinstance(value, str):
        raise MalformedDateValueError(f"Malformed date value: {value!r}")
    match = _DATE_PATTERN.match(value.strip())
    if match is None:
        raise MalformedDateValueError(f"Malformed date value: {value!r}")
    month = match.group(1).title()
    if month not in MONTH_ABBREVIATIONS:
        raise MalformedDateValueError(f"Unknown month in date value: {value!r}")
    return month, int(match.group(2)[-2:])


def parse_issue_month(value) -> str:
    """Normalize an issue date like ``Dec-15`` or ``Dec-2015`` to ``Dec-2015``."""
    month, yy = _split_date(value)
    return f"{month}-20{yy:02d}"


def issue_year(value) -> int:
    """Issue years are always in the 2000s."""
    _, yy = _split_date(value)
    return 2000 + yy


def credit_line_year(value) -> int:
    """
    Recover the four-digit year of an earliest credit line.

    Only the last two digits are used. Pairs above ``CENTURY_PIVOT`` are
    read as 19xx, everything else (including the pivot itself) as 20xx,
    so ``"Jan-95"`` is 1995, ``"Jan-31"`` is 1931 and ``"Jan-30"`` is 2030.
    """
    _, yy = _split_date(value)
    if yy > CENTURY_PIVOT:
        return 1900 + yy
    return 2000 + yy


def parse_emp_length(value) -> float:
    """
    Numeric ordinal for an employment length string.

    ``"< 1 year"`` -> 0, ``"1 year"`` -> 1, ``"10+ years"`` -> 10. Plain
    numbers pass through. Anything else raises ``UnparseableOrdinalError``.
    """
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        if np.isnan(value):
            raise UnparseableOrdinalError(f"Unparseable employment length: {value!r}")
        return float(value)
    if not isinstance(value, str):
        raise UnparseableOrdinalError(f"Unparseable employment length: {value!r}")

    match = _EMP_LENGTH_PATTERN.match(value.strip())
    if match is None:
        raise UnparseableOrdinalError(f"Unparseable employment length: {value!r}")

    years = int(match.group(2))
    if match.group(1):
        return float(max(years - 1, 0))
    return float(years)


def _map_unique(series: pd.Series, parser: Callable) -> pd.Series:
    """Apply ``parser`` once per distinct value; failures map to None."""
    lookup = {}
    for value in series.unique():
        try:
            lookup[value] = parser(value)
        except (MalformedDateValueError, UnparseableOrdinalError):
            lookup[value] = None
    return series.map(lookup)


# ====================================================================
# Shared helpers
# ====================================================================

def _exclude_invalid(loans: pd.DataFrame, valid: pd.Series, name: str, column: str):
    """Drop rows where ``valid`` is False, logging how many went."""
    excluded = int((~valid).sum())
    if excluded:
        example = loans.loc[~valid, column].iloc[0]
        logger.warning(
            "%s: excluded %d rows with unparseable %s (e.g. %r)",
            name, excluded, column, example,
        )
    return loans.loc[valid], excluded


def _summarize(loans: pd.DataFrame, keys, key_name: str, means: Optional[Dict[str, pd.Series]] = None) -> pd.DataFrame:
    """
    Group rows by ``keys`` and compute count and default rate.

    ``means`` maps output column names to numeric series whose group mean
    (two decimals) is added to the table.
    """
    work = pd.DataFrame(index=loans.index)
    work[key_name] = keys
    work["_default"] = (loans["loan_status"] == DEFAULT_STATUS).astype("int64")

    agg_spec = {
        "total_loans": ("_default", "size"),
        "_defaults": ("_default", "sum"),
    }
    for column, values in (means or {}).items():
        work[column] = values
        agg_spec[column] = (column, "mean")

    table = work.groupby(key_name).agg(**agg_spec).reset_index()
    table["total_loans"] = table["total_loans"].astype("int64")
    table["default_rate"] = (table["_defaults"] / table["total_loans"] * 100).round(2)
    for column in (means or {}):
        table[column] = table[column].round(2)

    columns = [key_name, "total_loans"] + list(means or {}) + ["default_rate"]
    return table[columns]


def _order(table: pd.DataFrame, key: str, by: Optional[str] = None, ascending: bool = True) -> pd.DataFrame:
    """Sort by ``by`` (or the key itself); ties fall back to the key ascending."""
    if by is None or by == key:
        table = table.sort_values(key, ascending=ascending, kind="mergesort")
    else:
        table = table.sort_values([by, key], ascending=[ascending, True], kind="mergesort")
    return table.reset_index(drop=True)


def _order_by_rank(table: pd.DataFrame, key: str, rank: Dict) -> pd.DataFrame:
    table = table.assign(_rank=table[key].map(rank))
    table = table.sort_values(["_rank", key], kind="mergesort").drop(columns="_rank")
    return table.reset_index(drop=True)


def _band(conditions: List[pd.Series], labels, default: str) -> np.ndarray:
    return np.select(conditions, list(labels), default=default)


def _numeric_field(loans: pd.DataFrame, name: str, column: str):
    values = to_numeric(loans[column])
    kept, excluded = _exclude_invalid(loans, values.notna(), name, column)
    return kept, values.loc[kept.index], excluded


# ====================================================================
# 1-3: Grade, interest rate, purpose
# ====================================================================

def default_rate_by_grade(loans: pd.DataFrame) -> AggregationResult:
    """Default rate for each credit grade (A–G), in grade order."""
    table = _summarize(loans, loans["grade"], "grade")
    return AggregationResult("grade", _order(table, "grade"))


def interest_rate_by_grade(loans: pd.DataFrame) -> AggregationResult:
    """
    Average interest rate per grade, highest first.

    Validates risk-based pricing: worse grades should carry higher rates.
    Rows with an unparseable ``int_rate`` are excluded.
    """
    kept, rates, excluded = _numeric_field(loans, "interest_rate", "int_rate")
    table = _summarize(kept, kept["grade"], "grade", means={"avg_int_rate": rates})
    table = _order(table, "grade", by="avg_int_rate", ascending=False)
    return AggregationResult("interest_rate", table, excluded=excluded)


def default_rate_by_purpose(loans: pd.DataFrame) -> AggregationResult:
    table = _summarize(loans, loans["purpose"], "purpose")
    return AggregationResult("purpose", _order(table, "purpose", by="default_rate", ascending=False))


# ====================================================================
# 4: Income band
# ====================================================================

def income_band(income: pd.Series) -> np.ndarray:
    """
    Classify annual income into one of five bands.

    Bands are checked in priority order and the first match wins:
        - Zero Income:       income == 0
        - Very High Income:  income >= 150000
        - High Income:       income >= 100000
        - Mid Income:        income >= 50000
        - Low Income:        everything else
    """
    zero, mid, high, very_high = INCOME_BAND_THRESHOLDS
    conditions = [
        income == zero,
        income >= very_high,
        income >= high,
        income >= mid,
    ]
    return _band(conditions, INCOME_BANDS[:4], INCOME_BANDS[4])


def default_rate_by_income_band(loans: pd.DataFrame) -> AggregationResult:
    kept, income, excluded = _numeric_field(loans, "income_band", "annual_inc")
    table = _summarize(kept, income_band(income), "income_group")
    table = _order(table, "income_group", by="default_rate", ascending=False)
    return AggregationResult("income_band", table, excluded=excluded)


# ====================================================================
# 5-6: Term and interest band
# ====================================================================

def default_rate_by_term(loans: pd.DataFrame) -> AggregationResult:
    """Default rate per loan term in months (36 vs 60), shortest first."""
    table = _summarize(loans, loans["term_clean"], "term_months")
    return AggregationResult("term", _order(table, "term_months"))


def interest_band(rate: pd.Series) -> np.ndarray:
    """Low (<10), Medium (10 to 15 inclusive) or High interest."""
    low, high = INTEREST_BAND_THRESHOLDS
    conditions = [rate < low, (rate >= low) & (rate <= high)]
    return _band(conditions, INTEREST_BANDS[:2], INTEREST_BANDS[2])


def default_rate_by_interest_band(loans: pd.DataFrame) -> AggregationResult:
    kept, rates, excluded = _numeric_field(loans, "interest_band", "int_rate")
    table = _summarize(kept, interest_band(rates), "interest_band")
    return AggregationResult("interest_band", _order(table, "interest_band"), excluded=excluded)


# ====================================================================
# 7-8: Employment length and home ownership
# ====================================================================

def default_rate_by_emp_length(loans: pd.DataFrame) -> AggregationResult:
    """
    Default rate per employment length, ordered by years of employment.

    Values outside the ``"<N> years"`` convention (for example ``"n/a"``)
    are excluded from this table only.
    """
    ordinals = _map_unique(loans["emp_length"], parse_emp_length)
    kept, excluded = _exclude_invalid(loans, ordinals.notna(), "emp_length", "emp_length")

    table = _summarize(kept, kept["emp_length"], "emp_length")
    rank = dict(zip(kept["emp_length"], ordinals.loc[kept.index]))
    return AggregationResult("emp_length", _order_by_rank(table, "emp_length", rank), excluded=excluded)


def default_rate_by_home_ownership(loans: pd.DataFrame) -> AggregationResult:
    table = _summarize(loans, loans["home_ownership"], "home_ownership")
    table = _order(table, "home_ownership", by="default_rate", ascending=False)
    return AggregationResult("home_ownership", table)


# ====================================================================
# 9: Loan size
# ====================================================================

def loan_size_band(amount: pd.Series) -> np.ndarray:
    """Small (<= 5000), Medium (<= 15000) or Large."""
    small, medium = LOAN_SIZE_THRESHOLDS
    conditions = [amount <= small, amount <= medium]
    return _band(conditions, LOAN_SIZE_BANDS[:2], LOAN_SIZE_BANDS[2])


def default_rate_by_loan_size(loans: pd.DataFrame) -> AggregationResult:
    kept, amounts, excluded = _numeric_field(loans, "loan_size", "loan_amnt")
    table = _summarize(kept, loan_size_band(amounts), "loan_size")
    rank = {label: i for i, label in enumerate(LOAN_SIZE_BANDS)}
    return AggregationResult("loan_size", _order_by_rank(table, "loan_size", rank), excluded=excluded)


# ====================================================================
# 10-11: Issue month and state
# ====================================================================

def default_rate_by_issue_month(loans: pd.DataFrame, chronological: bool = True) -> AggregationResult:
    """
    Loans issued and default rate per issue month.

    Months are labelled ``Mon-20YY``. With ``chronological=True`` the rows
    run from the earliest month to the latest; with ``False`` they are
    sorted by the label text, which reproduces the historical report
    order (``Apr-2016`` before ``Aug-2015``).

    Parameters
    ----------
    loans : pd.DataFrame
        Cleaned loan snapshot.
    chronological : bool
        Sort by calendar month instead of by label.

    Returns
    -------
    AggregationResult
        Table with ``issue_month``, ``total_loans`` and ``default_rate``.
    """
    labels = _map_unique(loans["issue_d"], parse_issue_month)
    kept, excluded = _exclude_invalid(loans, labels.notna(), "issue_month", "issue_d")

    table = _summarize(kept, labels.loc[kept.index], "issue_month")
    if chronological:
        rank = {
            label: int(label[-4:]) * 12 + MONTH_ABBREVIATIONS.index(label[:3])
            for label in table["issue_month"]
        }
        table = _order_by_rank(table, "issue_month", rank)
    else:
        table = _order(table, "issue_month")
    return AggregationResult("issue_month", table, excluded=excluded)


def default_rate_by_state(loans: pd.DataFrame) -> AggregationResult:
    table = _summarize(loans, loans["addr_state"], "addr_state")
    return AggregationResult("state", _order(table, "addr_state", by="default_rate", ascending=False))


# ====================================================================
# 12: Revolving utilization
# ====================================================================

def utilization_band(util: pd.Series) -> np.ndarray:
    """Low (<30), Moderate (30 to 60 inclusive) or High utilization."""
    low, high = UTILIZATION_BAND_THRESHOLDS
    conditions = [util < low, (util >= low) & (util <= high)]
    return _band(conditions, UTILIZATION_BANDS[:2], UTILIZATION_BANDS[2])


def default_rate_by_utilization_band(loans: pd.DataFrame) -> AggregationResult:
    kept, util, excluded = _numeric_field(loans, "utilization_band", "revol_util")
    table = _summarize(kept, utilization_band(util), "utilization_band")
    table = _order(table, "utilization_band", by="default_rate", ascending=False)
    return AggregationResult("utilization_band", table, excluded=excluded)


# ====================================================================
# 13: Credit history age
# ====================================================================

def _credit_age(loans: pd.DataFrame, name: str):
    """Years between issue and earliest credit line, with bad dates dropped."""
    issued = _map_unique(loans["issue_d"], issue_year)
    kept, bad_issue = _exclude_invalid(loans, issued.notna(), name, "issue_d")

    opened = _map_unique(kept["earliest_cr_line"], credit_line_year)
    kept, bad_line = _exclude_invalid(kept, opened.notna(), name, "earliest_cr_line")

    age = issued.loc[kept.index].astype("int64") - opened.loc[kept.index].astype("int64")
    return kept, age, bad_issue + bad_line


def credit_age_band(age: pd.Series) -> np.ndarray:
    """
    Coarse credit-age ranges, each running through its stated upper bound:
    <10, 10–20, 20–30, 30–40, 40–50 and >50 years.
    """
    conditions = [age < CREDIT_AGE_BAND_EDGES[0]]
    conditions += [age <= edge for edge in CREDIT_AGE_BAND_EDGES[1:]]
    return _band(conditions, CREDIT_AGE_BANDS[:-1], CREDIT_AGE_BANDS[-1])


def default_rate_by_credit_age(loans: pd.DataFrame) -> AggregationResult:
    """Default rate per credit history age in whole years, oldest first."""
    kept, age, excluded = _credit_age(loans, "credit_age")
    table = _summarize(kept, age, "credit_age_years")
    return AggregationResult("credit_age", _order(table, "credit_age_years", ascending=False), excluded=excluded)


def default_rate_by_credit_age_band(loans: pd.DataFrame) -> AggregationResult:
    kept, age, excluded = _credit_age(loans, "credit_age_band")
    table = _summarize(kept, credit_age_band(age), "credit_age_band")
    return AggregationResult("credit_age_band", _order(table, "credit_age_band"), excluded=excluded)


# ====================================================================
# 14: Top exposures
# ====================================================================

def top_exposures(loans: pd.DataFrame, limit: int = TOP_EXPOSURE_LIMIT) -> AggregationResult:
    """
    The largest individual loans by amount.

    Each row carries a dense rank on ``loan_amnt`` (descending), so equal
    amounts share a rank and the next amount gets the following rank
    with no gap. Loans with equal amounts are listed by ``id`` ascending.
    At most ``limit`` rows are returned.
    """
    kept, amounts, excluded = _numeric_field(loans, "top_exposures", "loan_amnt")

    table = pd.DataFrame({
        "id": kept["id"],
        "loan_amnt": amounts,
        "annual_inc": to_numeric(kept["annual_inc"]),
    })
    table = table.sort_values(["loan_amnt", "id"], ascending=[False, True], kind="mergesort")
    table["loan_rank"] = table["loan_amnt"].rank(method="dense", ascending=False).astype("int64")
    table = table.head(limit).reset_index(drop=True)

    return AggregationResult("top_exposures", table, excluded=excluded)


# ====================================================================
# 15-16: DTI band and application type
# ====================================================================

def dti_band(dti: pd.Series) -> np.ndarray:
    """Low (<10), Moderate (10 to 20 inclusive) or High DTI."""
    low, high = DTI_BAND_THRESHOLDS
    conditions = [dti < low, (dti >= low) & (dti <= high)]
    return _band(conditions, DTI_BANDS[:2], DTI_BANDS[2])


def default_rate_by_dti_band(loans: pd.DataFrame) -> AggregationResult:
    kept, dti, excluded = _numeric_field(loans, "dti_band", "dti")
    table = _summarize(kept, dti_band(dti), "dti_band")
    return AggregationResult("dti_band", _order(table, "dti_band"), excluded=excluded)


def default_rate_by_application_type(loans: pd.DataFrame) -> AggregationResult:
    table = _summarize(loans, loans["application_type"], "application_type")
    return AggregationResult("application_type", _order(table, "application_type"))


# ====================================================================
# Runner
# ====================================================================

AGGREGATIONS: Dict[str, Callable[[pd.DataFrame], AggregationResult]] = {
    "grade": default_rate_by_grade,
    "interest_rate": interest_rate_by_grade,
    "purpose": default_rate_by_purpose,
    "income_band": default_rate_by_income_band,
    "term": default_rate_by_term,
    "interest_band": default_rate_by_interest_band,
    "emp_length": default_rate_by_emp_length,
    "home_ownership": default_rate_by_home_ownership,
    "loan_size": default_rate_by_loan_size,
    "issue_month": default_rate_by_issue_month,
    "state": default_rate_by_state,
    "utilization_band": default_rate_by_utilization_band,
    "credit_age": default_rate_by_credit_age,
    "credit_age_band": default_rate_by_credit_age_band,
    "top_exposures": top_exposures,
    "dti_band": default_rate_by_dti_band,
    "application_type": default_rate_by_application_type,
}


def _run_one(name: str, func: Callable, loans: pd.DataFrame) -> AggregationResult:
    try:
        result = func(loans)
    except Exception as e:
        logger.exception("Aggregation %s failed", name)
        return AggregationResult(name, error=f"{type(e).__name__}: {e}")
    if result.excluded:
        logger.info("%s: %d rows excluded", name, result.excluded)
    return result


def run_aggregations(
    loans: pd.DataFrame,
    names: Optional[List[str]] = None,
    max_workers: Optional[int] = None,
) -> List[AggregationResult]:
    """
    Run the selected aggregations concurrently over the cleaned snapshot.

    The aggregations only read ``loans``, so they share it across threads
    without copying. A failing aggregation is logged and returned with its
    ``error`` set; the others still complete.

    Parameters
    ----------
    loans : pd.DataFrame
        Cleaned snapshot from ``clean_loans``.
    names : list of str, optional
        Aggregation names to run (default: all, in registry order).
    max_workers : int, optional
        Thread pool size (default: ThreadPoolExecutor's own).

    Returns
    -------
    list of AggregationResult
        One result per requested name, in the requested order.
    """
    names = list(AGGREGATIONS) if names is None else list(names)
    unknown = [n for n in names if n not in AGGREGATIONS]
    if unknown:
        raise UnknownAggregationError(f"Unknown aggregation(s): {', '.join(unknown)}")

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_run_one, name, AGGREGATIONS[name], loans) for name in names]
        return [future.result() for future in futures]
