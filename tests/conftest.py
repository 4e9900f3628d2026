"""Pytest fixtures for testing"""

import logging
from typing import Callable, List

import pandas as pd
import pytest

from loan_default_risk.cleaning import clean_loans

BASE_LOAN = {
    "id": 1,
    "loan_amnt": 10000.0,
    "int_rate": 12.5,
    "term": " 36 months",
    "annual_inc": 60000.0,
    "grade": "B",
    "purpose": "debt_consolidation",
    "emp_length": "5 years",
    "home_ownership": "RENT",
    "issue_d": "Dec-15",
    "addr_state": "CA",
    "revol_util": 45.0,
    "earliest_cr_line": "Jan-95",
    "dti": 15.0,
    "application_type": "Individual",
    "loan_status": "Fully Paid",
}


@pytest.fixture
def make_loans() -> Callable[..., pd.DataFrame]:
    """Build a raw loan frame from per-row overrides of BASE_LOAN"""

    def _make(*overrides: dict) -> pd.DataFrame:
        rows: List[dict] = []
        for i, override in enumerate(overrides, start=1):
            row = dict(BASE_LOAN, id=i)
            row.update(override)
            rows.append(row)
        return pd.DataFrame(rows, columns=list(BASE_LOAN))

    return _make


@pytest.fixture
def make_clean(make_loans) -> Callable[..., pd.DataFrame]:
    """Same as make_loans, but run through the cleaner"""

    def _make(*overrides: dict) -> pd.DataFrame:
        return clean_loans(make_loans(*overrides)).loans

    return _make


@pytest.fixture
def sample_raw(make_loans) -> pd.DataFrame:
    """A small mixed portfolio with a couple of incomplete rows"""
    return make_loans(
        {"grade": "A", "int_rate": 7.0, "annual_inc": 0, "loan_status": "Charged Off"},
        {"grade": "A", "int_rate": 8.0, "annual_inc": 80000, "term": " 60 months"},
        {"grade": "C", "int_rate": 15.5, "annual_inc": 155000, "loan_status": "Charged Off",
         "purpose": "small_business", "addr_state": "NY", "emp_length": "10+ years"},
        {"grade": "C", "int_rate": 16.0, "annual_inc": 120000, "emp_length": "< 1 year",
         "home_ownership": "MORTGAGE", "issue_d": "Jan-16", "application_type": "Joint App"},
        {"grade": "B", "loan_amnt": 35000.0, "revol_util": 75.0, "dti": 25.0},
        {"grade": "B", "annual_inc": None},
        {"grade": "D", "purpose": None},
    )


@pytest.fixture
def sample_clean(sample_raw) -> pd.DataFrame:
    return clean_loans(sample_raw).loans


@pytest.fixture
def restore_root_logging():
    """Undo handler changes made by setup_logging"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
