"""
Business definitions and paths for the loan default risk report.

Band thresholds are fixed by the credit policy definitions, not by runtime
configuration. They are kept here so tests and analysts can refer to them
by name.
"""

import os
from pathlib import Path

# ====================================================================
# Paths
# ====================================================================

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("LOAN_RISK_DATA_DIR", PROJECT_ROOT / "data"))
DEFAULT_INPUT = DATA_DIR / "loans_data.csv"
DEFAULT_SNAPSHOT = DATA_DIR / "loans_clean.parquet"

# ====================================================================
# Record definitions
# ====================================================================

# Rows missing any of these are dropped by the cleaner.
REQUIRED_COLUMNS = (
    "loan_amnt",
    "loan_status",
    "int_rate",
    "term",
    "annual_inc",
    "grade",
    "purpose",
    "emp_length",
    "home_ownership",
    "issue_d",
    "addr_state",
    "revol_util",
    "earliest_cr_line",
    "id",
    "dti",
    "application_type",
)

DEFAULT_STATUS = "Charged Off"
TERM_SUFFIX = " months"

ZERO_INCOME = "Zero Income"
REPORTED_INCOME = "Reported Income"

# ====================================================================
# Band thresholds
# ====================================================================

INCOME_BAND_THRESHOLDS = (0, 50000, 100000, 150000)
INTEREST_BAND_THRESHOLDS = (10, 15)
LOAN_SIZE_THRESHOLDS = (5000, 15000)
UTILIZATION_BAND_THRESHOLDS = (30, 60)
DTI_BAND_THRESHOLDS = (10, 20)

# Two-digit credit-line years above the pivot belong to the 1900s.
CENTURY_PIVOT = 30

CREDIT_AGE_BAND_EDGES = (10, 20, 30, 40, 50)

TOP_EXPOSURE_LIMIT = 10

# ====================================================================
# Band labels
# ====================================================================

INCOME_BANDS = ("Zero Income", "Very High Income", "High Income", "Mid Income", "Low Income")
INTEREST_BANDS = ("Low Interest", "Medium Interest", "High Interest")
LOAN_SIZE_BANDS = ("Small", "Medium", "Large")
UTILIZATION_BANDS = ("Low Utilization", "Moderate Utilization", "High Utilization")
DTI_BANDS = ("Low DTI", "Moderate DTI", "High DTI")
CREDIT_AGE_BANDS = (
    "<10 years",
    "10–20 years",
    "20–30 years",
    "30–40 years",
    "40–50 years",
    ">50 years",
)

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
