"""Unit tests for the cleaning stage"""

import pandas as pd
import pytest

from loan_default_risk.cleaning import clean_loans, parse_term
from loan_default_risk.constants import REQUIRED_COLUMNS
from loan_default_risk.exceptions import MalformedTermValueError, MissingColumnsError


@pytest.mark.parametrize(
    "raw, months",
    [("36 months", 36), ("60 months", 60), (" 36 months", 36), ("60 months ", 60)],
)
def test_parse_term(raw, months):
    assert parse_term(raw) == months


@pytest.mark.parametrize("raw", ["36", "36 mo", " months", "0 months", "-36 months", "x months", "² months", None, 36])
def test_parse_term_rejects_malformed_values(raw):
    with pytest.raises(MalformedTermValueError):
        parse_term(raw)


@pytest.mark.parametrize("column", REQUIRED_COLUMNS)
def test_rows_missing_a_required_field_are_dropped(make_loans, column):
    raw = make_loans({}, {column: None})

    result = clean_loans(raw)

    assert result.clean_rows == 1
    assert result.dropped_missing == 1
    assert result.loans["id"].tolist() == [1]


def test_blank_strings_count_as_missing(make_loans):
    raw = make_loans({}, {"purpose": "   "}, {"grade": ""})

    result = clean_loans(raw)

    assert result.loans["id"].tolist() == [1]
    assert result.dropped_missing == 2


def test_cleaned_records_have_every_required_field(sample_raw):
    loans = clean_loans(sample_raw).loans

    assert len(loans) == 5
    assert loans[list(REQUIRED_COLUMNS)].notna().all().all()


def test_derived_columns(sample_raw):
    loans = clean_loans(sample_raw).loans

    assert loans["term_clean"].tolist() == [36, 60, 36, 36, 36]
    assert loans["income_flag"].tolist() == [
        "Zero Income",
        "Reported Income",
        "Reported Income",
        "Reported Income",
        "Reported Income",
    ]


def test_income_flag_reads_percent_free_strings(make_loans):
    raw = make_loans({"annual_inc": "0"}, {"annual_inc": "0.0"}, {"annual_inc": "42000"})

    loans = clean_loans(raw).loans

    assert loans["income_flag"].tolist() == ["Zero Income", "Zero Income", "Reported Income"]


def test_non_ascii_digit_term_is_excluded_not_fatal(make_loans):
    raw = make_loans({}, {"term": "² months"})

    result = clean_loans(raw)

    assert result.loans["id"].tolist() == [1]
    assert result.term_errors["term"].tolist() == ["² months"]


def test_malformed_term_is_reported_and_excluded(make_loans):
    raw = make_loans({}, {"term": "36 mos"}, {"term": "sixty months"})

    result = clean_loans(raw)

    assert result.loans["id"].tolist() == [1]
    assert result.term_errors["id"].tolist() == [2, 3]
    assert result.term_errors["term"].tolist() == ["36 mos", "sixty months"]


def test_malformed_term_raises_in_strict_mode(make_loans):
    raw = make_loans({}, {"term": "36 mos"})

    with pytest.raises(MalformedTermValueError) as excinfo:
        clean_loans(raw, strict=True)

    assert excinfo.value.loan_ids == [2]
    assert excinfo.value.value == "36 mos"


def test_missing_required_column_raises(make_loans):
    raw = make_loans({}).drop(columns=["dti", "grade"])

    with pytest.raises(MissingColumnsError) as excinfo:
        clean_loans(raw)

    assert excinfo.value.missing == ["grade", "dti"]


def test_cleaning_is_idempotent_and_leaves_input_untouched(sample_raw):
    before = sample_raw.copy()

    first = clean_loans(sample_raw)
    second = clean_loans(sample_raw)

    pd.testing.assert_frame_equal(first.loans, second.loans)
    pd.testing.assert_frame_equal(sample_raw, before)
    assert "term_clean" not in sample_raw.columns


def test_cleaned_snapshot_has_fresh_index(sample_raw):
    loans = clean_loans(sample_raw).loans

    assert loans.index.tolist() == list(range(len(loans)))


def test_missing_report_counts_required_fields(sample_raw):
    report = clean_loans(sample_raw).missing_report

    counts = dict(zip(report["Column"], report["Missing_Count"]))
    assert counts == {"annual_inc": 1, "purpose": 1}


def test_extra_columns_are_carried_through(make_loans):
    raw = make_loans({}).assign(sub_grade="B3")

    loans = clean_loans(raw).loans

    assert loans["sub_grade"].tolist() == ["B3"]
