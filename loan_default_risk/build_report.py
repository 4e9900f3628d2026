"""
Build Report Pipeline - Loan Default Risk Analysis

Cleans the raw loan table, writes the cleaned snapshot to parquet and
runs every default-rate aggregation over it, printing each table.

Usage:
    python -m loan_default_risk.build_report --input data/loans_data.csv

The cleaning step must finish before any aggregation starts; the
aggregations themselves run concurrently and independently.
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from loan_default_risk.aggregations import AGGREGATIONS, AggregationResult, run_aggregations
from loan_default_risk.cleaning import CleaningResult, clean_loans
from loan_default_risk.constants import DEFAULT_INPUT, DEFAULT_SNAPSHOT
from loan_default_risk.exceptions import LoanDataError
from loan_default_risk.logging_setup import setup_logging
from loan_default_risk.utils import load_loans

logger = logging.getLogger(__name__)


def save_clean_snapshot(loans: pd.DataFrame, path) -> Path:
    """
    Write the cleaned snapshot to parquet, replacing any previous file.

    The file is written next to the target first and then moved into
    place, so readers never see a half-written snapshot.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")

    loans.to_parquet(tmp_path, index=False)
    os.replace(tmp_path, path)

    size_mb = os.path.getsize(path) / 1024 ** 2
    logger.info("Saved cleaned snapshot: %s (%.1f MB)", path, size_mb)
    return path


def print_result(result: AggregationResult) -> None:
    print(f"\n--- {result.name} ---")
    if not result.success:
        print(f"  FAILED: {result.error}")
        return
    if result.table.empty:
        print("  (no rows)")
    else:
        print(result.table.to_string(index=False))
    if result.excluded:
        print(f"  Excluded rows: {result.excluded:,}")


def build_report(
    raw: pd.DataFrame,
    snapshot_path=None,
    names: Optional[List[str]] = None,
    max_workers: Optional[int] = None,
    strict: bool = False,
) -> Tuple[CleaningResult, List[AggregationResult]]:
    """
    Run the full report: clean, publish the snapshot, aggregate.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw loan records.
    snapshot_path : str or Path, optional
        Where to write the cleaned snapshot. Skipped when None.
    names : list of str, optional
        Aggregations to run; all of them by default.
    max_workers : int, optional
        Thread pool size for the aggregations.
    strict : bool
        Raise on malformed term values instead of excluding them.

    Returns
    -------
    tuple
        The CleaningResult and one AggregationResult per aggregation.
    """
    pipeline_start = time.time()

    print(f"\n{'#'*60}")
    print(f"# LOAN DEFAULT RISK REPORT")
    print(f"# Raw loans: {len(raw):,}")
    print(f"{'#'*60}")

    # -- Step 1: Cleaning ------------------------------------------------------
    print(f"\n--- Step 1: Cleaning ---")
    cleaning = clean_loans(raw, strict=strict)
    print(f"  Dropped (missing fields): {cleaning.dropped_missing:,}")
    print(f"  Dropped (malformed term): {len(cleaning.term_errors):,}")
    print(f"  -> {cleaning.clean_rows:,} clean loans")
    if not cleaning.missing_report.empty:
        print(cleaning.missing_report.to_string(index=False))

    if snapshot_path is not None:
        save_clean_snapshot(cleaning.loans, snapshot_path)

    # -- Step 2: Aggregations --------------------------------------------------
    print(f"\n--- Step 2: Aggregations ---")
    results = run_aggregations(cleaning.loans, names=names, max_workers=max_workers)
    for result in results:
        print_result(result)

    failed = [r.name for r in results if not r.success]
    elapsed = time.time() - pipeline_start
    print(f"\n{'#'*60}")
    print(f"# REPORT COMPLETE")
    print(f"# Aggregations: {len(results) - len(failed)} ok, {len(failed)} failed")
    print(f"# Elapsed: {elapsed:.1f}s")
    print(f"{'#'*60}")

    return cleaning, results


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Default-rate report over a loan dataset.")
    parser.add_argument("--input", type=Path, default=DEFAULT_INPUT,
                        help="raw loans file (.csv, .csv.gz or .parquet)")
    parser.add_argument("--snapshot", type=Path, default=DEFAULT_SNAPSHOT,
                        help="where to write the cleaned parquet snapshot")
    parser.add_argument("--no-snapshot", action="store_true",
                        help="do not write the cleaned snapshot")
    parser.add_argument("--only", nargs="+", choices=list(AGGREGATIONS), metavar="NAME",
                        help="run only these aggregations")
    parser.add_argument("--workers", type=int, default=None,
                        help="thread pool size for the aggregations")
    parser.add_argument("--strict", action="store_true",
                        help="fail on malformed term values")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--json-logs", action="store_true",
                        help="emit log records as JSON lines")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, json_format=args.json_logs)

    # ParserError, UnicodeDecodeError and pyarrow's ArrowInvalid are ValueErrors
    try:
        raw = load_loans(args.input)
    except (OSError, ValueError) as e:
        logger.error("Cannot read %s: %s", args.input, e)
        return 1

    try:
        build_report(
            raw,
            snapshot_path=None if args.no_snapshot else args.snapshot,
            names=args.only,
            max_workers=args.workers,
            strict=args.strict,
        )
    except LoanDataError as e:
        logger.error("%s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
