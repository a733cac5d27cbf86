"""Import a CSV question set as a new test: validate every row, then insert test + questions."""
import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from examhall.csv_parser import import_csv

load_dotenv()

DEFAULT_DURATION_MINUTES = int(os.getenv("EXAM_DEFAULT_DURATION_MINUTES", "40"))


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of minutes, got {value}")
    return number


def run_import(
    csv_path: Path,
    name: str | None = None,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    year: int | None = None,
    dry_run: bool = False,
) -> int:
    """Returns a process exit code: 0 on success, 1 if the CSV or test could not be accepted."""
    if duration_minutes <= 0:
        print(f"Duration must be positive, got {duration_minutes} minutes")
        return 1
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV not found: {csv_path}")
    text = csv_path.read_text(encoding="utf-8-sig")
    outcome = import_csv(text)
    if not outcome.ok:
        print(f"Rejected {csv_path.name}: {len(outcome.errors)} error(s)")
        for err in outcome.errors:
            print(f"  {err}")
        return 1

    name = name or csv_path.stem
    if dry_run:
        print(f"Dry run: would create test '{name}' with {len(outcome.records)} questions ({duration_minutes} min)")
        print("Sample row:", outcome.records[0].to_question_row("<test_id>", 0))
        return 0

    # imported here so a dry run needs no Supabase credentials
    from db import get_database_uncached
    from examhall.database import StoreError
    from examhall.exam_service import create_test

    try:
        test = create_test(get_database_uncached(), name, outcome.records, duration_minutes, year)
    except (StoreError, ValueError) as e:
        print(f"Failed to create test '{name}': {e}")
        return 1
    print(f"Created test '{test.name}' ({test.id}) with {test.question_count} questions")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import a CSV question set into Supabase as a new test.")
    parser.add_argument("csv", help="Path to the .csv file")
    parser.add_argument("--name", default=None, help="Test name (default: file name without .csv)")
    parser.add_argument(
        "--duration",
        type=positive_int,
        default=DEFAULT_DURATION_MINUTES,
        help=f"Duration in minutes (default {DEFAULT_DURATION_MINUTES})",
    )
    parser.add_argument("--year", type=int, default=None, help="Exam year, optional")
    parser.add_argument("--dry-run", action="store_true", help="Parse and validate only, do not insert")
    args = parser.parse_args()
    sys.exit(run_import(Path(args.csv), name=args.name, duration_minutes=args.duration, year=args.year, dry_run=args.dry_run))
