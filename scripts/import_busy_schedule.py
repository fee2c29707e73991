"""
Import busy schedules from a form export (CSV) and write them in one batch.

Parses the export, prints a per-row preview (busy-slot count and OK or the
literal errors), and with --execute submits every error-free row as a
full-set batch write to the Schedule/Roster API.

Usage:
    python scripts/import_busy_schedule.py --csv data/students.csv                    # dry-run (default)
    python scripts/import_busy_schedule.py --csv data/teachers.csv --kind teacher
    python scripts/import_busy_schedule.py --csv data/students.csv --execute --week-id <id>

Exit codes:
  0 = preview shown (dry-run) or batch written
  1 = nothing valid to submit, or the write failed
"""

import argparse
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
load_dotenv()

from src.availability.batch import BatchSubmitter  # noqa: E402
from src.availability.client import ScheduleApiClient  # noqa: E402
from src.availability.config import get_config  # noqa: E402
from src.availability.errors import SchedulingError  # noqa: E402
from src.availability.importer import LAYOUTS, parse_import_file  # noqa: E402
from src.availability.logging import bind_run, get_logger, setup_logging  # noqa: E402
from src.availability.models import PersonKind  # noqa: E402

log = get_logger(__name__)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import busy schedules from a CSV form export.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--csv", required=True, help="Path to the exported CSV file.")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in PersonKind],
        default=PersonKind.STUDENT.value,
        help="Sheet layout and write discriminator (default: student).",
    )
    parser.add_argument(
        "--week-id",
        default=None,
        help="Target week (default: SCHEDULING_WEEK_ID from the environment).",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Submit the batch. Without this flag only the preview is printed.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    kind = PersonKind(args.kind)
    bind_run(kind=kind.value, week_id=args.week_id or config.week_id or None)
    if not os.path.exists(args.csv):
        print(f"Error: CSV file not found at {args.csv}", file=sys.stderr)
        return 1

    preview = parse_import_file(args.csv, LAYOUTS[kind])
    print(preview.format_table())

    if not preview.can_submit:
        print("\nNo valid rows to submit.")
        return 1

    payload = preview.to_payload(kind, week_id=args.week_id or config.week_id)
    if not args.execute:
        print(f"\nDry run: {len(payload.data)} {kind.value}(s) would be updated. Use --execute to write.")
        return 0

    submitter = BatchSubmitter(ScheduleApiClient(config))
    try:
        submitter.submit(payload)
    except SchedulingError as e:
        log.error("import_submit_failed", error=str(e), type=type(e).__name__)
        print(f"\nWrite failed, nothing was retried: {e}")
        return 1

    print(f"\nUpdated busy schedules for {len(payload.data)} {kind.value}(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
