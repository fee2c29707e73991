"""
Show the weekly slots where a whole group can meet.

Loads the teacher and student rosters plus the week's lesson schedule, then
sweeps all 42 slots for those where every selected person is neither
self-declared busy nor already scheduled into a lesson.

Usage:
    python scripts/common_free_slots.py --teacher T1 --student S1 --student S2
    python scripts/common_free_slots.py --student S1 --week-id <id> --include-makeup
    python scripts/common_free_slots.py --list-incomplete

Exit codes:
  0 = success
  1 = unknown person id or API error
"""

import argparse
import os
import sys
from datetime import date

from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
load_dotenv()

from src.availability.calendar import day_of, slot_label, week_dates  # noqa: E402
from src.availability.client import ScheduleApiClient  # noqa: E402
from src.availability.config import get_config  # noqa: E402
from src.availability.errors import SchedulingError  # noqa: E402
from src.availability.logging import bind_run, setup_logging  # noqa: E402
from src.availability.matrix import (  # noqa: E402
    AvailabilityMatrix,
    CompletionStatus,
    Occupancy,
    filter_by_completion,
)
from src.availability.roster import RosterSnapshot  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="List slots where a teacher and students are all free.",
    )
    parser.add_argument("--teacher", action="append", default=[], help="Teacher id (repeatable).")
    parser.add_argument("--student", action="append", default=[], help="Student id (repeatable).")
    parser.add_argument("--week-id", default=None, help="Week to check lesson occupancy for.")
    parser.add_argument(
        "--include-makeup",
        action="store_true",
        help="Treat make-up lessons as occupying their slot.",
    )
    parser.add_argument(
        "--list-incomplete",
        action="store_true",
        help="List students who still have all 42 slots marked busy.",
    )
    return parser.parse_args()


def _week_start(client: ScheduleApiClient, week_id: str | None) -> date | None:
    if not week_id:
        return None
    for week in client.list_weeks():
        if week.id == week_id:
            return week.start_date
    return None


def main() -> int:
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    week_id = args.week_id or config.week_id or None
    bind_run(week_id=week_id)
    client = ScheduleApiClient(config)

    try:
        students = client.list_students()
        if args.list_incomplete:
            incomplete = filter_by_completion(students, CompletionStatus.INCOMPLETE)
            print(f"Students with no free slot declared: {len(incomplete)}")
            for person in incomplete:
                print(f"  {person.name} <{person.key or '-'}>")
            return 0

        roster = RosterSnapshot(client.list_teachers(week_id=week_id) + students)
        occupancy = Occupancy.from_lessons(
            client.list_schedules(week_id), include_makeup=args.include_makeup
        )
        start = _week_start(client, week_id)
    except SchedulingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    missing = [pid for pid in args.teacher + args.student if pid not in roster]
    if missing:
        print(f"Error: unknown id(s): {', '.join(missing)}", file=sys.stderr)
        return 1

    group = [roster.require(pid) for pid in args.teacher + args.student]
    if not group:
        print("Error: pass at least one --teacher or --student", file=sys.stderr)
        return 1

    matrix = AvailabilityMatrix(occupancy)
    slots = matrix.common_free_slots(group)
    dates = week_dates(start) if start else {}

    print(f"Group: {', '.join(p.name or p.id for p in group)}")
    print(f"Common free slots: {len(slots)}")
    for slot in slots:
        day_date = dates.get(day_of(slot))
        suffix = f" ({day_date.isoformat()})" if day_date else ""
        print(f"  {slot_label(slot)}{suffix}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
