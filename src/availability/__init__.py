"""Weekly availability and bulk-scheduling engine.

Fixed 42-slot teaching week, free-text busy-time import, group availability,
and aggregation of cell edits into full-set batch writes for the
Schedule/Roster API.
"""

from src.availability.batch import BatchEditAggregator, BatchPlan, CellToggle
from src.availability.calendar import Day, TimeRange, day_of, slot_of, time_range_of, to_external, to_internal
from src.availability.importer import STUDENT_LAYOUT, TEACHER_LAYOUT, ImportPreview, parse_import
from src.availability.matrix import AvailabilityMatrix, Occupancy
from src.availability.models import BatchMutation, ImportRow, Person, PersonKind
from src.availability.normalizer import normalize_time_range

__all__ = [
    "AvailabilityMatrix",
    "BatchEditAggregator",
    "BatchMutation",
    "BatchPlan",
    "CellToggle",
    "Day",
    "ImportPreview",
    "ImportRow",
    "Occupancy",
    "Person",
    "PersonKind",
    "STUDENT_LAYOUT",
    "TEACHER_LAYOUT",
    "TimeRange",
    "day_of",
    "normalize_time_range",
    "parse_import",
    "slot_of",
    "time_range_of",
    "to_external",
    "to_internal",
]
