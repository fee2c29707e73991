"""AvailabilityMatrix - who is free at which slot.

Two independent things make a person unavailable at a slot:

  busy      - self-declared, Person.busy_slots
  occupied  - an assigned lesson, from the schedule listing (Occupancy)

A person is free only when neither applies. Group availability is recomputed
as a plain sweep over all 42 slots; rosters are small enough that no
incremental structure is needed.
"""

from collections.abc import Iterable, Mapping
from enum import Enum

from src.availability.calendar import SLOT_COUNT, iter_slots
from src.availability.models import LessonEntry, Person


class CellState(str, Enum):
    FREE = "free"
    BUSY = "busy"
    OCCUPIED = "occupied"  # teaching / scheduled into a lesson


class CompletionStatus(str, Enum):
    ALL = "all"
    COMPLETED = "completed"  # at least one free slot declared
    INCOMPLETE = "incomplete"  # every slot still marked busy


class Occupancy:
    """Read-only map of internal slot -> ids of people in a lesson at that slot."""

    def __init__(self, by_slot: Mapping[int, Iterable[str]] | None = None) -> None:
        self._by_slot: dict[int, frozenset[str]] = {
            slot: frozenset(ids) for slot, ids in (by_slot or {}).items()
        }

    @classmethod
    def from_lessons(
        cls, lessons: Iterable[LessonEntry], *, include_makeup: bool = False
    ) -> "Occupancy":
        """Build occupancy from the schedule listing.

        The teacher and every attending student of a lesson occupy its slot.
        Make-up lessons are left out unless include_makeup is set.
        """
        by_slot: dict[int, set[str]] = {}
        for lesson in lessons:
            if lesson.is_makeup and not include_makeup:
                continue
            ids = by_slot.setdefault(lesson.slot, set())
            if lesson.teacher_id:
                ids.add(lesson.teacher_id)
            ids.update(sid for sid in lesson.student_ids if sid)
        return cls(by_slot)

    def at(self, slot: int) -> frozenset[str]:
        return self._by_slot.get(slot, frozenset())

    def is_occupied(self, person_id: str, slot: int) -> bool:
        return person_id in self.at(slot)


def is_free(person: Person, slot: int) -> bool:
    """Self-declared availability only; ignores lesson occupancy."""
    return slot not in person.busy_slots


class AvailabilityMatrix:
    """Free/busy/occupied queries over a set of people for one week."""

    def __init__(self, occupancy: Occupancy | None = None) -> None:
        self.occupancy = occupancy or Occupancy()

    def is_available(self, person: Person, slot: int) -> bool:
        return is_free(person, slot) and not self.occupancy.is_occupied(person.id, slot)

    def cell_state(self, person: Person, slot: int) -> CellState:
        if self.occupancy.is_occupied(person.id, slot):
            return CellState.OCCUPIED
        if slot in person.busy_slots:
            return CellState.BUSY
        return CellState.FREE

    def is_editable(self, person: Person, slot: int) -> bool:
        """Cells taken by an assigned lesson cannot be toggled busy/free."""
        return not self.occupancy.is_occupied(person.id, slot)

    def free_at(self, slot: int, people: Iterable[Person]) -> list[Person]:
        """People neither busy nor occupied at slot, in input order."""
        return [p for p in people if self.is_available(p, slot)]

    def all_free_at(self, slot: int, group: Iterable[Person]) -> bool:
        """True when every member of group is available at slot.

        An empty group is never reported as all-free, so nothing is highlighted
        before a roster is chosen.
        """
        members = list(group)
        return bool(members) and all(self.is_available(p, slot) for p in members)

    def free_slots(self, person: Person) -> list[int]:
        return [s for s in iter_slots() if self.is_available(person, s)]

    def free_by_slot(self, people: Iterable[Person]) -> dict[int, list[Person]]:
        members = list(people)
        return {s: self.free_at(s, members) for s in iter_slots()}

    def common_free_slots(self, group: Iterable[Person]) -> list[int]:
        """Slots where the whole group (e.g. teacher + selected students) can meet."""
        members = list(group)
        return [s for s in iter_slots() if self.all_free_at(s, members)]


def filter_by_completion(
    people: Iterable[Person], status: CompletionStatus | str
) -> list[Person]:
    """Split responders by whether they have declared any free slot yet."""
    status = CompletionStatus(status)
    if status is CompletionStatus.COMPLETED:
        return [p for p in people if len(p.busy_slots) < SLOT_COUNT]
    if status is CompletionStatus.INCOMPLETE:
        return [p for p in people if p.is_fully_declared]
    return list(people)
