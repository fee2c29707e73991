"""BatchEditAggregator - reduce many cell edits to one full-set write per person.

The batch endpoint replaces a person's whole busy set; it does not merge.
Every write therefore has to be a read-modify-write of the complete set:

  1. seed a working set from the person's last-known busy slots
     (RosterSnapshot - full listing or a previous search result)
  2. apply that person's toggles in the order they were issued
  3. emit one BatchMutation carrying the fully materialized set

People missing from the roster are dropped rather than written with an empty
base set, which would erase their unrelated slots. People without an external
key are skipped. Both are logged and the rest of the batch proceeds.

Single-cell edits outside multi-select mode go through OptimisticEditStore:

    idle -> pending (local flip) -> committed | rolled_back

There is no retry state. A failed write is rolled back and surfaced once.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, field_validator

from src.availability.calendar import is_valid_slot
from src.availability.errors import (
    ConcurrentBatchError,
    InvalidTransitionError,
    MissingKeyError,
)
from src.availability.logging import get_logger
from src.availability.matrix import AvailabilityMatrix
from src.availability.models import BatchMutation, BatchPayload, Person
from src.availability.roster import RosterSnapshot

log = get_logger(__name__)


class CellToggle(BaseModel):
    """Desired busy/free state for one (person, internal slot) cell.

    slot is internal (0..41); callers holding 1-based API numbers must pass
    them through to_internal first.
    """

    person_id: str
    slot: int
    busy: bool

    model_config = {"frozen": True}

    @field_validator("slot")
    @classmethod
    def _check_slot(cls, value: int) -> int:
        if not is_valid_slot(value):
            raise ValueError(f"Invalid slot {value}")
        return value


def apply_toggle(slots: set[int], toggle: CellToggle) -> None:
    """Set or clear one slot in place. Idempotent."""
    if toggle.busy:
        slots.add(toggle.slot)
    else:
        slots.discard(toggle.slot)


@dataclass
class BatchPlan:
    """Result of aggregating a batch of toggles."""

    mutations: list[BatchMutation] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)  # not in any loaded roster
    skipped: list[str] = field(default_factory=list)  # no external key

    def to_payload(self, week_id: str | None = None) -> BatchPayload:
        return BatchPayload(data=self.mutations, week_id=week_id or None)


class BatchEditAggregator:
    """Collects toggles and folds them into one mutation per person."""

    def __init__(self, roster: RosterSnapshot) -> None:
        self.roster = roster
        self._pending: list[CellToggle] = []

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, toggle: CellToggle) -> None:
        self._pending.append(toggle)

    def extend(self, toggles: list[CellToggle]) -> None:
        self._pending.extend(toggles)

    def clear(self) -> None:
        self._pending.clear()

    def build(self) -> BatchPlan:
        """Fold pending toggles into per-person mutations.

        Mutations come out in the order each person was first touched.
        """
        plan = BatchPlan()
        people: dict[str, Person] = {}
        working: dict[str, set[int]] = {}

        for toggle in self._pending:
            pid = toggle.person_id
            if pid in plan.dropped:
                continue
            if pid not in working:
                person = self.roster.get(pid)
                if person is None:
                    log.warning("batch_person_dropped", person_id=pid, reason="not_in_roster")
                    plan.dropped.append(pid)
                    continue
                people[pid] = person
                working[pid] = set(person.busy_slots)
            apply_toggle(working[pid], toggle)

        for pid, slots in working.items():
            person = people[pid]
            if not person.key:
                log.warning("batch_person_skipped", person_id=pid, reason="missing_key")
                plan.skipped.append(pid)
                continue
            plan.mutations.append(BatchMutation.build(person.key, slots, person.kind))

        log.info(
            "batch_built",
            toggles=len(self._pending),
            mutations=len(plan.mutations),
            dropped=len(plan.dropped),
            skipped=len(plan.skipped),
        )
        return plan


class CellSelection:
    """Multi-select mode: cells picked one by one, then set busy or free together."""

    def __init__(self, matrix: AvailabilityMatrix | None = None) -> None:
        self.matrix = matrix or AvailabilityMatrix()
        self._cells: dict[tuple[str, int], None] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell: object) -> bool:
        return cell in self._cells

    def toggle(self, person: Person, slot: int) -> bool:
        """Select or deselect a cell. Returns whether it is selected afterwards.

        Occupied cells cannot be selected.
        """
        cell = (person.id, slot)
        if cell in self._cells:
            del self._cells[cell]
            return False
        if not self.matrix.is_editable(person, slot):
            return False
        self._cells[cell] = None
        return True

    def clear(self) -> None:
        self._cells.clear()

    def to_toggles(self, busy: bool) -> list[CellToggle]:
        return [
            CellToggle(person_id=pid, slot=slot, busy=busy) for pid, slot in self._cells
        ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
class BatchWriter(Protocol):
    def batch_update(self, payload: BatchPayload) -> dict: ...


class BatchSubmitter:
    """Sends batches, refusing one that touches a person with a batch in flight.

    Full-set writes for the same person must not overlap: the later response
    would silently clobber the earlier one. Batches for disjoint people may run
    concurrently.
    """

    def __init__(self, writer: BatchWriter) -> None:
        self.writer = writer
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def submit(self, payload: BatchPayload) -> dict:
        keys = payload.keys
        with self._lock:
            overlap = keys & self._in_flight
            if overlap:
                raise ConcurrentBatchError(overlap)
            self._in_flight |= keys
        try:
            return self.writer.batch_update(payload)
        finally:
            with self._lock:
                self._in_flight -= keys


class EditState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class OptimisticEdit:
    person_id: str
    slot: int
    busy: bool
    was_busy: bool
    state: EditState = EditState.PENDING
    replaced: "OptimisticEdit | None" = None  # earlier override of the same cell


class OptimisticEditStore:
    """Scoped store of single-cell edits, keyed by person id and slot.

    submit() is the only write path. Overrides stack per person: each write
    carries the person's last-read busy set plus every override not yet
    reconciled, so a second edit never drops the first. The local view shows
    a flipped cell while pending and after commit; a rollback restores
    whatever the cell showed before that edit. Overrides are dropped by
    reconcile() once a fresh roster has been read.
    """

    def __init__(self, submitter: BatchSubmitter) -> None:
        self.submitter = submitter
        self._overrides: dict[str, dict[int, OptimisticEdit]] = {}
        self._latest: dict[str, OptimisticEdit] = {}

    def state(self, person_id: str) -> EditState:
        """State of the person's most recent edit."""
        edit = self._latest.get(person_id)
        return edit.state if edit else EditState.IDLE

    def view(self, person: Person) -> frozenset[int]:
        """Busy slots as the operator should see them right now."""
        overrides = self._overrides.get(person.id)
        if not overrides:
            return person.busy_slots
        slots = set(person.busy_slots)
        for edit in overrides.values():
            apply_toggle(slots, CellToggle(person_id=person.id, slot=edit.slot, busy=edit.busy))
        return frozenset(slots)

    def _begin(self, person: Person, toggle: CellToggle) -> OptimisticEdit:
        if self.state(person.id) is EditState.PENDING:
            raise InvalidTransitionError(f"Edit already pending for {person.id}")
        overrides = self._overrides.setdefault(person.id, {})
        edit = OptimisticEdit(
            person_id=person.id,
            slot=toggle.slot,
            busy=toggle.busy,
            was_busy=toggle.slot in self.view(person),
            replaced=overrides.get(toggle.slot),
        )
        overrides[toggle.slot] = edit
        self._latest[person.id] = edit
        return edit

    def _finish(self, edit: OptimisticEdit, state: EditState) -> None:
        if edit.state is not EditState.PENDING:
            raise InvalidTransitionError(
                f"Cannot move edit for {edit.person_id} from {edit.state.value} to {state.value}"
            )
        edit.state = state
        if state is not EditState.ROLLED_BACK:
            return
        overrides = self._overrides.get(edit.person_id, {})
        if overrides.get(edit.slot) is edit:
            if edit.replaced is not None:
                overrides[edit.slot] = edit.replaced
            else:
                del overrides[edit.slot]

    def submit(self, person: Person, slot: int, busy: bool, week_id: str | None = None) -> OptimisticEdit:
        """Flip one cell locally, write the person's full set, then commit or roll back.

        The written set is the current view: last-read slots plus committed
        overrides plus this flip.

        Raises:
            MissingKeyError: The person has no external key; nothing is sent.
            SchedulingError: The write failed; the local flip has been reverted.
                Any other exception from the writer is re-raised after the
                same rollback.
        """
        toggle = CellToggle(person_id=person.id, slot=slot, busy=busy)
        edit = self._begin(person, toggle)

        if not person.key:
            self._finish(edit, EditState.ROLLED_BACK)
            log.warning("single_edit_rejected", person_id=person.id, reason="missing_key")
            raise MissingKeyError(person.id)

        payload = BatchPayload(
            data=[BatchMutation.build(person.key, self.view(person), person.kind)],
            week_id=week_id or None,
        )

        try:
            self.submitter.submit(payload)
        except Exception as e:
            self._finish(edit, EditState.ROLLED_BACK)
            log.error(
                "single_edit_rolled_back",
                person_id=person.id,
                slot=slot,
                error=str(e),
                type=type(e).__name__,
            )
            raise

        self._finish(edit, EditState.COMMITTED)
        log.info("single_edit_committed", person_id=person.id, slot=slot, busy=busy)
        return edit

    def reconcile(self, person_id: str | None = None) -> None:
        """Drop overrides after a refetch. People with a pending edit are kept."""
        targets = [person_id] if person_id else list(self._latest)
        for pid in targets:
            if self.state(pid) is EditState.PENDING:
                continue
            self._overrides.pop(pid, None)
            self._latest.pop(pid, None)
