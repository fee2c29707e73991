"""Tests for batch aggregation, multi-select and optimistic single edits."""

import pytest

from src.availability.batch import (
    BatchEditAggregator,
    BatchSubmitter,
    CellSelection,
    CellToggle,
    EditState,
    OptimisticEditStore,
    apply_toggle,
)
from src.availability.calendar import to_internal
from src.availability.errors import (
    ConcurrentBatchError,
    InvalidTransitionError,
    MissingKeyError,
    ScheduleWriteError,
)
from src.availability.matrix import AvailabilityMatrix, Occupancy
from src.availability.models import BatchMutation, BatchPayload, PersonKind
from src.availability.roster import RosterSnapshot


class RecordingWriter:
    """Stands in for the API client; records payloads and can run a hook mid-write."""

    def __init__(self, error: Exception | None = None, during=None):
        self.payloads: list[BatchPayload] = []
        self.error = error
        self.during = during

    def batch_update(self, payload: BatchPayload) -> dict:
        self.payloads.append(payload)
        if self.during is not None:
            self.during()
        if self.error is not None:
            raise self.error
        return {"success": True}


def _toggle(person_id: str, external: int, busy: bool) -> CellToggle:
    return CellToggle(person_id=person_id, slot=to_internal(external), busy=busy)


class TestApplyToggle:
    def test_set_busy_twice_equals_once(self):
        once, twice = {1, 2}, {1, 2}
        toggle = CellToggle(person_id="p", slot=7, busy=True)
        apply_toggle(once, toggle)
        apply_toggle(twice, toggle)
        apply_toggle(twice, toggle)
        assert once == twice == {1, 2, 7}

    def test_set_free_twice_equals_once(self):
        once, twice = {1, 2}, {1, 2}
        toggle = CellToggle(person_id="p", slot=2, busy=False)
        apply_toggle(once, toggle)
        apply_toggle(twice, toggle)
        apply_toggle(twice, toggle)
        assert once == twice == {1}

    def test_invalid_slot_rejected(self):
        with pytest.raises(ValueError):
            CellToggle(person_id="p", slot=42, busy=True)


class TestAggregator:
    def test_toggle_sequence_for_one_person(self, make_person):
        alice = make_person("alice", busy={to_internal(1), to_internal(2)})
        aggregator = BatchEditAggregator(RosterSnapshot([alice]))
        aggregator.extend(
            [_toggle("alice", 5, True), _toggle("alice", 5, False), _toggle("alice", 7, True)]
        )
        plan = aggregator.build()
        assert plan.mutations == [
            BatchMutation(key="alice@example.com", busy_schedule_arr=[1, 2, 7], type="user")
        ]

    def test_one_full_set_mutation_per_person(self, make_person):
        a = make_person("a", busy={0, 10})
        b = make_person("b", busy={20}, kind=PersonKind.TEACHER)
        aggregator = BatchEditAggregator(RosterSnapshot([a, b]))
        aggregator.extend(
            [
                CellToggle(person_id="a", slot=1, busy=True),
                CellToggle(person_id="b", slot=21, busy=True),
                CellToggle(person_id="a", slot=10, busy=False),
                CellToggle(person_id="b", slot=22, busy=True),
            ]
        )
        plan = aggregator.build()
        assert [m.key for m in plan.mutations] == ["a@example.com", "b@example.com"]
        assert plan.mutations[0].busy_schedule_arr == [1, 2]
        assert plan.mutations[0].type == "user"
        assert plan.mutations[1].busy_schedule_arr == [21, 22, 23]
        assert plan.mutations[1].type == "teacher"

    def test_unknown_person_dropped_rest_proceeds(self, make_person):
        a = make_person("a")
        aggregator = BatchEditAggregator(RosterSnapshot([a]))
        aggregator.add(CellToggle(person_id="ghost", slot=0, busy=True))
        aggregator.add(CellToggle(person_id="a", slot=0, busy=True))
        aggregator.add(CellToggle(person_id="ghost", slot=1, busy=True))
        plan = aggregator.build()
        assert plan.dropped == ["ghost"]
        assert [m.key for m in plan.mutations] == ["a@example.com"]

    def test_person_without_key_skipped(self, make_person):
        keyless = make_person("t9", key=None, kind=PersonKind.TEACHER)
        other = make_person("t1", kind=PersonKind.TEACHER)
        aggregator = BatchEditAggregator(RosterSnapshot([keyless, other]))
        aggregator.add(CellToggle(person_id="t9", slot=3, busy=True))
        aggregator.add(CellToggle(person_id="t1", slot=3, busy=True))
        plan = aggregator.build()
        assert plan.skipped == ["t9"]
        assert [m.key for m in plan.mutations] == ["t1@example.com"]

    def test_seeds_from_search_results(self, make_person):
        found = make_person("s5", busy={40})
        roster = RosterSnapshot([])
        roster.add_search_results([found])
        aggregator = BatchEditAggregator(roster)
        aggregator.add(CellToggle(person_id="s5", slot=0, busy=True))
        assert aggregator.build().mutations[0].busy_schedule_arr == [1, 41]

    def test_untouched_people_not_written(self, make_person):
        roster = RosterSnapshot([make_person("a"), make_person("b"), make_person("c")])
        aggregator = BatchEditAggregator(roster)
        aggregator.add(CellToggle(person_id="b", slot=0, busy=True))
        plan = aggregator.build()
        assert [m.key for m in plan.mutations] == ["b@example.com"]
        assert plan.to_payload("w1").week_id == "w1"


class TestCellSelection:
    def test_select_then_deselect(self, make_person):
        person = make_person("t1")
        selection = CellSelection()
        assert selection.toggle(person, 4)
        assert ("t1", 4) in selection
        assert not selection.toggle(person, 4)
        assert len(selection) == 0

    def test_occupied_cells_not_selectable(self, make_person):
        person = make_person("t1")
        selection = CellSelection(AvailabilityMatrix(Occupancy({4: {"t1"}})))
        assert not selection.toggle(person, 4)
        assert len(selection) == 0

    def test_to_toggles_keeps_selection_order(self, make_person):
        a, b = make_person("a"), make_person("b")
        selection = CellSelection()
        selection.toggle(b, 9)
        selection.toggle(a, 2)
        toggles = selection.to_toggles(busy=False)
        assert [(t.person_id, t.slot, t.busy) for t in toggles] == [("b", 9, False), ("a", 2, False)]


class TestBatchSubmitter:
    def _payload(self, *keys: str) -> BatchPayload:
        return BatchPayload(
            data=[BatchMutation(key=k, busy_schedule_arr=[], type="user") for k in keys]
        )

    def test_overlapping_batch_rejected_while_in_flight(self):
        submitter = BatchSubmitter(RecordingWriter())
        seen: list[Exception] = []

        def overlap():
            try:
                submitter.submit(self._payload("a@x.com"))
            except ConcurrentBatchError as e:
                seen.append(e)

        submitter.writer = RecordingWriter(during=overlap)
        submitter.submit(self._payload("a@x.com", "b@x.com"))
        assert len(seen) == 1
        assert seen[0].keys == {"a@x.com"}
        assert len(submitter.writer.payloads) == 1

    def test_disjoint_batch_allowed_while_in_flight(self):
        inner = RecordingWriter()
        submitter = BatchSubmitter(inner)

        def disjoint():
            # Same guard, different writer so the hook runs only once
            submitter.writer = inner
            submitter.submit(self._payload("c@x.com"))

        submitter.writer = RecordingWriter(during=disjoint)
        outer = submitter.writer
        submitter.submit(self._payload("a@x.com"))
        assert [p.data[0].key for p in outer.payloads] == ["a@x.com"]
        assert [p.data[0].key for p in inner.payloads] == ["c@x.com"]

    def test_in_flight_released_after_failure(self):
        submitter = BatchSubmitter(RecordingWriter(error=ScheduleWriteError("boom", 500)))
        with pytest.raises(ScheduleWriteError):
            submitter.submit(self._payload("a@x.com"))
        assert submitter.in_flight == frozenset()


class TestOptimisticEditStore:
    def test_commit_keeps_flip_until_reconcile(self, make_person):
        person = make_person("t1", busy={3}, kind=PersonKind.TEACHER)
        writer = RecordingWriter()
        store = OptimisticEditStore(BatchSubmitter(writer))

        edit = store.submit(person, 5, True, week_id="w1")

        assert edit.state is EditState.COMMITTED
        assert store.view(person) == {3, 5}
        sent = writer.payloads[0]
        assert sent.week_id == "w1"
        assert sent.data[0].busy_schedule_arr == [4, 6]
        assert sent.data[0].type == "teacher"

        store.reconcile("t1")
        assert store.state("t1") is EditState.IDLE
        assert store.view(person) == {3}

    def test_view_is_flipped_while_pending(self, make_person):
        person = make_person("s1", busy={3})
        observed = {}
        writer = RecordingWriter(during=lambda: observed.update(
            state=store.state("s1"), view=store.view(person)
        ))
        store = OptimisticEditStore(BatchSubmitter(writer))
        store.submit(person, 3, False)
        assert observed == {"state": EditState.PENDING, "view": frozenset()}

    def test_failed_write_rolls_back_and_surfaces(self, make_person):
        person = make_person("s1", busy={3})
        store = OptimisticEditStore(BatchSubmitter(RecordingWriter(error=ScheduleWriteError("down", 503))))
        with pytest.raises(ScheduleWriteError):
            store.submit(person, 3, False)
        assert store.state("s1") is EditState.ROLLED_BACK
        assert store.view(person) == {3}

    def test_missing_key_rejected_without_write(self, make_person):
        person = make_person("t1", key=None, kind=PersonKind.TEACHER)
        writer = RecordingWriter()
        store = OptimisticEditStore(BatchSubmitter(writer))
        with pytest.raises(MissingKeyError):
            store.submit(person, 0, True)
        assert writer.payloads == []
        assert store.state("t1") is EditState.ROLLED_BACK

    def test_second_edit_for_same_person_while_pending(self, make_person):
        person = make_person("s1")
        errors: list[Exception] = []

        def reenter():
            try:
                store.submit(person, 1, True)
            except InvalidTransitionError as e:
                errors.append(e)

        store = OptimisticEditStore(BatchSubmitter(RecordingWriter(during=reenter)))
        store.submit(person, 0, True)
        assert len(errors) == 1
        assert store.state("s1") is EditState.COMMITTED

    def test_second_edit_keeps_first_committed_slot(self, make_person):
        person = make_person("t1", busy={3}, kind=PersonKind.TEACHER)
        writer = RecordingWriter()
        store = OptimisticEditStore(BatchSubmitter(writer))

        store.submit(person, 5, True)
        store.submit(person, 7, True)

        assert writer.payloads[0].data[0].busy_schedule_arr == [4, 6]
        assert writer.payloads[1].data[0].busy_schedule_arr == [4, 6, 8]
        assert store.view(person) == {3, 5, 7}

    def test_rollback_restores_earlier_override_of_same_cell(self, make_person):
        person = make_person("s1", busy={3})
        writer = RecordingWriter()
        store = OptimisticEditStore(BatchSubmitter(writer))
        store.submit(person, 5, True)

        writer.error = ScheduleWriteError("down", 503)
        with pytest.raises(ScheduleWriteError):
            store.submit(person, 5, False)

        assert writer.payloads[1].data[0].busy_schedule_arr == [4]
        assert store.state("s1") is EditState.ROLLED_BACK
        assert store.view(person) == {3, 5}

    def test_unexpected_writer_error_rolls_back(self, make_person):
        person = make_person("s1", busy={3})
        writer = RecordingWriter(error=ValueError("bad json"))
        store = OptimisticEditStore(BatchSubmitter(writer))

        with pytest.raises(ValueError):
            store.submit(person, 3, False)

        assert store.state("s1") is EditState.ROLLED_BACK
        assert store.view(person) == {3}

        writer.error = None
        edit = store.submit(person, 3, False)
        assert edit.state is EditState.COMMITTED
        assert store.view(person) == frozenset()
