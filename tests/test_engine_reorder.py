"""
Tests: Reorder Engine — drag outcomes, flattening, edge pruning.

Covers:
    1.  Stage drag moves a whole stage; flatten re-sequences every record
    2.  Substage drag within a stage keeps the other stages untouched
    3.  Cross-stage substage drag is ignored (no-op, store unchanged)
    4.  Dependencies follow their records through a reorder
    5.  Edges that stop pointing backwards are pruned and counted
    6.  Drops onto nothing / onto itself are no-ops
    7.  commit_groups rejects a group list that does not cover the records
    8.  Invalid drag kinds rejected

Marker: unit (pure engine, no HTTP).
"""

import pytest

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine import editor
from wfconfig.engine.reorder import (
    DRAG_STAGE,
    DRAG_SUBSTAGE,
    DragResult,
    StageGroup,
    apply_drag,
    array_move,
    commit_groups,
    groups_from_records,
    reorder,
)
from wfconfig.engine.resolver import add_dependency
from wfconfig.engine.store import check_invariants


def _given_two_by_two(store, catalog):
    """Pre-Close: 1 Load Feeds, 2 Upload; Close: 3 Run P&L, 4 Variance Review."""
    editor.add_substages(store, catalog, 10, [100, 101])
    editor.add_substages(store, catalog, 11, [110, 111])
    return store.records


def _layout(store):
    return [(r.sequence, r.stage.stage_id, r.substage.substage_id) for r in store.records]


@pytest.mark.unit
def test_array_move():
    assert array_move(["a", "b", "c"], 0, 2) == ["b", "c", "a"]
    assert array_move(["a", "b", "c"], 2, 0) == ["c", "a", "b"]


@pytest.mark.unit
class TestStageDrag:
    def test_move_second_stage_before_first(self, store, catalog):
        _given_two_by_two(store, catalog)

        outcome = reorder(store, DragResult(dragged_id=11, over_id=10, kind=DRAG_STAGE))

        assert outcome.moved is True
        assert _layout(store) == [(1, 11, 110), (2, 11, 111), (3, 10, 100), (4, 10, 101)]
        assert check_invariants(store.records) == []

    def test_stage_drag_bumps_structure_version(self, store, catalog):
        _given_two_by_two(store, catalog)
        version = store.structure_version

        reorder(store, DragResult(dragged_id=10, over_id=11, kind=DRAG_STAGE))

        assert store.structure_version == version + 1

    def test_dependencies_follow_records(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        add_dependency(store, b.key, 1)   # Upload → Load Feeds, same stage

        reorder(store, DragResult(dragged_id=11, over_id=10, kind=DRAG_STAGE))

        # Load Feeds is now #3, Upload #4
        assert store.dependency_sequences(store.find(b.key)) == [3]
        assert store.find(b.key).dependency_keys == [a.key]

    def test_forward_edges_pruned_and_counted(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        add_dependency(store, c.key, 1)   # Run P&L → Load Feeds
        add_dependency(store, d.key, 3)   # Variance Review → Run P&L

        outcome = reorder(store, DragResult(dragged_id=11, over_id=10, kind=DRAG_STAGE))

        assert outcome.pruned_edges == 1
        assert store.find(c.key).dependency_keys == []
        assert store.find(d.key).dependency_keys == [c.key]
        assert check_invariants(store.records) == []

    def test_unknown_stage_is_noop(self, store, catalog):
        _given_two_by_two(store, catalog)
        version = store.structure_version

        outcome = reorder(store, DragResult(dragged_id=99, over_id=10, kind=DRAG_STAGE))

        assert outcome.moved is False
        assert store.structure_version == version


@pytest.mark.unit
class TestSubstageDrag:
    def test_reorder_within_stage(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)

        outcome = reorder(store, DragResult(dragged_id=d.key, over_id=c.key, kind=DRAG_SUBSTAGE))

        assert outcome.moved is True
        assert _layout(store) == [(1, 10, 100), (2, 10, 101), (3, 11, 111), (4, 11, 110)]

    def test_cross_stage_drag_is_noop(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        before = _layout(store)
        version = store.structure_version

        outcome = reorder(store, DragResult(dragged_id=a.key, over_id=c.key, kind=DRAG_SUBSTAGE))

        assert outcome.moved is False
        assert _layout(store) == before
        assert store.structure_version == version

    def test_drop_on_nothing_or_self_is_noop(self, store, catalog):
        a, *_ = _given_two_by_two(store, catalog)

        assert reorder(store, DragResult(dragged_id=a.key, over_id=None, kind=DRAG_SUBSTAGE)).moved is False
        assert reorder(store, DragResult(dragged_id=a.key, over_id=a.key, kind=DRAG_SUBSTAGE)).moved is False

    def test_apply_drag_does_not_mutate_input(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        groups = groups_from_records(store.records)

        new_groups, moved = apply_drag(groups, DragResult(dragged_id=b.key, over_id=a.key, kind=DRAG_SUBSTAGE))

        assert moved is True
        assert groups[0].record_keys == [a.key, b.key]
        assert new_groups[0].record_keys == [b.key, a.key]


@pytest.mark.unit
class TestCommitGroups:
    def test_multi_drag_committed_once(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        groups = groups_from_records(store.records)
        groups, _ = apply_drag(groups, DragResult(dragged_id=11, over_id=10, kind=DRAG_STAGE))
        groups, _ = apply_drag(groups, DragResult(dragged_id=b.key, over_id=a.key, kind=DRAG_SUBSTAGE))

        pruned = commit_groups(store, groups)

        assert pruned == 0
        assert [r.key for r in store.records] == [c.key, d.key, b.key, a.key]

    def test_incomplete_groups_rejected(self, store, catalog):
        a, b, c, d = _given_two_by_two(store, catalog)
        before = _layout(store)

        with pytest.raises(ValidationError):
            commit_groups(store, [StageGroup(stage_id=10, name="Pre-Close", record_keys=[a.key, b.key])])

        assert _layout(store) == before

    def test_invalid_drag_kind(self):
        with pytest.raises(ValidationError):
            DragResult(dragged_id=1, over_id=2, kind="row")
