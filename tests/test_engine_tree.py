"""
Tests: Tree Projector — stage → substage view of the record store.

Covers:
    1.  Records grouped by stage, substages ordered by sequence
    2.  Stage order follows each stage's earliest record
    3.  Node ids: stage-<id> / substage-<substageId>-<index>
    4.  expanded state carried across projections by stage id
    5.  Records of a stage unknown to the catalogue are left out
    6.  Group-then-flatten yields the input record set unchanged
    7.  Bootstrap tree: every catalogue stage, empty and collapsed
    8.  find_node / toggle_stage helpers

Marker: unit (pure engine, no HTTP).
"""

import pytest

from wfconfig.engine import editor
from wfconfig.engine.records import ConfigRecord, StageRef, SubstageTemplate
from wfconfig.engine.tree import (
    STAGE,
    SUBSTAGE,
    bootstrap_tree,
    find_node,
    flatten_tree,
    project,
    toggle_stage,
)


def _record(seq, stage_id, substage_id, stage_name="", name=""):
    return ConfigRecord(
        stage=StageRef(stage_id=stage_id, name=stage_name or f"Stage {stage_id}"),
        substage=SubstageTemplate(substage_id=substage_id, name=name or f"Sub {substage_id}"),
        sequence=seq,
    )


@pytest.mark.unit
class TestProject:
    def test_groups_by_stage_in_sequence_order(self):
        records = [
            _record(3, 11, 110),
            _record(1, 10, 100),
            _record(2, 10, 101),
        ]

        tree = project(records)

        assert [n.stage_id for n in tree] == [10, 11]
        assert [c.sequence for c in tree[0].children] == [1, 2]
        assert [c.substage_id for c in tree[1].children] == [110]
        assert all(n.kind == STAGE for n in tree)
        assert all(c.kind == SUBSTAGE for n in tree for c in n.children)

    def test_stage_order_follows_earliest_record(self):
        records = [_record(1, 11, 110), _record(2, 10, 100), _record(3, 11, 111)]

        tree = project(records)

        assert [n.stage_id for n in tree] == [11, 10]
        assert [c.substage_id for c in tree[0].children] == [110, 111]

    def test_node_ids(self):
        records = [_record(1, 10, 100), _record(2, 11, 100), _record(3, 11, 110)]

        tree = project(records)

        assert [n.node_id for n in tree] == ["stage-10", "stage-11"]
        assert [c.node_id for c in tree[1].children] == ["substage-100-1", "substage-110-2"]
        assert tree[0].children[0].node_id == "substage-100-0"

    def test_expanded_state_carried_by_stage_id(self):
        records = [_record(1, 10, 100), _record(2, 11, 110)]
        first = project(records)
        first[0].expanded = False

        records.append(_record(3, 12, 120))
        second = project(records, previous_tree=first)

        assert [n.expanded for n in second] == [False, True, True]

    def test_unknown_stage_left_out_with_catalog(self, catalog):
        records = [_record(1, 10, 100), _record(2, 99, 990)]

        tree = project(records, catalog=catalog)

        assert [n.stage_id for n in tree] == [10]

    def test_node_ids_skip_records_left_out(self, catalog):
        records = [_record(1, 99, 990), _record(2, 10, 100), _record(3, 11, 110)]

        tree = project(records, catalog=catalog)

        assert [c.node_id for n in tree for c in n.children] == ["substage-100-0", "substage-110-1"]

    def test_stage_name_taken_from_catalog(self, catalog):
        tree = project([_record(1, 11, 110, stage_name="old name")], catalog=catalog)
        assert tree[0].name == "Close"

    def test_substage_node_carries_flags_and_key(self):
        record = _record(1, 10, 100)
        record.auto = True

        node = project([record])[0].children[0]

        assert node.record_key == record.key
        assert node.flags["auto"] is True
        assert node.to_dict()["type"] == SUBSTAGE

    def test_empty_store_projects_empty_tree(self):
        assert project([]) == []


@pytest.mark.unit
class TestRoundTrip:
    def test_group_then_flatten_preserves_records(self, store, catalog):
        editor.add_stages(store, catalog, [10, 11, 12])
        editor.add_substages(store, catalog, 10, [101])
        editor.add_substages(store, catalog, 11, [111])
        before = [(r.key, r.sequence, r.placement, r.flags()) for r in store.records]

        tree = project(store.records)
        flattened = flatten_tree(tree, store.index())

        # grouping changes order, never content
        assert sorted(r.key for r in flattened) == sorted(k for k, *_ in before)
        by_key = {r.key: r for r in flattened}
        for key, seq, placement, flags in before:
            assert by_key[key].sequence == seq
            assert by_key[key].placement == placement
            assert by_key[key].flags() == flags

    def test_flatten_follows_stage_then_substage_order(self):
        records = [_record(1, 10, 100), _record(2, 11, 110), _record(3, 10, 101)]
        index = {r.key: r for r in records}

        flattened = flatten_tree(project(records), index)

        assert [r.sequence for r in flattened] == [1, 3, 2]


@pytest.mark.unit
class TestBootstrapAndHelpers:
    def test_bootstrap_tree_lists_catalogue_stages_collapsed(self, catalog):
        tree = bootstrap_tree(catalog)

        assert [n.node_id for n in tree] == ["stage-10", "stage-11", "stage-12"]
        assert [n.name for n in tree] == ["Pre-Close", "Close", "Post-Close"]
        assert all(not n.expanded and n.children == [] for n in tree)

    def test_find_node(self):
        tree = project([_record(1, 10, 100)])

        assert find_node(tree, "stage-10").kind == STAGE
        assert find_node(tree, "substage-100-0").kind == SUBSTAGE
        assert find_node(tree, "stage-99") is None

    def test_toggle_stage(self):
        tree = project([_record(1, 10, 100)])

        assert toggle_stage(tree, 10) is False
        assert toggle_stage(tree, 10) is True
        assert toggle_stage(tree, 99) is False

    def test_to_dict_shape(self):
        data = project([_record(1, 10, 100)])[0].to_dict()

        assert data["id"] == "stage-10"
        assert data["type"] == STAGE
        assert data["children"][0]["sequence"] == 1
