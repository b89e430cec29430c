"""
Tests: configuration invariants under long sequences of random edits.

Every seed drives a fixed pseudo-random walk over the editing operations
(add, bulk add, remove, remove stages, duplicate, dependency toggles,
stage and substage drags). After each step the record set must satisfy:

    - sequences dense 1..N
    - every dependency points at an existing, strictly earlier record
    - no two records share a (stage, substage) placement, except clones
      produced by duplicate (checked with check_invariants)
    - the tree projection flattens back to the same record set

Marker: unit (pure engine, no HTTP).
"""

import random

import pytest

from wfconfig.core.exceptions import ConflictError, ValidationError
from wfconfig.engine import editor
from wfconfig.engine.reorder import DRAG_STAGE, DRAG_SUBSTAGE, DragResult, reorder
from wfconfig.engine.resolver import records_from_wire, toggle_dependency
from wfconfig.engine.store import check_invariants
from wfconfig.engine.tree import flatten_tree, project

STAGES = (10, 11, 12)
STEPS = 60


def _random_step(rng, store, catalog):
    records = store.records
    op = rng.choice(["add", "add", "bulk", "remove", "remove_stage", "duplicate",
                     "dep", "dep", "drag_stage", "drag_sub"])
    try:
        if op == "add":
            stage_id = rng.choice(STAGES)
            template = rng.choice(catalog.templates_for_stage(stage_id))
            editor.add_substage(store, catalog, stage_id, template.substage_id)
        elif op == "bulk":
            editor.add_stages(store, catalog, rng.sample(STAGES, 2))
        elif op == "remove" and records:
            editor.remove_record(store, rng.choice(records).key)
        elif op == "remove_stage" and records:
            editor.remove_stages(store, [rng.choice(records).stage.stage_id])
        elif op == "duplicate" and records and len(records) < 12:
            editor.duplicate_record(store, rng.choice(records).key)
        elif op == "dep" and len(records) > 1:
            record = rng.choice(records[1:])
            toggle_dependency(store, record.key, rng.randint(1, record.sequence - 1))
        elif op == "drag_stage" and records:
            stage_ids = store.stage_ids()
            reorder(store, DragResult(rng.choice(stage_ids), rng.choice(stage_ids), DRAG_STAGE))
        elif op == "drag_sub" and len(records) > 1:
            a, b = rng.sample(records, 2)
            reorder(store, DragResult(a.key, b.key, DRAG_SUBSTAGE))
    except (ValidationError, ConflictError):
        # rejected edits are allowed; they must simply leave the store valid
        pass


@pytest.mark.unit
@pytest.mark.parametrize("seed", range(12))
def test_random_edit_walk_keeps_invariants(seed, store, catalog):
    rng = random.Random(seed)
    for _ in range(STEPS):
        _random_step(rng, store, catalog)
        records = store.records

        assert sorted(r.sequence for r in records) == list(range(1, len(records) + 1))
        seq = {r.key: r.sequence for r in records}
        for record in records:
            for dep in record.dependency_keys:
                assert dep in seq
                assert seq[dep] < record.sequence
        assert check_invariants(records) == []

        flattened = flatten_tree(project(records), store.index())
        assert sorted(r.key for r in flattened) == sorted(seq)


@pytest.mark.unit
def test_check_invariants_reports_violations(store, catalog):
    a = editor.add_substage(store, catalog, 10, 100)
    b = editor.add_substage(store, catalog, 10, 101)
    a.dependency_keys.append(b.key)
    b.sequence = 5

    problems = check_invariants(store.records)

    assert any("not dense" in p for p in problems)
    assert any("not earlier" in p for p in problems)


@pytest.mark.unit
def test_check_invariants_clean_store(store, catalog):
    editor.add_stages(store, catalog, list(STAGES))
    assert check_invariants(store.records) == []


@pytest.mark.unit
def test_duplicate_is_not_a_placement_violation(store, catalog):
    original = editor.add_substage(store, catalog, 10, 100)

    clone = editor.duplicate_record(store, original.key)

    assert clone.cloned_from == original.key
    assert check_invariants(store.records) == []


@pytest.mark.unit
def test_repeated_placement_without_clone_is_reported(store, catalog):
    original = editor.add_substage(store, catalog, 10, 100)
    clone = editor.duplicate_record(store, original.key)
    clone.cloned_from = None

    assert check_invariants(store.records) == ["duplicate placement stage=10 substage=100"]


@pytest.mark.unit
def test_saved_duplicates_load_as_clones():
    entry = {
        "workflow_stage": {"stage_id": 10, "name": "Pre-Close"},
        "workflow_substage": {"substage_id": 100, "name": "Load Feeds"},
    }
    records, _ = records_from_wire([
        dict(entry, workflow_app_config_id=1, substage_seq=1),
        dict(entry, workflow_app_config_id=2, substage_seq=2),
    ])

    assert records[0].cloned_from is None
    assert records[1].cloned_from == records[0].key
    assert check_invariants(records) == []
