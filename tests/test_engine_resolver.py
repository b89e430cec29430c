"""
Tests: Dependency Resolver — stored references ↔ in-session edges.

Covers:
    1.  Each match strategy in isolation (persisted id, sequence, template id)
    2.  Strategy order: persisted id wins over sequence, sequence over template id
    3.  Template id matches the first record (by sequence) using that template
    4.  Unresolvable references dropped and counted
    5.  References resolving to the record itself or a later record dropped
    6.  Wire entries → records: flags, params, attestations, file rules, origin
    7.  Selectable targets are the strictly earlier records
    8.  add / toggle / set dependencies by sequence; forward targets rejected

Marker: unit (pure engine, no HTTP).
"""

import pytest

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine import editor
from wfconfig.engine.records import ORIGIN_NEW, ORIGIN_PERSISTED, ConfigRecord, StageRef, SubstageTemplate
from wfconfig.engine.resolver import (
    add_dependency,
    match_persisted_id,
    match_sequence,
    match_template_id,
    records_from_wire,
    resolve_reference,
    selectable_targets,
    set_dependencies,
    toggle_dependency,
)


def _record(seq, substage_id, record_id=0):
    return ConfigRecord(
        stage=StageRef(stage_id=10, name="Pre-Close"),
        substage=SubstageTemplate(substage_id=substage_id, name=f"Sub {substage_id}"),
        sequence=seq,
        record_id=record_id,
    )


def _entry(seq, substage_id, record_id=0, deps=(), stage_id=10, **extra):
    """A persisted configuration entry as returned by get_instance_config."""
    entry = {
        "workflow_app_config_id": record_id,
        "substage_seq": seq,
        "workflow_stage": {"stage_id": stage_id, "name": f"Stage {stage_id}"},
        "workflow_substage": {"substage_id": substage_id, "name": f"Sub {substage_id}"},
        "workflow_app_config_deps": [{"dependency_substage_id": d} for d in deps],
    }
    entry.update(extra)
    return entry


# ═════════════════════════════════════════════════════════════════════════════
# 1. MATCH STRATEGIES
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestStrategies:
    def test_match_persisted_id(self):
        records = [_record(1, 100, record_id=501), _record(2, 101, record_id=502)]
        assert match_persisted_id(502, records) == 2
        assert match_persisted_id(1, records) is None

    def test_match_persisted_id_ignores_unsaved_records(self):
        assert match_persisted_id(0, [_record(1, 100)]) is None

    def test_match_sequence(self):
        records = [_record(1, 100), _record(2, 101)]
        assert match_sequence(2, records) == 2
        assert match_sequence(3, records) is None

    def test_match_template_id_first_by_sequence(self):
        records = [_record(3, 100), _record(1, 101), _record(2, 100)]
        assert match_template_id(100, records) == 2
        assert match_template_id(999, records) is None

    def test_persisted_id_wins_over_sequence(self):
        # ref 2 is both the id of record #3 and a valid sequence
        records = [_record(1, 100, 7), _record(2, 101, 8), _record(3, 110, 2)]
        assert resolve_reference(2, records) == 3

    def test_sequence_wins_over_template_id(self):
        records = [_record(1, 2), _record(2, 101)]
        assert resolve_reference(2, records) == 2

    def test_nothing_matches(self):
        assert resolve_reference(42, [_record(1, 100)]) is None


# ═════════════════════════════════════════════════════════════════════════════
# 2. LOAD DIRECTION
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestRecordsFromWire:
    def test_persisted_ids_resolved_to_keys(self):
        records, dropped = records_from_wire([
            _entry(1, 100, record_id=501),
            _entry(2, 101, record_id=502),
            _entry(3, 110, record_id=503, deps=[501, 502], stage_id=11),
        ])

        assert dropped == 0
        assert records[2].dependency_keys == [records[0].key, records[1].key]

    def test_legacy_sequence_and_template_refs(self):
        records, dropped = records_from_wire([
            _entry(1, 100, record_id=11),
            _entry(2, 101, record_id=12),
            _entry(3, 110, record_id=13, deps=[1, 101], stage_id=11),
        ])

        assert dropped == 0
        assert records[2].dependency_keys == [records[0].key, records[1].key]

    def test_unresolvable_and_forward_refs_dropped(self):
        records, dropped = records_from_wire([
            _entry(1, 100, record_id=21, deps=[22]),   # forward: #2
            _entry(2, 101, record_id=22, deps=[22]),   # self
            _entry(3, 110, record_id=23, deps=[999, 21], stage_id=11),
        ])

        assert dropped == 3
        assert records[0].dependency_keys == []
        assert records[1].dependency_keys == []
        assert records[2].dependency_keys == [records[0].key]

    def test_entries_sorted_by_sequence(self):
        records, _ = records_from_wire([_entry(2, 101, 2), _entry(1, 100, 1)])
        assert [r.substage.substage_id for r in records] == [100, 101]

    def test_fields_read_from_wire(self):
        records, _ = records_from_wire([_entry(
            1, 101, record_id=7,
            isactive="N", auto="Y", is_approval=True, isalteryx="Y",
            workflow_app_config_params=[{"name": "region", "value": "EMEA"}],
            workflow_attests=[{"attestation_id": 2}, 1],
            workflow_app_config_files=[
                {"name": "pnl_extract", "value": "pnl_*.csv", "required": "Y", "email_file": "N"},
                {"name": "empty_rule", "value": "", "required": "N", "email_file": "N"},
            ],
            updated_by="jdoe",
        )])
        record = records[0]

        assert record.origin == ORIGIN_PERSISTED
        assert record.active is False
        assert record.auto is True
        assert record.approval is True
        assert record.alteryx is True
        assert record.adhoc is False
        assert record.parameter_values == {"region": "EMEA"}
        assert record.attestations == {1, 2}
        assert list(record.file_rules) == ["pnl_extract"]
        assert record.file_rules["pnl_extract"].required is True
        assert record.updated_by == "jdoe"

    def test_missing_flags_default_active(self):
        record = records_from_wire([_entry(1, 100)])[0][0]
        assert record.active is True
        assert record.origin == ORIGIN_NEW


# ═════════════════════════════════════════════════════════════════════════════
# 3. EDIT DIRECTION
# ═════════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def three(store, catalog):
    editor.add_substages(store, catalog, 10, [100, 101])
    editor.add_substage(store, catalog, 11, 110)
    return store.records


@pytest.mark.unit
class TestEditDirection:
    def test_selectable_targets_are_earlier(self, store, three):
        assert [r.sequence for r in selectable_targets(store, three[2].key)] == [1, 2]
        assert selectable_targets(store, three[0].key) == []

    def test_toggle_adds_then_removes(self, store, three):
        key = three[2].key

        assert toggle_dependency(store, key, 1) is True
        assert store.dependency_sequences(store.find(key)) == [1]
        assert toggle_dependency(store, key, 1) is False
        assert store.find(key).dependency_keys == []

    def test_forward_and_self_targets_rejected(self, store, three):
        with pytest.raises(ValidationError):
            add_dependency(store, three[0].key, 2)
        with pytest.raises(ValidationError):
            add_dependency(store, three[1].key, 2)
        with pytest.raises(ValidationError):
            add_dependency(store, three[1].key, 9)
        assert all(not r.dependency_keys for r in store.records)

    def test_add_is_idempotent(self, store, three):
        add_dependency(store, three[2].key, 1)
        add_dependency(store, three[2].key, 1)
        assert store.find(three[2].key).dependency_keys == [three[0].key]

    def test_set_dependencies_validates_all_first(self, store, three):
        add_dependency(store, three[2].key, 1)

        with pytest.raises(ValidationError):
            set_dependencies(store, three[2].key, [2, 3])
        assert store.find(three[2].key).dependency_keys == [three[0].key]

        set_dependencies(store, three[2].key, [2])
        assert store.dependency_sequences(store.find(three[2].key)) == [2]
