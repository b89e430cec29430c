"""
Dependency Resolver — maps dependency references between their stored and
in-session forms.

Load direction: a persisted dependency descriptor is a bare integer whose
meaning depends on how the row was written. It is tried against an ordered
list of match strategies; the first hit gives the sequence of the target
record, which is then converted to that record's stable key.

    1. persisted record id  → that record's sequence
    2. sequence number      → used as-is
    3. template substage id → sequence of the first record using that template

A reference nothing matches, or one that would point at the record itself
or a later record, is dropped.

Edit direction: only records strictly earlier in the order are offered as
targets; toggling adds or removes an edge by sequence.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine.records import ConfigRecord, record_from_wire
from wfconfig.engine.store import ConfigStore

logger = logging.getLogger(__name__)

MatchStrategy = Callable[[int, list[ConfigRecord]], "int | None"]


# ── Match strategies ─────────────────────────────────────────────────────────


def match_persisted_id(ref: int, records: list[ConfigRecord]) -> int | None:
    for record in records:
        if record.record_id and record.record_id == ref:
            return record.sequence
    return None


def match_sequence(ref: int, records: list[ConfigRecord]) -> int | None:
    for record in records:
        if record.sequence == ref:
            return ref
    return None


def match_template_id(ref: int, records: list[ConfigRecord]) -> int | None:
    for record in sorted(records, key=lambda r: r.sequence):
        if record.substage.substage_id == ref:
            return record.sequence
    return None


STRATEGIES: tuple[MatchStrategy, ...] = (match_persisted_id, match_sequence, match_template_id)


def resolve_reference(
    ref: int, records: list[ConfigRecord], strategies=STRATEGIES,
) -> int | None:
    """First strategy hit wins. Returns a sequence number or None."""
    for strategy in strategies:
        sequence = strategy(ref, records)
        if sequence is not None:
            return sequence
    return None


# ── Load direction ───────────────────────────────────────────────────────────


def resolve_dependencies(
    records: list[ConfigRecord], raw_refs: dict[str, list[int]], strategies=STRATEGIES,
) -> int:
    """
    Fill ``dependency_keys`` of *records* from their raw references.
    Returns the number of references dropped.
    """
    by_sequence = {}
    for record in sorted(records, key=lambda r: r.sequence):
        by_sequence.setdefault(record.sequence, record)

    dropped = 0
    for record in records:
        keys = []
        for ref in raw_refs.get(record.key, []):
            sequence = resolve_reference(ref, records, strategies)
            if sequence is None:
                logger.warning("Dependency ref %s of #%d matches no record — dropped", ref, record.sequence)
                dropped += 1
                continue
            if sequence >= record.sequence:
                logger.warning(
                    "Dependency ref %s of #%d resolves to #%d (not earlier) — dropped",
                    ref, record.sequence, sequence,
                )
                dropped += 1
                continue
            target = by_sequence[sequence]
            if target.key not in keys:
                keys.append(target.key)
        record.dependency_keys = keys
    return dropped


def records_from_wire(entries: list[dict]) -> tuple[list[ConfigRecord], int]:
    """
    Convert a persisted configuration into records with resolved dependencies.
    Returns ``(records ordered by sequence, dropped_reference_count)``.
    """
    records = []
    raw_refs = {}
    for entry in entries or []:
        record, refs = record_from_wire(entry)
        records.append(record)
        raw_refs[record.key] = refs
    records.sort(key=lambda r: r.sequence)
    first_at: dict[tuple[int, int], str] = {}
    for record in records:
        # a repeated placement in saved data is a persisted duplicate
        if record.placement in first_at:
            record.cloned_from = first_at[record.placement]
        else:
            first_at[record.placement] = record.key
    dropped = resolve_dependencies(records, raw_refs)
    return records, dropped


# ── Edit direction ───────────────────────────────────────────────────────────


def selectable_targets(store: ConfigStore, key: str) -> list[ConfigRecord]:
    """Records that *key* may depend on: everything strictly earlier."""
    record = store.get(key)
    return [r for r in store.records if r.sequence < record.sequence]


def add_dependency(store: ConfigStore, key: str, target_sequence: int) -> ConfigRecord:
    record = store.get(key)
    target = store.find_by_sequence(target_sequence)
    if target is None:
        raise ValidationError(
            f"No step with sequence {target_sequence}", details={"sequence": target_sequence},
        )
    if target.sequence >= record.sequence:
        raise ValidationError(
            f"Step #{record.sequence} can only depend on earlier steps (got #{target.sequence})",
            details={"sequence": record.sequence, "depends_on_sequence": target.sequence},
        )
    if target.key not in record.dependency_keys:
        record.dependency_keys.append(target.key)
    return record


def remove_dependency(store: ConfigStore, key: str, target_sequence: int) -> ConfigRecord:
    record = store.get(key)
    target = store.find_by_sequence(target_sequence)
    if target is not None and target.key in record.dependency_keys:
        record.dependency_keys.remove(target.key)
    return record


def toggle_dependency(store: ConfigStore, key: str, target_sequence: int) -> bool:
    """Flip the edge to *target_sequence*. Returns True when the edge now exists."""
    record = store.get(key)
    target = store.find_by_sequence(target_sequence)
    if target is not None and target.key in record.dependency_keys:
        remove_dependency(store, key, target_sequence)
        return False
    add_dependency(store, key, target_sequence)
    return True


def set_dependencies(store: ConfigStore, key: str, sequences) -> ConfigRecord:
    """Replace all edges of *key*; every sequence is validated first."""
    record = store.get(key)
    keys = []
    for sequence in sequences or []:
        target = store.find_by_sequence(int(sequence))
        if target is None or target.sequence >= record.sequence:
            raise ValidationError(
                f"Step #{record.sequence} cannot depend on #{sequence}",
                details={"sequence": record.sequence, "depends_on_sequence": sequence},
            )
        if target.key not in keys:
            keys.append(target.key)
    record.dependency_keys = keys
    return record
