"""
ConfigRecord store — the flat, globally ordered list of configured steps.

The store is the single source of truth; the tree is a projection of it.
Every structural change goes through ``commit`` (or ``replace`` on load),
which re-stamps ``sequence`` densely (1..N) in list order and bumps
``structure_version`` so projections know to rebuild.
"""

from __future__ import annotations

import logging

from wfconfig.core.exceptions import NotFoundError
from wfconfig.engine.records import ConfigRecord

logger = logging.getLogger(__name__)


def restamp(records: list[ConfigRecord]) -> list[ConfigRecord]:
    """Assign sequence 1..N in list order (in place)."""
    for position, record in enumerate(records, start=1):
        record.sequence = position
    return records


def drop_dangling(records: list[ConfigRecord], removed_keys=None) -> int:
    """
    Remove dependency edges that point at records no longer in *records*.
    When *removed_keys* is given only those keys are stripped.
    Returns the number of edges removed.
    """
    if removed_keys is None:
        alive = {r.key for r in records}
        is_dead = lambda k: k not in alive  # noqa: E731
    else:
        removed = set(removed_keys)
        is_dead = lambda k: k in removed  # noqa: E731

    dropped = 0
    for record in records:
        kept = [k for k in record.dependency_keys if not is_dead(k)]
        dropped += len(record.dependency_keys) - len(kept)
        record.dependency_keys = kept
    return dropped


def prune_forward_edges(records: list[ConfigRecord]) -> int:
    """
    Drop edges that no longer point strictly backwards in sequence order.
    Returns the number of edges removed.
    """
    seq = {r.key: r.sequence for r in records}
    pruned = 0
    for record in records:
        kept = [k for k in record.dependency_keys if k in seq and seq[k] < record.sequence]
        pruned += len(record.dependency_keys) - len(kept)
        record.dependency_keys = kept
    return pruned


def check_invariants(records: list[ConfigRecord]) -> list[str]:
    """Return a list of invariant violations (empty when the set is consistent)."""
    problems = []
    sequences = sorted(r.sequence for r in records)
    if sequences != list(range(1, len(records) + 1)):
        problems.append(f"sequences not dense 1..{len(records)}: {sequences}")

    seq = {r.key: r.sequence for r in records}
    if len(seq) != len(records):
        problems.append("duplicate record keys")

    seen = set()
    for record in records:
        if record.cloned_from is None:
            if record.placement in seen:
                problems.append(f"duplicate placement stage={record.placement[0]} substage={record.placement[1]}")
            seen.add(record.placement)
        for dep_key in record.dependency_keys:
            if dep_key not in seq:
                problems.append(f"#{record.sequence} depends on missing record {dep_key}")
            elif seq[dep_key] >= record.sequence:
                problems.append(f"#{record.sequence} depends on #{seq[dep_key]} (not earlier)")
    return problems


class ConfigStore:
    """Ordered collection of ConfigRecords plus a structure-change counter."""

    def __init__(self, records: list[ConfigRecord] | None = None):
        self._records: list[ConfigRecord] = []
        self.structure_version = 0
        if records:
            self.replace(records)

    # ── Read access ──────────────────────────────────────────────────────

    @property
    def records(self) -> list[ConfigRecord]:
        return list(self._records)

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))

    @property
    def is_empty(self) -> bool:
        return not self._records

    @property
    def max_sequence(self) -> int:
        return self._records[-1].sequence if self._records else 0

    def find(self, key: str) -> ConfigRecord | None:
        for record in self._records:
            if record.key == key:
                return record
        return None

    def get(self, key: str) -> ConfigRecord:
        record = self.find(key)
        if record is None:
            raise NotFoundError(resource="ConfigRecord", resource_id=key)
        return record

    def find_by_sequence(self, sequence: int) -> ConfigRecord | None:
        if 1 <= sequence <= len(self._records):
            record = self._records[sequence - 1]
            if record.sequence == sequence:
                return record
        return next((r for r in self._records if r.sequence == sequence), None)

    def get_by_sequence(self, sequence: int) -> ConfigRecord:
        record = self.find_by_sequence(sequence)
        if record is None:
            raise NotFoundError(resource="ConfigRecord", resource_id=f"#{sequence}")
        return record

    def get_by_record_id(self, record_id: int) -> ConfigRecord:
        record = next((r for r in self._records if record_id and r.record_id == record_id), None)
        if record is None:
            raise NotFoundError(resource="ConfigRecord", resource_id=record_id)
        return record

    def index(self) -> dict[str, ConfigRecord]:
        return {r.key: r for r in self._records}

    def placements(self) -> set[tuple[int, int]]:
        return {r.placement for r in self._records}

    def stage_ids(self) -> list[int]:
        """Stage ids in order of their first record."""
        seen = []
        for record in self._records:
            if record.stage.stage_id not in seen:
                seen.append(record.stage.stage_id)
        return seen

    def dependency_sequences(self, record: ConfigRecord) -> list[int]:
        """The record's dependencies projected onto current sequence numbers."""
        seq = {r.key: r.sequence for r in self._records}
        return sorted(seq[k] for k in record.dependency_keys if k in seq)

    # ── Mutation ─────────────────────────────────────────────────────────

    def replace(self, records: list[ConfigRecord]) -> None:
        """Wholesale replacement (load). Records are ordered by their incoming sequence."""
        ordered = sorted(records, key=lambda r: r.sequence)
        self._records = restamp(ordered)
        self.structure_version += 1
        logger.debug("Store replaced: %d records (v%d)", len(self._records), self.structure_version)

    def commit(self, records: list[ConfigRecord], reason: str = "") -> None:
        """Adopt *records* in the given order, re-stamping sequences densely."""
        self._records = restamp(list(records))
        self.structure_version += 1
        logger.debug(
            "Store commit%s: %d records (v%d)",
            f" [{reason}]" if reason else "", len(self._records), self.structure_version,
        )

    def clear(self) -> None:
        self.commit([], reason="clear")

    def __repr__(self):
        return f"<ConfigStore records={len(self._records)} v{self.structure_version}>"
