"""
Reorder Engine — applies drag-and-drop outcomes and flattens the result.

A drag works on a list of ``StageGroup`` (stage order + record keys per
stage); nothing in the store changes until ``commit_groups`` flattens the
groups back into the global order. Flattening is the one path that rewrites
both ``sequence`` and the stage reference of each record.

Because dependencies are held by record key they follow the records they
point at. After flattening, an edge whose target no longer sits strictly
earlier in the order is pruned; the count is returned to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine.records import ConfigRecord, StageRef
from wfconfig.engine.store import ConfigStore, prune_forward_edges, restamp

logger = logging.getLogger(__name__)

DRAG_STAGE = "stage"
DRAG_SUBSTAGE = "substage"
DRAG_KINDS = {DRAG_STAGE, DRAG_SUBSTAGE}


@dataclass(frozen=True)
class DragResult:
    """
    Outcome of one drag gesture.
    Stage drags carry stage ids; substage drags carry record keys.
    """

    dragged_id: int | str
    over_id: int | str | None
    kind: str

    def __post_init__(self):
        if self.kind not in DRAG_KINDS:
            raise ValidationError(f"Invalid drag kind '{self.kind}'", details={"allowed": sorted(DRAG_KINDS)})


@dataclass
class StageGroup:
    stage_id: int
    name: str
    record_keys: list[str] = field(default_factory=list)


@dataclass
class ReorderOutcome:
    moved: bool
    pruned_edges: int = 0


def array_move(items: list, old_index: int, new_index: int) -> list:
    """Return a copy of *items* with the element at *old_index* moved to *new_index*."""
    result = list(items)
    result.insert(new_index, result.pop(old_index))
    return result


def groups_from_records(records: list[ConfigRecord]) -> list[StageGroup]:
    """Stage groups in order of each stage's earliest record."""
    groups: dict[int, StageGroup] = {}
    for record in sorted(records, key=lambda r: r.sequence):
        group = groups.get(record.stage.stage_id)
        if group is None:
            group = StageGroup(stage_id=record.stage.stage_id, name=record.stage.name)
            groups[record.stage.stage_id] = group
        group.record_keys.append(record.key)
    return list(groups.values())


def apply_drag(groups: list[StageGroup], drag: DragResult) -> tuple[list[StageGroup], bool]:
    """
    Apply *drag* to *groups* without mutating them.
    Returns ``(new_groups, moved)``; unsupported drags come back unchanged.
    """
    if drag.over_id is None or drag.dragged_id == drag.over_id:
        return groups, False

    if drag.kind == DRAG_STAGE:
        ids = [g.stage_id for g in groups]
        if drag.dragged_id not in ids or drag.over_id not in ids:
            logger.debug("Stage drag %s → %s: unknown stage", drag.dragged_id, drag.over_id)
            return groups, False
        return array_move(groups, ids.index(drag.dragged_id), ids.index(drag.over_id)), True

    source = next((g for g in groups if drag.dragged_id in g.record_keys), None)
    target = next((g for g in groups if drag.over_id in g.record_keys), None)
    if source is None or target is None:
        logger.debug("Substage drag %s → %s: unknown record", drag.dragged_id, drag.over_id)
        return groups, False
    if source.stage_id != target.stage_id:
        logger.info(
            "Cross-stage drag ignored (stage %s → stage %s); remove and re-add instead",
            source.stage_id, target.stage_id,
        )
        return groups, False

    keys = array_move(
        source.record_keys,
        source.record_keys.index(drag.dragged_id),
        source.record_keys.index(drag.over_id),
    )
    new_groups = [
        StageGroup(stage_id=g.stage_id, name=g.name, record_keys=keys) if g is source else g
        for g in groups
    ]
    return new_groups, True


def flatten(groups: list[StageGroup], index: dict[str, ConfigRecord]) -> tuple[list[ConfigRecord], int]:
    """
    Walk groups in order and their keys in order, stamping sequence 1..N and
    the group's stage onto each record. Returns ``(records, pruned_edges)``.
    """
    records = []
    for group in groups:
        stage_ref = StageRef(stage_id=group.stage_id, name=group.name)
        for key in group.record_keys:
            record = index.get(key)
            if record is None:
                continue
            record.stage = stage_ref
            records.append(record)
    restamp(records)
    pruned = prune_forward_edges(records)
    if pruned:
        logger.warning("Reorder pruned %d dependency edge(s) that no longer point backwards", pruned)
    return records, pruned


def commit_groups(store: ConfigStore, groups: list[StageGroup]) -> int:
    """Flatten *groups* into *store*. Returns the number of pruned edges."""
    keys = [k for g in groups for k in g.record_keys]
    if sorted(keys) != sorted(r.key for r in store.records):
        raise ValidationError("Reorder does not cover the current record set")
    records, pruned = flatten(groups, store.index())
    store.commit(records, reason="reorder")
    return pruned


def reorder(store: ConfigStore, drag: DragResult) -> ReorderOutcome:
    """Single drag, committed immediately."""
    groups, moved = apply_drag(groups_from_records(store.records), drag)
    if not moved:
        return ReorderOutcome(moved=False)
    return ReorderOutcome(moved=True, pruned_edges=commit_groups(store, groups))
