"""
Structural Editor — add / remove / duplicate configured steps.

Every operation validates first and raises ``ValidationError`` or
``ConflictError`` before touching the store, so a rejected edit leaves the
record set exactly as it was. Successful edits go through a single
``store.commit`` which re-stamps sequences and bumps the structure counter.

Operations:
    - add_substage:     place one template into a stage
    - add_stages:       bulk "add stages" (first available template per new stage)
    - add_substages:    bulk "add substages" into one stage
    - remove_record:    delete one record, cascade its dependency edges
    - remove_stages:    delete every record of the given stages
    - duplicate_record: clone a record to the end, without dependencies
"""

from __future__ import annotations

import logging
from dataclasses import replace

from wfconfig.core.exceptions import ConflictError, ValidationError
from wfconfig.engine.catalog import Catalog
from wfconfig.engine.records import (
    ORIGIN_NEW,
    ConfigRecord,
    StageRef,
    SubstageTemplate,
    new_key,
    new_record,
)
from wfconfig.engine.store import ConfigStore, drop_dangling

logger = logging.getLogger(__name__)


def _dedupe(ids) -> list[int]:
    seen = []
    for item in ids or []:
        if item not in seen:
            seen.append(item)
    return seen


def _require_stage(catalog: Catalog, stage_id: int):
    stage = catalog.stage(stage_id)
    if stage is None:
        raise ValidationError(f"Unknown stage {stage_id}", details={"stage_id": stage_id})
    return stage


def _first_available(
    catalog: Catalog, stage_id: int, placements: set[tuple[int, int]],
) -> SubstageTemplate | None:
    for template in catalog.templates_for_stage(stage_id):
        if (stage_id, template.substage_id) not in placements:
            return template
    return None


# ── Add ──────────────────────────────────────────────────────────────────────


def add_substage(
    store: ConfigStore, catalog: Catalog, stage_id: int, substage_id: int | None = None,
) -> ConfigRecord:
    """
    Append one record to the end of the global order.

    Without *substage_id* the first template of the stage that is not yet
    placed there is used.
    """
    stage = _require_stage(catalog, stage_id)
    if not catalog.templates_for_stage(stage_id):
        raise ValidationError(
            f"No available substages for stage '{stage.name}'", details={"stage_id": stage_id},
        )

    placements = store.placements()
    if substage_id is None:
        template = _first_available(catalog, stage_id, placements)
        if template is None:
            raise ValidationError(
                f"All substages of stage '{stage.name}' are already configured",
                details={"stage_id": stage_id},
            )
    else:
        template = catalog.substage(substage_id)
        if template is None:
            raise ValidationError(
                f"Unknown substage template {substage_id}", details={"substage_id": substage_id},
            )

    if (stage_id, template.substage_id) in placements:
        raise ConflictError(f"Substage '{template.name}'", "stage_id", stage_id)

    record = new_record(StageRef.of(stage), template, store.max_sequence + 1)
    store.commit(store.records + [record], reason="add substage")
    logger.debug("Added %s/%s as #%d", stage_id, template.substage_id, record.sequence)
    return record


def add_stages(store: ConfigStore, catalog: Catalog, stage_ids) -> list[ConfigRecord]:
    """
    "Add stages" mode: each stage not yet present contributes one record built
    from its first available template. Returns the records actually added.
    """
    stage_ids = _dedupe(stage_ids)
    if not stage_ids:
        raise ValidationError("Select at least one stage")
    stages = [_require_stage(catalog, sid) for sid in stage_ids]

    present = set(store.stage_ids())
    placements = store.placements()
    next_seq = store.max_sequence + 1
    added = []
    for stage in stages:
        if stage.stage_id in present:
            logger.debug("Stage %s already configured — skipped", stage.stage_id)
            continue
        template = _first_available(catalog, stage.stage_id, placements)
        if template is None:
            logger.debug("Stage %s has no available substages — skipped", stage.stage_id)
            continue
        added.append(new_record(StageRef.of(stage), template, next_seq))
        placements.add((stage.stage_id, template.substage_id))
        next_seq += 1

    if added:
        store.commit(store.records + added, reason="add stages")
    logger.info("Add stages: %d of %d selected added", len(added), len(stage_ids))
    return added


def add_substages(
    store: ConfigStore, catalog: Catalog, stage_id: int, substage_ids,
) -> list[ConfigRecord]:
    """
    "Add substages" mode: every selected template becomes a record in
    *stage_id*, skipping placements that already exist. Returns the records
    actually added.
    """
    substage_ids = _dedupe(substage_ids)
    if not substage_ids:
        raise ValidationError("Select at least one substage")
    stage = _require_stage(catalog, stage_id)

    templates = []
    for substage_id in substage_ids:
        template = catalog.substage(substage_id)
        if template is None:
            raise ValidationError(
                f"Unknown substage template {substage_id}", details={"substage_id": substage_id},
            )
        templates.append(template)

    placements = store.placements()
    next_seq = store.max_sequence + 1
    added = []
    for template in templates:
        if (stage_id, template.substage_id) in placements:
            logger.debug("%s already in stage %s — skipped", template.name, stage_id)
            continue
        added.append(new_record(StageRef.of(stage), template, next_seq))
        placements.add((stage_id, template.substage_id))
        next_seq += 1

    if added:
        store.commit(store.records + added, reason="add substages")
    logger.info("Add substages: %d of %d selected added to stage %s",
                len(added), len(substage_ids), stage_id)
    return added


# ── Remove ───────────────────────────────────────────────────────────────────


def remove_record(
    store: ConfigStore,
    key: str | None = None,
    *,
    record_id: int | None = None,
    sequence: int | None = None,
) -> ConfigRecord:
    """
    Delete one record; every edge pointing at it goes with it.

    The record is addressed by exactly one of its key, its saved
    ``record_id`` or its current sequence.
    """
    given = [v for v in (key, record_id, sequence) if v is not None]
    if len(given) != 1:
        raise ValidationError("Give exactly one of key, record_id or sequence")
    if record_id is not None:
        removed = store.get_by_record_id(record_id)
    elif sequence is not None:
        removed = store.get_by_sequence(sequence)
    else:
        removed = store.get(key)
    key = removed.key
    remaining = [r for r in store.records if r.key != key]
    dropped = drop_dangling(remaining, {key})
    store.commit(remaining, reason="remove")
    logger.debug("Removed #%d (%s), %d dependency edges dropped", removed.sequence, key, dropped)
    return removed


def remove_stages(store: ConfigStore, stage_ids) -> list[ConfigRecord]:
    """Delete every record in the given stages in one pass."""
    stage_ids = set(_dedupe(stage_ids))
    if not stage_ids:
        raise ValidationError("Select at least one stage")

    removed = [r for r in store.records if r.stage.stage_id in stage_ids]
    if not removed:
        return []
    removed_keys = {r.key for r in removed}
    remaining = [r for r in store.records if r.key not in removed_keys]
    dropped = drop_dangling(remaining, removed_keys)
    store.commit(remaining, reason="remove stages")
    logger.info("Removed %d records from stages %s, %d dependency edges dropped",
                len(removed), sorted(stage_ids), dropped)
    return removed


# ── Duplicate ────────────────────────────────────────────────────────────────


def duplicate_record(store: ConfigStore, key: str) -> ConfigRecord:
    """
    Clone a record to the end of the global order as a new, unsaved record.
    Dependencies are never copied.
    """
    source = store.get(key)
    clone = replace(
        source.copy(),
        key=new_key(),
        record_id=0,
        origin=ORIGIN_NEW,
        sequence=store.max_sequence + 1,
        dependency_keys=[],
        cloned_from=source.key,
    )
    store.commit(store.records + [clone], reason="duplicate")
    logger.debug("Duplicated #%d as #%d", source.sequence, clone.sequence)
    return clone
