"""
Editing session — ties the engine components to a configuration backend.

A ConfigSession holds the state of one operator editing one workflow
instance: the metadata catalogue, the record store, the cached tree, the
selected record and a list of notices for the UI.

Backends implement three calls (see services/config_backend.py and
integrations/config_api_gateway.py):

    get_metadata(app_id) -> dict
    get_instance_config(instance_id, app_id) -> list[dict]
    save_or_update_config(instance_id, app_id, payload, *, update) -> list[dict]

Loads are tagged with a generation number. A load that completes after a
newer one was started is discarded, so a slow response can never overwrite
the instance the operator has since moved to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from wfconfig.core.exceptions import BackendError, ValidationError
from wfconfig.engine import editor, record_fields, reorder, resolver
from wfconfig.engine.catalog import Catalog
from wfconfig.engine.payload import MODE_UPDATE, build_save_payload, payload_mode, validate_for_save
from wfconfig.engine.records import Application, ConfigRecord
from wfconfig.engine.store import ConfigStore
from wfconfig.engine.tree import SUBSTAGE, TreeNode, bootstrap_tree, find_node, project, toggle_stage

logger = logging.getLogger(__name__)

NOTICE_INFO = "info"
NOTICE_SUCCESS = "success"
NOTICE_WARNING = "warning"
NOTICE_ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: str
    title: str
    message: str

    @property
    def blocking(self) -> bool:
        return self.level == NOTICE_ERROR

    def to_dict(self) -> dict:
        return {"level": self.level, "title": self.title, "message": self.message}


class ConfigSession:
    """State of one configuration editor."""

    def __init__(self, backend, updated_by: str = "system"):
        self.backend = backend
        self.updated_by = updated_by

        self.app_id: int | None = None
        self.instance_id: str | None = None
        self.catalog = Catalog()
        self.store = ConfigStore()
        self.selected_key: str | None = None
        self.notices: list[Notice] = []

        self._load_generation = 0
        self._bootstrap = False
        self._has_saved_config = False
        self._tree: list[TreeNode] = []
        self._tree_version = -1

    # ── Notices ──────────────────────────────────────────────────────────

    def notify(self, level: str, title: str, message: str) -> Notice:
        notice = Notice(level=level, title=title, message=message)
        self.notices.append(notice)
        return notice

    def drain_notices(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    # ── Application / metadata ───────────────────────────────────────────

    def select_application(self, app_id: int) -> Catalog:
        """Switch application: forget the instance and load its metadata."""
        self.app_id = app_id
        self.instance_id = None
        self._load_generation += 1
        self._bootstrap = False
        self._has_saved_config = False
        self.selected_key = None
        self.store.clear()
        return self.load_metadata()

    def load_metadata(self) -> Catalog:
        if self.app_id is None:
            raise ValidationError("Select an application first")
        try:
            self.catalog = Catalog.from_metadata(self.backend.get_metadata(self.app_id))
        except BackendError as exc:
            logger.warning("Metadata load failed for app %s: %s", self.app_id, exc)
            self.catalog = Catalog()
            self.notify(NOTICE_ERROR, "Error", f"Failed to load workflow metadata: {exc}")
        self._tree_version = -1
        return self.catalog

    @property
    def application(self) -> Application:
        if self.catalog.application is not None:
            return self.catalog.application
        return Application(app_id=self.app_id or 0, name="")

    # ── Instance load ────────────────────────────────────────────────────

    @property
    def load_generation(self) -> int:
        return self._load_generation

    def begin_load(self, instance_id: str) -> int:
        """Register a new load; only its completion will be applied."""
        self._load_generation += 1
        self.instance_id = instance_id
        self._bootstrap = False
        self._has_saved_config = False
        logger.debug("Load started for instance %s", instance_id,
                     extra={"instance_id": instance_id, "load_generation": self._load_generation})
        return self._load_generation

    def complete_load(self, generation: int, entries=None, error: Exception | None = None) -> bool:
        """
        Apply a finished load. Returns False when *generation* is stale.

        A failed load empties the store and is reported as an informational
        notice; the operator can still build a configuration from scratch.
        """
        if generation != self._load_generation:
            logger.info("Discarding stale load (generation %d, latest %d)",
                        generation, self._load_generation,
                        extra={"instance_id": self.instance_id, "load_generation": generation})
            return False

        self.selected_key = None
        if error is not None:
            self.store.replace([])
            self.notify(NOTICE_INFO, "Info",
                        f"No existing configuration found ({error}). You can create a new one.")
            logger.info("No configuration loaded for instance %s: %s", self.instance_id, error,
                        extra={"instance_id": self.instance_id, "load_generation": generation})
            return True

        records, dropped = resolver.records_from_wire(entries or [])
        self.store.replace(records)
        self._has_saved_config = bool(records)
        if dropped:
            self.notify(NOTICE_WARNING, "Dependencies",
                        f"{dropped} dependency reference(s) could not be resolved and were dropped")
        logger.info("Loaded %d records for instance %s", len(records), self.instance_id,
                    extra={"instance_id": self.instance_id, "load_generation": generation, "record_count": len(records)})
        return True

    def load_instance(self, instance_id: str) -> bool:
        if self.app_id is None:
            raise ValidationError("Select an application first")
        generation = self.begin_load(instance_id)
        try:
            entries = self.backend.get_instance_config(instance_id, self.app_id)
        except BackendError as exc:
            return self.complete_load(generation, error=exc)
        return self.complete_load(generation, entries)

    def new_instance(self, instance_id: str | None = None) -> list[TreeNode]:
        """Start an empty configuration; the tree shows every stage, collapsed."""
        self._load_generation += 1
        self.instance_id = instance_id
        self.selected_key = None
        self.store.clear()
        self._bootstrap = True
        self._has_saved_config = False
        return self.tree

    def refresh(self) -> None:
        self.load_metadata()
        if self.instance_id and not self._bootstrap:
            self.load_instance(self.instance_id)

    # ── Tree / selection ─────────────────────────────────────────────────

    @property
    def tree(self) -> list[TreeNode]:
        if self._bootstrap and self.store.is_empty:
            if self._tree_version != -2:
                self._tree = bootstrap_tree(self.catalog)
                self._tree_version = -2
            return self._tree
        if self._tree_version != self.store.structure_version:
            # collapsed bootstrap stages do not carry over to real stage nodes
            previous = self._tree if self._tree_version != -2 else None
            self._tree = project(self.store.records, previous, self.catalog)
            self._tree_version = self.store.structure_version
        return self._tree

    def toggle_stage(self, stage_id: int) -> bool:
        return toggle_stage(self.tree, stage_id)

    def select_node(self, node_id: str) -> ConfigRecord | None:
        """Substage node → open its record. Stage node → toggle it."""
        node = find_node(self.tree, node_id)
        if node is None:
            return None
        if node.kind == SUBSTAGE:
            self.selected_key = node.record_key
            return self.selected
        toggle_stage(self.tree, node.stage_id)
        return None

    @property
    def selected(self) -> ConfigRecord | None:
        if self.selected_key is None:
            return None
        return self.store.find(self.selected_key)

    # ── Structural edits ─────────────────────────────────────────────────

    def add_substage(self, stage_id: int, substage_id: int | None = None) -> ConfigRecord:
        return editor.add_substage(self.store, self.catalog, stage_id, substage_id)

    def add_stages(self, stage_ids) -> list[ConfigRecord]:
        added = editor.add_stages(self.store, self.catalog, stage_ids)
        self.notify(NOTICE_SUCCESS, "Stages added", f"Added {len(added)} stage(s)")
        return added

    def add_substages(self, stage_id: int, substage_ids) -> list[ConfigRecord]:
        added = editor.add_substages(self.store, self.catalog, stage_id, substage_ids)
        self.notify(NOTICE_SUCCESS, "Substages added", f"Added {len(added)} substage(s)")
        return added

    def remove_record(self, key: str | None = None, *, record_id: int | None = None,
                      sequence: int | None = None) -> ConfigRecord:
        removed = editor.remove_record(self.store, key, record_id=record_id, sequence=sequence)
        if self.selected_key == removed.key:
            self.selected_key = None
        return removed

    def remove_stages(self, stage_ids) -> list[ConfigRecord]:
        removed = editor.remove_stages(self.store, stage_ids)
        if self.selected_key and self.store.find(self.selected_key) is None:
            self.selected_key = None
        return removed

    def duplicate_record(self, key: str) -> ConfigRecord:
        return editor.duplicate_record(self.store, key)

    def reorder(self, drag: reorder.DragResult) -> reorder.ReorderOutcome:
        outcome = reorder.reorder(self.store, drag)
        if outcome.pruned_edges:
            self.notify(NOTICE_WARNING, "Dependencies",
                        f"{outcome.pruned_edges} dependency edge(s) removed: "
                        "they no longer point to an earlier step")
        return outcome

    def apply_stage_order(self, groups: list[reorder.StageGroup]) -> int:
        """Commit a reorder built up over several drags."""
        pruned = reorder.commit_groups(self.store, groups)
        if pruned:
            self.notify(NOTICE_WARNING, "Dependencies",
                        f"{pruned} dependency edge(s) removed: they no longer point to an earlier step")
        return pruned

    # ── Field edits ──────────────────────────────────────────────────────

    def update_record(self, key: str, data: dict) -> ConfigRecord:
        return record_fields.apply_updates(self.store.get(key), self.catalog, data)

    def selectable_targets(self, key: str) -> list[ConfigRecord]:
        return resolver.selectable_targets(self.store, key)

    def toggle_dependency(self, key: str, target_sequence: int) -> bool:
        return resolver.toggle_dependency(self.store, key, target_sequence)

    def dependency_sequences(self, key: str) -> list[int]:
        return self.store.dependency_sequences(self.store.get(key))

    # ── Save ─────────────────────────────────────────────────────────────

    def build_payload(self) -> list[dict]:
        return build_save_payload(self.store.records, self.application, self.instance_id, self.updated_by)

    def save(self) -> tuple[bool, str]:
        """
        Save the current configuration.
        Returns (success, message). On failure the store is left untouched.
        """
        records = self.store.records
        try:
            validate_for_save(records, self.instance_id)
        except ValidationError as exc:
            self.notify(NOTICE_ERROR, "Validation Error", str(exc))
            return False, str(exc)

        payload = self.build_payload()
        # an instance that already has saved rows is always updated, even when
        # every loaded record was removed and replaced by new ones
        mode = MODE_UPDATE if self._has_saved_config else payload_mode(records)
        try:
            result = self.backend.save_or_update_config(
                self.instance_id, self.app_id, payload, update=mode == MODE_UPDATE,
            )
        except (BackendError, ValidationError) as exc:
            logger.error("Save failed for instance %s: %s", self.instance_id, exc,
                         extra={"instance_id": self.instance_id, "app_id": self.app_id})
            self.notify(NOTICE_ERROR, "Error", f"Failed to save configuration: {exc}")
            return False, str(exc)

        selected = self.selected
        selected_sequence = selected.sequence if selected else None

        self._load_generation += 1
        saved, _ = resolver.records_from_wire(result or [])
        self.store.replace(saved)
        self._bootstrap = False
        self._has_saved_config = bool(saved)
        self.selected_key = None
        if selected_sequence is not None:
            match = self.store.find_by_sequence(selected_sequence)
            self.selected_key = match.key if match else None

        message = f"Configuration {'updated' if mode == MODE_UPDATE else 'created'} successfully"
        self.notify(NOTICE_SUCCESS, "Success", message)
        logger.info("Saved %d records for instance %s (%s)", len(saved), self.instance_id, mode,
                    extra={"instance_id": self.instance_id, "app_id": self.app_id, "record_count": len(saved)})
        return True, message

    def __repr__(self):
        return f"<ConfigSession app={self.app_id} instance={self.instance_id} {self.store!r}>"
