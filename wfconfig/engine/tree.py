"""
Tree Projector — stage → substage view of the flat record store.

The tree is derived, never edited directly. The only state carried from one
projection to the next is each stage node's ``expanded`` flag, matched by
stage id.

Node ids (presentation only, never persisted):
    stage-<stageId>
    substage-<substageId>-<positionalIndex>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wfconfig.engine.catalog import Catalog
from wfconfig.engine.records import ConfigRecord

logger = logging.getLogger(__name__)

STAGE = "stage"
SUBSTAGE = "substage"


def stage_node_id(stage_id: int) -> str:
    return f"stage-{stage_id}"


def substage_node_id(substage_id: int, index: int) -> str:
    return f"substage-{substage_id}-{index}"


@dataclass
class TreeNode:
    node_id: str
    kind: str
    name: str
    stage_id: int
    expanded: bool = True
    children: list[TreeNode] = field(default_factory=list)
    record_key: str | None = None
    substage_id: int | None = None
    sequence: int | None = None
    flags: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        if self.kind == STAGE:
            return {
                "id": self.node_id,
                "type": STAGE,
                "name": self.name,
                "stage_id": self.stage_id,
                "expanded": self.expanded,
                "children": [c.to_dict() for c in self.children],
            }
        return {
            "id": self.node_id,
            "type": SUBSTAGE,
            "name": self.name,
            "stage_id": self.stage_id,
            "substage_id": self.substage_id,
            "sequence": self.sequence,
            "record_key": self.record_key,
            "flags": dict(self.flags),
        }


def project(
    records: list[ConfigRecord],
    previous_tree: list[TreeNode] | None = None,
    catalog: Catalog | None = None,
) -> list[TreeNode]:
    """
    Group *records* by stage, ordering substages by sequence.

    Stage nodes appear in order of their earliest record. ``expanded`` is
    copied from *previous_tree* by stage id; new stage nodes start expanded.
    With a *catalog*, records whose stage is unknown to it are left out, and
    substage node ids are numbered over the records actually shown.
    """
    expanded_state = {
        node.stage_id: node.expanded for node in previous_tree or [] if node.kind == STAGE
    }

    stage_nodes: dict[int, TreeNode] = {}
    shown = 0
    for record in sorted(records, key=lambda r: r.sequence):
        stage_id = record.stage.stage_id
        stage_name = record.stage.name
        if catalog is not None:
            template = catalog.stage(stage_id)
            if template is None:
                logger.warning(
                    "Record #%s references stage %s absent from the catalogue; not shown",
                    record.sequence, stage_id,
                )
                continue
            stage_name = template.name

        node = stage_nodes.get(stage_id)
        if node is None:
            node = TreeNode(
                node_id=stage_node_id(stage_id),
                kind=STAGE,
                name=stage_name,
                stage_id=stage_id,
                expanded=expanded_state.get(stage_id, True),
            )
            stage_nodes[stage_id] = node

        node.children.append(TreeNode(
            node_id=substage_node_id(record.substage.substage_id, shown),
            kind=SUBSTAGE,
            name=record.substage.name,
            stage_id=stage_id,
            record_key=record.key,
            substage_id=record.substage.substage_id,
            sequence=record.sequence,
            flags=record.flags(),
        ))
        shown += 1

    return list(stage_nodes.values())


def bootstrap_tree(catalog: Catalog) -> list[TreeNode]:
    """Every stage template of the application, empty and collapsed."""
    return [
        TreeNode(
            node_id=stage_node_id(stage.stage_id),
            kind=STAGE,
            name=stage.name,
            stage_id=stage.stage_id,
            expanded=False,
        )
        for stage in catalog.stages
    ]


def flatten_tree(tree: list[TreeNode], index: dict[str, ConfigRecord]) -> list[ConfigRecord]:
    """Records in tree order: stage order first, then substage order."""
    return [
        index[child.record_key]
        for node in tree
        for child in node.children
        if child.record_key in index
    ]


def find_node(tree: list[TreeNode], node_id: str) -> TreeNode | None:
    for node in tree:
        if node.node_id == node_id:
            return node
        for child in node.children:
            if child.node_id == node_id:
                return child
    return None


def toggle_stage(tree: list[TreeNode], stage_id: int) -> bool:
    """Flip a stage node's ``expanded`` flag. Returns the new state."""
    for node in tree:
        if node.kind == STAGE and node.stage_id == stage_id:
            node.expanded = not node.expanded
            return node.expanded
    return False
