"""
Configuration engine data model.

Template entities (read-only, from the metadata catalogue):
    - StageTemplate, SubstageTemplate, ParameterDef, AttestationDef, Application

Configured entities (owned by the engine, mutable):
    - ConfigRecord:  one placement of a substage template into a stage
    - FileRule:      file-matching rule for an upload-typed parameter

Flags are booleans inside the engine. The legacy 'Y'/'N' strings only exist
at the wire boundary (``to_yn`` / ``from_yn``).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace

logger = logging.getLogger(__name__)


# ── Constants ────────────────────────────────────────────────────────────────

ORIGIN_PERSISTED = "persisted"
ORIGIN_NEW = "new"

UPLOAD_PARAM_TYPE = "upload"

# engine attribute → (legacy Y/N wire key, boolean wire key)
FLAG_FIELDS = {
    "active": ("isactive", "is_active"),
    "auto": ("auto", "is_auto"),
    "adhoc": ("adhoc", "is_adhoc"),
    "approval": ("approval", "is_approval"),
    "attest": ("attest", "is_attest"),
    "upload": ("upload", "is_upload"),
    "alteryx": ("isalteryx", "is_alteryx"),
}

_TRUE_STRINGS = {"y", "yes", "true", "1"}
_FALSE_STRINGS = {"n", "no", "false", "0", ""}


def to_yn(value) -> str:
    """Project a flag onto the legacy 'Y' / 'N' form."""
    return "Y" if from_yn(value) else "N"


def from_yn(value, default: bool = False) -> bool:
    """Read a flag from any of: 'Y'/'N', bool, 1/0, 'true'/'false'."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    logger.warning("Unrecognised flag value %r — using default %s", value, default)
    return default


def new_key() -> str:
    """Stable, session-local record identity."""
    return uuid.uuid4().hex[:12]


def _to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _id_tuple(value) -> tuple[int, ...]:
    if value is None:
        return ()
    items = value if isinstance(value, (list, tuple, set)) else str(value).split(",")
    ids = []
    for item in items:
        num = _to_int(str(item).strip())
        if num is not None and num not in ids:
            ids.append(num)
    return tuple(ids)


# ═════════════════════════════════════════════════════════════════════════════
# 1. Template entities
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Application:
    app_id: int
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Application:
        return cls(
            app_id=_to_int(data.get("app_id", data.get("id")), 0),
            name=data.get("name", ""),
            description=data.get("description") or "",
        )

    def to_dict(self) -> dict:
        return {"app_id": self.app_id, "name": self.name, "description": self.description}


@dataclass(frozen=True)
class StageTemplate:
    stage_id: int
    name: str
    application_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> StageTemplate:
        return cls(
            stage_id=_to_int(data.get("stage_id", data.get("id")), 0),
            name=data.get("name", ""),
            application_id=_to_int(data.get("application_id")),
        )


@dataclass(frozen=True)
class SubstageTemplate:
    """Reusable unit of work. Also serves as the immutable snapshot a record keeps."""

    substage_id: int
    name: str
    component_ref: str = ""
    default_stage_id: int | None = None
    param_mapping: tuple[int, ...] = ()
    attestation_mapping: tuple[int, ...] = ()
    entitlement_id: int | None = None
    follow_up: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> SubstageTemplate:
        return cls(
            substage_id=_to_int(data.get("substage_id", data.get("id")), 0),
            name=data.get("name", ""),
            component_ref=data.get("component_ref") or "",
            default_stage_id=_to_int(data.get("default_stage_id")),
            param_mapping=_id_tuple(data.get("param_mapping")),
            attestation_mapping=_id_tuple(data.get("attestation_mapping")),
            entitlement_id=_to_int(data.get("entitlement_id")),
            follow_up=from_yn(data.get("follow_up")),
        )

    def to_dict(self) -> dict:
        return {
            "substage_id": self.substage_id,
            "name": self.name,
            "component_ref": self.component_ref,
            "default_stage_id": self.default_stage_id,
            "param_mapping": list(self.param_mapping),
            "attestation_mapping": list(self.attestation_mapping),
            "entitlement_id": self.entitlement_id,
            "follow_up": self.follow_up,
        }


@dataclass(frozen=True)
class ParameterDef:
    param_id: int
    name: str
    param_type: str = "text"
    description: str = ""

    @property
    def is_upload(self) -> bool:
        return self.param_type == UPLOAD_PARAM_TYPE

    @classmethod
    def from_dict(cls, data: dict) -> ParameterDef:
        return cls(
            param_id=_to_int(data.get("param_id", data.get("id")), 0),
            name=data.get("name", ""),
            param_type=data.get("param_type") or "text",
            description=data.get("description") or "",
        )


@dataclass(frozen=True)
class AttestationDef:
    attestation_id: int
    name: str
    type: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> AttestationDef:
        return cls(
            attestation_id=_to_int(data.get("attestation_id", data.get("id")), 0),
            name=data.get("name", ""),
            type=data.get("type") or "",
            description=data.get("description") or "",
        )


# ═════════════════════════════════════════════════════════════════════════════
# 2. Configured entities
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StageRef:
    stage_id: int
    name: str = ""

    @classmethod
    def of(cls, stage: StageTemplate) -> StageRef:
        return cls(stage_id=stage.stage_id, name=stage.name)


@dataclass
class FileRule:
    """File rule for one upload-typed parameter."""

    pattern: str = ""
    description: str = ""
    required: bool = False
    email_on_complete: bool = False

    def is_meaningful(self) -> bool:
        return bool(
            (self.pattern or "").strip()
            or (self.description or "").strip()
            or self.required
            or self.email_on_complete
        )


@dataclass
class ConfigRecord:
    """
    One configured step of a workflow instance.

    ``sequence`` is the dense, instance-wide execution order. Dependencies are
    held by stable ``key`` in ``dependency_keys``; sequence numbers for them are
    derived by the store when needed.
    """

    stage: StageRef
    substage: SubstageTemplate
    sequence: int = 0
    key: str = field(default_factory=new_key)
    record_id: int = 0
    origin: str = ORIGIN_NEW

    active: bool = True
    auto: bool = False
    adhoc: bool = False
    approval: bool = False
    attest: bool = False
    upload: bool = False
    alteryx: bool = False

    parameter_values: dict[str, str] = field(default_factory=dict)
    attestations: set[int] = field(default_factory=set)
    file_rules: dict[str, FileRule] = field(default_factory=dict)
    dependency_keys: list[str] = field(default_factory=list)
    updated_by: str = ""
    # key of the record this one was duplicated from; clones may share a placement
    cloned_from: str | None = None

    @property
    def placement(self) -> tuple[int, int]:
        return self.stage.stage_id, self.substage.substage_id

    @property
    def is_persisted(self) -> bool:
        return self.origin == ORIGIN_PERSISTED and bool(self.record_id)

    def flags(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in FLAG_FIELDS}

    def copy(self) -> ConfigRecord:
        """Deep-enough copy: nested collections are not shared."""
        return replace(
            self,
            parameter_values=dict(self.parameter_values),
            attestations=set(self.attestations),
            file_rules={k: replace(v) for k, v in self.file_rules.items()},
            dependency_keys=list(self.dependency_keys),
        )

    def __repr__(self):
        return (
            f"<ConfigRecord #{self.sequence} {self.stage.stage_id}/{self.substage.substage_id}"
            f" key={self.key} id={self.record_id or '-'}>"
        )


def new_record(stage: StageRef, template: SubstageTemplate, sequence: int) -> ConfigRecord:
    """Fresh, unsaved placement: active, every other flag off, no dependencies."""
    return ConfigRecord(stage=stage, substage=template, sequence=sequence)


# ═════════════════════════════════════════════════════════════════════════════
# 3. Wire → record
# ═════════════════════════════════════════════════════════════════════════════


def record_from_wire(entry: dict) -> tuple[ConfigRecord, list[int]]:
    """
    Build a ConfigRecord from a persisted configuration entry.

    Returns the record plus its raw dependency references, which are left for
    the dependency resolver because their meaning depends on the whole set.
    """
    stage_data = entry.get("workflow_stage") or {}
    if not isinstance(stage_data, dict):
        stage_data = {"stage_id": stage_data}
    substage_data = entry.get("workflow_substage") or {}
    if not isinstance(substage_data, dict):
        substage_data = {"substage_id": substage_data}

    record_id = _to_int(entry.get("workflow_app_config_id"), 0) or 0
    record = ConfigRecord(
        stage=StageRef(
            stage_id=_to_int(stage_data.get("stage_id"), 0),
            name=stage_data.get("name") or entry.get("stage_name") or "",
        ),
        substage=SubstageTemplate.from_dict(substage_data),
        sequence=_to_int(entry.get("substage_seq"), 0) or 0,
        record_id=record_id,
        origin=ORIGIN_PERSISTED if record_id else ORIGIN_NEW,
        updated_by=entry.get("updated_by") or "",
    )
    for name, (yn_key, bool_key) in FLAG_FIELDS.items():
        default = name == "active"
        raw = entry.get(yn_key, entry.get(bool_key))
        setattr(record, name, from_yn(raw, default=default))

    for param in entry.get("workflow_app_config_params") or []:
        if param.get("name"):
            record.parameter_values[param["name"]] = "" if param.get("value") is None else str(param["value"])

    for item in entry.get("workflow_attests") or []:
        att_id = _to_int(item.get("attestation_id") if isinstance(item, dict) else item)
        if att_id is not None:
            record.attestations.add(att_id)

    for rule in entry.get("workflow_app_config_files") or []:
        name = rule.get("name")
        if not name:
            continue
        file_rule = FileRule(
            pattern=rule.get("value") or "",
            description=rule.get("description") or "",
            required=from_yn(rule.get("required")),
            email_on_complete=from_yn(rule.get("email_file")),
        )
        if file_rule.is_meaningful():
            record.file_rules[name] = file_rule

    refs = []
    for dep in entry.get("workflow_app_config_deps") or []:
        ref = _to_int(dep.get("dependency_substage_id") if isinstance(dep, dict) else dep)
        if ref is not None:
            refs.append(ref)

    return record, refs
