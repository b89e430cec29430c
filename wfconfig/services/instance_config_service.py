"""
Workflow instance configuration — Service Layer.

Business logic for:
    - Instance listing / creation:  CFG-001, CFG-002 (application-scoped codes)
    - Configuration read:           persisted steps in sequence order
    - Configuration save:           whole-instance replace in one transaction,
                                    dependency sequences re-resolved to row ids
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wfconfig.core.exceptions import ConflictError, NotFoundError, ValidationError
from wfconfig.engine.records import FLAG_FIELDS, from_yn, to_yn
from wfconfig.models import db
from wfconfig.models.catalog import WorkflowApplication, WorkflowAttestation, format_id_list
from wfconfig.models.instance_config import (
    WorkflowAppConfig,
    WorkflowAppConfigDep,
    WorkflowAppConfigFile,
    WorkflowAppConfigParam,
    WorkflowInstance,
)

logger = logging.getLogger(__name__)


# ── Code Generation ──────────────────────────────────────────────────────────


def generate_config_id(app_id: int) -> str:
    """
    Generate the next instance code for an application: CFG-001, CFG-002, ...
    """
    count = db.session.execute(
        select(func.count(WorkflowInstance.id)).where(WorkflowInstance.application_id == app_id)
    ).scalar() or 0
    code = f"CFG-{count + 1:03d}"
    while _find_instance(app_id, code) is not None:
        count += 1
        code = f"CFG-{count + 1:03d}"
    return code


# ── Instances ────────────────────────────────────────────────────────────────


def _require_application(app_id: int) -> WorkflowApplication:
    app = db.session.get(WorkflowApplication, app_id)
    if app is None:
        raise NotFoundError(resource="WorkflowApplication", resource_id=app_id)
    return app


def _find_instance(app_id: int, config_id: str) -> WorkflowInstance | None:
    return db.session.execute(
        select(WorkflowInstance).where(
            WorkflowInstance.application_id == app_id,
            WorkflowInstance.config_id == config_id,
        )
    ).scalar_one_or_none()


def get_instance(app_id: int, config_id: str) -> WorkflowInstance:
    instance = _find_instance(app_id, config_id)
    if instance is None:
        raise NotFoundError(resource="WorkflowInstance", resource_id=config_id, app_id=app_id)
    return instance


def list_instances(app_id: int) -> list[WorkflowInstance]:
    """Instances of an application ordered by code."""
    _require_application(app_id)
    return list(db.session.execute(
        select(WorkflowInstance)
        .where(WorkflowInstance.application_id == app_id)
        .order_by(WorkflowInstance.config_id)
    ).scalars())


def create_instance(app_id: int, data: dict) -> WorkflowInstance:
    """Create a workflow instance. ``config_id`` is generated when not supplied.

    Raises:
        NotFoundError: unknown application.
        ValidationError: missing name.
        ConflictError: the config id is already used in this application.
    """
    _require_application(app_id)
    name = (data.get("name") or data.get("config_name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"field": "name"})

    config_id = (data.get("config_id") or "").strip() or generate_config_id(app_id)
    if _find_instance(app_id, config_id) is not None:
        raise ConflictError("WorkflowInstance", "config_id", config_id)

    instance = WorkflowInstance(application_id=app_id, config_id=config_id, name=name)
    db.session.add(instance)
    db.session.commit()
    logger.info("WorkflowInstance created config_id=%s app_id=%s", config_id, app_id)
    return instance


# ── Configuration read ───────────────────────────────────────────────────────


def get_instance_config(config_id: str, app_id: int) -> list[dict]:
    """Persisted configuration in sequence order; empty when nothing is saved."""
    instance = _find_instance(app_id, config_id)
    if instance is None:
        return []
    return [row.to_dict() for row in instance.configs.order_by(WorkflowAppConfig.substage_seq)]


# ── Configuration save ───────────────────────────────────────────────────────


def _int(value, field: str, position: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Entry {position}: {field} must be an integer", details={"entry": position, "field": field},
        )


def _validate_payload(payload) -> list[int]:
    """Structural checks before anything is written. Returns the sequences."""
    if not isinstance(payload, list):
        raise ValidationError("Payload must be a list of configuration entries")

    sequences = []
    for position, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ValidationError(f"Entry {position} must be an object")
        stage = entry.get("workflow_stage") or {}
        substage = entry.get("workflow_substage") or {}
        _int(stage.get("stage_id"), "workflow_stage.stage_id", position)
        _int(substage.get("substage_id"), "workflow_substage.substage_id", position)
        seq = _int(entry.get("substage_seq"), "substage_seq", position)
        if seq < 1:
            raise ValidationError(f"Entry {position}: substage_seq must be positive")
        sequences.append(seq)

    if len(set(sequences)) != len(sequences):
        raise ValidationError("substage_seq values must be unique", details={"sequences": sequences})

    known = set(sequences)
    for position, entry in enumerate(payload):
        seq = int(entry["substage_seq"])
        for dep in entry.get("dependencies") or []:
            target = _int(dep.get("depends_on_sequence"), "depends_on_sequence", position)
            if target not in known:
                raise ValidationError(
                    f"Step #{seq} depends on unknown step #{target}",
                    details={"sequence": seq, "depends_on_sequence": target},
                )
            if target >= seq:
                raise ValidationError(
                    f"Step #{seq} can only depend on earlier steps (got #{target})",
                    details={"sequence": seq, "depends_on_sequence": target},
                )
    return sequences


def _flag(entry: dict, name: str) -> str:
    yn_key, bool_key = FLAG_FIELDS[name]
    raw = entry.get(yn_key, entry.get(bool_key))
    return to_yn(from_yn(raw, default=(name == "active")))


def _apply_entry(row: WorkflowAppConfig, entry: dict, updated_by: str) -> None:
    stage = entry.get("workflow_stage") or {}
    substage = entry.get("workflow_substage") or {}

    row.substage_seq = int(entry["substage_seq"])
    row.stage_id = int(stage["stage_id"])
    row.stage_name = stage.get("name") or entry.get("stage_name") or ""
    row.substage_id = int(substage["substage_id"])
    row.substage_name = substage.get("name") or entry.get("substage_name") or ""
    row.component_ref = substage.get("component_ref") or ""
    row.default_stage_id = substage.get("default_stage_id")
    row.param_mapping = format_id_list(substage.get("param_mapping"))
    row.attestation_mapping = format_id_list(substage.get("attestation_mapping"))
    row.entitlement_id = substage.get("entitlement_id")
    row.follow_up = from_yn(substage.get("follow_up"))

    row.isactive = _flag(entry, "active")
    row.auto = _flag(entry, "auto")
    row.adhoc = _flag(entry, "adhoc")
    row.approval = _flag(entry, "approval")
    row.attest = _flag(entry, "attest")
    row.upload = _flag(entry, "upload")
    row.isalteryx = _flag(entry, "alteryx")
    row.updated_by = entry.get("updated_by") or updated_by


def _sync_params(row: WorkflowAppConfig, params: list[dict]) -> None:
    """Update in place by name so the (config, name) unique key never collides."""
    wanted = {}
    for param in params or []:
        if param.get("name"):
            wanted[param["name"]] = "" if param.get("value") is None else str(param["value"])
    current = {p.name: p for p in row.params}
    for name, param in current.items():
        if name not in wanted:
            row.params.remove(param)
    for name, value in wanted.items():
        if name in current:
            current[name].value = value
        else:
            row.params.append(WorkflowAppConfigParam(name=name, value=value))


def _sync_files(row: WorkflowAppConfig, files: list[dict]) -> None:
    wanted = {}
    for rule in files or []:
        if rule.get("name"):
            wanted[rule["name"]] = rule  # last write wins
    current = {f.name: f for f in row.files}
    for name, existing in current.items():
        if name not in wanted:
            row.files.remove(existing)
    for name, rule in wanted.items():
        target = current.get(name)
        if target is None:
            target = WorkflowAppConfigFile(name=name)
            row.files.append(target)
        target.param_type = rule.get("param_type") or "upload"
        target.value = rule.get("value") or ""
        target.description = rule.get("description") or ""
        target.required = to_yn(rule.get("required", rule.get("is_required")))
        target.email_file = to_yn(rule.get("email_file", rule.get("is_email_file")))
        target.file_upload = "Y"


def _resolve_attestations(ids) -> list[WorkflowAttestation]:
    attestations = []
    for att_id in ids or []:
        att = db.session.get(WorkflowAttestation, int(att_id))
        if att is None:
            raise ValidationError(f"Unknown attestation id {att_id}", details={"attestation_id": att_id})
        attestations.append(att)
    return attestations


def save_or_update_config(
    config_id: str, app_id: int, payload: list[dict], *, update: bool, updated_by: str = "system",
) -> list[dict]:
    """
    Replace the instance's configuration with *payload* in one transaction.

    - ``operation == "update"`` with a known row id updates that row;
      every other entry creates a row.
    - Rows of the instance that the payload does not mention are deleted.
    - ``{"depends_on_sequence": n}`` is re-resolved to the id of the row
      saved with sequence *n* and stored as the dependency descriptor.

    ``update=False`` (create) is refused when the instance already has a
    saved configuration.

    Returns:
        The authoritative post-save configuration (``get_instance_config``).

    Raises:
        NotFoundError: unknown instance.
        ValidationError: malformed payload / unknown ids.
        ConflictError: create on an already configured instance.
    """
    instance = get_instance(app_id, config_id)
    _validate_payload(payload)

    existing = {row.id: row for row in instance.configs}
    if not update and existing:
        raise ConflictError("WorkflowAppConfig", "app_group_id", config_id)

    try:
        rows_by_seq: dict[int, WorkflowAppConfig] = {}
        kept_ids = set()
        for entry in payload:
            record_id = entry.get("workflow_app_config_id") or 0
            operation = entry.get("operation") or ("update" if record_id else "create")
            if operation == "update" and record_id:
                row = existing.get(int(record_id))
                if row is None:
                    raise ValidationError(
                        f"Configuration row {record_id} does not belong to instance {config_id}",
                        details={"workflow_app_config_id": record_id},
                    )
                kept_ids.add(row.id)
            else:
                row = WorkflowAppConfig(application_id=app_id)
                instance.configs.append(row)
            _apply_entry(row, entry, updated_by)
            _sync_params(row, entry.get("params"))
            _sync_files(row, entry.get("files"))
            row.attestations = _resolve_attestations(entry.get("attestations"))
            rows_by_seq[row.substage_seq] = row

        for row_id, row in existing.items():
            if row_id not in kept_ids:
                db.session.delete(row)

        db.session.flush()

        for entry in payload:
            row = rows_by_seq[int(entry["substage_seq"])]
            targets = []
            for dep in entry.get("dependencies") or []:
                target_id = rows_by_seq[int(dep["depends_on_sequence"])].id
                if target_id not in targets:
                    targets.append(target_id)
            current = {d.dependency_substage_id: d for d in row.deps}
            for ref, dep in current.items():
                if ref not in targets:
                    row.deps.remove(dep)
            for target_id in targets:
                if target_id not in current:
                    row.deps.append(WorkflowAppConfigDep(dependency_substage_id=target_id))

        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error saving config %s: %s", config_id, exc.orig)
        raise ConflictError("WorkflowAppConfig", "app_group_id", config_id) from exc
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error saving config %s", config_id)
        raise

    logger.info(
        "Configuration %s for instance %s app_id=%s — %d steps, %d removed",
        "updated" if update else "created", config_id, app_id,
        len(payload), len(set(existing) - kept_ids),
    )
    return get_instance_config(config_id, app_id)
