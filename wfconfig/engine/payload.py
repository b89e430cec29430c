"""
Save Payload Builder — store → wire format for ``save_or_update_config``.

One entry per record, in sequence order. Flags go out twice (legacy 'Y'/'N'
and boolean) for older consumers. Dependencies go out as sequence numbers;
the backend maps them to persisted ids inside the same save transaction.
"""

from __future__ import annotations

import logging

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine.records import FLAG_FIELDS, Application, ConfigRecord, to_yn

logger = logging.getLogger(__name__)

MODE_CREATE = "create"
MODE_UPDATE = "update"


def payload_mode(records: list[ConfigRecord]) -> str:
    """Batch-wide mode: update as soon as any record has been saved before."""
    return MODE_UPDATE if any(r.record_id for r in records) else MODE_CREATE


def record_operation(record: ConfigRecord) -> str:
    return MODE_UPDATE if record.is_persisted else MODE_CREATE


def validate_for_save(records: list[ConfigRecord], instance_id) -> None:
    """Reject a save that the backend would refuse or that is obviously incomplete."""
    if not instance_id:
        raise ValidationError("Select or create a workflow instance before saving")
    if not records:
        raise ValidationError("Nothing to save — the configuration is empty")

    missing_attestations = [
        r.sequence for r in records if not r.auto and r.attest and not r.attestations
    ]
    if missing_attestations:
        raise ValidationError(
            "Attestation required but none selected for step(s) "
            + ", ".join(f"#{s}" for s in missing_attestations),
            details={"sequences": missing_attestations},
        )


def _file_entries(record: ConfigRecord) -> list[dict]:
    # file_rules is keyed by parameter name, so each name is emitted once
    entries = []
    for name, rule in record.file_rules.items():
        if not rule.is_meaningful():
            continue
        entries.append({
            "name": name,
            "param_type": "upload",
            "value": rule.pattern or "",
            "description": rule.description or "",
            "required": to_yn(rule.required),
            "is_required": bool(rule.required),
            "email_file": to_yn(rule.email_on_complete),
            "is_email_file": bool(rule.email_on_complete),
        })
    return entries


def build_entry(
    record: ConfigRecord,
    sequences: dict[str, int],
    application: Application,
    instance_id,
    updated_by: str,
) -> dict:
    entry = {
        "workflow_app_config_id": record.record_id or 0,
        "operation": record_operation(record),
        "app_group_id": instance_id,
        "substage_seq": record.sequence,
        "stage_name": record.stage.name,
        "substage_name": record.substage.name,
        "workflow_application": application.to_dict(),
        "workflow_stage": {"stage_id": record.stage.stage_id, "name": record.stage.name},
        "workflow_substage": record.substage.to_dict(),
    }
    for name, (yn_key, bool_key) in FLAG_FIELDS.items():
        value = getattr(record, name)
        entry[yn_key] = to_yn(value)
        entry[bool_key] = bool(value)

    entry["params"] = [
        {"name": name, "value": value} for name, value in record.parameter_values.items()
    ]
    entry["files"] = _file_entries(record)
    entry["attestations"] = sorted(record.attestations)
    entry["dependencies"] = [
        {"depends_on_sequence": seq}
        for seq in sorted(sequences[k] for k in record.dependency_keys if k in sequences)
    ]
    entry["updated_by"] = updated_by
    return entry


def build_save_payload(
    records: list[ConfigRecord],
    application: Application | int,
    instance_id,
    updated_by: str = "system",
) -> list[dict]:
    """Pure: the records are not modified."""
    if not isinstance(application, Application):
        application = Application(app_id=int(application), name="")
    ordered = sorted(records, key=lambda r: r.sequence)
    sequences = {r.key: r.sequence for r in ordered}
    payload = [build_entry(r, sequences, application, instance_id, updated_by) for r in ordered]
    logger.debug("Save payload built: %d entries for instance %s", len(payload), instance_id)
    return payload
