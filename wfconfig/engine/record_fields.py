"""
Detail-panel edits on a single ConfigRecord.

Field edits change content only; they never alter sequence, stage or the
record set, so they do not bump the store's structure counter.
"""

from __future__ import annotations

import logging

from wfconfig.core.exceptions import ValidationError
from wfconfig.engine.catalog import Catalog
from wfconfig.engine.records import FLAG_FIELDS, ConfigRecord, FileRule, from_yn

logger = logging.getLogger(__name__)


def set_flags(record: ConfigRecord, **flags) -> ConfigRecord:
    """Set any of active, auto, adhoc, approval, attest, upload, alteryx."""
    unknown = sorted(set(flags) - set(FLAG_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown flag(s): {', '.join(unknown)}", details={"flags": unknown})
    for name, value in flags.items():
        setattr(record, name, from_yn(value))
    return record


def toggle_flag(record: ConfigRecord, name: str) -> bool:
    if name not in FLAG_FIELDS:
        raise ValidationError(f"Unknown flag: {name}")
    value = not getattr(record, name)
    setattr(record, name, value)
    return value


def set_parameter(record: ConfigRecord, catalog: Catalog, name: str, value) -> ConfigRecord:
    """Set a value-typed parameter; ``None`` or an empty string clears it."""
    allowed = catalog.value_parameter_names(record.substage)
    if name not in allowed:
        raise ValidationError(
            f"'{name}' is not a value parameter of substage '{record.substage.name}'",
            details={"parameter": name, "allowed": allowed},
        )
    if value is None or str(value) == "":
        record.parameter_values.pop(name, None)
    else:
        record.parameter_values[name] = str(value)
    return record


def set_attestations(record: ConfigRecord, catalog: Catalog, attestation_ids) -> ConfigRecord:
    """Replace the record's attestations. Ids must exist in the system catalogue."""
    ids = set()
    for att_id in attestation_ids or []:
        try:
            ids.add(int(att_id))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid attestation id {att_id!r}")
    unknown = sorted(i for i in ids if catalog.attestation(i) is None)
    if unknown:
        raise ValidationError(
            f"Unknown attestation id(s): {unknown}", details={"attestation_ids": unknown},
        )
    record.attestations = ids
    return record


def toggle_attestation(record: ConfigRecord, catalog: Catalog, attestation_id: int) -> bool:
    if catalog.attestation(attestation_id) is None:
        raise ValidationError(f"Unknown attestation id {attestation_id}")
    if attestation_id in record.attestations:
        record.attestations.discard(attestation_id)
        return False
    record.attestations.add(attestation_id)
    return True


def set_file_rule(
    record: ConfigRecord,
    catalog: Catalog,
    name: str,
    *,
    pattern: str | None = None,
    description: str | None = None,
    required=None,
    email_on_complete=None,
) -> FileRule | None:
    """
    Merge the given fields into the file rule for upload parameter *name*.
    A rule left with nothing but defaults is removed. Returns the stored rule.
    """
    allowed = catalog.upload_parameter_names(record.substage)
    if name not in allowed:
        raise ValidationError(
            f"'{name}' is not an upload parameter of substage '{record.substage.name}'",
            details={"parameter": name, "allowed": allowed},
        )
    current = record.file_rules.get(name) or FileRule()
    rule = FileRule(
        pattern=current.pattern if pattern is None else pattern,
        description=current.description if description is None else description,
        required=current.required if required is None else from_yn(required),
        email_on_complete=current.email_on_complete if email_on_complete is None else from_yn(email_on_complete),
    )
    if rule.is_meaningful():
        record.file_rules[name] = rule
        return rule
    record.file_rules.pop(name, None)
    return None


def clear_file_rule(record: ConfigRecord, name: str) -> None:
    record.file_rules.pop(name, None)


def apply_updates(record: ConfigRecord, catalog: Catalog, data: dict) -> ConfigRecord:
    """
    Apply a detail-panel form to *record*.

    Accepted keys: any flag name, ``parameters`` ({name: value}),
    ``attestations`` ([ids]), ``file_rules`` ({name: {pattern, description,
    required, email_on_complete}}). Everything is validated before anything
    is written.
    """
    staged = record.copy()
    flags = {k: v for k, v in data.items() if k in FLAG_FIELDS}
    if flags:
        set_flags(staged, **flags)
    for name, value in (data.get("parameters") or {}).items():
        set_parameter(staged, catalog, name, value)
    if "attestations" in data:
        set_attestations(staged, catalog, data["attestations"])
    for name, fields in (data.get("file_rules") or {}).items():
        fields = fields or {}
        set_file_rule(
            staged, catalog, name,
            pattern=fields.get("pattern"),
            description=fields.get("description"),
            required=fields.get("required"),
            email_on_complete=fields.get("email_on_complete"),
        )

    for name in list(FLAG_FIELDS):
        setattr(record, name, getattr(staged, name))
    record.parameter_values = staged.parameter_values
    record.attestations = staged.attestations
    record.file_rules = staged.file_rules
    logger.debug("Detail edits applied to #%d", record.sequence)
    return record
