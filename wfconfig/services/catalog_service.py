"""Service for the workflow metadata catalogue — read, seed.

The catalogue (applications, stages, substage templates, parameters,
attestations) is maintained elsewhere; this service exposes it to the
configuration engine and can seed it from a JSON file:

1. **Metadata** — ``get_metadata(app_id)`` returns everything the editor
   needs for one application.

2. **Catalogue loading** — ``load_catalog`` upserts a catalogue dict by id.
   Idempotent: running twice produces no duplicates. Ids are kept as given
   because substage mappings refer to parameter / attestation ids.
"""

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy import select

from wfconfig.core.exceptions import NotFoundError, ValidationError
from wfconfig.models import db
from wfconfig.models.catalog import (
    PARAM_TYPES,
    WorkflowApplication,
    WorkflowAttestation,
    WorkflowParameter,
    WorkflowStage,
    WorkflowSubstage,
    format_id_list,
)

logger = logging.getLogger(__name__)

# Catalogue shipped with the package for local development and demos.
BUNDLED_CATALOG = Path(__file__).parent.parent / "data" / "sample_catalog.json"

_SECTIONS = ("applications", "stages", "substages", "parameters", "attestations")


# ─── Read ──────────────────────────────────────────────────────────────────────


def list_applications(active_only: bool = True) -> list[WorkflowApplication]:
    stmt = select(WorkflowApplication).order_by(WorkflowApplication.name)
    if active_only:
        stmt = stmt.where(WorkflowApplication.is_active.is_(True))
    return list(db.session.execute(stmt).scalars())


def get_metadata(app_id: int) -> dict[str, Any]:
    """Stages, substage templates, parameters and attestations for one application.

    Substage templates are those whose default stage belongs to the
    application. Parameters and attestations are system-wide.

    Raises:
        NotFoundError: unknown application.
    """
    app = db.session.get(WorkflowApplication, app_id)
    if app is None:
        raise NotFoundError(resource="WorkflowApplication", resource_id=app_id)

    stages = list(db.session.execute(
        select(WorkflowStage)
        .where(WorkflowStage.application_id == app_id)
        .order_by(WorkflowStage.id)
    ).scalars())
    stage_ids = [s.id for s in stages]

    substages = []
    if stage_ids:
        substages = list(db.session.execute(
            select(WorkflowSubstage)
            .where(WorkflowSubstage.default_stage_id.in_(stage_ids))
            .order_by(WorkflowSubstage.id)
        ).scalars())

    parameters = db.session.execute(select(WorkflowParameter).order_by(WorkflowParameter.id)).scalars()
    attestations = db.session.execute(select(WorkflowAttestation).order_by(WorkflowAttestation.id)).scalars()

    return {
        "application": app.to_dict(),
        "stages": [s.to_dict() for s in stages],
        "substages": [s.to_dict() for s in substages],
        "parameters": [p.to_dict() for p in parameters],
        "attestations": [a.to_dict() for a in attestations],
    }


# ─── Internal upsert helpers (no commit) ───────────────────────────────────────


def _upsert(model, data: dict, fields: dict) -> bool:
    """Upsert *model* row ``data["id"]`` with *fields*. Returns True when created."""
    existing = db.session.get(model, data["id"])
    if existing:
        for name, value in fields.items():
            setattr(existing, name, value)
        return False
    db.session.add(model(id=data["id"], **fields))
    return True


def _application_fields(data: dict) -> dict:
    return {
        "name": data["name"],
        "category": data.get("category", ""),
        "description": data.get("description", ""),
        "is_active": data.get("is_active", True),
    }


def _stage_fields(data: dict) -> dict:
    return {"name": data["name"], "application_id": data["application_id"]}


def _substage_fields(data: dict) -> dict:
    return {
        "name": data["name"],
        "component_ref": data.get("component_ref", ""),
        "default_stage_id": data.get("default_stage_id"),
        "param_mapping": format_id_list(data.get("param_mapping")),
        "attestation_mapping": format_id_list(data.get("attestation_mapping")),
        "entitlement_id": data.get("entitlement_id"),
        "follow_up": bool(data.get("follow_up", False)),
    }


def _parameter_fields(data: dict) -> dict:
    param_type = data.get("param_type", "text")
    if param_type not in PARAM_TYPES:
        raise ValidationError(
            f"Parameter '{data.get('name')}' has invalid param_type '{param_type}'",
            details={"allowed": sorted(PARAM_TYPES)},
        )
    return {"name": data["name"], "param_type": param_type, "description": data.get("description", "")}


def _attestation_fields(data: dict) -> dict:
    return {"name": data["name"], "type": data.get("type", ""), "description": data.get("description", "")}


_UPSERTS = (
    ("applications", WorkflowApplication, _application_fields),
    ("stages", WorkflowStage, _stage_fields),
    ("parameters", WorkflowParameter, _parameter_fields),
    ("attestations", WorkflowAttestation, _attestation_fields),
    ("substages", WorkflowSubstage, _substage_fields),
)


# ─── Public API ────────────────────────────────────────────────────────────────


def load_catalog(data: dict) -> dict[str, dict[str, int]]:
    """Upsert a catalogue dict in a single transaction.

    Args:
        data: ``{"applications": [...], "stages": [...], "substages": [...],
              "parameters": [...], "attestations": [...]}`` — every row
              carries its ``id``.

    Returns:
        ``{"created": {section: N}, "updated": {section: N}}``

    Raises:
        ValidationError: missing sections / ids or an invalid parameter type.
    """
    if not isinstance(data, dict) or not any(k in data for k in _SECTIONS):
        raise ValidationError("Catalog must contain at least one of: " + ", ".join(_SECTIONS))

    counts = {
        "created": {s: 0 for s in _SECTIONS},
        "updated": {s: 0 for s in _SECTIONS},
    }
    try:
        for section, model, fields_of in _UPSERTS:
            for row in data.get(section) or []:
                if "id" not in row or "name" not in row:
                    raise ValidationError(f"Every {section} entry needs 'id' and 'name'", details={"row": row})
                created = _upsert(model, row, fields_of(row))
                counts["created" if created else "updated"][section] += 1
            db.session.flush()
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    except KeyError as exc:
        db.session.rollback()
        raise ValidationError(f"Catalog entry missing required field {exc}") from exc

    logger.info(
        "Catalog loaded — rows_created=%s rows_updated=%s",
        counts["created"], counts["updated"],
    )
    return counts


def load_catalog_from_json(json_file_path: str | Path = BUNDLED_CATALOG) -> dict[str, dict[str, int]]:
    """Read a catalogue JSON file and upsert it (see ``load_catalog``)."""
    path = Path(json_file_path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    logger.info("Loading catalog from %s", path.name)
    return load_catalog(data)
