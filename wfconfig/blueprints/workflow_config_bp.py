"""Workflow configuration blueprint.

REST API of the configuration backend: metadata catalogue, workflow
instances and their saved configuration.

Endpoint groups:
  Catalogue        GET  /api/v1/workflow-config/applications
                   GET  /api/v1/workflow-config/applications/<app_id>
                   GET  /api/v1/workflow-config/applications/<app_id>/metadata
  Instances        GET  /api/v1/workflow-config/applications/<app_id>/instances
                   POST /api/v1/workflow-config/applications/<app_id>/instances
  Configuration    GET  /api/v1/workflow-config/instances/<config_id>/applications/<app_id>/setup
                   POST /api/v1/workflow-config/instances/<config_id>/applications/<app_id>/setup  (create)
                   PUT  /api/v1/workflow-config/instances/<config_id>/applications/<app_id>/setup  (update)
  Tree view        GET  /api/v1/workflow-config/applications/<app_id>/instances/<config_id>/tree

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from wfconfig.core.exceptions import BackendError, ConflictError, NotFoundError, ValidationError
from wfconfig.engine.session import ConfigSession
from wfconfig.models.catalog import WorkflowApplication
from wfconfig.services import catalog_service, instance_config_service
from wfconfig.services.config_backend import ServiceConfigBackend
from wfconfig.utils.errors import E, api_error, exception_response
from wfconfig.utils.helpers import bool_arg, get_or_404

logger = logging.getLogger(__name__)

workflow_config_bp = Blueprint("workflow_config", __name__, url_prefix="/api/v1/workflow-config")


# ── Error handlers ────────────────────────────────────────────────────────────


@workflow_config_bp.errorhandler(NotFoundError)
@workflow_config_bp.errorhandler(ValidationError)
@workflow_config_bp.errorhandler(ConflictError)
@workflow_config_bp.errorhandler(BackendError)
def _handle_service_error(error):
    return exception_response(error)


@workflow_config_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.error("Unexpected error in workflow_config_bp endpoint=%s", request.endpoint)
    return exception_response(error)


def _payload_from_request():
    """Accept either a bare list or ``{"items": [...]}``."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        return None, api_error(E.VALIDATION_INVALID, "Body must be a JSON list of configuration entries")
    return data, None


# ═════════════════════════════════════════════════════════════════════════
# Catalogue
# ═════════════════════════════════════════════════════════════════════════


@workflow_config_bp.route("/applications", methods=["GET"])
def list_applications():
    """Active applications. ``?all=true`` includes inactive ones."""
    active_only = not bool_arg("all")
    apps = catalog_service.list_applications(active_only=active_only)
    return jsonify({"items": [a.to_dict() for a in apps], "total": len(apps)}), 200


@workflow_config_bp.route("/applications/<int:app_id>", methods=["GET"])
def get_application(app_id):
    app, err = get_or_404(WorkflowApplication, app_id, "Application")
    if err:
        return err
    return jsonify(app.to_dict()), 200


@workflow_config_bp.route("/applications/<int:app_id>/metadata", methods=["GET"])
def get_metadata(app_id):
    """Stages, substage templates, parameters and attestations for the editor."""
    return jsonify(catalog_service.get_metadata(app_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Instances
# ═════════════════════════════════════════════════════════════════════════


@workflow_config_bp.route("/applications/<int:app_id>/instances", methods=["GET"])
def list_instances(app_id):
    instances = instance_config_service.list_instances(app_id)
    return jsonify({"items": [i.to_dict() for i in instances], "total": len(instances)}), 200


@workflow_config_bp.route("/applications/<int:app_id>/instances", methods=["POST"])
def create_instance(app_id):
    """Create a workflow instance.

    Body: {name, config_id?}
    Returns: instance dict (201).
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "Body must be a JSON object")
    instance = instance_config_service.create_instance(app_id, data)
    return jsonify(instance.to_dict()), 201


# ═════════════════════════════════════════════════════════════════════════
# Configuration
# ═════════════════════════════════════════════════════════════════════════


@workflow_config_bp.route("/instances/<config_id>/applications/<int:app_id>/setup", methods=["GET"])
def get_setup(config_id, app_id):
    """Saved configuration in sequence order; an empty list when nothing is saved."""
    items = instance_config_service.get_instance_config(config_id, app_id)
    return jsonify({"items": items, "total": len(items)}), 200


def _save(config_id: str, app_id: int, *, update: bool):
    payload, err = _payload_from_request()
    if err:
        return err
    items = instance_config_service.save_or_update_config(
        config_id, app_id, payload,
        update=update,
        updated_by=current_app.config.get("WORKFLOW_CONFIG_UPDATED_BY", "system"),
    )
    return jsonify({"items": items, "total": len(items)}), 200 if update else 201


@workflow_config_bp.route("/instances/<config_id>/applications/<int:app_id>/setup", methods=["POST"])
def create_setup(config_id, app_id):
    return _save(config_id, app_id, update=False)


@workflow_config_bp.route("/instances/<config_id>/applications/<int:app_id>/setup", methods=["PUT"])
def update_setup(config_id, app_id):
    return _save(config_id, app_id, update=True)


@workflow_config_bp.route("/applications/<int:app_id>/instances/<config_id>/tree", methods=["GET"])
def get_tree(app_id, config_id):
    """Stage → substage tree of the saved configuration.

    An instance with nothing saved returns the bootstrap tree (every stage
    of the application, empty and collapsed) with ``bootstrap: true``.
    """
    instance_config_service.get_instance(app_id, config_id)

    session = ConfigSession(ServiceConfigBackend())
    session.select_application(app_id)
    session.load_instance(config_id)
    bootstrap = session.store.is_empty
    if bootstrap:
        session.new_instance(config_id)

    return jsonify({
        "app_id": app_id,
        "config_id": config_id,
        "bootstrap": bootstrap,
        "tree": [node.to_dict() for node in session.tree],
        "notices": [n.to_dict() for n in session.drain_notices()],
    }), 200
