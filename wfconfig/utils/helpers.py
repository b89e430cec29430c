"""Small view helpers shared by the blueprints."""

import logging

from flask import request

from wfconfig.models import db
from wfconfig.utils.errors import E, api_error

logger = logging.getLogger(__name__)

_TRUE_ARGS = frozenset({"1", "true", "yes", "on"})


def get_or_404(model, pk, label=None):
    """Fetch a row by primary key.

    Returns ``(obj, None)`` or ``(None, error_response)``:

        app, err = get_or_404(WorkflowApplication, app_id, "Application")
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if obj is None:
        logger.debug("%s %s not found", label, pk)
        return None, api_error(E.NOT_FOUND, f"{label} {pk} not found")
    return obj, None


def bool_arg(name: str, default: bool = False) -> bool:
    """Read a boolean query-string flag (``?all=true``)."""
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_ARGS
