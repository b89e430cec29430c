"""JSON error bodies for the configuration API.

Every error the API returns has the same shape::

    {"error": "<message for the operator>", "code": "ERR_...", "details": {...}}

``details`` is only present when there is something structured to report,
e.g. the offending sequence numbers of a rejected save.

Usage
-----
    from wfconfig.utils.errors import api_error, exception_response, E

    return api_error(E.VALIDATION_INVALID, "Body must be a JSON list of configuration entries")
    return exception_response(exc)      # NotFoundError → 404, ValidationError → 422, ...
"""

from __future__ import annotations

import logging

from flask import jsonify

from wfconfig.core.exceptions import BackendError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class E:
    """Machine-readable error codes."""

    # malformed request – 400 / 405 / 415
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    UNSUPPORTED_MEDIA = "ERR_UNSUPPORTED_MEDIA_TYPE"

    # configuration rules – 422
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # server side – 500 / 502
    INTERNAL = "ERR_INTERNAL"
    BACKEND = "ERR_BACKEND"


STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.METHOD_NOT_ALLOWED: 405,
    E.UNSUPPORTED_MEDIA: 415,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
    E.BACKEND: 502,
}

# checked in order; first isinstance match wins
_EXCEPTION_CODES = (
    (NotFoundError, E.NOT_FOUND),
    (ValidationError, E.VALIDATION_CONSTRAINT),
    (ConflictError, E.CONFLICT_DUPLICATE),
    (BackendError, E.BACKEND),
)


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Return ``(response, status)`` for a Flask view.

    *status* overrides the default for *code*; unknown codes fall back to 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)


def exception_response(exc: Exception):
    """Map a service or engine exception to its API error."""
    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            details = getattr(exc, "details", None) or None
            if isinstance(exc, BackendError) and exc.status_code:
                details = {"upstream_status": exc.status_code}
            return api_error(code, str(exc), details=details)
    logger.exception("Unhandled %s: %s", type(exc).__name__, exc)
    return api_error(E.INTERNAL, "Internal server error")
