"""
In-process configuration backend.

Adapts the catalogue and instance-configuration services to the three calls
ConfigSession makes, so an editing session can run inside the same process
as the database (CLI, tests, server-side tree endpoint). Service errors are
translated into BackendError the same way the HTTP gateway translates
transport errors.
"""

import logging
from contextlib import contextmanager

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from wfconfig.core.exceptions import BackendError, ConflictError, NotFoundError
from wfconfig.services import catalog_service, instance_config_service

logger = logging.getLogger(__name__)


class ServiceConfigBackend:
    """Configuration backend that calls the service layer directly.

    Args:
        app: Flask app to push a context for. Optional when the caller is
            already inside an app context.
        updated_by: Audit name used when a payload entry carries none.
    """

    def __init__(self, app=None, updated_by: str | None = None):
        self.app = app
        self._updated_by = updated_by

    @contextmanager
    def _context(self):
        if self.app is not None and not has_app_context():
            with self.app.app_context():
                yield
        else:
            yield

    @property
    def updated_by(self) -> str:
        if self._updated_by:
            return self._updated_by
        if has_app_context():
            return current_app.config.get("WORKFLOW_CONFIG_UPDATED_BY", "system")
        return "system"

    def get_metadata(self, app_id: int) -> dict:
        with self._context():
            try:
                return catalog_service.get_metadata(app_id)
            except NotFoundError as exc:
                raise BackendError(str(exc), status_code=404) from exc
            except SQLAlchemyError as exc:
                logger.exception("Metadata query failed for app %s", app_id)
                raise BackendError("Database error", status_code=500) from exc

    def get_instance_config(self, instance_id: str, app_id: int) -> list[dict]:
        with self._context():
            try:
                return instance_config_service.get_instance_config(instance_id, app_id)
            except SQLAlchemyError as exc:
                logger.exception("Configuration query failed for instance %s", instance_id)
                raise BackendError("Database error", status_code=500) from exc

    def save_or_update_config(self, instance_id: str, app_id: int, payload: list[dict], *, update: bool) -> list[dict]:
        with self._context():
            try:
                return instance_config_service.save_or_update_config(
                    instance_id, app_id, payload, update=update, updated_by=self.updated_by,
                )
            except NotFoundError as exc:
                raise BackendError(str(exc), status_code=404) from exc
            except ConflictError as exc:
                raise BackendError(str(exc), status_code=409) from exc
            except SQLAlchemyError as exc:
                raise BackendError("Database error", status_code=500) from exc
