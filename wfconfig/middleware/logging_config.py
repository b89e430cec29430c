"""
Logging setup for the configuration studio.

Two output formats share one set of context fields:

    - request fields stamped by middleware/timing.py (method, path, status, ...)
    - editing scope passed via ``extra=`` by the engine and services
      (app_id, instance_id, load_generation, record_count)

Production writes one JSON object per line; development and tests get a
short coloured line with the scope appended as ``[app=1 instance=CFG-001]``.

LOG_LEVEL sets the root level. ENGINE_LOG_LEVEL overrides it for the
``wfconfig.engine`` loggers, which are chatty at DEBUG during drag reorders.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")
SCOPE_FIELDS = ("app_id", "instance_id", "load_generation", "record_count")

ENGINE_LOGGER = "wfconfig.engine"


class RequestIdFilter(logging.Filter):
    """Copy the current request id onto records logged inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None and has_request_context():
            record.request_id = getattr(g, "request_id", None)
        return True


def _context(record: logging.LogRecord, fields) -> dict:
    values = {}
    for key in fields:
        val = getattr(record, key, None)
        if val is not None and val != "":
            values[key] = val
    return values


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context(record, REQUEST_FIELDS))
        scope = _context(record, SCOPE_FIELDS)
        if scope:
            entry["scope"] = scope
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        scope = _context(record, SCOPE_FIELDS)
        if scope:
            tag = " ".join(f"{k.replace('_id', '')}={v}" for k, v in scope.items())
            line += f" [{tag}]"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    return getattr(logging, name.upper(), fallback)


def configure_logging(app):
    """Install a single stderr handler on the root logger for *app*."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level = _level(os.getenv("LOG_LEVEL"), logging.INFO if is_prod else logging.DEBUG)
    engine_level = _level(app.config.get("ENGINE_LOG_LEVEL"), level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    # test suites build many apps; one handler only
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(min(level, engine_level))
    handler.setLevel(min(level, engine_level))

    logging.getLogger(ENGINE_LOGGER).setLevel(engine_level)
    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info(
            "Logging configured: level=%s engine=%s format=%s",
            logging.getLevelName(level), logging.getLevelName(engine_level),
            "json" if is_prod else "readable",
        )
