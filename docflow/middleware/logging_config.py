"""
Logging setup for the DocFlow API.

Every record emitted while a request is being served is stamped with the
request id and the authenticated user id taken from ``flask.g``, so a
flow save can be traced from the access line to the service log lines.

- Development: one colored line per record, request id and flow/document
  context inline
- Production: one JSON object per record
- Level: ``LOG_LEVEL`` config value, else DEBUG in development, INFO in
  production
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Context attributes promoted from ``extra=`` (or flask.g) into the output.
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "flow_id",
    "document_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


class RequestContextFilter(logging.Filter):
    """Copy ``g.request_id`` / ``g.user_id`` onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            for key in ("request_id", "user_id"):
                if getattr(record, key, None) is None:
                    setattr(record, key, g.get(key))
        return True


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        ctx = _context(record)
        color = self.LEVEL_COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}{clock} {record.levelname:<8}{self.RESET}"]
        if "request_id" in ctx:
            parts.append(f"[{ctx['request_id']}]")
        parts.append(f"{record.name}: {record.getMessage()}")
        tags = " ".join(f"{k}={ctx[k]}" for k in ("flow_id", "document_id") if k in ctx)
        if tags:
            parts.append(f"({tags})")
        if "duration_ms" in ctx:
            parts.append(f"[{ctx['duration_ms']:.0f}ms]")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for this app.

    Replaces existing root handlers so building several apps in one process
    (the test session) leaves exactly one.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        logging.getLevelName(level), "json" if production else "readable")
