"""Response envelope and standard API errors.

Every JSON response under ``/api/v1`` has the same shape:

    {"data": <payload>, "request_id": "..."}                          success
    {"error": {"code", "message", "fields"?}, "request_id": "..."}    failure

Usage
-----
    from docflow.utils.errors import api_ok, api_error, E

    return api_ok(flow.to_dict(), status=201)
    return api_error(E.NOT_FOUND, "Flow not found")
    return api_error(E.BAD_REQUEST, "Validation failed", fields={"title": "required"})

Service-layer exceptions are mapped once by ``register_error_handlers``.
"""

from __future__ import annotations

import logging
import uuid

from flask import g, has_request_context, jsonify
from werkzeug.exceptions import HTTPException

from docflow.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes carried in ``error.code``."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFLICT = "CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL = "INTERNAL_ERROR"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.BAD_REQUEST: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT: 409,
    E.INVALID_STATE: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNSUPPORTED_MEDIA_TYPE: 415,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}

_STATUS_CODES = {status: code for code, status in _DEFAULT_STATUS.items() if code != E.INVALID_STATE}


def current_request_id() -> str:
    """Request id set by the timing middleware, generated if absent."""
    if has_request_context():
        rid = getattr(g, "request_id", None)
        if not rid:
            rid = g.request_id = uuid.uuid4().hex[:12]
        return rid
    return uuid.uuid4().hex[:12]


def api_ok(data=None, *, status: int = 200):
    """Return a success envelope ``(response, status)``."""
    return jsonify({"data": data, "request_id": current_request_id()}), status


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    fields: dict | None = None,
):
    """Return a standard JSON error envelope.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    fields : dict, optional
        Field name → reason code, for validation failures.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)
    error: dict = {"code": code, "message": message}
    if fields:
        error["fields"] = fields
    return jsonify({"error": error, "request_id": current_request_id()}), http_status


def register_error_handlers(app):
    """Map service exceptions and HTTP errors to the envelope."""

    @app.errorhandler(ValidationError)
    def _validation(exc):
        return api_error(E.BAD_REQUEST, str(exc), fields=exc.details)

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        logger.info("Not found: %s", exc, extra={"request_id": current_request_id()})
        return api_error(E.NOT_FOUND, f"{exc.resource} not found")

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        return api_error(E.CONFLICT, f"{exc.resource} with this {exc.field} already exists",
                         fields={exc.field: "duplicate"})

    @app.errorhandler(InvalidStateError)
    def _invalid_state(exc):
        return api_error(E.INVALID_STATE, str(exc))

    @app.errorhandler(ForbiddenError)
    def _forbidden(exc):
        return api_error(E.FORBIDDEN, str(exc))

    @app.errorhandler(UnauthorizedError)
    def _unauthorized(exc):
        return api_error(E.UNAUTHORIZED, str(exc))

    @app.errorhandler(HTTPException)
    def _http(exc):
        code = _STATUS_CODES.get(exc.code, E.INTERNAL if (exc.code or 500) >= 500 else E.BAD_REQUEST)
        return api_error(code, exc.description or exc.name, status=exc.code)

    @app.errorhandler(Exception)
    def _unhandled(exc):
        logger.error("Unhandled error: %s", exc, exc_info=True,
                     extra={"request_id": current_request_id()})
        return api_error(E.INTERNAL, "internal server error")
