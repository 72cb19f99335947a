"""
JWT Auth Middleware — verifies the bearer token on every protected API call.

Sets on success:
    g.user_id     — token ``sub``
    g.user_email  — token ``email``
    g.user_role   — token ``role`` (ADMIN | USER)

Requests to protected ``/api/v1`` paths without a valid token are answered
with a 401 envelope before any view runs. The client-side session decodes
the same claims without verification for display only; this is the check
that counts.
"""

import logging

import jwt as pyjwt
from flask import g, request

from docflow.services.jwt_service import decode_access_token
from docflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/health",
)


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.user_id = None
        g.user_email = None
        g.user_role = None

        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        if path.startswith(JWT_SKIP_PREFIXES):
            return None

        token = bearer_token()
        if token is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHORIZED, "Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected token: %s", exc, extra={"request_id": getattr(g, "request_id", None)})
            return api_error(E.UNAUTHORIZED, "Invalid token")

        g.user_id = payload.get("sub")
        g.user_email = payload.get("email")
        g.user_role = payload.get("role")
        return None
