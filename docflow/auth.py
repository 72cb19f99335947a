"""
DocFlow
Authorization decorators and the current-user accessor.

Authentication itself happens in ``middleware/jwt_auth.py``; by the time a
view runs, ``g.user_id`` / ``g.user_role`` hold verified claims. These
decorators add per-endpoint role checks:

    @admin_bp.route("/admin/users")
    @require_role("ADMIN")
    def list_users(): ...

Role hierarchy: ADMIN > USER
"""

import functools
import logging

from flask import g, request

from docflow.core.enums import UserRole
from docflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ROLE_HIERARCHY = {
    UserRole.ADMIN.value: {UserRole.ADMIN.value, UserRole.USER.value},
    UserRole.USER.value: {UserRole.USER.value},
}


class CurrentUser:
    """Verified identity of the caller, built from token claims."""

    __slots__ = ("id", "email", "role")

    def __init__(self, user_id: str, email: str | None, role: str | None) -> None:
        self.id = user_id
        self.email = email
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def current_user() -> CurrentUser | None:
    user_id = getattr(g, "user_id", None)
    if not user_id:
        return None
    return CurrentUser(user_id, getattr(g, "user_email", None), getattr(g, "user_role", None))


def require_auth(f):
    """Decorator: the JWT middleware must have identified the caller."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not getattr(g, "user_id", None):
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_role("ADMIN")
        def create_user(): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_role = getattr(g, "user_role", None)
            if not getattr(g, "user_id", None) or not user_role:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            allowed = ROLE_HIERARCHY.get(user_role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    user_role, minimum_role, request.path,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator
