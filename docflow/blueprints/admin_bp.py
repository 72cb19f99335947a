"""
Admin Blueprint — account management (ADMIN only).

Endpoints:
    GET  /api/v1/admin/users                          — list users
    POST /api/v1/admin/users                          — create user
    POST /api/v1/admin/users/<id>/reset_password      — set a new password
"""

import logging

from flask import Blueprint

from docflow.auth import require_role
from docflow.core.enums import UserRole
from docflow.services import user_service
from docflow.utils.errors import api_ok
from docflow.utils.helpers import json_body

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.route("/users", methods=["GET"])
@require_role(UserRole.ADMIN.value)
def list_users():
    return api_ok([u.to_dict() for u in user_service.list_users()])


@admin_bp.route("/users", methods=["POST"])
@require_role(UserRole.ADMIN.value)
def create_user():
    """Create an account.

    Body (JSON):
        email (str, required)
        password (str, required): at least 6 characters.
        role (str, optional): ADMIN | USER (default USER).
    """
    data = json_body()
    user = user_service.create_user(data.get("email"), data.get("password"), data.get("role"))
    return api_ok(user.to_dict(), status=201)


@admin_bp.route("/users/<user_id>/reset_password", methods=["POST"])
@require_role(UserRole.ADMIN.value)
def reset_password(user_id):
    """Body (JSON): password (str, required)."""
    data = json_body()
    user = user_service.reset_password(user_id, data.get("password"))
    return api_ok(user.to_dict())
