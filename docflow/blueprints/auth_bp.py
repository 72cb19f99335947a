"""
Auth Blueprint.

Endpoints:
    POST /api/v1/auth/login     — email + password → {token, user}
    POST /api/v1/auth/register  — always 403 (accounts are created by admins)
    GET  /api/v1/auth/me        — current user
"""

import logging

from flask import Blueprint, current_app

from docflow import limiter
from docflow.auth import current_user, require_auth
from docflow.services import user_service
from docflow.utils.errors import E, api_error, api_ok
from docflow.utils.helpers import json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(lambda: current_app.config.get("LOGIN_RATE_LIMIT", "10/minute"))
def login():
    """Exchange credentials for an access token.

    Body (JSON):
        email (str, required)
        password (str, required)
    """
    data = json_body()
    user, token = user_service.authenticate(data.get("email"), data.get("password"))
    return api_ok({"token": token, "user": user.to_dict()})


@auth_bp.route("/register", methods=["POST"])
def register():
    return api_error(E.FORBIDDEN, "Self-registration is disabled; ask an administrator")


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = user_service.get_user(current_user().id)
    return api_ok(user.to_dict())
