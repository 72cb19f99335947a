"""
Flows Blueprint.

Endpoints:
    GET  /api/v1/flows                                  — visible flows (?status=)
    POST /api/v1/flows                                  — create DRAFT flow
    GET  /api/v1/flows/<id>                             — {flow, nodes, totals}
    PUT  /api/v1/flows/<id>                             — save (DRAFT only)
    POST /api/v1/flows/<id>/submit_review               — DRAFT → IN_REVIEW
    POST /api/v1/flows/<id>/publish                     — IN_REVIEW → EFFECTIVE
    GET  /api/v1/flows/<id>/versions                    — version list, newest first
    GET  /api/v1/flows/<id>/versions/<version_id>       — version with snapshot
    POST /api/v1/flows/<id>/shares                      — share with a user

Layer contract:
    - No ORM calls here; flow_service owns queries and commits.
    - Field validation lives in the service so the PUT reports every
      problem (header, diagram, each node) in one ``error.fields`` map.
"""

import logging

from flask import Blueprint, request

from docflow.auth import current_user, require_auth
from docflow.core.enums import FlowStatus, enum_values
from docflow.services import flow_service
from docflow.utils.errors import E, api_error, api_ok
from docflow.utils.helpers import json_body

logger = logging.getLogger(__name__)

flow_bp = Blueprint("flows", __name__, url_prefix="/api/v1")

VALID_STATUSES = enum_values(FlowStatus)


@flow_bp.route("/flows", methods=["GET"])
@require_auth
def list_flows():
    """Query params:
        status (str, optional): DRAFT | IN_REVIEW | EFFECTIVE.
    """
    status = request.args.get("status")
    if status and status not in VALID_STATUSES:
        return api_error(E.BAD_REQUEST, f"Invalid status '{status}'", fields={"status": "invalid_enum"})
    flows = flow_service.list_flows(current_user(), status)
    return api_ok([f.to_dict() for f in flows])


@flow_bp.route("/flows", methods=["POST"])
@require_auth
def create_flow():
    """Body (JSON): title (required), overview, owner_dept_id."""
    data = json_body()
    flow = flow_service.create_flow(
        current_user(), data.get("title"), data.get("overview") or "", data.get("owner_dept_id"),
    )
    return api_ok(flow.to_dict(), status=201)


@flow_bp.route("/flows/<flow_id>", methods=["GET"])
@require_auth
def get_flow(flow_id):
    return api_ok(flow_service.get_flow_detail(flow_id, current_user()))


@flow_bp.route("/flows/<flow_id>", methods=["PUT"])
@require_auth
def update_flow(flow_id):
    """Body (JSON), every key optional:
        title, overview, owner_dept_id,
        diagram_json (str): serialized diagram,
        nodes (list): full node array; replaces all stored nodes.
    """
    detail = flow_service.update_flow(flow_id, current_user(), json_body())
    return api_ok(detail)


@flow_bp.route("/flows/<flow_id>/submit_review", methods=["POST"])
@require_auth
def submit_review(flow_id):
    return api_ok(flow_service.submit_review(flow_id, current_user()))


@flow_bp.route("/flows/<flow_id>/publish", methods=["POST"])
@require_auth
def publish(flow_id):
    return api_ok(flow_service.publish(flow_id, current_user()))


@flow_bp.route("/flows/<flow_id>/versions", methods=["GET"])
@require_auth
def list_versions(flow_id):
    versions = flow_service.list_versions(flow_id, current_user())
    return api_ok([v.to_dict() for v in versions])


@flow_bp.route("/flows/<flow_id>/versions/<version_id>", methods=["GET"])
@require_auth
def get_version(flow_id, version_id):
    version = flow_service.get_version(flow_id, version_id, current_user())
    return api_ok(version.to_dict(include_snapshot=True))


@flow_bp.route("/flows/<flow_id>/shares", methods=["POST"])
@require_auth
def share_flow(flow_id):
    """Body (JSON): user_id (required), role (VIEW | EDIT, default VIEW)."""
    data = json_body()
    share = flow_service.share_flow(flow_id, current_user(), data.get("user_id"), data.get("role") or "VIEW")
    return api_ok(share.to_dict(), status=201)
