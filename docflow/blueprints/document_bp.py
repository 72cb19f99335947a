"""
Documents Blueprint.

Endpoints:
    GET  /api/v1/docs                   — documents visible to the caller
    POST /api/v1/docs                   — create (first version written)
    GET  /api/v1/docs/<id>              — {document, content}
    PUT  /api/v1/docs/<id>              — update (new version written)
    GET  /api/v1/docs/<id>/versions     — version history, newest first
    POST /api/v1/docs/<id>/shares       — share with a user (VIEW | EDIT)
    GET  /api/v1/docs/<id>/nodes        — workflow nodes of a document
    POST /api/v1/docs/<id>/nodes        — create workflow node
    GET  /api/v1/nodes/<node_id>        — one workflow node
    PUT  /api/v1/nodes/<node_id>        — update workflow node

Layer contract:
    - No ORM calls here; document_service owns queries and commits.
    - Service exceptions are turned into envelopes by the app error handlers.
"""

import logging

from flask import Blueprint

from docflow.auth import current_user, require_auth
from docflow.services import document_service
from docflow.utils.errors import api_ok
from docflow.utils.helpers import json_body

logger = logging.getLogger(__name__)

document_bp = Blueprint("documents", __name__, url_prefix="/api/v1")


@document_bp.route("/docs", methods=["GET"])
@require_auth
def list_documents():
    docs = document_service.list_documents(current_user())
    return api_ok([d.to_dict() for d in docs])


@document_bp.route("/docs", methods=["POST"])
@require_auth
def create_document():
    """Body (JSON): title (required), content, visibility (PRIVATE|PUBLIC|SHARED)."""
    data = json_body()
    doc = document_service.create_document(
        current_user(), data.get("title"), data.get("content") or "", data.get("visibility"),
    )
    return api_ok(doc.to_dict(), status=201)


@document_bp.route("/docs/<doc_id>", methods=["GET"])
@require_auth
def get_document(doc_id):
    return api_ok(document_service.get_document_detail(doc_id, current_user()))


@document_bp.route("/docs/<doc_id>", methods=["PUT"])
@require_auth
def update_document(doc_id):
    data = json_body()
    doc = document_service.update_document(
        doc_id, current_user(), data.get("title"), data.get("content") or "", data.get("visibility"),
    )
    return api_ok(doc.to_dict())


@document_bp.route("/docs/<doc_id>/versions", methods=["GET"])
@require_auth
def list_document_versions(doc_id):
    versions = document_service.list_versions(doc_id, current_user())
    return api_ok([v.to_dict() for v in versions])


@document_bp.route("/docs/<doc_id>/shares", methods=["POST"])
@require_auth
def share_document(doc_id):
    """Body (JSON): user_id (required), role (VIEW | EDIT, default VIEW)."""
    data = json_body()
    share = document_service.share_document(
        doc_id, current_user(), data.get("user_id"), data.get("role") or "VIEW",
    )
    return api_ok(share.to_dict(), status=201)


# ── Workflow nodes ────────────────────────────────────────────────────────────


@document_bp.route("/docs/<doc_id>/nodes", methods=["GET"])
@require_auth
def list_workflow_nodes(doc_id):
    nodes = document_service.list_workflow_nodes(doc_id, current_user())
    return api_ok([n.to_dict() for n in nodes])


@document_bp.route("/docs/<doc_id>/nodes", methods=["POST"])
@require_auth
def create_workflow_node(doc_id):
    """Body (JSON): name, exec_form (required); description, preconditions,
    outputs, duration_min/max/unit, raci, subtasks, diagram_json (optional)."""
    node = document_service.create_workflow_node(doc_id, current_user(), json_body())
    return api_ok(node.to_dict(), status=201)


@document_bp.route("/nodes/<node_id>", methods=["GET"])
@require_auth
def get_workflow_node(node_id):
    return api_ok(document_service.get_workflow_node(node_id, current_user()).to_dict())


@document_bp.route("/nodes/<node_id>", methods=["PUT"])
@require_auth
def update_workflow_node(node_id):
    node = document_service.update_workflow_node(node_id, current_user(), json_body())
    return api_ok(node.to_dict())
