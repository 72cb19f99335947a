"""
Document Service — versioned documents, sharing, and document workflow nodes.

Access rules (ADMIN bypasses all of them):
    read — owner, any user for PUBLIC, share holders for SHARED
    edit — owner, EDIT share holders for SHARED
A missing document is NotFoundError; an existing one the caller may not
touch is ForbiddenError.
"""

import json
import logging

from sqlalchemy import func, or_, select

from docflow.core.enums import (
    DEFAULT_DURATION_UNIT,
    RACI_KEYS,
    ShareRole,
    Visibility,
    enum_values,
)
from docflow.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from docflow.core.node_rules import node_field_errors
from docflow.models import db
from docflow.models.auth import User
from docflow.models.document import Document, DocumentShare, DocumentVersion, WorkflowNode
from docflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

_VISIBILITIES = enum_values(Visibility)
_SHARE_ROLES = enum_values(ShareRole)


# ═══════════════════════════════════════════════════════════════
# Access
# ═══════════════════════════════════════════════════════════════


def _share_for(doc: Document, user_id: str) -> DocumentShare | None:
    return db.session.get(DocumentShare, (doc.id, user_id))


def can_read(doc: Document, user) -> bool:
    if user.is_admin or doc.owner_id == user.id:
        return True
    if doc.visibility == Visibility.PUBLIC.value:
        return True
    return doc.visibility == Visibility.SHARED.value and _share_for(doc, user.id) is not None


def can_edit(doc: Document, user) -> bool:
    if user.is_admin or doc.owner_id == user.id:
        return True
    if doc.visibility != Visibility.SHARED.value:
        return False
    share = _share_for(doc, user.id)
    return share is not None and share.role == ShareRole.EDIT.value


def _get_document(doc_id: str) -> Document:
    doc = db.session.get(Document, doc_id)
    if not doc:
        raise NotFoundError(resource="Document", resource_id=doc_id)
    return doc


def get_readable(doc_id: str, user) -> Document:
    doc = _get_document(doc_id)
    if not can_read(doc, user):
        raise ForbiddenError("No read access to this document")
    return doc


def get_editable(doc_id: str, user) -> Document:
    doc = _get_document(doc_id)
    if not can_edit(doc, user):
        raise ForbiddenError("No edit access to this document")
    return doc


# ═══════════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════════


def _require_title(title) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", details={"title": "required"})
    return title.strip()


def _append_version(doc: Document, content: str, user_id: str) -> DocumentVersion:
    next_no = (db.session.execute(
        select(func.max(DocumentVersion.version_no)).where(DocumentVersion.document_id == doc.id)
    ).scalar() or 0) + 1
    version = DocumentVersion(
        document_id=doc.id, version_no=next_no, content=content or "", created_by=user_id,
    )
    db.session.add(version)
    db.session.flush()
    doc.latest_version_id = version.id
    return version


def list_documents(user) -> list[Document]:
    """Documents visible to ``user``, most recently updated first."""
    stmt = select(Document)
    if not user.is_admin:
        stmt = stmt.outerjoin(
            DocumentShare,
            (DocumentShare.document_id == Document.id) & (DocumentShare.user_id == user.id),
        ).where(or_(
            Document.owner_id == user.id,
            Document.visibility == Visibility.PUBLIC.value,
            (Document.visibility == Visibility.SHARED.value) & (DocumentShare.user_id.is_not(None)),
        ))
    stmt = stmt.order_by(Document.updated_at.desc())
    return list(db.session.execute(stmt).scalars().unique())


def create_document(user, title, content="", visibility=None) -> Document:
    """Create a document and its first version in one transaction.

    Unknown visibility values fall back to PRIVATE.
    """
    doc = Document(
        owner_id=user.id,
        title=_require_title(title),
        visibility=visibility if visibility in _VISIBILITIES else Visibility.PRIVATE.value,
    )
    db.session.add(doc)
    db.session.flush()
    _append_version(doc, content, user.id)
    commit_or_raise("Document")
    logger.info("Document created", extra={"document_id": doc.id, "user_id": user.id})
    return doc


def get_document_detail(doc_id: str, user) -> dict:
    doc = get_readable(doc_id, user)
    content = ""
    if doc.latest_version_id:
        version = db.session.get(DocumentVersion, doc.latest_version_id)
        content = version.content if version else ""
    return {"document": doc.to_dict(), "content": content}


def update_document(doc_id: str, user, title, content="", visibility=None) -> Document:
    """Update title/visibility and append a new content version."""
    title = _require_title(title)
    doc = get_editable(doc_id, user)
    doc.title = title
    if visibility in _VISIBILITIES:
        doc.visibility = visibility
    _append_version(doc, content, user.id)
    commit_or_raise("Document")
    logger.info("Document updated", extra={"document_id": doc.id, "user_id": user.id})
    return doc


def list_versions(doc_id: str, user) -> list[DocumentVersion]:
    doc = get_readable(doc_id, user)
    return list(db.session.execute(
        select(DocumentVersion)
        .where(DocumentVersion.document_id == doc.id)
        .order_by(DocumentVersion.version_no.desc())
    ).scalars())


def share_document(doc_id: str, user, target_user_id, role=ShareRole.VIEW.value) -> DocumentShare:
    """Grant (or change) a share. Only the owner or an admin may share."""
    doc = _get_document(doc_id)
    if not (user.is_admin or doc.owner_id == user.id):
        raise ForbiddenError("Only the owner can share this document")
    if role not in _SHARE_ROLES:
        raise ValidationError("Invalid share role", details={"role": "invalid_enum"})
    if not target_user_id or db.session.get(User, target_user_id) is None:
        raise ValidationError("Unknown user", details={"user_id": "required"})

    share = _share_for(doc, target_user_id)
    if share is None:
        share = DocumentShare(document_id=doc.id, user_id=target_user_id, role=role)
        db.session.add(share)
    else:
        share.role = role
    commit_or_raise("DocumentShare")
    logger.info("Document shared with %s (%s)", target_user_id, role,
                extra={"document_id": doc.id, "user_id": user.id})
    return share


# ═══════════════════════════════════════════════════════════════
# Document workflow nodes
# ═══════════════════════════════════════════════════════════════


def _normalize_node_input(data: dict) -> dict:
    """Fill defaults the way stored nodes expect them."""
    raci = data.get("raci")
    if raci is None:
        raci = {}
    if isinstance(raci, dict):
        raci = {**{k: [] for k in RACI_KEYS}, **raci}

    subtasks = data.get("subtasks")
    if subtasks is None:
        subtasks = []

    diagram = data.get("diagram_json")
    if not isinstance(diagram, dict):
        diagram = {}
    diagram = {
        "nodes": diagram.get("nodes") if isinstance(diagram.get("nodes"), list) else [],
        "edges": diagram.get("edges") if isinstance(diagram.get("edges"), list) else [],
    }

    return {
        "name": (data.get("name") or "").strip() if isinstance(data.get("name"), str) else data.get("name"),
        "exec_form": data.get("exec_form"),
        "description": data.get("description") or "",
        "preconditions": data.get("preconditions") or "",
        "outputs": data.get("outputs") or "",
        "duration_min": data.get("duration_min"),
        "duration_max": data.get("duration_max"),
        "duration_unit": data.get("duration_unit") or DEFAULT_DURATION_UNIT.value,
        "raci": raci,
        "subtasks": subtasks,
        "diagram_json": diagram,
    }


def _validated_node_input(data: dict) -> dict:
    node = _normalize_node_input(data)
    errors = node_field_errors(node)
    if not isinstance(node["subtasks"], list) or not all(isinstance(s, str) for s in node["subtasks"]):
        errors["subtasks"] = "invalid"
    if errors:
        raise ValidationError("Validation failed", details=errors)
    return node


def _apply_node_fields(node: WorkflowNode, data: dict) -> None:
    node.name = data["name"]
    node.exec_form = data["exec_form"]
    node.description = data["description"]
    node.preconditions = data["preconditions"]
    node.outputs = data["outputs"]
    node.duration_min = data["duration_min"]
    node.duration_max = data["duration_max"]
    node.duration_unit = data["duration_unit"]
    node.raci_json = json.dumps(data["raci"], ensure_ascii=False)
    node.subtasks_json = json.dumps(data["subtasks"], ensure_ascii=False)
    node.diagram_json = json.dumps(data["diagram_json"], ensure_ascii=False)


def list_workflow_nodes(doc_id: str, user) -> list[WorkflowNode]:
    doc = get_readable(doc_id, user)
    return list(db.session.execute(
        select(WorkflowNode).where(WorkflowNode.document_id == doc.id).order_by(WorkflowNode.created_at)
    ).scalars())


def create_workflow_node(doc_id: str, user, data: dict) -> WorkflowNode:
    doc = get_editable(doc_id, user)
    fields = _validated_node_input(data)
    node = WorkflowNode(document_id=doc.id)
    _apply_node_fields(node, fields)
    db.session.add(node)
    commit_or_raise("WorkflowNode")
    logger.info("Workflow node created", extra={"document_id": doc.id, "user_id": user.id})
    return node


def _get_node(node_id: str) -> WorkflowNode:
    node = db.session.get(WorkflowNode, node_id)
    if not node:
        raise NotFoundError(resource="WorkflowNode", resource_id=node_id)
    return node


def get_workflow_node(node_id: str, user) -> WorkflowNode:
    node = _get_node(node_id)
    get_readable(node.document_id, user)
    return node


def update_workflow_node(node_id: str, user, data: dict) -> WorkflowNode:
    node = _get_node(node_id)
    get_editable(node.document_id, user)
    _apply_node_fields(node, _validated_node_input(data))
    commit_or_raise("WorkflowNode")
    return node
