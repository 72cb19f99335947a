"""
Documents — versioned text with visibility scoping.

Visibility:
    PRIVATE — owner only
    PUBLIC  — every authenticated user can read
    SHARED  — owner plus users listed in document_shares (VIEW or EDIT)

Content lives in DocumentVersion rows; every create/update appends a
version and moves ``latest_version_id``. Versions are never updated.

WorkflowNode is a standalone process step attached to a document (the
lighter sibling of FlowNode: no ordering, its own small diagram).
"""

import json

from docflow.core.enums import DEFAULT_DURATION_UNIT, RACI_KEYS, ShareRole, Visibility
from docflow.models import db
from docflow.models.base import UUIDModel, iso, new_id, utcnow


class Document(UUIDModel):
    __tablename__ = "documents"

    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    visibility = db.Column(db.String(20), nullable=False, default=Visibility.PRIVATE.value)
    latest_version_id = db.Column(db.String(36), nullable=True)

    versions = db.relationship(
        "DocumentVersion", backref="document", lazy="dynamic", cascade="all, delete-orphan",
    )
    shares = db.relationship(
        "DocumentShare", backref="document", lazy="dynamic", cascade="all, delete-orphan",
    )
    nodes = db.relationship(
        "WorkflowNode", backref="document", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "visibility": self.visibility,
            "latest_version_id": self.latest_version_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class DocumentVersion(db.Model):
    """Immutable content snapshot."""

    __tablename__ = "document_versions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    document_id = db.Column(
        db.String(36), db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version_no = db.Column(db.Integer, nullable=False)
    content = db.Column(db.Text, nullable=False, default="")
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "document_id": self.document_id,
            "version_no": self.version_no,
            "content": self.content,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }


class DocumentShare(db.Model):
    __tablename__ = "document_shares"

    document_id = db.Column(
        db.String(36), db.ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    role = db.Column(db.String(10), nullable=False, default=ShareRole.VIEW.value)

    def to_dict(self):
        return {"document_id": self.document_id, "user_id": self.user_id, "role": self.role}


def _empty_raci() -> dict:
    return {k: [] for k in RACI_KEYS}


class WorkflowNode(UUIDModel):
    __tablename__ = "workflow_nodes"

    document_id = db.Column(
        db.String(36), db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    exec_form = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text, default="")
    preconditions = db.Column(db.Text, default="")
    outputs = db.Column(db.Text, default="")
    duration_min = db.Column(db.Float, nullable=True)
    duration_max = db.Column(db.Float, nullable=True)
    duration_unit = db.Column(db.String(10), nullable=False, default=DEFAULT_DURATION_UNIT.value)
    raci_json = db.Column(db.Text, nullable=False, default="{}")
    subtasks_json = db.Column(db.Text, nullable=False, default="[]")
    diagram_json = db.Column(db.Text, nullable=False, default='{"nodes":[],"edges":[]}')

    def to_dict(self):
        raci = _empty_raci()
        raci.update(json.loads(self.raci_json or "{}"))
        return {
            "id": self.id,
            "document_id": self.document_id,
            "name": self.name,
            "exec_form": self.exec_form,
            "description": self.description or "",
            "preconditions": self.preconditions or "",
            "outputs": self.outputs or "",
            "duration_min": self.duration_min,
            "duration_max": self.duration_max,
            "duration_unit": self.duration_unit,
            "raci": raci,
            "subtasks": json.loads(self.subtasks_json or "[]"),
            "diagram_json": json.loads(self.diagram_json or "{}"),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
