"""
Flows — diagrammed processes with per-node detail and an approval lifecycle.

Lifecycle:
    DRAFT ──submit_review──▶ IN_REVIEW ──publish──▶ EFFECTIVE

Only DRAFT flows accept edits. Every save and every transition writes an
immutable FlowVersion whose snapshot is the full flow detail at that
moment (flow header, nodes, duration totals).

FlowNode rows are owned by their flow: a save replaces the whole node set
in one transaction. ``node_id`` is the id shared with the diagram node
(client generated), unique per flow; the integer ``pk`` is internal.
"""

import json

from docflow.core.enums import DEFAULT_DURATION_UNIT, RACI_KEYS, FlowStatus, ShareRole
from docflow.models import db
from docflow.models.base import UUIDModel, iso, new_id, utcnow

# ── Status machine ───────────────────────────────────────────────────────────

FLOW_TRANSITIONS = {
    FlowStatus.DRAFT.value:     [FlowStatus.IN_REVIEW.value],
    FlowStatus.IN_REVIEW.value: [FlowStatus.EFFECTIVE.value],
    FlowStatus.EFFECTIVE.value: [],
}


def validate_flow_transition(old_status, new_status):
    """Return True if Flow status transition is valid."""
    return new_status in FLOW_TRANSITIONS.get(old_status, [])


class Flow(UUIDModel):
    __tablename__ = "flows"

    flow_no = db.Column(db.String(20), nullable=False, unique=True)
    title = db.Column(db.String(300), nullable=False)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    owner_dept_id = db.Column(db.String(64), nullable=True)
    overview = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default=FlowStatus.DRAFT.value, index=True)
    diagram_json = db.Column(db.Text, nullable=False, default="")
    latest_version_id = db.Column(db.String(36), nullable=True)

    nodes = db.relationship(
        "FlowNode", backref="flow", lazy="dynamic", cascade="all, delete-orphan",
    )
    versions = db.relationship(
        "FlowVersion", backref="flow", lazy="dynamic", cascade="all, delete-orphan",
    )
    shares = db.relationship(
        "FlowShare", backref="flow", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def is_editable(self) -> bool:
        return self.status == FlowStatus.DRAFT.value

    def to_dict(self):
        return {
            "id": self.id,
            "flow_no": self.flow_no,
            "title": self.title,
            "owner_id": self.owner_id,
            "owner_dept_id": self.owner_dept_id,
            "overview": self.overview or "",
            "status": self.status,
            "diagram_json": self.diagram_json or "",
            "latest_version_id": self.latest_version_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class FlowNode(db.Model):
    __tablename__ = "flow_nodes"

    pk = db.Column(db.Integer, primary_key=True, autoincrement=True)
    node_id = db.Column(db.String(64), nullable=False)
    flow_id = db.Column(
        db.String(36), db.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    node_no = db.Column(db.String(20), nullable=False, default="")
    name = db.Column(db.String(300), nullable=False)
    intro = db.Column(db.Text, default="")
    exec_form = db.Column(db.String(30), nullable=False)
    duration_min = db.Column(db.Float, nullable=True)
    duration_max = db.Column(db.Float, nullable=True)
    duration_unit = db.Column(db.String(10), nullable=False, default=DEFAULT_DURATION_UNIT.value)
    raci_json = db.Column(db.Text, nullable=False, default="{}")
    subtasks_json = db.Column(db.Text, nullable=False, default="[]")
    prereq_text = db.Column(db.Text, default="")
    outputs_text = db.Column(db.Text, default="")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("flow_id", "node_id", name="uq_flow_node_id"),
    )

    @property
    def raci(self) -> dict:
        raw = json.loads(self.raci_json or "{}")
        return {k: raw.get(k) or [] for k in RACI_KEYS}

    @property
    def subtasks(self) -> list:
        return json.loads(self.subtasks_json or "[]")

    def to_dict(self):
        return {
            "id": self.node_id,
            "flow_id": self.flow_id,
            "node_no": self.node_no,
            "name": self.name,
            "intro": self.intro or "",
            "exec_form": self.exec_form,
            "duration_min": self.duration_min,
            "duration_max": self.duration_max,
            "duration_unit": self.duration_unit,
            "raci": self.raci,
            "subtasks": self.subtasks,
            "prereq_text": self.prereq_text or "",
            "outputs_text": self.outputs_text or "",
            "sort_order": self.sort_order,
        }


class FlowVersion(db.Model):
    """Immutable snapshot of a flow at save / transition time."""

    __tablename__ = "flow_versions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    flow_id = db.Column(
        db.String(36), db.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version_no = db.Column(db.Integer, nullable=False)
    snapshot_json = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self, include_snapshot=False):
        d = {
            "id": self.id,
            "flow_id": self.flow_id,
            "version_no": self.version_no,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }
        if include_snapshot:
            d["snapshot"] = json.loads(self.snapshot_json)
        return d


class FlowShare(db.Model):
    __tablename__ = "flow_shares"

    flow_id = db.Column(
        db.String(36), db.ForeignKey("flows.id", ondelete="CASCADE"), primary_key=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    role = db.Column(db.String(10), nullable=False, default=ShareRole.VIEW.value)

    def to_dict(self):
        return {"flow_id": self.flow_id, "user_id": self.user_id, "role": self.role}
