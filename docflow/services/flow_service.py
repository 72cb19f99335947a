"""
Flow Service — flow CRUD, node-set replacement, lifecycle and versions.

Lifecycle (see ``docflow.models.flow.FLOW_TRANSITIONS``):

    DRAFT ──submit_review──▶ IN_REVIEW ──publish──▶ EFFECTIVE

Only DRAFT flows accept ``update_flow``. Every successful update and every
transition appends a FlowVersion holding the full flow detail as JSON.

Access (ADMIN bypasses all of them):
    read        — owner, share holders, anyone once EFFECTIVE
    edit        — owner, EDIT share holders
    transition  — owner
"""

import json
import logging

from sqlalchemy import delete, func, or_, select

from docflow.core.enums import (
    DAYS_PER_UNIT,
    DEFAULT_DURATION_UNIT,
    RACI_KEYS,
    DurationUnit,
    FlowStatus,
    ShareRole,
    enum_values,
)
from docflow.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from docflow.core.node_rules import node_field_errors
from docflow.editor import diagram as dm
from docflow.models import db
from docflow.models.auth import User
from docflow.models.base import new_id
from docflow.models.flow import Flow, FlowNode, FlowShare, FlowVersion, validate_flow_transition
from docflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

_SHARE_ROLES = enum_values(ShareRole)
FLOW_NO_PREFIX = "FL-"


# ═══════════════════════════════════════════════════════════════
# Access
# ═══════════════════════════════════════════════════════════════


def _share_for(flow: Flow, user_id: str) -> FlowShare | None:
    return db.session.get(FlowShare, (flow.id, user_id))


def can_read(flow: Flow, user) -> bool:
    if user.is_admin or flow.owner_id == user.id:
        return True
    if flow.status == FlowStatus.EFFECTIVE.value:
        return True
    return _share_for(flow, user.id) is not None


def can_edit(flow: Flow, user) -> bool:
    if user.is_admin or flow.owner_id == user.id:
        return True
    share = _share_for(flow, user.id)
    return share is not None and share.role == ShareRole.EDIT.value


def _get_flow(flow_id: str) -> Flow:
    flow = db.session.get(Flow, flow_id)
    if not flow:
        raise NotFoundError(resource="Flow", resource_id=flow_id)
    return flow


def get_readable(flow_id: str, user) -> Flow:
    flow = _get_flow(flow_id)
    if not can_read(flow, user):
        raise ForbiddenError("No read access to this flow")
    return flow


# ═══════════════════════════════════════════════════════════════
# Detail & totals
# ═══════════════════════════════════════════════════════════════


def flow_nodes(flow: Flow) -> list[FlowNode]:
    return list(db.session.execute(
        select(FlowNode)
        .where(FlowNode.flow_id == flow.id)
        .order_by(FlowNode.sort_order, FlowNode.node_no)
    ).scalars())


def to_days(value, unit) -> float:
    try:
        factor = DAYS_PER_UNIT[DurationUnit(unit)]
    except ValueError:
        factor = DAYS_PER_UNIT[DEFAULT_DURATION_UNIT]
    return value * factor


def duration_totals(nodes) -> tuple[float, float]:
    """Sum of node duration bounds converted to days: ``(min_days, max_days)``.

    Nodes without a bound contribute nothing to that side.
    """
    total_min = sum(to_days(n.duration_min, n.duration_unit) for n in nodes if n.duration_min is not None)
    total_max = sum(to_days(n.duration_max, n.duration_unit) for n in nodes if n.duration_max is not None)
    return round(total_min, 4), round(total_max, 4)


def build_detail(flow: Flow) -> dict:
    nodes = flow_nodes(flow)
    total_min, total_max = duration_totals(nodes)
    return {
        "flow": flow.to_dict(),
        "nodes": [n.to_dict() for n in nodes],
        "total_duration_min_days": total_min,
        "total_duration_max_days": total_max,
    }


def get_flow_detail(flow_id: str, user) -> dict:
    return build_detail(get_readable(flow_id, user))


# ═══════════════════════════════════════════════════════════════
# Versions
# ═══════════════════════════════════════════════════════════════


def _write_version(flow: Flow, user_id: str) -> FlowVersion:
    """Append an immutable snapshot and point ``latest_version_id`` at it."""
    db.session.flush()
    next_no = (db.session.execute(
        select(func.max(FlowVersion.version_no)).where(FlowVersion.flow_id == flow.id)
    ).scalar() or 0) + 1
    version_id = new_id()
    flow.latest_version_id = version_id
    snapshot = build_detail(flow)
    version = FlowVersion(
        id=version_id,
        flow_id=flow.id,
        version_no=next_no,
        snapshot_json=json.dumps(snapshot, ensure_ascii=False),
        created_by=user_id,
    )
    db.session.add(version)
    return version


def list_versions(flow_id: str, user) -> list[FlowVersion]:
    """Version metadata, newest first."""
    flow = get_readable(flow_id, user)
    return list(db.session.execute(
        select(FlowVersion)
        .where(FlowVersion.flow_id == flow.id)
        .order_by(FlowVersion.version_no.desc())
    ).scalars())


def get_version(flow_id: str, version_id: str, user) -> FlowVersion:
    flow = get_readable(flow_id, user)
    version = db.session.get(FlowVersion, version_id)
    if version is None or version.flow_id != flow.id:
        raise NotFoundError(resource="FlowVersion", resource_id=version_id)
    return version


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════


def list_flows(user, status: str | None = None) -> list[Flow]:
    """Flows visible to ``user``, most recently updated first."""
    stmt = select(Flow)
    if not user.is_admin:
        stmt = stmt.outerjoin(
            FlowShare, (FlowShare.flow_id == Flow.id) & (FlowShare.user_id == user.id),
        ).where(or_(
            Flow.owner_id == user.id,
            Flow.status == FlowStatus.EFFECTIVE.value,
            FlowShare.user_id.is_not(None),
        ))
    if status:
        stmt = stmt.where(Flow.status == status)
    stmt = stmt.order_by(Flow.updated_at.desc())
    return list(db.session.execute(stmt).scalars().unique())


def _next_flow_no() -> str:
    count = db.session.execute(select(func.count(Flow.id))).scalar() or 0
    n = count + 1
    while db.session.execute(
        select(Flow.id).where(Flow.flow_no == f"{FLOW_NO_PREFIX}{n:04d}")
    ).first():
        n += 1
    return f"{FLOW_NO_PREFIX}{n:04d}"


def create_flow(user, title, overview="", owner_dept_id=None) -> Flow:
    """Create an empty DRAFT flow owned by ``user``."""
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", details={"title": "required"})
    flow = Flow(
        flow_no=_next_flow_no(),
        title=title.strip(),
        owner_id=user.id,
        owner_dept_id=owner_dept_id,
        overview=overview or "",
        status=FlowStatus.DRAFT.value,
        diagram_json="",
    )
    db.session.add(flow)
    commit_or_raise("Flow", "flow_no")
    logger.info("Flow created: %s", flow.flow_no, extra={"flow_id": flow.id, "user_id": user.id})
    return flow


def _validate_diagram(raw, errors: dict) -> str | None:
    """Canonical diagram JSON, or None after recording errors."""
    if raw is None or raw == "":
        return ""
    if not isinstance(raw, str) or not dm.looks_like_diagram(raw):
        errors["diagram_json"] = "invalid"
        return None
    diagram = dm.parse(raw)
    for location, reason in dm.structural_problems(diagram).items():
        errors[f"diagram_json.{location}"] = reason
    return dm.serialize(diagram)


def _validate_nodes(raw, errors: dict) -> list[dict]:
    if not isinstance(raw, list):
        errors["nodes"] = "invalid"
        return []

    cleaned = []
    seen_ids: set[str] = set()
    for i, item in enumerate(raw):
        prefix = f"nodes[{i}]"
        if not isinstance(item, dict):
            errors[prefix] = "invalid"
            continue
        for field_name, reason in node_field_errors(item).items():
            errors[f"{prefix}.{field_name}"] = reason

        node_id = item.get("id") or new_id()
        if not isinstance(node_id, str) or len(node_id) > 64:
            errors[f"{prefix}.id"] = "invalid"
        elif node_id in seen_ids:
            errors[f"{prefix}.id"] = "duplicate"
        seen_ids.add(node_id)

        subtasks = item.get("subtasks") or []
        if not isinstance(subtasks, list) or not all(isinstance(s, str) for s in subtasks):
            errors[f"{prefix}.subtasks"] = "invalid"
            subtasks = []

        raci = item.get("raci") or {}
        sort_order = item.get("sort_order")
        cleaned.append({
            "node_id": node_id,
            "node_no": str(item.get("node_no") or i + 1),
            "name": (item.get("name") or "").strip() if isinstance(item.get("name"), str) else "",
            "intro": item.get("intro") or "",
            "exec_form": item.get("exec_form"),
            "duration_min": item.get("duration_min"),
            "duration_max": item.get("duration_max"),
            "duration_unit": item.get("duration_unit") or DEFAULT_DURATION_UNIT.value,
            "raci_json": json.dumps(
                {k: raci.get(k) or [] for k in RACI_KEYS} if isinstance(raci, dict) else {},
                ensure_ascii=False,
            ),
            "subtasks_json": json.dumps(subtasks, ensure_ascii=False),
            "prereq_text": item.get("prereq_text") or "",
            "outputs_text": item.get("outputs_text") or "",
            "sort_order": sort_order if isinstance(sort_order, int) and not isinstance(sort_order, bool) else i,
        })
    return cleaned


def update_flow(flow_id: str, user, data: dict) -> dict:
    """Save header fields, diagram and (when given) the full node array.

    The node array replaces every stored node of the flow. Omitting
    ``nodes`` leaves them untouched. Validation failures for any field are
    reported together as ``{field_path: reason}``.

    Raises:
        ForbiddenError: caller lacks edit access.
        InvalidStateError: flow is not DRAFT.
        ValidationError: field errors (nothing is written).
    """
    flow = _get_flow(flow_id)
    if not can_edit(flow, user):
        raise ForbiddenError("No edit access to this flow")
    if not flow.is_editable:
        raise InvalidStateError("Flow", flow.status, "edit")

    errors: dict[str, str] = {}
    if "title" in data and (not isinstance(data["title"], str) or not data["title"].strip()):
        errors["title"] = "required"
    diagram_json = _validate_diagram(data.get("diagram_json"), errors) if "diagram_json" in data else None
    nodes = _validate_nodes(data["nodes"], errors) if "nodes" in data else None
    if errors:
        logger.info("Flow update rejected: %d field error(s)", len(errors),
                    extra={"flow_id": flow.id, "user_id": user.id})
        raise ValidationError("Validation failed", details=errors)

    if "title" in data:
        flow.title = data["title"].strip()
    if "overview" in data:
        flow.overview = data.get("overview") or ""
    if "owner_dept_id" in data:
        flow.owner_dept_id = data.get("owner_dept_id")
    if diagram_json is not None:
        flow.diagram_json = diagram_json
    if nodes is not None:
        db.session.execute(delete(FlowNode).where(FlowNode.flow_id == flow.id))
        for fields in nodes:
            db.session.add(FlowNode(flow_id=flow.id, **fields))

    _write_version(flow, user.id)
    commit_or_raise("Flow")
    logger.info("Flow saved (%s nodes)", "unchanged" if nodes is None else len(nodes),
                extra={"flow_id": flow.id, "user_id": user.id})
    return build_detail(flow)


def _transition(flow_id: str, user, target: FlowStatus, action: str) -> dict:
    flow = _get_flow(flow_id)
    if not (user.is_admin or flow.owner_id == user.id):
        raise ForbiddenError(f"Only the owner can {action} this flow")
    if not validate_flow_transition(flow.status, target.value):
        raise InvalidStateError("Flow", flow.status, action)

    old = flow.status
    flow.status = target.value
    _write_version(flow, user.id)
    commit_or_raise("Flow")
    logger.info("Flow %s: %s → %s", action, old, target.value,
                extra={"flow_id": flow.id, "user_id": user.id})
    return build_detail(flow)


def submit_review(flow_id: str, user) -> dict:
    """DRAFT → IN_REVIEW."""
    return _transition(flow_id, user, FlowStatus.IN_REVIEW, "submit for review")


def publish(flow_id: str, user) -> dict:
    """IN_REVIEW → EFFECTIVE."""
    return _transition(flow_id, user, FlowStatus.EFFECTIVE, "publish")


def share_flow(flow_id: str, user, target_user_id, role=ShareRole.VIEW.value) -> FlowShare:
    """Grant (or change) a share. Only the owner or an admin may share."""
    flow = _get_flow(flow_id)
    if not (user.is_admin or flow.owner_id == user.id):
        raise ForbiddenError("Only the owner can share this flow")
    if role not in _SHARE_ROLES:
        raise ValidationError("Invalid share role", details={"role": "invalid_enum"})
    if not target_user_id or db.session.get(User, target_user_id) is None:
        raise ValidationError("Unknown user", details={"user_id": "required"})

    share = _share_for(flow, target_user_id)
    if share is None:
        share = FlowShare(flow_id=flow.id, user_id=target_user_id, role=role)
        db.session.add(share)
    else:
        share.role = role
    commit_or_raise("FlowShare")
    logger.info("Flow shared with %s (%s)", target_user_id, role,
                extra={"flow_id": flow.id, "user_id": user.id})
    return share
