"""
Node Record Synchronizer — keeps diagram nodes and FlowNode records aligned.

The diagram and the node records are two views of the same flow. Any
change arriving from either side (widget drag, connect dialog, raw JSON
editor, detail panel) goes through ``FlowEditor`` so that:

  * every diagram node has a record with the same id (auto-created),
  * a record rename shows up as the node label,
  * deleting a node deletes its record and incident edges together.

Selection is held by node id and the index is looked up on each call;
nothing caches positions into the record list.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field, replace

from docflow.core.enums import DEFAULT_DURATION_UNIT, RACI_KEYS, FlowStatus
from docflow.core.node_rules import node_field_errors
from docflow.editor import diagram as dm
from docflow.editor import widget
from docflow.editor.connect import EdgeTypeResolution

logger = logging.getLogger(__name__)


class ReadOnlyEditorError(Exception):
    """Raised when a mutating command reaches a read-only editor."""


class SaveInProgress(RuntimeError):
    """Raised when a save is requested while another one is in flight."""


class EditorValidationError(ValueError):
    """Client-side validation failed; the save request was not sent.

    ``errors`` maps node id → ``{field: reason_code}``.
    """

    def __init__(self, errors: dict[str, dict[str, str]]) -> None:
        self.errors = errors
        super().__init__(f"{len(errors)} node(s) failed validation")


# ═══════════════════════════════════════════════════════════════
# FlowNode record
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FlowNodeRecord:
    """Client-side copy of a FlowNode."""

    id: str
    node_no: str = ""
    name: str = ""
    intro: str = ""
    exec_form: str | None = None
    duration_min: float | None = None
    duration_max: float | None = None
    duration_unit: str = DEFAULT_DURATION_UNIT.value
    raci: dict[str, list[str]] = field(default_factory=dict)
    subtasks: list[str] = field(default_factory=list)
    prereq_text: str = ""
    outputs_text: str = ""
    sort_order: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> FlowNodeRecord:
        """Build from an API node dict, tolerating missing or odd fields."""
        raci = data.get("raci")
        if isinstance(raci, str):
            try:
                raci = json.loads(raci)
            except ValueError:
                raci = {}
        if not isinstance(raci, dict):
            raci = {}
        raci = {
            k: [str(v) for v in raci[k]]
            for k in RACI_KEYS
            if isinstance(raci.get(k), list) and raci[k]
        }
        subtasks = data.get("subtasks")
        if not isinstance(subtasks, list):
            subtasks = []
        return cls(
            id=str(data["id"]),
            node_no=str(data.get("node_no") or ""),
            name=data.get("name") or "",
            intro=data.get("intro") or "",
            exec_form=data.get("exec_form") or None,
            duration_min=data.get("duration_min"),
            duration_max=data.get("duration_max"),
            duration_unit=data.get("duration_unit") or DEFAULT_DURATION_UNIT.value,
            raci=raci,
            subtasks=[str(s) for s in subtasks],
            prereq_text=data.get("prereq_text") or "",
            outputs_text=data.get("outputs_text") or "",
            sort_order=int(data.get("sort_order") or 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def default_record(node_id: str, name: str, position: int) -> FlowNodeRecord:
    """Record auto-created for a diagram node; ``position`` is 0-based."""
    return FlowNodeRecord(
        id=node_id,
        node_no=str(position + 1),
        name=name,
        sort_order=position,
    )


def reconcile_records(records: list[FlowNodeRecord], diagram: dm.Diagram) -> list[FlowNodeRecord]:
    """Append a default record for each diagram node that has none.

    Numbering continues after the existing records in diagram order.
    Idempotent: a second call with the same diagram adds nothing.
    """
    known = {r.id for r in records}
    missing = [n for n in diagram.nodes if n.id not in known]
    if not missing:
        return records
    base = len(records)
    added = [default_record(n.id, n.label, base + i) for i, n in enumerate(missing)]
    logger.debug("Reconciled %d new node record(s)", len(added))
    return records + added


# ═══════════════════════════════════════════════════════════════
# Editor
# ═══════════════════════════════════════════════════════════════


class FlowEditor:
    """Editing session for one flow.

    Args:
        flow: flow header fields (``id``, ``title``, ``overview``,
              ``owner_dept_id``, ``status``).
        records: node records in display order.
        diagram: the current diagram.
        editable: False for the read view; mutating commands then raise
                  ReadOnlyEditorError and widget events are ignored.
    """

    def __init__(
        self,
        flow: dict | None = None,
        records: list[FlowNodeRecord] | None = None,
        diagram: dm.Diagram | None = None,
        editable: bool = True,
    ) -> None:
        self.flow = dict(flow or {})
        self.diagram = diagram or dm.EMPTY_DIAGRAM
        self.records = reconcile_records(list(records or []), self.diagram)
        self.selected_id: str | None = None
        self.editable = editable
        self.saving = False
        self.connect = EdgeTypeResolution(
            get_diagram=lambda: self.diagram,
            on_change=self.apply_diagram,
            editable=editable,
        )

    @classmethod
    def from_detail(cls, detail: dict, editable: bool | None = None) -> FlowEditor:
        """Load a ``GET /flows/{id}`` payload.

        When ``editable`` is not given the editor is editable only for
        DRAFT flows.
        """
        flow = detail.get("flow") or {}
        if editable is None:
            editable = flow.get("status") == FlowStatus.DRAFT.value
        records = [FlowNodeRecord.from_dict(n) for n in detail.get("nodes") or []]
        return cls(
            flow=flow,
            records=records,
            diagram=dm.parse(flow.get("diagram_json")),
            editable=editable,
        )

    def _require_editable(self) -> None:
        if not self.editable:
            raise ReadOnlyEditorError("flow is not editable")

    # ── Diagram side ─────────────────────────────────────────────────────

    def apply_diagram(self, diagram: dm.Diagram) -> None:
        """Accept a new diagram (widget, connect dialog) and reconcile."""
        self._require_editable()
        self.diagram = diagram
        self.records = reconcile_records(self.records, diagram)

    def apply_widget_changes(self, changes: list[dict]) -> None:
        if not self.editable:
            return
        updated = widget.apply_node_changes(self.diagram, changes, self.editable)
        if updated is not self.diagram:
            self.apply_diagram(updated)

    def apply_diagram_json(self, json_text: str) -> bool:
        """Raw JSON editor input; applied only when it looks like a diagram."""
        self._require_editable()
        if not dm.looks_like_diagram(json_text):
            return False
        self.apply_diagram(dm.parse(json_text))
        return True

    def add_node_from_diagram(self) -> FlowNodeRecord:
        """Toolbar add: new diagram node, reconciled into a record, selected."""
        self._require_editable()
        count = len(self.diagram.nodes)
        x, y = widget.add_node_position(count)
        node = dm.DiagramNode(id=self._fresh_node_id(), label=f"New node {count + 1}", x=x, y=y)
        self.apply_diagram(self.diagram.with_node(node))
        self.selected_id = node.id
        return self.get_record(node.id)

    def view(self) -> widget.WidgetView:
        return widget.render(self.diagram, self.selected_id, self.editable)

    # ── Record side ──────────────────────────────────────────────────────

    def get_record(self, node_id: str) -> FlowNodeRecord | None:
        for record in self.records:
            if record.id == node_id:
                return record
        return None

    def update_record(self, record: FlowNodeRecord) -> None:
        """Replace a record by id and mirror a non-empty name onto the label."""
        self._require_editable()
        self.records = [record if r.id == record.id else r for r in self.records]
        if record.name and self.diagram.has_node(record.id):
            self.diagram = self.diagram.relabel_node(record.id, record.name)

    def rename(self, node_id: str, name: str) -> None:
        record = self.get_record(node_id)
        if record is not None:
            self.update_record(replace(record, name=name))

    def add_node_from_panel(self) -> FlowNodeRecord:
        """Panel add: new record plus a matching diagram node, selected."""
        self._require_editable()
        count = len(self.records)
        node_id = self._fresh_node_id()
        name = f"New node {count + 1}"
        record = default_record(node_id, name, count)
        x, y = widget.add_node_position(len(self.diagram.nodes))
        self.records = self.records + [record]
        self.diagram = self.diagram.with_node(dm.DiagramNode(id=node_id, label=name, x=x, y=y))
        self.selected_id = node_id
        return record

    def delete_selected(self) -> None:
        """Remove the selected record, its diagram node and incident edges."""
        self._require_editable()
        node_id = self.selected_id
        if node_id is None:
            return
        self.connect.cancel()
        self.records = [r for r in self.records if r.id != node_id]
        self.diagram = self.diagram.without_node(node_id)
        self.selected_id = None

    def _fresh_node_id(self) -> str:
        taken = set(self.diagram.node_ids()) | {r.id for r in self.records}
        while True:
            node_id = f"node-{uuid.uuid4().hex[:10]}"
            if node_id not in taken:
                return node_id

    # ── Selection ────────────────────────────────────────────────────────

    def select(self, node_id: str | None) -> None:
        if node_id is None or self.get_record(node_id) is not None:
            self.selected_id = node_id

    @property
    def selected(self) -> FlowNodeRecord | None:
        return self.get_record(self.selected_id) if self.selected_id else None

    @property
    def selected_index(self) -> int:
        for i, record in enumerate(self.records):
            if record.id == self.selected_id:
                return i
        return -1

    def select_previous(self) -> None:
        index = self.selected_index
        if index > 0:
            self.selected_id = self.records[index - 1].id

    def select_next(self) -> None:
        index = self.selected_index
        if 0 <= index < len(self.records) - 1:
            self.selected_id = self.records[index + 1].id

    @property
    def has_previous(self) -> bool:
        return self.selected_index > 0

    @property
    def has_next(self) -> bool:
        index = self.selected_index
        return 0 <= index < len(self.records) - 1

    @property
    def progress(self) -> str:
        """Navigation footer text, e.g. ``"2 / 5"``; empty without a selection."""
        index = self.selected_index
        if index < 0:
            return ""
        return f"{index + 1} / {len(self.records)}"

    # ── Save ─────────────────────────────────────────────────────────────

    def validation_errors(self) -> dict[str, dict[str, str]]:
        errors = {}
        for record in self.records:
            problems = node_field_errors(record.to_dict())
            if problems:
                errors[record.id] = problems
        return errors

    def to_payload(self) -> dict:
        """Body for ``PUT /flows/{id}``: header fields, diagram and all nodes."""
        nodes = []
        for i, record in enumerate(self.records):
            node = record.to_dict()
            node["sort_order"] = i
            nodes.append(node)
        return {
            "title": self.flow.get("title", ""),
            "owner_dept_id": self.flow.get("owner_dept_id"),
            "overview": self.flow.get("overview", ""),
            "diagram_json": dm.serialize(self.diagram),
            "nodes": nodes,
        }

    def save(self, client) -> dict:
        """Validate, then PUT the flow through ``client``; one save at a time.

        Reloads diagram and records from the server response so server-side
        normalization wins. The selection is kept when its node survives.
        """
        self._require_editable()
        if self.saving:
            raise SaveInProgress("a save is already in progress")
        errors = self.validation_errors()
        if errors:
            raise EditorValidationError(errors)

        self.saving = True
        try:
            detail = client.update_flow(self.flow["id"], self.to_payload())
        finally:
            self.saving = False

        selected = self.selected_id
        flow = detail.get("flow") or {}
        self.flow = flow
        self.diagram = dm.parse(flow.get("diagram_json"))
        self.records = reconcile_records(
            [FlowNodeRecord.from_dict(n) for n in detail.get("nodes") or []], self.diagram,
        )
        self.selected_id = selected if self.get_record(selected or "") else None
        logger.info("Flow %s saved (%d nodes)", flow.get("id"), len(self.records))
        return detail
