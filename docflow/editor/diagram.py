"""
Diagram Model — canonical representation of a flow diagram.

A Diagram is an immutable value: every editing helper returns a new
Diagram and never mutates the receiver. The persisted form is a single
JSON string stored on the Flow (``diagram_json``):

    {"nodes": [{"id", "label", "x", "y"}, ...],
     "edges": [{"id", "source", "target", "type", "label"?}, ...]}

Parsing is deliberately forgiving: the JSON comes back from the network
and may be empty, truncated, or written by an older client. Anything
that cannot be understood degrades to an empty diagram (or the offending
entry is skipped) instead of raising.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum

logger = logging.getLogger(__name__)


class EdgeType(str, Enum):
    """Relationship carried by a directed edge."""

    SEQUENTIAL = "SEQUENTIAL"
    CONDITIONAL = "CONDITIONAL"
    PARALLEL = "PARALLEL"


# Short names written by earlier clients.
_LEGACY_EDGE_TYPES = {
    "SEQ": EdgeType.SEQUENTIAL,
    "COND": EdgeType.CONDITIONAL,
}


def coerce_edge_type(raw) -> EdgeType:
    """Map a network value to an EdgeType, falling back to SEQUENTIAL."""
    if isinstance(raw, EdgeType):
        return raw
    if isinstance(raw, str):
        value = raw.strip().upper()
        if value in _LEGACY_EDGE_TYPES:
            return _LEGACY_EDGE_TYPES[value]
        try:
            return EdgeType(value)
        except ValueError:
            pass
    logger.debug("Unknown edge type %r, treating as SEQUENTIAL", raw)
    return EdgeType.SEQUENTIAL


# ═══════════════════════════════════════════════════════════════
# Value types
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DiagramNode:
    id: str
    label: str = ""
    x: float = 0
    y: float = 0

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class DiagramEdge:
    id: str
    source: str
    target: str
    type: EdgeType = EdgeType.SEQUENTIAL
    label: str = ""

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
        }
        if self.label:
            d["label"] = self.label
        return d


@dataclass(frozen=True)
class Diagram:
    """Ordered nodes and edges. Insertion order is preserved everywhere."""

    nodes: tuple[DiagramNode, ...] = field(default_factory=tuple)
    edges: tuple[DiagramEdge, ...] = field(default_factory=tuple)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> DiagramNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def edges_of(self, node_id: str) -> list[DiagramEdge]:
        """Edges touching ``node_id`` as source or target."""
        return [e for e in self.edges if node_id in (e.source, e.target)]

    # ── Editing helpers (return new diagrams) ────────────────────────────

    def with_node(self, node: DiagramNode) -> Diagram:
        return replace(self, nodes=self.nodes + (node,))

    def with_edge(self, edge: DiagramEdge) -> Diagram:
        return replace(self, edges=self.edges + (edge,))

    def without_node(self, node_id: str) -> Diagram:
        """Remove a node and cascade-delete every edge incident to it."""
        return Diagram(
            nodes=tuple(n for n in self.nodes if n.id != node_id),
            edges=tuple(e for e in self.edges if node_id not in (e.source, e.target)),
        )

    def move_node(self, node_id: str, x: float, y: float) -> Diagram:
        return replace(self, nodes=tuple(
            replace(n, x=x, y=y) if n.id == node_id else n for n in self.nodes
        ))

    def relabel_node(self, node_id: str, label: str) -> Diagram:
        return replace(self, nodes=tuple(
            replace(n, label=label) if n.id == node_id else n for n in self.nodes
        ))

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


EMPTY_DIAGRAM = Diagram()


# ═══════════════════════════════════════════════════════════════
# Parse / serialize
# ═══════════════════════════════════════════════════════════════


def _number(value, default: float = 0) -> float:
    # bool is an int subclass; a stray true/false is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _parse_node(raw) -> DiagramNode | None:
    if not isinstance(raw, dict):
        return None
    node_id = raw.get("id")
    if not isinstance(node_id, str) or not node_id:
        return None
    label = raw.get("label")
    if not isinstance(label, str):
        # older clients nested the label under data
        data = raw.get("data")
        label = data.get("label") if isinstance(data, dict) else None
    position = raw.get("position") if isinstance(raw.get("position"), dict) else raw
    return DiagramNode(
        id=node_id,
        label=label if isinstance(label, str) else "",
        x=_number(position.get("x")),
        y=_number(position.get("y")),
    )


def _parse_edge(raw) -> DiagramEdge | None:
    if not isinstance(raw, dict):
        return None
    edge_id, source, target = raw.get("id"), raw.get("source"), raw.get("target")
    if not all(isinstance(v, str) and v for v in (edge_id, source, target)):
        return None
    label = raw.get("label")
    return DiagramEdge(
        id=edge_id,
        source=source,
        target=target,
        type=coerce_edge_type(raw.get("type")),
        label=label if isinstance(label, str) else "",
    )


def _loads(json_text: str):
    # NaN and Infinity are not JSON; they become None and fall back like any bad coordinate
    return json.loads(json_text, parse_constant=lambda _name: None)


def parse(json_text: str | None) -> Diagram:
    """Parse persisted diagram JSON.

    Never raises. Empty, malformed or non-object input yields an empty
    diagram; node and edge entries that are not objects or lack ids are
    skipped individually.
    """
    if not json_text or not json_text.strip():
        return EMPTY_DIAGRAM
    try:
        raw = _loads(json_text)
    except (TypeError, ValueError, RecursionError):
        logger.warning("Discarding malformed diagram JSON (%d chars)", len(json_text))
        return EMPTY_DIAGRAM
    if not isinstance(raw, dict):
        return EMPTY_DIAGRAM

    raw_nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    raw_edges = raw.get("edges") if isinstance(raw.get("edges"), list) else []
    nodes = tuple(n for n in map(_parse_node, raw_nodes) if n is not None)
    edges = tuple(e for e in map(_parse_edge, raw_edges) if e is not None)
    return Diagram(nodes=nodes, edges=edges)


def serialize(diagram: Diagram) -> str:
    """Serialize to canonical JSON; an empty diagram serializes to ``""``."""
    if diagram.is_empty:
        return ""
    return json.dumps(diagram.to_dict(), ensure_ascii=False, separators=(",", ":"))


def looks_like_diagram(json_text: str) -> bool:
    """True when the text is an object carrying ``nodes`` and ``edges`` lists.

    Used to gate the raw JSON editor: text that fails this check is not
    applied, so a half-typed edit never wipes the diagram.
    """
    try:
        raw = _loads(json_text)
    except (TypeError, ValueError, RecursionError):
        return False
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("nodes"), list)
        and isinstance(raw.get("edges"), list)
    )


# ═══════════════════════════════════════════════════════════════
# Structural checks
# ═══════════════════════════════════════════════════════════════


def structural_problems(diagram: Diagram) -> dict[str, str]:
    """Return ``{location: reason_code}`` for structural defects.

    Reason codes: ``duplicate_node_id``, ``duplicate_edge_id``,
    ``dangling_edge``, ``self_loop``. An empty dict means the diagram is
    well formed. Locations look like ``nodes[2]`` / ``edges[0]``.
    """
    problems: dict[str, str] = {}

    seen_nodes: set[str] = set()
    for i, node in enumerate(diagram.nodes):
        if node.id in seen_nodes:
            problems[f"nodes[{i}]"] = "duplicate_node_id"
        seen_nodes.add(node.id)

    seen_edges: set[str] = set()
    for i, edge in enumerate(diagram.edges):
        key = f"edges[{i}]"
        if edge.id in seen_edges:
            problems[key] = "duplicate_edge_id"
        elif edge.source not in seen_nodes or edge.target not in seen_nodes:
            problems[key] = "dangling_edge"
        elif edge.source == edge.target:
            problems[key] = "self_loop"
        seen_edges.add(edge.id)

    return problems
