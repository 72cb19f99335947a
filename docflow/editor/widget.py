"""
Diagram View Adapter — projects a Diagram into graph-widget elements.

The widget speaks plain dicts (``id``, ``data``, ``position``, ``style``
...). This module owns the visual mapping (selection highlight, edge
style per type) and the reverse direction: widget change events folded
back into the Diagram.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docflow.editor.diagram import Diagram, DiagramEdge, DiagramNode, EdgeType

EMPTY_STATE_MESSAGE = "No flow diagram yet"

# ── Node styling ─────────────────────────────────────────────────────────────

SELECTED_FILL = "#dbeafe"
SELECTED_BORDER = "2px solid #3b82f6"
DEFAULT_FILL = "#fff"
DEFAULT_BORDER = "1px solid #d6d3d1"

# ── Edge styling (exhaustive over EdgeType) ──────────────────────────────────

EDGE_STYLES: dict[EdgeType, dict] = {
    EdgeType.SEQUENTIAL: {"stroke": "#57534e", "strokeWidth": 1.5},
    EdgeType.CONDITIONAL: {"stroke": "#d97706", "strokeWidth": 1.5, "strokeDasharray": "5 3"},
    EdgeType.PARALLEL: {"stroke": "#2563eb", "strokeWidth": 1.5},
}

EDGE_MARKER = {"type": "arrowclosed"}

# Grid placement for freshly added nodes.
GRID_COLUMNS = 5
GRID_ORIGIN = (100, 100)
GRID_STEP = (180, 120)


def add_node_position(count: int) -> tuple[int, int]:
    """Grid slot for the ``count``-th node (0-based), five per row."""
    col, row = count % GRID_COLUMNS, count // GRID_COLUMNS
    return GRID_ORIGIN[0] + col * GRID_STEP[0], GRID_ORIGIN[1] + row * GRID_STEP[1]


def node_style(is_selected: bool, editable: bool) -> dict:
    return {
        "background": SELECTED_FILL if is_selected else DEFAULT_FILL,
        "border": SELECTED_BORDER if is_selected else DEFAULT_BORDER,
        "fontWeight": 600 if is_selected else 400,
        "cursor": "grab" if editable else "pointer",
    }


def edge_style(edge_type: EdgeType) -> dict:
    return dict(EDGE_STYLES[edge_type])


def edge_label(edge: DiagramEdge) -> str | None:
    """Custom label first, else the type name for non-sequential edges."""
    if edge.label:
        return edge.label
    if edge.type is EdgeType.SEQUENTIAL:
        return None
    return edge.type.value


def to_widget_node(node: DiagramNode, selected_id: str | None, editable: bool) -> dict:
    return {
        "id": node.id,
        "data": {"label": node.label},
        "position": {"x": node.x, "y": node.y},
        "draggable": editable,
        "connectable": editable,
        "style": node_style(node.id == selected_id, editable),
    }


def to_widget_edge(edge: DiagramEdge) -> dict:
    element = {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "style": edge_style(edge.type),
        "markerEnd": dict(EDGE_MARKER),
        "animated": edge.type is EdgeType.PARALLEL,
    }
    label = edge_label(edge)
    if label:
        element["label"] = label
    return element


# ═══════════════════════════════════════════════════════════════
# Widget → Diagram
# ═══════════════════════════════════════════════════════════════


def apply_node_changes(diagram: Diagram, changes: list[dict], editable: bool) -> Diagram:
    """Fold widget node-change events back into the diagram.

    Only ``position`` changes that carry a position are applied, matched
    by id, with coordinates rounded to whole numbers. Dimension, select
    and remove events are ignored here; removal goes through the
    synchronizer so records stay aligned. Read-only mode never mutates.
    """
    if not editable or not changes:
        return diagram

    result = diagram
    for change in changes:
        if change.get("type") != "position":
            continue
        position = change.get("position")
        if not isinstance(position, dict):
            continue
        node_id = change.get("id")
        if not result.has_node(node_id):
            continue
        x, y = position.get("x"), position.get("y")
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            continue
        result = result.move_node(node_id, round(x), round(y))
    return result


# ═══════════════════════════════════════════════════════════════
# Render
# ═══════════════════════════════════════════════════════════════


@dataclass
class WidgetView:
    """Everything the graph widget needs for one render."""

    nodes: list[dict] = field(default_factory=list)
    edges: list[dict] = field(default_factory=list)
    interactive: bool = False
    empty_message: str | None = None

    @property
    def is_empty_state(self) -> bool:
        return self.empty_message is not None


def render(diagram: Diagram, selected_id: str | None = None, editable: bool = False) -> WidgetView:
    """Project the diagram for the widget.

    In read-only mode an empty diagram renders the empty-state message
    and nothing else. Change/connect handlers are only attached
    (``interactive``) when editable.
    """
    if not editable and not diagram.nodes:
        return WidgetView(empty_message=EMPTY_STATE_MESSAGE)
    return WidgetView(
        nodes=[to_widget_node(n, selected_id, editable) for n in diagram.nodes],
        edges=[to_widget_edge(e) for e in diagram.edges],
        interactive=editable,
    )
