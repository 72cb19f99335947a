"""
Edge-Type Resolution Flow — connect two nodes, then pick the edge type.

States::

    IDLE ──begin(source, target)──▶ PENDING
    PENDING ──confirm()──▶ IDLE   (edge appended, on_change emitted)
    PENDING ──cancel()───▶ IDLE   (no mutation)

A connection gesture never creates an edge directly; the user must pick
SEQUENTIAL / CONDITIONAL / PARALLEL first. A label is only kept for
CONDITIONAL edges.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from docflow.editor.diagram import Diagram, DiagramEdge, EdgeType

logger = logging.getLogger(__name__)


class ConnectState(str, Enum):
    IDLE = "IDLE"
    PENDING = "PENDING"


class ConnectionNotAllowed(Exception):
    """Raised when a connection gesture arrives in read-only mode."""


class InvalidConnection(ValueError):
    """Raised for a connection the diagram cannot accept (missing endpoint, self-loop)."""


@dataclass(frozen=True)
class PendingConnection:
    source: str
    target: str


def next_edge_id(diagram: Diagram, source: str, target: str) -> str:
    """``e-{source}-{target}-{n}`` with the smallest n not already taken."""
    taken = {e.id for e in diagram.edges}
    n = 1
    while f"e-{source}-{target}-{n}" in taken:
        n += 1
    return f"e-{source}-{target}-{n}"


class EdgeTypeResolution:
    """Connect-then-pick-type dialog state.

    Args:
        get_diagram: returns the diagram current at confirm time.
        on_change: receives the updated diagram after a confirmed edge.
        editable: read-only editors reject every gesture.
    """

    def __init__(
        self,
        get_diagram: Callable[[], Diagram],
        on_change: Callable[[Diagram], None],
        editable: bool = True,
    ) -> None:
        self._get_diagram = get_diagram
        self._on_change = on_change
        self.editable = editable
        self.pending: PendingConnection | None = None
        self.edge_type = EdgeType.SEQUENTIAL
        self.label = ""

    @property
    def state(self) -> ConnectState:
        return ConnectState.PENDING if self.pending else ConnectState.IDLE

    def begin(self, source: str | None, target: str | None) -> PendingConnection:
        if not self.editable:
            raise ConnectionNotAllowed("diagram is read-only")
        if not source or not target:
            raise InvalidConnection("connection needs both a source and a target")
        diagram = self._get_diagram()
        for endpoint in (source, target):
            if not diagram.has_node(endpoint):
                raise InvalidConnection(f"unknown node {endpoint!r}")
        if source == target:
            raise InvalidConnection("a node cannot connect to itself")

        self.pending = PendingConnection(source, target)
        self.edge_type = EdgeType.SEQUENTIAL
        self.label = ""
        return self.pending

    def choose_type(self, edge_type: EdgeType) -> None:
        self.edge_type = EdgeType(edge_type)

    def set_label(self, text: str) -> None:
        self.label = text or ""

    def confirm(self, edge_type: EdgeType | None = None, label: str | None = None) -> Diagram | None:
        """Append the pending edge and return the new diagram.

        Returns None (and does nothing) when no connection is pending.
        Raises InvalidConnection, and drops the pending connection, when an
        endpoint was deleted after ``begin``.
        """
        if self.pending is None:
            return None
        if edge_type is not None:
            self.choose_type(edge_type)
        if label is not None:
            self.set_label(label)

        diagram = self._get_diagram()
        source, target = self.pending.source, self.pending.target
        if not (diagram.has_node(source) and diagram.has_node(target)):
            self._reset()
            raise InvalidConnection("connection endpoint was removed")
        keep_label = self.edge_type is EdgeType.CONDITIONAL
        edge = DiagramEdge(
            id=next_edge_id(diagram, source, target),
            source=source,
            target=target,
            type=self.edge_type,
            label=self.label.strip() if keep_label else "",
        )
        updated = diagram.with_edge(edge)
        self._reset()
        logger.debug("Edge %s added (%s)", edge.id, edge.type.value)
        self._on_change(updated)
        return updated

    def cancel(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.pending = None
        self.edge_type = EdgeType.SEQUENTIAL
        self.label = ""
