"""
Flow editor core — framework-free model of the diagram editing session.

Modules:
    diagram  — Diagram / DiagramNode / DiagramEdge value types, parse & serialize
    widget   — projection of a Diagram into graph-widget nodes and edges
    connect  — connect-then-pick-type state machine for new edges
    sync     — FlowEditor: keeps diagram nodes and FlowNode records aligned
    panel    — node detail read view, tag inputs, form validation
"""
