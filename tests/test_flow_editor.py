"""
Node Record Synchronizer tests — FlowEditor.

Test blocks:
  1. loading + reconciliation (auto-created records, idempotence)
  2. diagram-side commands (widget, raw JSON, toolbar add, connect)
  3. record-side commands (rename mirrors label, panel add, delete cascade)
  4. selection + navigation
  5. read-only mode
  6. save: validation gate, payload, single in-flight save, reload
  7. a whole editing session from an empty diagram
"""

import json
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from docflow.editor import diagram as dm
from docflow.editor.diagram import DiagramNode, EdgeType
from docflow.editor.sync import (
    EditorValidationError,
    FlowEditor,
    FlowNodeRecord,
    ReadOnlyEditorError,
    SaveInProgress,
    reconcile_records,
)

DIAGRAM_JSON = json.dumps({
    "nodes": [
        {"id": "n1", "label": "Collect", "x": 100, "y": 100},
        {"id": "n2", "label": "Check", "x": 280, "y": 100},
        {"id": "n3", "label": "Sign", "x": 460, "y": 100},
    ],
    "edges": [
        {"id": "e1", "source": "n1", "target": "n2", "type": "SEQUENTIAL"},
        {"id": "e2", "source": "n2", "target": "n3", "type": "CONDITIONAL", "label": "ok"},
    ],
})


def _node(node_id, name, **extra):
    data = {"id": node_id, "name": name, "exec_form": "DOC_REVIEW", "node_no": "1"}
    data.update(extra)
    return data


def _detail(status="DRAFT", nodes=None, diagram_json=DIAGRAM_JSON):
    return {
        "flow": {"id": "f1", "title": "Onboarding", "overview": "", "owner_dept_id": None,
                 "status": status, "diagram_json": diagram_json},
        "nodes": nodes if nodes is not None else [
            _node("n1", "Collect", node_no="1", duration_min=1, duration_max=2),
            _node("n2", "Check", node_no="2", raci={"R": ["alice"], "X": ["junk"]}),
        ],
    }


@pytest.fixture
def editor():
    return FlowEditor.from_detail(_detail())


# ═════════════════════════════════════════════════════════════════════════════
# 1. loading
# ═════════════════════════════════════════════════════════════════════════════


class TestLoading:
    def test_missing_records_are_created_for_diagram_nodes(self, editor):
        assert [r.id for r in editor.records] == ["n1", "n2", "n3"]
        n3 = editor.get_record("n3")
        assert n3.name == "Sign"
        assert n3.node_no == "3"
        assert n3.sort_order == 2
        assert n3.exec_form is None

    def test_raci_is_filtered_to_known_keys(self, editor):
        assert editor.get_record("n2").raci == {"R": ["alice"]}

    def test_reconcile_is_idempotent(self, editor):
        again = reconcile_records(editor.records, editor.diagram)
        assert again == editor.records

    def test_editable_defaults_from_status(self):
        assert FlowEditor.from_detail(_detail("DRAFT")).editable
        assert not FlowEditor.from_detail(_detail("IN_REVIEW")).editable
        assert not FlowEditor.from_detail(_detail("EFFECTIVE")).editable

    def test_malformed_diagram_loads_empty(self):
        ed = FlowEditor.from_detail(_detail(diagram_json="{broken"))
        assert ed.diagram.is_empty
        assert [r.id for r in ed.records] == ["n1", "n2"]


# ═════════════════════════════════════════════════════════════════════════════
# 2. diagram side
# ═════════════════════════════════════════════════════════════════════════════


class TestDiagramSide:
    def test_widget_drag_moves_node(self, editor):
        editor.apply_widget_changes([{"type": "position", "id": "n1", "position": {"x": 5.4, "y": 7.6}}])
        assert editor.diagram.get_node("n1") == DiagramNode("n1", "Collect", 5, 8)

    def test_raw_json_applied_only_when_shaped_like_a_diagram(self, editor):
        assert editor.apply_diagram_json('{"nodes": [') is False
        assert len(editor.diagram.nodes) == 3
        assert editor.apply_diagram_json('{"nodes":[{"id":"n9","label":"Extra"}],"edges":[]}') is True
        assert editor.diagram.node_ids() == ["n9"]
        assert editor.get_record("n9").name == "Extra"

    def test_toolbar_add_creates_record_and_selects(self, editor):
        record = editor.add_node_from_diagram()
        assert record.name == "New node 4"
        assert editor.selected_id == record.id
        node = editor.diagram.get_node(record.id)
        assert (node.x, node.y) == (640, 100)

    def test_connect_flow_adds_edge_through_editor(self, editor):
        editor.connect.begin("n3", "n1")
        editor.connect.confirm(EdgeType.PARALLEL)
        assert editor.diagram.edges[-1].id == "e-n3-n1-1"
        assert editor.diagram.edges[-1].type is EdgeType.PARALLEL

    def test_view_highlights_selection(self, editor):
        editor.select("n2")
        styles = {n["id"]: n["style"]["fontWeight"] for n in editor.view().nodes}
        assert styles == {"n1": 400, "n2": 600, "n3": 400}


# ═════════════════════════════════════════════════════════════════════════════
# 3. record side
# ═════════════════════════════════════════════════════════════════════════════


class TestRecordSide:
    def test_rename_mirrors_onto_label(self, editor):
        editor.rename("n1", "Gather papers")
        assert editor.diagram.get_node("n1").label == "Gather papers"

    def test_blank_name_keeps_label(self, editor):
        editor.rename("n1", "")
        assert editor.get_record("n1").name == ""
        assert editor.diagram.get_node("n1").label == "Collect"

    def test_panel_add_creates_diagram_node(self, editor):
        record = editor.add_node_from_panel()
        assert editor.records[-1] == record
        assert record.node_no == "4"
        assert editor.diagram.get_node(record.id).label == record.name
        assert editor.selected_id == record.id

    def test_delete_selected_removes_record_node_and_edges(self, editor):
        editor.select("n2")
        editor.delete_selected()
        assert editor.get_record("n2") is None
        assert not editor.diagram.has_node("n2")
        assert editor.diagram.edges == ()
        assert editor.selected_id is None

    def test_delete_drops_a_pending_connection(self, editor):
        editor.connect.begin("n1", "n2")
        editor.select("n2")
        editor.delete_selected()
        assert editor.connect.confirm() is None
        assert dm.structural_problems(editor.diagram) == {}

    def test_delete_without_selection_is_a_no_op(self, editor):
        editor.delete_selected()
        assert len(editor.records) == 3

    def test_update_record_replaces_by_id(self, editor):
        record = replace(editor.get_record("n3"), intro="Final step")
        editor.update_record(record)
        assert editor.get_record("n3").intro == "Final step"
        assert [r.id for r in editor.records] == ["n1", "n2", "n3"]


# ═════════════════════════════════════════════════════════════════════════════
# 4. selection
# ═════════════════════════════════════════════════════════════════════════════


class TestSelection:
    def test_navigation(self, editor):
        editor.select("n1")
        assert editor.progress == "1 / 3"
        assert not editor.has_previous and editor.has_next
        editor.select_next()
        editor.select_next()
        assert editor.selected_id == "n3"
        assert editor.progress == "3 / 3"
        assert not editor.has_next
        editor.select_next()
        assert editor.selected_id == "n3"
        editor.select_previous()
        assert editor.selected.id == "n2"

    def test_unknown_id_does_not_change_selection(self, editor):
        editor.select("n1")
        editor.select("ghost")
        assert editor.selected_id == "n1"

    def test_no_selection(self, editor):
        assert editor.selected is None
        assert editor.selected_index == -1
        assert editor.progress == ""

    def test_index_follows_deletion(self, editor):
        editor.select("n1")
        editor.delete_selected()
        editor.select("n3")
        assert editor.selected_index == 1


# ═════════════════════════════════════════════════════════════════════════════
# 5. read-only
# ═════════════════════════════════════════════════════════════════════════════


class TestReadOnly:
    @pytest.fixture
    def viewer(self):
        return FlowEditor.from_detail(_detail("EFFECTIVE"))

    @pytest.mark.parametrize("command", [
        lambda ed: ed.add_node_from_diagram(),
        lambda ed: ed.add_node_from_panel(),
        lambda ed: ed.rename("n1", "x"),
        lambda ed: ed.apply_diagram_json('{"nodes":[],"edges":[]}'),
        lambda ed: ed.delete_selected(),
        lambda ed: ed.save(MagicMock()),
    ])
    def test_mutations_raise(self, viewer, command):
        with pytest.raises(ReadOnlyEditorError):
            command(viewer)

    def test_widget_changes_are_ignored(self, viewer):
        before = viewer.diagram
        viewer.apply_widget_changes([{"type": "position", "id": "n1", "position": {"x": 0, "y": 0}}])
        assert viewer.diagram is before

    def test_selection_still_works(self, viewer):
        viewer.select("n2")
        assert viewer.progress == "2 / 3"


# ═════════════════════════════════════════════════════════════════════════════
# 6. save
# ═════════════════════════════════════════════════════════════════════════════


def _valid_editor():
    ed = FlowEditor.from_detail(_detail(nodes=[
        _node("n1", "Collect"), _node("n2", "Check"), _node("n3", "Sign"),
    ]))
    return ed


class TestSave:
    def test_invalid_records_block_the_request(self, editor):
        client = MagicMock()
        with pytest.raises(EditorValidationError) as exc_info:
            editor.save(client)
        assert exc_info.value.errors == {"n3": {"exec_form": "required"}}
        client.update_flow.assert_not_called()

    def test_payload_shape(self):
        payload = _valid_editor().to_payload()
        assert payload["title"] == "Onboarding"
        assert dm.parse(payload["diagram_json"]).node_ids() == ["n1", "n2", "n3"]
        assert [n["id"] for n in payload["nodes"]] == ["n1", "n2", "n3"]
        assert [n["sort_order"] for n in payload["nodes"]] == [0, 1, 2]

    def test_save_reloads_from_response_and_keeps_selection(self):
        ed = _valid_editor()
        ed.select("n2")
        server_diagram = '{"nodes":[{"id":"n2","label":"Checked","x":1,"y":2}],"edges":[]}'
        client = MagicMock()
        client.update_flow.return_value = {
            "flow": {"id": "f1", "status": "DRAFT", "diagram_json": server_diagram},
            "nodes": [_node("n2", "Checked")],
        }

        ed.save(client)

        client.update_flow.assert_called_once()
        flow_id, payload = client.update_flow.call_args.args
        assert flow_id == "f1"
        assert len(payload["nodes"]) == 3
        assert ed.diagram.node_ids() == ["n2"]
        assert [r.id for r in ed.records] == ["n2"]
        assert ed.selected_id == "n2"
        assert ed.saving is False

    def test_second_save_while_in_flight_is_rejected(self):
        ed = _valid_editor()
        ed.saving = True
        with pytest.raises(SaveInProgress):
            ed.save(MagicMock())

    def test_failed_save_clears_flag_and_keeps_state(self):
        ed = _valid_editor()
        client = MagicMock()
        client.update_flow.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            ed.save(client)
        assert ed.saving is False
        assert len(ed.records) == 3


def test_record_from_dict_tolerates_odd_fields():
    record = FlowNodeRecord.from_dict({
        "id": 7, "name": None, "raci": '{"A": ["bob"]}', "subtasks": "nope", "sort_order": None,
    })
    assert record.id == "7"
    assert record.name == ""
    assert record.raci == {"A": ["bob"]}
    assert record.subtasks == []
    assert record.duration_unit == "DAY"


# ═════════════════════════════════════════════════════════════════════════════
# 7. editing session from scratch
# ═════════════════════════════════════════════════════════════════════════════


def test_editing_session_from_empty_diagram():
    ed = FlowEditor(flow={"id": "f"})
    assert ed.diagram.is_empty and ed.records == []

    a = ed.add_node_from_diagram()
    assert len(ed.records) == 1
    assert (a.name, a.sort_order, a.node_no) == ("New node 1", 0, "1")
    assert ed.diagram.get_node(a.id).label == "New node 1"

    b = ed.add_node_from_diagram()
    assert [r.id for r in ed.records] == [a.id, b.id]
    assert ed.get_record(b.id).sort_order == 1

    ed.connect.begin(a.id, b.id)
    ed.connect.confirm(EdgeType.CONDITIONAL, "approved")
    (edge,) = ed.diagram.edges
    assert (edge.source, edge.target, edge.type, edge.label) == (a.id, b.id, EdgeType.CONDITIONAL, "approved")

    ed.rename(a.id, "Start")
    assert ed.diagram.get_node(a.id).label == "Start"

    ed.select(b.id)
    ed.delete_selected()
    assert ed.diagram.edges == ()
    assert ed.diagram.node_ids() == [a.id]
    assert [r.id for r in ed.records] == [a.id]
