"""
Node detail panel tests — formatting, read view, tag inputs, form
validation, field-error rendering.
"""

import pytest

from docflow.editor import panel
from docflow.editor.sync import FlowNodeRecord


# ── Formatting ───────────────────────────────────────────────────────────────


@pytest.mark.parametrize("lo, hi, unit, expected", [
    (2, 5, "DAY", "2 ~ 5 days"),
    (2.0, 5.5, "DAY", "2 ~ 5.5 days"),
    (1, 3, "HOUR", "1 ~ 3 hours"),
    (2, None, "DAY", "≥ 2 days"),
    (None, 4, "WEEK", "≤ 4 days"),
    (None, None, "DAY", ""),
    (0, 0, "MINUTE", "0 ~ 0 days"),
])
def test_duration_text(lo, hi, unit, expected):
    assert panel.duration_text(lo, hi, unit) == expected


def test_total_duration_text():
    assert panel.total_duration_text(0, 0) == panel.NO_DURATION
    assert panel.total_duration_text(1.25, 3) == "1.2 ~ 3.0 days"
    assert panel.total_duration_text(None, 2) == "0.0 ~ 2.0 days"


def test_exec_form_label_falls_back_to_raw():
    assert panel.exec_form_label("DOC_REVIEW") == "Document review"
    assert panel.exec_form_label("TELEPATHY") == "TELEPATHY"
    assert panel.exec_form_label(None) == ""


# ── Read view ────────────────────────────────────────────────────────────────


def test_read_view_lists_only_filled_sections_in_order():
    record = FlowNodeRecord(
        id="n1", name="Check", intro="Verify papers", exec_form="EMAIL_CONFIRM",
        duration_min=1, duration_max=2, raci={"I": ["team"], "R": ["alice", "bob"]},
        subtasks=["scan", "file"], outputs_text="Signed form",
    )
    sections = panel.read_view(record)
    assert [s.key for s in sections] == ["intro", "exec_form", "duration", "raci", "outputs", "subtasks"]
    raci = sections[3]
    assert raci.rows == (("R", "Responsible", ("alice", "bob")), ("I", "Informed", ("team",)))
    assert sections[1].text == "Email confirmation"
    assert sections[-1].items == ("scan", "file")


def test_read_view_of_blank_record_is_empty():
    assert panel.read_view(FlowNodeRecord(id="n1", intro="   ")) == []


# ── Tag inputs ───────────────────────────────────────────────────────────────


class TestTagInput:
    def test_commit_trims_and_skips_duplicates(self):
        tags = panel.TagInput(["alice"])
        assert tags.commit("  bob ") is True
        assert tags.commit("alice") is False
        assert tags.commit("   ") is False
        assert tags.values == ["alice", "bob"]

    def test_blur_commits_only_when_enabled(self):
        raci_input = panel.TagInput(commit_on_blur=True)
        subtask_input = panel.TagInput()
        assert raci_input.blur("carol")
        assert not subtask_input.blur("carol")
        assert raci_input.values == ["carol"]
        assert subtask_input.values == []

    def test_remove_ignores_bad_index(self):
        tags = panel.TagInput(["a", "b"])
        tags.remove(5)
        tags.remove(0)
        assert tags.values == ["b"]


def test_edit_raci_drops_empty_keys():
    record = FlowNodeRecord(id="n1", raci={"R": ["alice"]})
    record = panel.edit_raci(record, "A", ["bob"])
    record = panel.edit_raci(record, "R", [])
    assert record.raci == {"A": ["bob"]}
    with pytest.raises(ValueError):
        panel.edit_raci(record, "Z", ["x"])


def test_edit_subtasks():
    record = panel.edit_subtasks(FlowNodeRecord(id="n1"), ["one", "two"])
    assert record.subtasks == ["one", "two"]


# ── Form validation ──────────────────────────────────────────────────────────


class TestValidateNodeForm:
    def test_valid_form(self):
        assert panel.validate_node_form({
            "name": "Check", "exec_form": "SYSTEM_APPROVAL",
            "duration_min": "1", "duration_max": "2.5", "duration_unit": "HOUR",
        }) == {}

    def test_reports_every_problem(self):
        errors = panel.validate_node_form({
            "name": "  ", "exec_form": "TELEPATHY", "duration_unit": "YEAR",
            "duration_min": "abc", "duration_max": "-1",
        })
        assert errors == {
            "name": "required",
            "exec_form": "invalid_enum",
            "duration_unit": "invalid_enum",
            "duration_min": "not_a_number",
            "duration_max": "must_be_non_negative",
        }

    def test_min_greater_than_max(self):
        errors = panel.validate_node_form({
            "name": "x", "exec_form": "DOC_REVIEW", "duration_min": 5, "duration_max": "2",
        })
        assert errors == {"duration": "min_gt_max"}

    def test_blank_durations_are_optional(self):
        assert panel.validate_node_form({
            "name": "x", "exec_form": "DOC_REVIEW", "duration_min": "", "duration_max": None,
        }) == {}

    def test_missing_exec_form(self):
        assert panel.validate_node_form({"name": "x"}) == {"exec_form": "required"}


# ── Field errors ─────────────────────────────────────────────────────────────


def test_format_field_error_uses_label_table_with_raw_fallback():
    assert panel.format_field_error("name", "required") == "name: is required"
    assert panel.format_field_error("diagram_json.edges[0]", "self_loop") == \
        "diagram_json.edges[0]: connects a node to itself"
    assert panel.format_field_error("x", "weird_code") == "x: weird_code"


def test_field_errors_merge_server_over_client():
    errors = panel.FieldErrors()
    assert not errors
    errors.set_client({"name": "required", "duration": "min_gt_max"})
    errors.merge_server({"name": "invalid_enum", "nodes[0].raci": "missing_key"})
    assert errors.for_field("name") == "name: has an invalid value"
    assert errors.for_field("title") is None
    assert len(errors.messages()) == 3
    errors.clear("duration")
    assert "duration" not in errors.errors
    errors.clear()
    assert not errors
