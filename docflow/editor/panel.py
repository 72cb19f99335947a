"""
Node detail panel — read view, edit-form helpers and field errors.

Read view:  ``read_view(record)`` lists only the sections that have
            content, in a fixed order.
Edit view:  ``TagInput`` backs the RACI and subtask inputs;
            ``validate_node_form`` checks raw form values before a save;
            ``FieldErrors`` merges client and server field reasons and
            renders them through ``FIELD_ERROR_LABELS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from docflow.core.enums import EXEC_FORM_LABELS, RACI_KEYS, RACI_LABELS, DurationUnit, ExecForm
from docflow.core.node_rules import node_field_errors

# ═══════════════════════════════════════════════════════════════
# Text formatting
# ═══════════════════════════════════════════════════════════════

NO_DURATION = "-"


def _fmt_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def unit_label(unit: str | None) -> str:
    return "hours" if unit == DurationUnit.HOUR.value else "days"


def duration_text(duration_min, duration_max, unit: str | None) -> str:
    """``"2 ~ 5 days"``, ``"≥ 2 days"``, ``"≤ 5 days"`` or ``""``."""
    label = unit_label(unit)
    if duration_min is not None and duration_max is not None:
        return f"{_fmt_number(duration_min)} ~ {_fmt_number(duration_max)} {label}"
    if duration_min is not None:
        return f"≥ {_fmt_number(duration_min)} {label}"
    if duration_max is not None:
        return f"≤ {_fmt_number(duration_max)} {label}"
    return ""


def total_duration_text(total_min_days, total_max_days) -> str:
    """Flow overview totals (already in days), one decimal place."""
    if not total_min_days and not total_max_days:
        return NO_DURATION
    return f"{(total_min_days or 0):.1f} ~ {(total_max_days or 0):.1f} days"


def exec_form_label(value: str | None) -> str:
    """Label for an exec form; unknown network values render as-is."""
    if not value:
        return ""
    try:
        return EXEC_FORM_LABELS[ExecForm(value)]
    except ValueError:
        return value


# ═══════════════════════════════════════════════════════════════
# Read view
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Section:
    """One block of the read view.

    ``text`` for prose sections, ``items`` for lists, ``rows`` for the
    RACI table as ``(key, label, names)`` tuples.
    """

    key: str
    title: str
    text: str = ""
    items: tuple[str, ...] = ()
    rows: tuple[tuple[str, str, tuple[str, ...]], ...] = ()


def read_view(record) -> list[Section]:
    sections: list[Section] = []
    if record.intro.strip():
        sections.append(Section("intro", "Introduction", text=record.intro))
    if record.exec_form:
        sections.append(Section("exec_form", "Execution form", text=exec_form_label(record.exec_form)))
    duration = duration_text(record.duration_min, record.duration_max, record.duration_unit)
    if duration:
        sections.append(Section("duration", "Duration", text=duration))
    rows = tuple(
        (key, RACI_LABELS[key], tuple(record.raci[key]))
        for key in RACI_KEYS
        if record.raci.get(key)
    )
    if rows:
        sections.append(Section("raci", "RACI", rows=rows))
    if record.prereq_text.strip():
        sections.append(Section("prereq", "Prerequisites", text=record.prereq_text))
    if record.outputs_text.strip():
        sections.append(Section("outputs", "Outputs", text=record.outputs_text))
    if record.subtasks:
        sections.append(Section("subtasks", "Subtasks", items=tuple(record.subtasks)))
    return sections


# ═══════════════════════════════════════════════════════════════
# Edit view
# ═══════════════════════════════════════════════════════════════


class TagInput:
    """Tag list input. RACI inputs also commit on blur."""

    def __init__(self, values=None, commit_on_blur: bool = False) -> None:
        self.values: list[str] = list(values or [])
        self.commit_on_blur = commit_on_blur

    def commit(self, text: str) -> bool:
        """Add a trimmed value; blanks and duplicates are ignored."""
        value = (text or "").strip()
        if not value or value in self.values:
            return False
        self.values.append(value)
        return True

    def blur(self, text: str) -> bool:
        if not self.commit_on_blur:
            return False
        return self.commit(text)

    def remove(self, index: int) -> None:
        if 0 <= index < len(self.values):
            del self.values[index]


def edit_raci(record, key: str, values: list[str]):
    """Return ``record`` with one RACI key replaced; empty lists drop the key."""
    if key not in RACI_KEYS:
        raise ValueError(f"unknown RACI key {key!r}")
    raci = {k: list(v) for k, v in record.raci.items()}
    if values:
        raci[key] = list(values)
    else:
        raci.pop(key, None)
    return replace(record, raci=raci)


def edit_subtasks(record, values: list[str]):
    return replace(record, subtasks=list(values))


def _form_number(raw):
    """Form value → number, None for blank; strings that do not parse stay as-is."""
    if raw is None:
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return raw
    return raw


def validate_node_form(form: dict) -> dict[str, str]:
    """Validate raw edit-form values; returns ``{field: reason_code}``."""
    data = dict(form)
    for key in ("duration_min", "duration_max"):
        data[key] = _form_number(form.get(key))
    return node_field_errors(data)


# ═══════════════════════════════════════════════════════════════
# Field errors
# ═══════════════════════════════════════════════════════════════

FIELD_ERROR_LABELS = {
    "required": "is required",
    "invalid_enum": "has an invalid value",
    "min_gt_max": "minimum is greater than maximum",
    "must_be_non_negative": "must not be negative",
    "missing_key": "is missing a required key",
    "not_a_number": "must be a number",
    "dangling_edge": "connects a node that does not exist",
    "duplicate_node_id": "repeats a node id",
    "duplicate_edge_id": "repeats an edge id",
    "self_loop": "connects a node to itself",
}


def format_field_error(field_name: str, reason: str) -> str:
    return f"{field_name}: {FIELD_ERROR_LABELS.get(reason, reason)}"


@dataclass
class FieldErrors:
    """Field reasons shown under the form, client checks and server response merged."""

    errors: dict[str, str] = field(default_factory=dict)

    def set_client(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)

    def merge_server(self, fields: dict | None) -> None:
        """Server reasons override client ones for the same field."""
        for name, reason in (fields or {}).items():
            self.errors[name] = str(reason)

    def clear(self, field_name: str | None = None) -> None:
        if field_name is None:
            self.errors.clear()
        else:
            self.errors.pop(field_name, None)

    def for_field(self, field_name: str) -> str | None:
        reason = self.errors.get(field_name)
        return format_field_error(field_name, reason) if reason else None

    def messages(self) -> list[str]:
        return [format_field_error(k, v) for k, v in self.errors.items()]

    def __bool__(self) -> bool:
        return bool(self.errors)
