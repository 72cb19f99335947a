"""
Field rules for a single flow node.

One rule set serves both sides of the wire: the panel form runs it before
a save (blocking the request) and the flow service runs it again when the
node array arrives. Errors are ``{field: reason_code}``; the codes are
stable strings the panel renders through its label table.

Reason codes:
    required              — field missing or blank
    invalid_enum          — value outside the closed vocabulary
    not_a_number          — duration bound that is not numeric
    must_be_non_negative  — duration bound below zero
    min_gt_max            — duration_min greater than duration_max (key ``duration``)
"""

from docflow.core.enums import RACI_KEYS, DurationUnit, ExecForm, enum_values

_EXEC_FORMS = enum_values(ExecForm)
_DURATION_UNITS = enum_values(DurationUnit)


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def node_field_errors(data: dict) -> dict[str, str]:
    """Validate one node payload and return field → reason code."""
    errors: dict[str, str] = {}

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors["name"] = "required"

    exec_form = data.get("exec_form")
    if not exec_form:
        errors["exec_form"] = "required"
    elif exec_form not in _EXEC_FORMS:
        errors["exec_form"] = "invalid_enum"

    unit = data.get("duration_unit")
    if unit and unit not in _DURATION_UNITS:
        errors["duration_unit"] = "invalid_enum"

    bounds = {}
    for key in ("duration_min", "duration_max"):
        value = data.get(key)
        if value is None:
            continue
        if not is_number(value):
            errors[key] = "not_a_number"
        elif value < 0:
            errors[key] = "must_be_non_negative"
        else:
            bounds[key] = value
    if len(bounds) == 2 and bounds["duration_min"] > bounds["duration_max"]:
        errors["duration"] = "min_gt_max"

    raci = data.get("raci")
    if raci is not None:
        if not isinstance(raci, dict) or any(k not in RACI_KEYS for k in raci):
            errors["raci"] = "invalid_enum"

    return errors
