"""
Closed vocabularies shared by the editor core and the backend.

Every enumeration is a ``str`` Enum so values serialize as plain strings
in JSON and compare equal to the raw network value. Label tables are
exhaustive over their enum; lookups of unknown network values fall back
to the raw string at the call site.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class ShareRole(str, Enum):
    VIEW = "VIEW"
    EDIT = "EDIT"


class Visibility(str, Enum):
    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"
    SHARED = "SHARED"


class FlowStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    EFFECTIVE = "EFFECTIVE"


class ExecForm(str, Enum):
    """How a flow node is carried out."""

    SYSTEM_APPROVAL = "SYSTEM_APPROVAL"
    OFFLINE_MEETING = "OFFLINE_MEETING"
    EMAIL_CONFIRM = "EMAIL_CONFIRM"
    DOC_REVIEW = "DOC_REVIEW"
    SYSTEM_OPERATION = "SYSTEM_OPERATION"


EXEC_FORM_LABELS: dict[ExecForm, str] = {
    ExecForm.SYSTEM_APPROVAL: "System approval",
    ExecForm.OFFLINE_MEETING: "Offline meeting",
    ExecForm.EMAIL_CONFIRM: "Email confirmation",
    ExecForm.DOC_REVIEW: "Document review",
    ExecForm.SYSTEM_OPERATION: "System operation",
}


class DurationUnit(str, Enum):
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"
    WEEK = "WEEK"


DEFAULT_DURATION_UNIT = DurationUnit.DAY

# Conversion factor into days, used for flow-level totals.
DAYS_PER_UNIT: dict[DurationUnit, float] = {
    DurationUnit.MINUTE: 1 / 1440,
    DurationUnit.HOUR: 1 / 24,
    DurationUnit.DAY: 1.0,
    DurationUnit.WEEK: 7.0,
}


# RACI(S) responsibility keys, in display order.
RACI_KEYS = ("R", "A", "S", "C", "I")

RACI_LABELS = {
    "R": "Responsible",
    "A": "Accountable",
    "S": "Support",
    "C": "Consulted",
    "I": "Informed",
}


def enum_values(enum_cls) -> frozenset:
    return frozenset(member.value for member in enum_cls)
