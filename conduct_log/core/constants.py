# conduct_log/core/constants.py
"""
Enumerations and lookup tables shared by models, schemas and services.

Values are stored as plain strings (SQLite portability); the tuples below are
the single source for CHECK constraints, pydantic ``Literal`` types and the
``/lookups`` endpoint.
"""
from __future__ import annotations

from typing import Dict, Tuple

# --- incident status / workflow ----------------------------------------------
STATUS_OPEN = "open"
STATUS_IN_REVIEW = "in_review"
STATUS_CLOSED = "closed"

INCIDENT_STATUSES: Tuple[str, ...] = (STATUS_OPEN, STATUS_IN_REVIEW, STATUS_CLOSED)

STATUS_LABELS: Dict[str, str] = {
    STATUS_OPEN: "Open",
    STATUS_IN_REVIEW: "In Review",
    STATUS_CLOSED: "Closed",
}

# from -> allowed targets; complete graph on the three states minus self-loops
STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    STATUS_OPEN: (STATUS_IN_REVIEW, STATUS_CLOSED),
    STATUS_IN_REVIEW: (STATUS_OPEN, STATUS_CLOSED),
    STATUS_CLOSED: (STATUS_OPEN, STATUS_IN_REVIEW),
}

INITIAL_STATUS = STATUS_OPEN
CREATION_REASON = "Incident created"

# --- classification ------------------------------------------------------------
INCIDENT_CATEGORIES: Tuple[str, ...] = ("near_miss", "behavioural_issue", "process_gap", "other")

CATEGORY_LABELS: Dict[str, Dict[str, str]] = {
    "near_miss": {"label": "Near Miss", "description": "An event that could have resulted in an incident"},
    "behavioural_issue": {"label": "Behavioural Issue", "description": "Conduct or behaviour related concern"},
    "process_gap": {"label": "Process Gap", "description": "Gap or deficiency in existing process"},
    "other": {"label": "Other", "description": "Other type of incident"},
}

SEVERITIES: Tuple[str, ...] = ("low", "medium", "high", "critical")
DEFAULT_SEVERITY = "medium"

SEVERITY_LEVELS: Dict[str, Dict[str, object]] = {
    "low": {"label": "Low", "priority": 1},
    "medium": {"label": "Medium", "priority": 2},
    "high": {"label": "High", "priority": 3},
    "critical": {"label": "Critical", "priority": 4},
}

# --- associations / comments / users -----------------------------------------
PERSON_ROLES: Tuple[str, ...] = ("involved", "witness", "other")
DEFAULT_PERSON_ROLE = "involved"

COMMENT_VISIBILITIES: Tuple[str, ...] = ("public", "private")

USER_ROLES: Tuple[str, ...] = ("employee", "hod", "risk_office", "admin")

# --- audit -------------------------------------------------------------------
AUDIT_ENTITY_TYPES: Tuple[str, ...] = ("incident", "incident_type", "comment")
AUDIT_ACTIONS: Tuple[str, ...] = ("create", "update", "status_change")

# --- validation limits -------------------------------------------------------
DESCRIPTION_MIN_LENGTH = 5
DESCRIPTION_MAX_LENGTH = 2000
REASON_MAX_LENGTH = 500
COMMENT_MAX_LENGTH = 5000
NAME_MAX_LENGTH = 255

# --- numbering ---------------------------------------------------------------
INCIDENT_NUMBER_PREFIX = "INC"
INCIDENT_NUMBER_WIDTH = 4


def allowed_transitions(status: str) -> Tuple[str, ...]:
    return STATUS_TRANSITIONS.get(status, ())


def sql_in(values: Tuple[str, ...]) -> str:
    """Render a tuple for a CHECK constraint: ('a','b')."""
    return "(" + ",".join(f"'{v}'" for v in values) + ")"
