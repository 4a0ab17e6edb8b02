# conduct_log/schemas/incident.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from conduct_log.core.constants import (
    DESCRIPTION_MIN_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    REASON_MAX_LENGTH,
)
from conduct_log.schemas.common import (
    CamelModel,
    CommentVisibility,
    IncidentCategory,
    IncidentStatus,
    NamedRef,
    Pagination,
    PersonRole,
    Severity,
    UserRef,
)


class PersonLinkIn(CamelModel):
    person_id: UUID = Field(..., description="User linked to the incident.")
    role: PersonRole = Field("involved", description="involved | witness | other")


class IncidentCreate(CamelModel):
    """
    Report payload. The acting user comes from the X-User-Id header
    (falls back to ``reporterId`` when the header is absent).
    """

    reporter_id: Optional[UUID] = Field(None, description="User reporting the incident; required")
    department_id: UUID = Field(..., description="Department the incident belongs to")
    team_id: Optional[UUID] = Field(None, description="Primary team, if known")
    incident_type_id: Optional[UUID] = Field(None, description="Admin-maintained incident type")

    occurred_at: datetime = Field(..., description="When it happened; must not be in the future")
    category: IncidentCategory = Field(..., description="Nature of the incident")
    severity: Severity = Field("medium", description="Impact level")
    description: str = Field(
        ..., min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH
    )

    associated_team_ids: List[UUID] = Field(default_factory=list)
    associated_process_ids: List[UUID] = Field(default_factory=list)
    # plain ids are linked with role "involved"; use associatedPersons for other roles
    associated_person_ids: List[UUID] = Field(default_factory=list)
    associated_persons: List[PersonLinkIn] = Field(default_factory=list)

    privacy_flag: bool = Field(False, description="Restrict visibility to HoD / risk office")


class IncidentUpdate(CamelModel):
    """
    Partial update of descriptive fields. Status is NOT updatable here
    (see PUT /incidents/{id}/status).
    """

    department_id: Optional[UUID] = None
    team_id: Optional[UUID] = None
    incident_type_id: Optional[UUID] = None
    category: Optional[IncidentCategory] = None
    severity: Optional[Severity] = None
    description: Optional[str] = Field(
        None, min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH
    )
    privacy_flag: Optional[bool] = None
    hod_id: Optional[UUID] = None
    risk_owner_id: Optional[UUID] = None
    escalation_requested: Optional[bool] = None


class IncidentCreated(CamelModel):
    id: str
    incident_number: str
    current_status: IncidentStatus
    created_at: str


class StatusChangeIn(CamelModel):
    status: IncidentStatus
    reason: Optional[str] = Field(None, max_length=REASON_MAX_LENGTH)


class StatusChangeOut(CamelModel):
    success: bool = True
    from_status: IncidentStatus
    to_status: IncidentStatus


# ---------------------------
# Read models
# ---------------------------
class IncidentSummary(CamelModel):
    id: str
    incident_number: str
    reporter_id: str
    reporter: Optional[UserRef] = None
    department_id: str
    department: Optional[NamedRef] = None
    team_id: Optional[str] = None
    team: Optional[NamedRef] = None
    incident_type_id: Optional[str] = None
    incident_type: Optional[NamedRef] = None
    occurred_at: str
    reported_at: str
    category: IncidentCategory
    severity: Severity
    description: str
    privacy_flag: bool
    current_status: IncidentStatus
    created_at: str
    updated_at: str


class IncidentPage(CamelModel):
    data: List[IncidentSummary]
    pagination: Pagination


class TeamLinkOut(CamelModel):
    id: str
    team_id: str
    team: Optional[NamedRef] = None
    created_at: str


class ProcessLinkOut(CamelModel):
    id: str
    process_id: str
    process: Optional[NamedRef] = None
    created_at: str


class PersonLinkOut(CamelModel):
    id: str
    person_id: str
    person: Optional[UserRef] = None
    role: PersonRole
    created_at: str


class CommentOut(CamelModel):
    id: str
    incident_id: str
    author_id: str
    author: Optional[UserRef] = None
    body: str
    visibility: CommentVisibility
    parent_id: Optional[str] = None
    created_at: str
    updated_at: str


class StatusHistoryOut(CamelModel):
    id: str
    sequence: int
    from_status: Optional[IncidentStatus] = None
    to_status: IncidentStatus
    changed_by: str
    changer: Optional[UserRef] = None
    reason: Optional[str] = None
    changed_at: str


class IncidentDetail(IncidentSummary):
    hod_id: Optional[str] = None
    hod: Optional[UserRef] = None
    risk_owner_id: Optional[str] = None
    risk_owner: Optional[UserRef] = None
    escalation_requested: bool = False
    allowed_transitions: List[IncidentStatus] = Field(default_factory=list)

    associated_teams: List[TeamLinkOut] = Field(default_factory=list)
    associated_processes: List[ProcessLinkOut] = Field(default_factory=list)
    associated_persons: List[PersonLinkOut] = Field(default_factory=list)
    comments: List[CommentOut] = Field(default_factory=list)
    status_history: List[StatusHistoryOut] = Field(default_factory=list)
