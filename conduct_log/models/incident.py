# conduct_log/models/incident.py
from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from conduct_log.core.constants import (
    INCIDENT_STATUSES,
    INCIDENT_CATEGORIES,
    SEVERITIES,
    PERSON_ROLES,
    sql_in,
)
from conduct_log.core.timeutil import now_iso
from conduct_log.db.base import Base
from conduct_log.models.user import User
from conduct_log.models.reference import Department, Team, Process, IncidentType


def _uuid() -> str:
    return str(uuid.uuid4())


class Incident(Base):
    """
    A reported conduct/behaviour event.

    NOTE:
    - ``incident_number`` is allocated once (INC-<year>-<seq>) and never changes;
      the unique constraint is what serializes concurrent allocations.
    - ``current_status`` is only written by the workflow service, guarded by
      ``version`` (compare-and-swap on every status change).
    """

    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=_uuid)
    incident_number = Column(String(32), nullable=False, unique=True)

    reporter_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    reporter_ad_user_id = Column(String(255), nullable=True)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=True, index=True)
    incident_type_id = Column(String(36), ForeignKey("incident_types.id"), nullable=True)

    # ISO-8601 UTC text, lexically sortable
    occurred_at = Column(String(32), nullable=False, index=True)
    reported_at = Column(String(32), nullable=False)

    # near_miss | behavioural_issue | process_gap | other
    category = Column(String(32), nullable=False, index=True)
    # low | medium | high | critical
    severity = Column(String(16), nullable=False, default="medium", index=True)
    description = Column(Text, nullable=False)
    privacy_flag = Column(Boolean, nullable=False, default=False)

    # open | in_review | closed
    current_status = Column(String(16), nullable=False, default="open", index=True)
    version = Column(Integer, nullable=False, default=1)

    hod_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    risk_owner_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    escalation_requested = Column(Boolean, nullable=False, default=False)

    created_at = Column(String(32), nullable=False, default=now_iso)
    updated_at = Column(String(32), nullable=False, default=now_iso)

    # Relations
    reporter = relationship(User, foreign_keys=[reporter_id])
    hod = relationship(User, foreign_keys=[hod_id])
    risk_owner = relationship(User, foreign_keys=[risk_owner_id])
    department = relationship(Department)
    team = relationship(Team)
    incident_type = relationship(IncidentType)

    team_links = relationship("IncidentTeamLink", back_populates="incident", order_by="[IncidentTeamLink.created_at, IncidentTeamLink.id]")
    process_links = relationship("IncidentProcessLink", back_populates="incident", order_by="[IncidentProcessLink.created_at, IncidentProcessLink.id]")
    person_links = relationship("IncidentPersonLink", back_populates="incident", order_by="[IncidentPersonLink.created_at, IncidentPersonLink.id]")
    comments = relationship("Comment", back_populates="incident", order_by="[Comment.created_at, Comment.id]")
    status_history = relationship(
        "StatusHistory", back_populates="incident", order_by="StatusHistory.sequence"
    )

    __table_args__ = (
        CheckConstraint(f"current_status IN {sql_in(INCIDENT_STATUSES)}", name="ck_incidents_status_allowed"),
        CheckConstraint(f"category IN {sql_in(INCIDENT_CATEGORIES)}", name="ck_incidents_category_allowed"),
        CheckConstraint(f"severity IN {sql_in(SEVERITIES)}", name="ck_incidents_severity_allowed"),
        Index("ix_incidents_reported_at", "reported_at"),
        Index("ix_incidents_department_status", "department_id", "current_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Incident id={self.id} number={self.incident_number!r} "
            f"status={self.current_status!r} severity={self.severity!r}>"
        )


# ---------------------------
# Link records (each with its own id + timestamp)
# ---------------------------
class IncidentTeamLink(Base):
    __tablename__ = "incident_team_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    created_at = Column(String(32), nullable=False, default=now_iso)

    incident = relationship(Incident, back_populates="team_links")
    team = relationship(Team)


class IncidentProcessLink(Base):
    __tablename__ = "incident_process_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    process_id = Column(String(36), ForeignKey("processes.id"), nullable=False, index=True)
    created_at = Column(String(32), nullable=False, default=now_iso)

    incident = relationship(Incident, back_populates="process_links")
    process = relationship(Process)


class IncidentPersonLink(Base):
    __tablename__ = "incident_person_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # involved | witness | other
    role = Column(String(16), nullable=False, default="involved")
    created_at = Column(String(32), nullable=False, default=now_iso)

    incident = relationship(Incident, back_populates="person_links")
    person = relationship(User)

    __table_args__ = (
        CheckConstraint(f"role IN {sql_in(PERSON_ROLES)}", name="ck_person_links_role_allowed"),
    )
