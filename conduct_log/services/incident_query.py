# conduct_log/services/incident_query.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from conduct_log.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from conduct_log.core.constants import INCIDENT_CATEGORIES, INCIDENT_STATUSES, SEVERITIES
from conduct_log.core.errors import NotFoundError, ValidationFailed
from conduct_log.core.timeutil import to_iso
from conduct_log.models.comment import Comment
from conduct_log.models.incident import (
    Incident,
    IncidentPersonLink,
    IncidentProcessLink,
    IncidentTeamLink,
)
from conduct_log.models.status_history import StatusHistory
from conduct_log.schemas.common import Pagination

SORT_COLUMNS = {
    "occurredAt": Incident.occurred_at,
    "reportedAt": Incident.reported_at,
    # stored string order, not severity rank
    "severity": Incident.severity,
    "status": Incident.current_status,
    "incidentNumber": Incident.incident_number,
}
DEFAULT_SORT = "reportedAt"


@dataclass
class IncidentFilters:
    status: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = None
    department_id: Optional[str] = None
    team_id: Optional[str] = None
    reporter_id: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    search: Optional[str] = None


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _check_choice(field: str, value: Optional[str], allowed: Tuple[str, ...]) -> None:
    if value is not None and value not in allowed:
        raise ValidationFailed(field, f"{field} must be one of {', '.join(allowed)}")


def apply_filters(q, f: IncidentFilters):
    """AND of every supplied filter; ``search`` is an OR over description and number."""
    _check_choice("status", f.status, INCIDENT_STATUSES)
    _check_choice("category", f.category, INCIDENT_CATEGORIES)
    _check_choice("severity", f.severity, SEVERITIES)

    if f.status:
        q = q.filter(Incident.current_status == f.status)
    if f.category:
        q = q.filter(Incident.category == f.category)
    if f.severity:
        q = q.filter(Incident.severity == f.severity)
    if f.department_id:
        q = q.filter(Incident.department_id == str(f.department_id))
    if f.team_id:
        q = q.filter(Incident.team_id == str(f.team_id))
    if f.reporter_id:
        q = q.filter(Incident.reporter_id == str(f.reporter_id))

    # stored timestamps are normalized ISO strings, so string comparison is chronological
    if f.from_date is not None:
        q = q.filter(Incident.occurred_at >= to_iso(f.from_date))
    if f.to_date is not None:
        q = q.filter(Incident.occurred_at <= to_iso(f.to_date))
    if f.from_date is not None and f.to_date is not None and f.from_date > f.to_date:
        raise ValidationFailed("fromDate", "fromDate must not be after toDate")

    term = (f.search or "").strip()
    if term:
        like = f"%{_escape_like(term.lower())}%"
        q = q.filter(
            or_(
                func.lower(Incident.description).like(like, escape="\\"),
                func.lower(Incident.incident_number).like(like, escape="\\"),
            )
        )
    return q


def list_incidents(
    db: Session,
    filters: Optional[IncidentFilters] = None,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    sort_by: str = DEFAULT_SORT,
    sort_order: str = "desc",
) -> Tuple[List[Incident], Pagination]:
    if page < 1:
        raise ValidationFailed("page", "page must be >= 1")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationFailed("pageSize", f"pageSize must be between 1 and {MAX_PAGE_SIZE}")
    if sort_by not in SORT_COLUMNS:
        raise ValidationFailed("sortBy", f"sortBy must be one of {', '.join(SORT_COLUMNS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationFailed("sortOrder", "sortOrder must be asc or desc")

    q = apply_filters(db.query(Incident), filters or IncidentFilters())

    total = q.order_by(None).count()
    total_pages = math.ceil(total / page_size) if total else 0

    col = SORT_COLUMNS[sort_by]
    if sort_order == "asc":
        q = q.order_by(col.asc(), Incident.id.asc())
    else:
        q = q.order_by(col.desc(), Incident.id.asc())

    items = (
        q.options(
            joinedload(Incident.reporter),
            joinedload(Incident.department),
            joinedload(Incident.team),
            joinedload(Incident.incident_type),
        )
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, Pagination(page=page, page_size=page_size, total_count=total, total_pages=total_pages)


def get_incident_detail(db: Session, incident_id: str) -> Incident:
    """One incident with every relation the detail view renders."""
    obj = (
        db.query(Incident)
        .options(
            joinedload(Incident.reporter),
            joinedload(Incident.department),
            joinedload(Incident.team),
            joinedload(Incident.incident_type),
            joinedload(Incident.hod),
            joinedload(Incident.risk_owner),
            selectinload(Incident.team_links).joinedload(IncidentTeamLink.team),
            selectinload(Incident.process_links).joinedload(IncidentProcessLink.process),
            selectinload(Incident.person_links).joinedload(IncidentPersonLink.person),
            selectinload(Incident.comments).joinedload(Comment.author),
            selectinload(Incident.status_history).joinedload(StatusHistory.changer),
        )
        .filter(Incident.id == str(incident_id))
        .populate_existing()
        .first()
    )
    if not obj:
        raise NotFoundError("Incident not found")
    return obj
