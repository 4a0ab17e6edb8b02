# conduct_log/api/v1/incidents.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import AwareDatetime
from sqlalchemy.orm import Session

from conduct_log.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from conduct_log.core.constants import allowed_transitions
from conduct_log.core.identity import get_current_user, get_user_id_header, resolve_user
from conduct_log.crud import comment as comment_crud
from conduct_log.crud import incident as incident_crud
from conduct_log.db.session import get_db
from conduct_log.models.incident import Incident
from conduct_log.models.user import User
from conduct_log.schemas.comment import CommentCreate
from conduct_log.schemas.common import (
    CommentVisibility,
    IncidentCategory,
    IncidentStatus,
    Severity,
    SortField,
    SortOrder,
)
from conduct_log.schemas.incident import (
    CommentOut,
    IncidentCreate,
    IncidentCreated,
    IncidentDetail,
    IncidentPage,
    IncidentSummary,
    IncidentUpdate,
    PersonLinkOut,
    ProcessLinkOut,
    StatusChangeIn,
    StatusChangeOut,
    TeamLinkOut,
)
from conduct_log.services.audit import request_meta
from conduct_log.services.incident_query import (
    IncidentFilters,
    get_incident_detail,
    list_incidents as query_incidents,
)
from conduct_log.services.workflow import change_status

router = APIRouter(prefix="/incidents", tags=["incidents"])


def _to_detail(obj: Incident) -> IncidentDetail:
    out = IncidentDetail.model_validate(obj)
    out.allowed_transitions = list(allowed_transitions(obj.current_status))
    out.associated_teams = [TeamLinkOut.model_validate(link) for link in obj.team_links]
    out.associated_processes = [ProcessLinkOut.model_validate(link) for link in obj.process_links]
    out.associated_persons = [PersonLinkOut.model_validate(link) for link in obj.person_links]
    return out


# ---------------------------
# CREATE
# ---------------------------
@router.post("", response_model=IncidentCreated, status_code=status.HTTP_201_CREATED)
def create_incident(
    payload: IncidentCreate,
    request: Request,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Depends(get_user_id_header),
):
    """
    Report a new incident. Acting user is ``X-User-Id``, or the body's
    ``reporterId`` when the header is absent; with neither the call is a 401.
    """
    actor = resolve_user(db, x_user_id or payload.reporter_id)
    obj = incident_crud.create_incident(
        db,
        payload,
        actor_id=actor.id,
        meta=request_meta(request),
    )
    return IncidentCreated.model_validate(obj)


# ---------------------------
# LIST / FILTER
# ---------------------------
@router.get("", response_model=IncidentPage)
def list_incidents(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    status_f: Optional[IncidentStatus] = Query(None, alias="status"),
    category: Optional[IncidentCategory] = Query(None),
    severity: Optional[Severity] = Query(None),
    department_id: Optional[UUID] = Query(None, alias="departmentId"),
    team_id: Optional[UUID] = Query(None, alias="teamId"),
    reporter_id: Optional[UUID] = Query(None, alias="reporterId"),
    from_date: Optional[AwareDatetime] = Query(
        None, alias="fromDate", description="occurredAt >= (inclusive); full date-time with offset"
    ),
    to_date: Optional[AwareDatetime] = Query(
        None, alias="toDate", description="occurredAt <= (inclusive); full date-time with offset"
    ),
    search: Optional[str] = Query(None, max_length=200, description="Description or incident number"),
    sort_by: SortField = Query("reportedAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    filters = IncidentFilters(
        status=status_f,
        category=category,
        severity=severity,
        department_id=str(department_id) if department_id else None,
        team_id=str(team_id) if team_id else None,
        reporter_id=str(reporter_id) if reporter_id else None,
        from_date=from_date,
        to_date=to_date,
        search=search,
    )
    items, pagination = query_incidents(
        db,
        filters,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return IncidentPage(
        data=[IncidentSummary.model_validate(i) for i in items],
        pagination=pagination,
    )


# ---------------------------
# READ (by id)
# ---------------------------
@router.get("/{incident_id}", response_model=IncidentDetail)
def get_incident(incident_id: str, db: Session = Depends(get_db)):
    return _to_detail(get_incident_detail(db, incident_id))


# ---------------------------
# UPDATE (descriptive fields only)
# ---------------------------
@router.put("/{incident_id}", response_model=IncidentDetail)
def update_incident(
    incident_id: str,
    payload: IncidentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    incident_crud.update_incident(
        db,
        incident_id,
        payload,
        actor_id=current_user.id,
        meta=request_meta(request),
    )
    return _to_detail(get_incident_detail(db, incident_id))


# ---------------------------
# STATUS
# ---------------------------
@router.put("/{incident_id}/status", response_model=StatusChangeOut)
def update_status(
    incident_id: str,
    payload: StatusChangeIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    change = change_status(
        db,
        incident_id,
        payload.status,
        actor_id=current_user.id,
        reason=payload.reason,
        meta=request_meta(request),
    )
    return StatusChangeOut(from_status=change.from_status, to_status=change.to_status)


# ---------------------------
# COMMENTS
# ---------------------------
@router.get("/{incident_id}/comments", response_model=List[CommentOut])
def list_comments(
    incident_id: str,
    visibility: Optional[CommentVisibility] = Query(None),
    db: Session = Depends(get_db),
):
    return [CommentOut.model_validate(c) for c in comment_crud.list_comments(db, incident_id, visibility)]


@router.post("/{incident_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def create_comment(
    incident_id: str,
    payload: CommentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    obj = comment_crud.create_comment(
        db,
        incident_id,
        payload,
        actor_id=current_user.id,
        meta=request_meta(request),
    )
    return CommentOut.model_validate(obj)
