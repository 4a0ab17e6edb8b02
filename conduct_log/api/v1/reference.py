# conduct_log/api/v1/reference.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from conduct_log.core.constants import (
    CATEGORY_LABELS,
    COMMENT_VISIBILITIES,
    INCIDENT_CATEGORIES,
    INCIDENT_STATUSES,
    PERSON_ROLES,
    SEVERITIES,
    SEVERITY_LEVELS,
    STATUS_LABELS,
    allowed_transitions,
)
from conduct_log.core.identity import get_current_user
from conduct_log.crud import reference as ref_crud
from conduct_log.db.session import get_db
from conduct_log.models.user import User
from conduct_log.schemas.reference import (
    DepartmentOut,
    IncidentTypeCreate,
    IncidentTypeOut,
    Lookups,
    ProcessOut,
    StatusLookup,
    TeamOut,
    UserOut,
)
from conduct_log.services.audit import request_meta

router = APIRouter(tags=["reference"])


def _team_out(t) -> TeamOut:
    out = TeamOut.model_validate(t)
    out.department_name = t.department.name if t.department else None
    return out


def _user_out(u: User) -> UserOut:
    out = UserOut.model_validate(u)
    out.department_name = u.department.name if u.department else None
    out.team_name = u.team.name if u.team else None
    return out


@router.get("/departments", response_model=List[DepartmentOut])
def list_departments(db: Session = Depends(get_db)):
    return [DepartmentOut.model_validate(d) for d in ref_crud.list_departments(db)]


@router.get("/teams", response_model=List[TeamOut])
def list_teams(
    department_id: Optional[UUID] = Query(None, alias="departmentId"),
    db: Session = Depends(get_db),
):
    return [_team_out(t) for t in ref_crud.list_teams(db, department_id)]


@router.get("/users", response_model=List[UserOut])
def list_users(
    q: Optional[str] = Query(None, min_length=1, max_length=200, description="Name or email contains"),
    department_id: Optional[UUID] = Query(None, alias="departmentId"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return [_user_out(u) for u in ref_crud.list_users(db, q=q, department_id=department_id, limit=limit)]


@router.get("/processes", response_model=List[ProcessOut])
def list_processes(db: Session = Depends(get_db)):
    return [ProcessOut.model_validate(p) for p in ref_crud.list_processes(db)]


@router.get("/incident-types", response_model=List[IncidentTypeOut])
def list_incident_types(db: Session = Depends(get_db)):
    return [IncidentTypeOut.model_validate(t) for t in ref_crud.list_incident_types(db)]


@router.post("/incident-types", response_model=IncidentTypeOut, status_code=status.HTTP_201_CREATED)
def create_incident_type(
    payload: IncidentTypeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    obj = ref_crud.create_incident_type(
        db,
        payload,
        actor_id=current_user.id,
        meta=request_meta(request),
    )
    return IncidentTypeOut.model_validate(obj)


@router.get("/lookups", response_model=Lookups)
def lookups():
    """Labels and the status transition table, so clients never hard-code them."""
    return Lookups(
        statuses=[
            StatusLookup(value=s, label=STATUS_LABELS[s], transitions=list(allowed_transitions(s)))
            for s in INCIDENT_STATUSES
        ],
        categories=[{"value": c, **CATEGORY_LABELS[c]} for c in INCIDENT_CATEGORIES],
        severities=[{"value": s, **SEVERITY_LEVELS[s]} for s in SEVERITIES],
        person_roles=list(PERSON_ROLES),
        comment_visibilities=list(COMMENT_VISIBILITIES),
    )
