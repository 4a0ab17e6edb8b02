# conduct_log/crud/reference.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from conduct_log.core.timeutil import as_utc, to_iso, utcnow
from conduct_log.models.reference import Department, IncidentType, Process, Team
from conduct_log.models.user import User
from conduct_log.schemas.reference import IncidentTypeCreate
from conduct_log.services.audit import audit_log


# --- Read helpers -------------------------------------------------------------

def list_departments(db: Session) -> List[Department]:
    return (
        db.query(Department)
        .filter(Department.is_active.is_(True))
        .order_by(Department.name.asc())
        .all()
    )


def list_teams(db: Session, department_id: Optional[str] = None) -> List[Team]:
    q = db.query(Team).options(joinedload(Team.department)).filter(Team.is_active.is_(True))
    if department_id:
        q = q.filter(Team.department_id == str(department_id))
    return q.order_by(Team.name.asc()).all()


def list_users(
    db: Session,
    q: Optional[str] = None,
    department_id: Optional[str] = None,
    limit: int = 50,
) -> List[User]:
    query = (
        db.query(User)
        .options(joinedload(User.department), joinedload(User.team))
        .filter(User.is_active.is_(True))
    )
    if q:
        like = f"%{q.strip().lower()}%"
        query = query.filter(
            or_(func.lower(User.display_name).like(like), func.lower(User.email).like(like))
        )
    if department_id:
        query = query.filter(User.department_id == str(department_id))
    return query.order_by(User.display_name.asc()).limit(limit).all()


def list_processes(db: Session) -> List[Process]:
    return (
        db.query(Process)
        .filter(Process.is_active.is_(True))
        .order_by(Process.name.asc())
        .all()
    )


def list_incident_types(db: Session) -> List[IncidentType]:
    return (
        db.query(IncidentType)
        .filter(IncidentType.is_active.is_(True))
        .order_by(IncidentType.name.asc())
        .all()
    )


# --- Create -------------------------------------------------------------------

def create_incident_type(
    db: Session,
    payload: IncidentTypeCreate,
    *,
    actor_id: str,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> IncidentType:
    stamp = to_iso(as_utc(now or utcnow()))
    obj = IncidentType(
        name=payload.name.strip(),
        description=payload.description,
        is_active=True,
        created_at=stamp,
        updated_at=stamp,
    )
    db.add(obj)
    db.flush()

    audit_log(
        db,
        entity_type="incident_type",
        entity_id=obj.id,
        action="create",
        user_id=actor_id,
        new_values={"name": obj.name, "description": obj.description},
        meta=meta,
        at=stamp,
    )
    db.commit()
    db.refresh(obj)
    return obj
