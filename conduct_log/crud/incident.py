# conduct_log/crud/incident.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic.alias_generators import to_camel

from conduct_log.core.config import INCIDENT_NUMBER_RETRIES
from conduct_log.core.constants import (
    CREATION_REASON,
    DEFAULT_PERSON_ROLE,
    INCIDENT_NUMBER_PREFIX,
    INCIDENT_NUMBER_WIDTH,
    INITIAL_STATUS,
)
from conduct_log.core.errors import ConflictError, NotFoundError, ValidationFailed
from conduct_log.core.timeutil import as_utc, to_iso, utcnow
from conduct_log.models.incident import (
    Incident,
    IncidentPersonLink,
    IncidentProcessLink,
    IncidentTeamLink,
)
from conduct_log.models.reference import Department, IncidentType, Process, Team
from conduct_log.models.status_history import StatusHistory
from conduct_log.models.user import User
from conduct_log.schemas.incident import IncidentCreate, IncidentUpdate
from conduct_log.services.audit import audit_log

log = logging.getLogger("conduct_log.incidents")

# fields an update may set to NULL; the rest are NOT NULL columns
_NULLABLE_UPDATE_FIELDS = {"team_id", "incident_type_id", "hod_id", "risk_owner_id"}

# python attribute -> (model, camelCase field name) for reference checks
_REFERENCE_FIELDS: Dict[str, Tuple[type, str]] = {
    "reporter_id": (User, "reporterId"),
    "department_id": (Department, "departmentId"),
    "team_id": (Team, "teamId"),
    "incident_type_id": (IncidentType, "incidentTypeId"),
    "hod_id": (User, "hodId"),
    "risk_owner_id": (User, "riskOwnerId"),
}


# --- Numbering ----------------------------------------------------------------

def number_prefix(year: int) -> str:
    return f"{INCIDENT_NUMBER_PREFIX}-{year}-"


def format_incident_number(year: int, seq: int) -> str:
    return f"{number_prefix(year)}{seq:0{INCIDENT_NUMBER_WIDTH}d}"


def next_incident_number(db: Session, year: int) -> str:
    """
    Highest existing sequence for the year + 1 (0001 when the year has none).
    Longer numbers sort first so that INC-2025-10000 beats INC-2025-9999.
    """
    prefix = number_prefix(year)
    last = (
        db.query(Incident.incident_number)
        .filter(Incident.incident_number.like(f"{prefix}%"))
        .order_by(func.length(Incident.incident_number).desc(), Incident.incident_number.desc())
        .limit(1)
        .scalar()
    )
    seq = 0
    if last:
        try:
            seq = int(last[len(prefix):])
        except ValueError:
            log.warning("Unparseable incident number %r, restarting sequence", last)
    return format_incident_number(year, seq + 1)


def _number_taken(db: Session, number: str) -> bool:
    return db.query(Incident.id).filter(Incident.incident_number == number).first() is not None


# --- Read helpers -------------------------------------------------------------

def get_incident(db: Session, incident_id: str) -> Optional[Incident]:
    return db.query(Incident).filter(Incident.id == str(incident_id)).first()


def get_incident_or_404(db: Session, incident_id: str) -> Incident:
    obj = get_incident(db, incident_id)
    if not obj:
        raise NotFoundError("Incident not found")
    return obj


# --- Validation ---------------------------------------------------------------

def _exists(db: Session, model: type, obj_id: str) -> bool:
    return db.query(model.id).filter(model.id == obj_id).first() is not None


def _check_references(db: Session, values: Dict[str, Any]) -> None:
    for attr, (model, field) in _REFERENCE_FIELDS.items():
        obj_id = values.get(attr)
        if obj_id is not None and not _exists(db, model, obj_id):
            raise ValidationFailed(field, f"Unknown {field}: {obj_id}")


def _check_many(db: Session, model: type, ids: Iterable[str], field: str) -> None:
    for obj_id in ids:
        if not _exists(db, model, obj_id):
            raise ValidationFailed(field, f"Unknown {field} entry: {obj_id}")


def _unique(ids: Iterable[Any]) -> List[str]:
    seen: List[str] = []
    for i in ids:
        s = str(i)
        if s not in seen:
            seen.append(s)
    return seen


def _person_links(payload: IncidentCreate) -> List[Tuple[str, str]]:
    """(person_id, role) pairs; an explicit role wins over the plain id list."""
    out: Dict[str, str] = {}
    for p in payload.associated_persons:
        out.setdefault(str(p.person_id), p.role)
    for pid in payload.associated_person_ids:
        out.setdefault(str(pid), DEFAULT_PERSON_ROLE)
    return list(out.items())


def _str_or_none(v: Any) -> Optional[str]:
    return None if v is None else str(v)


# --- Create -------------------------------------------------------------------

def create_incident(
    db: Session,
    payload: IncidentCreate,
    *,
    actor_id: str,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
    max_attempts: int = INCIDENT_NUMBER_RETRIES,
) -> Incident:
    """
    Report a new incident: allocate its number, persist it with the initial
    history entry, association links and a ``create`` audit row, all in one
    transaction.

    A concurrent report can grab the same number between our read and our
    insert; the unique constraint rejects the loser, which re-reads the max
    and tries again (at most ``max_attempts`` times, then ``ConflictError``).
    """
    if payload.reporter_id is None:
        raise ValidationFailed("reporterId", "reporterId is required")
    now_dt = as_utc(now or utcnow())
    occurred = as_utc(payload.occurred_at)
    if occurred > now_dt:
        raise ValidationFailed("occurredAt", "Date of incident cannot be in the future")

    values = {
        "reporter_id": str(payload.reporter_id),
        "department_id": str(payload.department_id),
        "team_id": _str_or_none(payload.team_id),
        "incident_type_id": _str_or_none(payload.incident_type_id),
    }
    _check_references(db, values)

    team_ids = _unique(payload.associated_team_ids)
    process_ids = _unique(payload.associated_process_ids)
    persons = _person_links(payload)
    _check_many(db, Team, team_ids, "associatedTeamIds")
    _check_many(db, Process, process_ids, "associatedProcessIds")
    _check_many(db, User, [pid for pid, _ in persons], "associatedPersonIds")

    reporter = db.get(User, values["reporter_id"])
    stamp = to_iso(now_dt)

    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        number = next_incident_number(db, now_dt.year)
        try:
            obj = Incident(
                incident_number=number,
                reporter_ad_user_id=getattr(reporter, "ad_user_id", None),
                occurred_at=to_iso(occurred),
                reported_at=stamp,
                category=payload.category,
                severity=payload.severity,
                description=payload.description,
                privacy_flag=payload.privacy_flag,
                current_status=INITIAL_STATUS,
                version=1,
                escalation_requested=False,
                created_at=stamp,
                updated_at=stamp,
                **values,
            )
            db.add(obj)
            db.flush()

            db.add(
                StatusHistory(
                    incident_id=obj.id,
                    sequence=1,
                    from_status=None,
                    to_status=INITIAL_STATUS,
                    changed_by=actor_id,
                    reason=CREATION_REASON,
                    changed_at=stamp,
                )
            )
            for team_id in team_ids:
                db.add(IncidentTeamLink(incident_id=obj.id, team_id=team_id, created_at=stamp))
            for process_id in process_ids:
                db.add(IncidentProcessLink(incident_id=obj.id, process_id=process_id, created_at=stamp))
            for person_id, role in persons:
                db.add(IncidentPersonLink(incident_id=obj.id, person_id=person_id, role=role, created_at=stamp))

            new_values = payload.model_dump(mode="json", by_alias=True)
            new_values.update({"incidentNumber": number, "currentStatus": INITIAL_STATUS})
            audit_log(
                db,
                entity_type="incident",
                entity_id=obj.id,
                action="create",
                user_id=actor_id,
                new_values=new_values,
                meta=meta,
                at=stamp,
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            if not _number_taken(db, number):
                raise
            log.warning(
                "Incident number %s already taken (attempt %d/%d), retrying",
                number,
                attempt,
                attempts,
            )
            continue

        log.info("Incident %s created id=%s by user=%s", number, obj.id, actor_id)
        return obj

    raise ConflictError(
        "Could not allocate an incident number, please retry",
        details={"attempts": attempts},
    )


# --- Update -------------------------------------------------------------------

def update_incident(
    db: Session,
    incident_id: str,
    payload: IncidentUpdate,
    *,
    actor_id: str,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Incident:
    """Partial update of descriptive fields; status and numbering are untouched."""
    obj = get_incident_or_404(db, incident_id)

    data = payload.model_dump(exclude_unset=True)
    for field, value in list(data.items()):
        if value is None and field not in _NULLABLE_UPDATE_FIELDS:
            raise ValidationFailed(to_camel(field), f"{to_camel(field)} cannot be null")
        if field.endswith("_id"):
            data[field] = _str_or_none(value)
    _check_references(db, data)

    old_values: Dict[str, Any] = {}
    new_values: Dict[str, Any] = {}
    for field, value in data.items():
        current = getattr(obj, field)
        if current != value:
            key = to_camel(field)
            old_values[key] = current
            new_values[key] = value
            setattr(obj, field, value)

    if not new_values:
        return obj

    stamp = to_iso(as_utc(now or utcnow()))
    obj.updated_at = stamp
    audit_log(
        db,
        entity_type="incident",
        entity_id=obj.id,
        action="update",
        user_id=actor_id,
        old_values=old_values,
        new_values=new_values,
        meta=meta,
        at=stamp,
    )
    db.commit()
    db.refresh(obj)
    log.info("Incident %s updated fields=%s by user=%s", obj.incident_number, sorted(new_values), actor_id)
    return obj


