# conduct_log/services/workflow.py
"""
Incident status workflow.

The transition table lives in ``conduct_log.core.constants`` and is the only
place legality is decided; the API's ``allowedTransitions`` and ``/lookups``
read the same data.

Every change is a compare-and-swap on ``incidents.version``:

    UPDATE incidents SET current_status = :to, version = :v + 1
    WHERE id = :id AND version = :v

A writer that lost the race sees rowcount 0, rolls back, re-reads the
current status (which may have made the requested move illegal) and tries
again. ``status_history(incident_id, sequence)`` is unique, with
``sequence`` equal to the new version, so two writers can never append the
same link of the chain.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conduct_log.core.config import STATUS_CHANGE_RETRIES
from conduct_log.core.constants import INCIDENT_STATUSES, allowed_transitions
from conduct_log.core.errors import (
    ConflictError,
    IllegalTransitionError,
    NotFoundError,
    ValidationFailed,
)
from conduct_log.core.timeutil import as_utc, to_iso, utcnow
from conduct_log.models.incident import Incident
from conduct_log.models.status_history import StatusHistory
from conduct_log.services.audit import audit_log

log = logging.getLogger("conduct_log.workflow")


@dataclass
class StatusChange:
    incident: Incident
    from_status: str
    to_status: str
    history: StatusHistory


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in allowed_transitions(from_status)


def ensure_transition(from_status: str, to_status: str) -> None:
    if to_status not in INCIDENT_STATUSES:
        raise ValidationFailed("status", f"Unknown status: {to_status}")
    if not can_transition(from_status, to_status):
        raise IllegalTransitionError(from_status, to_status, list(allowed_transitions(from_status)))


def _load_for_update(db: Session, incident_id: str) -> Optional[Incident]:
    # FOR UPDATE is a no-op on SQLite; the version check below is what guards the write
    return (
        db.query(Incident)
        .filter(Incident.id == str(incident_id))
        .populate_existing()
        .with_for_update()
        .first()
    )


def change_status(
    db: Session,
    incident_id: str,
    to_status: str,
    *,
    actor_id: str,
    reason: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
    max_attempts: int = STATUS_CHANGE_RETRIES,
) -> StatusChange:
    """
    Move an incident to ``to_status``, appending the history entry and the
    ``status_change`` audit row in the same transaction.

    Raises NotFoundError, IllegalTransitionError (self-transitions included)
    or ConflictError once ``max_attempts`` compare-and-swaps have lost.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        incident = _load_for_update(db, incident_id)
        if incident is None:
            raise NotFoundError("Incident not found")

        from_status = incident.current_status
        ensure_transition(from_status, to_status)

        version = incident.version
        stamp = to_iso(as_utc(now or utcnow()))

        result = db.execute(
            update(Incident)
            .where(Incident.id == incident.id, Incident.version == version)
            .values(current_status=to_status, version=version + 1, updated_at=stamp)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            log.warning(
                "Stale status change on incident %s (version %s, attempt %d/%d)",
                incident.incident_number,
                version,
                attempt,
                attempts,
            )
            continue

        history = StatusHistory(
            incident_id=incident.id,
            sequence=version + 1,
            from_status=from_status,
            to_status=to_status,
            changed_by=actor_id,
            reason=reason,
            changed_at=stamp,
        )
        db.add(history)
        audit_log(
            db,
            entity_type="incident",
            entity_id=incident.id,
            action="status_change",
            user_id=actor_id,
            old_values={"status": from_status},
            new_values={"status": to_status, "reason": reason},
            meta=meta,
            at=stamp,
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            log.warning(
                "History sequence %d already written for incident %s (attempt %d/%d)",
                version + 1,
                incident.incident_number,
                attempt,
                attempts,
            )
            continue

        db.refresh(incident)
        log.info(
            "Incident %s %s -> %s by user=%s",
            incident.incident_number,
            from_status,
            to_status,
            actor_id,
        )
        return StatusChange(incident=incident, from_status=from_status, to_status=to_status, history=history)

    raise ConflictError(
        "Incident was modified concurrently, please retry",
        details={"incidentId": str(incident_id), "attempts": attempts},
    )
