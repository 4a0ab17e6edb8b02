# conduct_log/crud/comment.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from conduct_log.core.errors import ValidationFailed
from conduct_log.core.timeutil import as_utc, to_iso, utcnow
from conduct_log.crud.incident import get_incident_or_404
from conduct_log.models.comment import Comment
from conduct_log.schemas.comment import CommentCreate
from conduct_log.services.audit import audit_log

log = logging.getLogger("conduct_log.incidents")


def list_comments(
    db: Session,
    incident_id: str,
    visibility: Optional[str] = None,
) -> List[Comment]:
    incident = get_incident_or_404(db, incident_id)
    q = (
        db.query(Comment)
        .options(joinedload(Comment.author))
        .filter(Comment.incident_id == incident.id)
    )
    if visibility:
        q = q.filter(Comment.visibility == visibility)
    return q.order_by(Comment.created_at.asc(), Comment.id.asc()).all()


def create_comment(
    db: Session,
    incident_id: str,
    payload: CommentCreate,
    *,
    actor_id: str,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Comment:
    incident = get_incident_or_404(db, incident_id)

    parent_id = str(payload.parent_id) if payload.parent_id else None
    if parent_id:
        parent = db.query(Comment).filter(Comment.id == parent_id).first()
        if not parent or parent.incident_id != incident.id:
            raise ValidationFailed("parentId", "Parent comment does not belong to this incident")

    stamp = to_iso(as_utc(now or utcnow()))
    obj = Comment(
        incident_id=incident.id,
        author_id=actor_id,
        parent_id=parent_id,
        body=payload.body,
        visibility=payload.visibility,
        created_at=stamp,
        updated_at=stamp,
    )
    db.add(obj)
    db.flush()

    audit_log(
        db,
        entity_type="comment",
        entity_id=obj.id,
        action="create",
        user_id=actor_id,
        new_values={
            "incidentId": incident.id,
            "visibility": obj.visibility,
            "parentId": parent_id,
        },
        meta=meta,
        at=stamp,
    )
    db.commit()
    db.refresh(obj)
    log.info("Comment %s added to incident %s by user=%s", obj.id, incident.incident_number, actor_id)
    return obj
