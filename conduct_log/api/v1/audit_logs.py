# conduct_log/api/v1/audit_logs.py
from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from conduct_log.core.constants import AUDIT_ACTIONS, AUDIT_ENTITY_TYPES
from conduct_log.core.errors import ValidationFailed
from conduct_log.db.session import get_db
from conduct_log.schemas.audit import AuditLogOut, AuditLogPage
from conduct_log.schemas.common import Pagination
from conduct_log.services.audit import list_audit_logs, loads_json

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogPage)
def get_audit_logs(
    response: Response,
    entity_type: Optional[str] = Query(None, alias="entityType", description="incident | incident_type | comment"),
    entity_id: Optional[str] = Query(None, alias="entityId"),
    action: Optional[str] = Query(None, description="create | update | status_change"),
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000, alias="pageSize"),
    db: Session = Depends(get_db),
):
    """
    Audit trail, newest first. Snapshots (oldValues / newValues / meta) come
    back parsed; X-Total-Count carries the unpaged total.
    """
    if entity_type and entity_type not in AUDIT_ENTITY_TYPES:
        raise ValidationFailed("entityType", f"entityType must be one of {', '.join(AUDIT_ENTITY_TYPES)}")
    if action and action not in AUDIT_ACTIONS:
        raise ValidationFailed("action", f"action must be one of {', '.join(AUDIT_ACTIONS)}")

    rows, total = list_audit_logs(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        page=page,
        page_size=page_size,
    )
    response.headers["X-Total-Count"] = str(total)

    items = [
        AuditLogOut(
            id=r.id,
            entity_type=r.entity_type,
            entity_id=r.entity_id,
            action=r.action,
            user_id=r.user_id,
            old_values=loads_json(r.old_values),
            new_values=loads_json(r.new_values),
            meta=loads_json(r.meta),
            created_at=r.created_at,
        )
        for r in rows
    ]
    return AuditLogPage(
        data=items,
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_count=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        ),
    )
