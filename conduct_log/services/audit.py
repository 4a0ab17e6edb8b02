# conduct_log/services/audit.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from conduct_log.core.timeutil import now_iso
from conduct_log.models.audit_log import AuditLog


# -----------------------------
# Helpers
# -----------------------------
def ip_from_request(request: Optional[Request]) -> Optional[str]:
    """
    Best-effort client IP extraction compatible with proxies.
    Order:
      - Forwarded (first "for=" token)
      - X-Forwarded-For (first in the list)
      - X-Real-IP
      - request.client.host
    """
    if request is None:
        return None

    fwd = request.headers.get("forwarded")
    if fwd:
        for part in (p.strip() for p in fwd.split(";")):
            if part.lower().startswith("for="):
                val = part.split("=", 1)[1].strip().strip('"')
                if val:
                    return val

    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    client = getattr(request, "client", None)
    return getattr(client, "host", None)


def request_meta(request: Optional[Request]) -> Dict[str, Any]:
    """Context stored alongside every audit row written during a request."""
    if request is None:
        return {}
    meta: Dict[str, Any] = {"ip": ip_from_request(request)}
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        meta["traceId"] = trace_id
    return meta


def dumps_json(values: Optional[Dict[str, Any]]) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(jsonable_encoder(values), ensure_ascii=False, separators=(",", ":"))


def loads_json(s: Optional[str]) -> Any:
    if s is None:
        return None
    try:
        return json.loads(s)
    except ValueError:
        # legacy rows that are not JSON: return the raw string
        return s


# -----------------------------
# Core API
# -----------------------------
def audit_log(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    user_id: str,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
    at: Optional[str] = None,
) -> AuditLog:
    """
    Adds an audit record to the caller's unit of work.
    Does not commit: the row lands (or rolls back) together with the change it describes.
    """
    row = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        old_values=dumps_json(old_values),
        new_values=dumps_json(new_values),
        meta=dumps_json(meta) if meta else None,
        created_at=at or now_iso(),
    )
    db.add(row)
    return row


def list_audit_logs(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[AuditLog], int]:
    """Newest first; returns (rows, total matching before paging)."""
    q = db.query(AuditLog)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == str(entity_id))
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id:
        q = q.filter(AuditLog.user_id == str(user_id))

    total = q.count()
    rows = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total
