# conduct_log/schemas/audit.py
from __future__ import annotations

from typing import Any, List, Optional

from conduct_log.schemas.common import CamelModel, Pagination


class AuditLogOut(CamelModel):
    id: str
    entity_type: str
    entity_id: str
    action: str
    user_id: str
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    meta: Optional[Any] = None
    created_at: str


class AuditLogPage(CamelModel):
    data: List[AuditLogOut]
    pagination: Pagination
