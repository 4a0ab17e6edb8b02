# conduct_log/models/audit_log.py
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, Index

from conduct_log.core.timeutil import now_iso
from conduct_log.db.base import Base


class AuditLog(Base):
    """
    Cross-entity, append-only audit trail.
    old_values / new_values / meta hold compact JSON text snapshots.
    """

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(String(36), nullable=False)
    # create | update | status_change
    action = Column(String(32), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    old_values = Column(Text, nullable=True)
    new_values = Column(Text, nullable=True)
    meta = Column("metadata", Text, nullable=True)
    created_at = Column(String(32), nullable=False, default=now_iso)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )
