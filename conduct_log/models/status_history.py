# conduct_log/models/status_history.py
import uuid

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from conduct_log.core.constants import INCIDENT_STATUSES, sql_in
from conduct_log.db.base import Base
from conduct_log.models.user import User


class StatusHistory(Base):
    """
    Append-only record of one status change.

    ``sequence`` is the incident's version after the change (1 for creation),
    so the chain has a total order even when two entries share a timestamp.
    """

    __tablename__ = "status_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    # NULL only for the creation entry
    from_status = Column(String(16), nullable=True)
    to_status = Column(String(16), nullable=False)

    changed_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    reason = Column(Text, nullable=True)
    changed_at = Column(String(32), nullable=False)

    incident = relationship("Incident", back_populates="status_history")
    changer = relationship(User)

    __table_args__ = (
        UniqueConstraint("incident_id", "sequence", name="uq_status_history_incident_sequence"),
        CheckConstraint(f"to_status IN {sql_in(INCIDENT_STATUSES)}", name="ck_status_history_to_allowed"),
        CheckConstraint(
            f"from_status IS NULL OR from_status IN {sql_in(INCIDENT_STATUSES)}",
            name="ck_status_history_from_allowed",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<StatusHistory incident={self.incident_id} #{self.sequence} "
            f"{self.from_status}->{self.to_status}>"
        )
