# conduct_log/models/comment.py
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from conduct_log.core.constants import COMMENT_VISIBILITIES, sql_in
from conduct_log.core.timeutil import now_iso
from conduct_log.db.base import Base
from conduct_log.models.user import User


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # threading: parent comment on the same incident
    parent_id = Column(String(36), nullable=True)
    body = Column(Text, nullable=False)
    # public | private (private = HoD / risk office only)
    visibility = Column(String(16), nullable=False, default="public")

    created_at = Column(String(32), nullable=False, default=now_iso)
    updated_at = Column(String(32), nullable=False, default=now_iso, onupdate=now_iso)

    incident = relationship("Incident", back_populates="comments")
    author = relationship(User)

    __table_args__ = (
        CheckConstraint(f"visibility IN {sql_in(COMMENT_VISIBILITIES)}", name="ck_comments_visibility_allowed"),
    )
