# conduct_log/models/user.py
import uuid

from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    Boolean,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from conduct_log.core.constants import USER_ROLES, sql_in
from conduct_log.core.timeutil import now_iso
from conduct_log.db.base import Base


class User(Base):
    """Directory entry (mirrors the organisation's AD export); also the acting identity."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    ad_user_id = Column(String(255), nullable=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=False)

    department_id = Column(String(36), ForeignKey("departments.id"), nullable=True, index=True)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=True, index=True)

    # employee | hod | risk_office | admin
    role = Column(String(20), nullable=False, default="employee")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(String(32), nullable=False, default=now_iso)
    updated_at = Column(String(32), nullable=False, default=now_iso, onupdate=now_iso)

    department = relationship("Department")
    team = relationship("Team")

    __table_args__ = (
        CheckConstraint(f"role IN {sql_in(USER_ROLES)}", name="ck_users_role_allowed"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"
