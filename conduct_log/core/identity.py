# conduct_log/core/identity.py
"""
Acting-user resolution.

There is no login: the caller names itself with the ``X-User-Id`` header and
the id must belong to an active user. The resolved user is passed explicitly
into every write in crud/services.
"""
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from conduct_log.core.errors import IdentityError
from conduct_log.db.session import get_db
from conduct_log.models.user import User


def resolve_user(db: Session, raw_id: Optional[object]) -> User:
    """Map a raw id (header value or body field) to an active user, or raise IdentityError."""
    if raw_id is None or str(raw_id).strip() == "":
        raise IdentityError("User ID is required")
    try:
        user_id = str(UUID(str(raw_id).strip()))
    except ValueError:
        raise IdentityError("User ID must be a UUID")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_active is False:
        raise IdentityError("Unknown or inactive user")
    return user


def get_user_id_header(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> Optional[str]:
    return x_user_id


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Depends(get_user_id_header),
) -> User:
    return resolve_user(db, x_user_id)
