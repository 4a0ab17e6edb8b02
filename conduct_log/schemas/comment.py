# conduct_log/schemas/comment.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import Field

from conduct_log.core.constants import COMMENT_MAX_LENGTH
from conduct_log.schemas.common import CamelModel, CommentVisibility


class CommentCreate(CamelModel):
    body: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)
    visibility: CommentVisibility = Field("public", description="public | private")
    parent_id: Optional[UUID] = Field(None, description="Reply-to comment on the same incident")
