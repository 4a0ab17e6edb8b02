# conduct_log/schemas/common.py
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

IncidentStatus = Literal["open", "in_review", "closed"]
IncidentCategory = Literal["near_miss", "behavioural_issue", "process_gap", "other"]
Severity = Literal["low", "medium", "high", "critical"]
PersonRole = Literal["involved", "witness", "other"]
CommentVisibility = Literal["public", "private"]
SortField = Literal["occurredAt", "reportedAt", "severity", "status", "incidentNumber"]
SortOrder = Literal["asc", "desc"]


class CamelModel(BaseModel):
    """
    Wire format is camelCase (``incidentNumber``), Python side stays snake_case.
    Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int = Field(..., description="1-based page number.")
    page_size: int = Field(..., description="Rows per page.")
    total_count: int = Field(..., description="Rows matching the filters, before paging.")
    total_pages: int = Field(..., description="ceil(totalCount / pageSize).")


class UserRef(CamelModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None


class NamedRef(CamelModel):
    id: str
    name: Optional[str] = None
