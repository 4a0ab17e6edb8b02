# conduct_log/schemas/reference.py
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field

from conduct_log.core.constants import NAME_MAX_LENGTH, DESCRIPTION_MAX_LENGTH
from conduct_log.schemas.common import CamelModel


class DepartmentOut(CamelModel):
    id: str
    name: str
    code: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str


class TeamOut(CamelModel):
    id: str
    name: str
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str


class UserOut(CamelModel):
    id: str
    email: str
    display_name: str
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    role: str
    is_active: bool


class ProcessOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str


class IncidentTypeOut(ProcessOut):
    pass


class IncidentTypeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)


class StatusLookup(CamelModel):
    value: str
    label: str
    transitions: List[str]


class Lookups(CamelModel):
    statuses: List[StatusLookup]
    categories: List[Dict[str, str]]
    severities: List[Dict[str, object]]
    person_roles: List[str]
    comment_visibilities: List[str]
