"""
Pydantic schemas for the TaPiff FastAPI backend.

Wire format is camelCase; snake_case field names are accepted on input too.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Upper bound of the 32-bit integer page_number column.
MAX_PAGE_NUMBER = 2**31 - 1


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ProjectCreateRequest(ApiModel):
    # Optional here so a missing title is reported as a 400 by the access layer.
    title: Optional[str] = None
    description: Optional[str] = None


class ProjectUpdateRequest(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None


class PageCreateRequest(ApiModel):
    project_id: Optional[str] = None
    page_type: Optional[str] = None
    page_data: Optional[str] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    page_number: Optional[int] = Field(default=None, ge=0, le=MAX_PAGE_NUMBER)


class PageUpdateRequest(ApiModel):
    page_type: Optional[str] = None
    page_data: Optional[str] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    page_number: Optional[int] = Field(default=None, ge=0, le=MAX_PAGE_NUMBER)


class PageSummaryResponse(ApiModel):
    id: str
    page_type: str


class PageResponse(ApiModel):
    id: str
    project_id: str
    page_type: str
    page_number: int
    page_data: str
    month: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ProjectResponse(ApiModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    cover_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProjectListItem(ProjectResponse):
    pages: list[PageSummaryResponse] = []


class ProjectDetailResponse(ProjectResponse):
    pages: list[PageResponse] = []


class MessageResponse(ApiModel):
    message: str


class HealthResponse(ApiModel):
    status: Literal["ok"]
