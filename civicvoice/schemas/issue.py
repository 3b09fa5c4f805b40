# File: civicvoice/schemas/issue.py
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from civicvoice.models.issue import IssueCategory, IssueStatus


class IssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: IssueCategory
    location: str
    status: IssueStatus

    lat: Optional[float] = None
    lng: Optional[float] = None
    image_url: Optional[str] = None

    votes: int = 0
    owner_id: int

    created_at: datetime
    updated_at: Optional[datetime] = None
    in_progress_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Per-caller flags for the issue detail view
    has_voted: Optional[bool] = None
    can_edit: Optional[bool] = None


class IssueUpdate(BaseModel):
    """
    Owner edit patch. ``status`` is accepted only so it can be rejected.
    The image is replaced through its own multipart endpoint.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: Optional[str] = None


class IssueStatusPatch(BaseModel):
    status: IssueStatus


class PaginatedIssuesOut(BaseModel):
    items: List[IssueOut]
    total: int
    offset: int
    limit: int


class VoteOut(BaseModel):
    issue_id: int
    votes: int
    has_voted: bool
