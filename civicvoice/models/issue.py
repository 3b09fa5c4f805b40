# File: civicvoice/models/issue.py
from __future__ import annotations
from enum import Enum as PyEnum
from sqlalchemy import String, Float, Enum, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from civicvoice.db.base import Base

class IssueCategory(str, PyEnum):
    # declaration order is the display order of every category chart
    road = "road"
    water = "water"
    sanitation = "sanitation"
    electricity = "electricity"
    other = "other"

class IssueStatus(str, PyEnum):
    pending = "pending"
    in_progress = "in-progress"
    resolved = "resolved"

class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str] = mapped_column(String(1000))
    category: Mapped[IssueCategory] = mapped_column(Enum(IssueCategory), index=True)
    location: Mapped[str] = mapped_column(String(200))
    status: Mapped[IssueStatus] = mapped_column(Enum(IssueStatus), default=IssueStatus.pending, index=True)

    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    votes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)

    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True))

    in_progress_at: Mapped["DateTime | None"] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped["DateTime | None"] = mapped_column(DateTime(timezone=True), nullable=True)

Index("ix_issues_lat_lng", Issue.lat, Issue.lng)
