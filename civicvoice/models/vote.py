# File: civicvoice/models/vote.py
from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from civicvoice.db.base import Base

class IssueVote(Base):
    __tablename__ = "issue_votes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # one vote per (issue, user); concurrent duplicates are rejected here, not in code
    __table_args__ = (UniqueConstraint("issue_id", "user_id", name="uq_issue_vote"),)
