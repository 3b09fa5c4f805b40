# File: civicvoice/services/votes.py
"""
Vote ledger: at most one vote per (issue, user).

The ``uq_issue_vote`` unique constraint decides races between clients. The
vote row and the ``issues.votes`` increment share one transaction, so a
rejected duplicate never reaches the counter.
"""

import logging
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civicvoice.core.errors import AlreadyVoted, NotAuthenticated, NotFound
from civicvoice.db.session import commit_or_rollback
from civicvoice.models.issue import Issue
from civicvoice.models.vote import IssueVote

logger = logging.getLogger(__name__)


def has_voted(db: Session, issue_id: int, user_id: Optional[int]) -> bool:
    if user_id is None:
        return False
    return (
        db.query(IssueVote.id)
        .filter(IssueVote.issue_id == issue_id, IssueVote.user_id == user_id)
        .first()
        is not None
    )


def cast_vote(db: Session, issue_id: int, user_id: Optional[int]) -> Issue:
    if user_id is None:
        raise NotAuthenticated("You must be signed in to vote")

    issue = db.get(Issue, issue_id)
    if not issue:
        raise NotFound("Issue not found")

    if has_voted(db, issue_id, user_id):
        raise AlreadyVoted()

    try:
        db.add(IssueVote(issue_id=issue_id, user_id=user_id))
        db.flush()
    except IntegrityError:
        # lost the race against a concurrent vote from the same user
        db.rollback()
        logger.info(f"Duplicate vote by user {user_id} on issue {issue_id} rejected by constraint")
        raise AlreadyVoted()

    db.execute(
        update(Issue)
        .where(Issue.id == issue_id)
        .values(votes=Issue.votes + 1)
        .execution_options(synchronize_session=False)
    )
    commit_or_rollback(db, "vote")
    db.refresh(issue)
    logger.info(f"User {user_id} voted on issue {issue_id} (votes={issue.votes})")
    return issue


def count_votes(db: Session, issue_id: int) -> int:
    return db.query(func.count(IssueVote.id)).filter(IssueVote.issue_id == issue_id).scalar() or 0


def reconcile_votes(db: Session, issue_id: int) -> int:
    """Rewrite the cached counter from the ledger rows and return it."""
    issue = db.get(Issue, issue_id)
    if not issue:
        raise NotFound("Issue not found")
    counted = count_votes(db, issue_id)
    if issue.votes != counted:
        logger.warning(f"Issue {issue_id} vote counter drifted: {issue.votes} -> {counted}")
        issue.votes = counted
        commit_or_rollback(db, "vote reconcile")
    return counted
