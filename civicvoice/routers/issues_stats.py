# File: civicvoice/routers/issues_stats.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime, time, timezone
from typing import Optional
from civicvoice.core.config import settings
from civicvoice.db.session import get_db
from civicvoice.models.issue import Issue, IssueCategory
from civicvoice.schemas.issue import IssueOut
from civicvoice.services import aggregation

router = APIRouter(prefix="/issues/stats", tags=["issues:stats"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _issues_since(db: Session, start: Optional[date], category: Optional[IssueCategory] = None):
    q = db.query(Issue)
    if start is not None:
        q = q.filter(Issue.created_at >= datetime.combine(start, time.min, tzinfo=timezone.utc))
    if category is not None:
        q = q.filter(Issue.category == category)
    return q.all()


def _series_start(start: Optional[date], issues, end: date) -> date:
    if start is not None:
        return start
    days = [aggregation.utc_day(i.created_at) for i in issues]
    return min(days) if days else end


@router.get("/summary")
def summary(
    range: str = Query("7d"),
    category: Optional[IssueCategory] = Query(None),
    db: Session = Depends(get_db),
):
    start, _ = aggregation.range_to_dates(range, _today())
    return aggregation.status_summary(_issues_since(db, start, category))


@router.get("/by-category")
def by_category(range: str = Query("7d"), db: Session = Depends(get_db)):
    start, _ = aggregation.range_to_dates(range, _today())
    counts = aggregation.count_by_category(_issues_since(db, start))
    return aggregation.category_distribution(counts)


@router.get("/daily")
def daily(
    range: str = Query("7d"),
    category: Optional[IssueCategory] = Query(None),
    db: Session = Depends(get_db),
):
    start, end = aggregation.range_to_dates(range, _today())
    issues = _issues_since(db, start, category)
    return aggregation.temporal_series(issues, _series_start(start, issues, end), end)


@router.get("/top-voted", response_model=list[IssueOut])
def top_voted(
    range: str = Query("all"),
    category: Optional[IssueCategory] = Query(None),
    limit: int = Query(default=settings.top_voted_limit, ge=1, le=100),
    db: Session = Depends(get_db),
):
    start, _ = aggregation.range_to_dates(range, _today())
    return aggregation.top_voted(_issues_since(db, start, category), limit)


@router.get("/dashboard")
def dashboard(
    range: str = Query("7d"),
    category: Optional[IssueCategory] = Query(None, description="Drill-down category"),
    limit: int = Query(default=settings.top_voted_limit, ge=1, le=100),
    db: Session = Depends(get_db),
):
    start, end = aggregation.range_to_dates(range, _today())
    data = aggregation.dashboard(_issues_since(db, start), start, end, category, limit)
    data["top_voted"] = [IssueOut.model_validate(i) for i in data["top_voted"]]
    return data
