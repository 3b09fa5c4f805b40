# File: civicvoice/routers/map.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from civicvoice.db.session import get_db
from civicvoice.core.errors import NotFound
from civicvoice.models.issue import Issue, IssueCategory, IssueStatus
from civicvoice.schemas.map import (
    BoundsOut,
    FilterReduceIn,
    FilterStateIO,
    MapIssueOut,
    MapViewOut,
    ViewportCommandOut,
)
from civicvoice.services import filters
from civicvoice.services.viewport import ViewportSynchronizer

router = APIRouter(prefix="/map", tags=["map"])


@router.get("/view", response_model=MapViewOut)
def map_view(
    categories: Optional[str] = Query(default=None, description="Comma-separated list of categories"),
    statuses: Optional[str] = Query(default=None, description="Comma-separated list of statuses"),
    search: Optional[str] = Query(default=None),
    selected_category: Optional[IssueCategory] = Query(default=None),
    db: Session = Depends(get_db),
):
    # the map opens on open work only: pending and in-progress
    state = filters.FilterState(
        categories=filters.parse_csv_enum(categories, IssueCategory, filters.ALL_CATEGORIES),
        statuses=filters.parse_csv_enum(statuses, IssueStatus, filters.DEFAULT_STATUSES),
        search=search or "",
    )
    if selected_category is not None:
        state = filters.reduce(state, filters.SelectedCategorySet(selected_category))

    q = filters.filter_query(db.query(Issue), state)
    q = q.filter(Issue.lat.isnot(None), Issue.lng.isnot(None)).order_by(Issue.id)
    issues = q.all()

    command = ViewportSynchronizer().fit(issues)
    return MapViewOut(
        state=FilterStateIO.from_state(state),
        issues=[
            MapIssueOut(id=i.id, title=i.title, lat=i.lat, lng=i.lng,
                        category=i.category, status=i.status, votes=i.votes)
            for i in issues
        ],
        total=len(issues),
        bounds=BoundsOut.from_box(command.bounds) if command else None,
        command=ViewportCommandOut.from_command(command),
    )


@router.post("/filter-state", response_model=FilterStateIO)
def reduce_filter_state(body: FilterReduceIn):
    state = filters.reduce(body.state.to_state(), body.event.to_event())
    return FilterStateIO.from_state(state)


@router.get("/focus/{issue_id}", response_model=ViewportCommandOut)
def focus_issue(issue_id: int, db: Session = Depends(get_db)):
    issue = db.get(Issue, issue_id)
    if not issue:
        raise NotFound("Issue not found")
    return ViewportCommandOut.from_command(ViewportSynchronizer().focus_on(issue))
