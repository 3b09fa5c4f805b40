# File: civicvoice/routers/issues.py
import logging
from fastapi import APIRouter, Depends, Query, UploadFile, File, Request, Form, Response
from sqlalchemy.orm import Session
from typing import Optional
from civicvoice.db.session import get_db, commit_or_rollback
from civicvoice.models.issue import Issue, IssueCategory, IssueStatus
from civicvoice.models.issue_activity import IssueActivity, ActivityKind
from civicvoice.models.user import User, UserRole
from civicvoice.models.vote import IssueVote
from civicvoice.schemas.issue import (
    IssueOut,
    IssueStatusPatch,
    IssueUpdate,
    PaginatedIssuesOut,
    VoteOut,
)
from civicvoice.core.errors import NotFound, ValidationError
from civicvoice.core.ratelimit import limiter
from civicvoice.core.security import AuthContext, get_auth_context, require_role
from civicvoice.services import filters, lifecycle, votes
from civicvoice.services.storage import read_upload, upload_image, make_object_key
from civicvoice.services.viewport import BoundingBox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["issues"])


def _get_issue(db: Session, issue_id: int) -> Issue:
    issue = db.get(Issue, issue_id)
    if not issue:
        raise NotFound("Issue not found")
    return issue


def _issue_out(issue: Issue, db: Optional[Session] = None, auth: Optional[AuthContext] = None) -> IssueOut:
    out = IssueOut.model_validate(issue)
    if db is not None and auth is not None:
        out.has_voted = votes.has_voted(db, issue.id, auth.user_id)
        out.can_edit = lifecycle.can_edit(issue, auth.user_id)
    return out


@router.post("", response_model=IssueOut, status_code=201)
@limiter.limit("10/minute")
def create_issue(
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    lat: Optional[float] = Form(None),
    lng: Optional[float] = Form(None),
    image: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    actor_id = auth.require_user()
    submitted = {
        "title": title,
        "description": description,
        "category": category,
        "location": location,
        "lat": lat,
        "lng": lng,
    }
    fields = {k: v for k, v in submitted.items() if v is not None}

    # validate before uploading so a rejected form never leaves an orphaned image
    lifecycle.validate_fields(fields)
    if image is not None and image.filename:
        data = read_upload(image.file)
        key = make_object_key(actor_id, image.filename)
        fields["image_url"] = upload_image(data, image.content_type or "", key)

    obj = lifecycle.apply_create(fields, actor_id)
    db.add(obj)
    commit_or_rollback(db, "create issue")
    db.refresh(obj)
    db.add(IssueActivity(issue_id=obj.id, actor_id=actor_id, kind=ActivityKind.created.value, at=obj.created_at))
    commit_or_rollback(db, "record activity")
    logger.info(f"User {actor_id} reported issue {obj.id} ({obj.category.value})")
    return _issue_out(obj)


@router.get("", response_model=PaginatedIssuesOut)
@limiter.limit("60/minute")
def list_issues(
    request: Request,
    db: Session = Depends(get_db),
    categories: Optional[str] = Query(
        default=None, description="Comma-separated list of categories"
    ),
    statuses: Optional[str] = Query(
        default=None, description="Comma-separated list of statuses"
    ),
    search: Optional[str] = Query(default=None),
    bbox: Optional[str] = Query(
        default=None, description="minLng,minLat,maxLng,maxLat"
    ),
    mine_only: int = Query(default=0, ge=0, le=1),
    sort: str = Query(default="recent", pattern="^(recent|top)$"),
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
):
    # the browse page shows every status unless asked otherwise
    state = filters.FilterState(
        categories=filters.parse_csv_enum(categories, IssueCategory, filters.ALL_CATEGORIES),
        statuses=filters.parse_csv_enum(statuses, IssueStatus, frozenset(IssueStatus)),
        search=search or "",
    )
    q = filters.filter_query(db.query(Issue), state)

    # --------- BBOX FILTER ---------
    if bbox:
        try:
            box = BoundingBox.from_bbox_param(bbox)
        except ValueError:
            raise ValidationError("bbox", "Invalid bbox format")
        q = q.filter(
            Issue.lng >= box.min_lng,
            Issue.lng <= box.max_lng,
            Issue.lat >= box.min_lat,
            Issue.lat <= box.max_lat,
        )

    # --------- MINE ONLY (issues created by logged-in user) ---------
    if mine_only:
        q = q.filter(Issue.owner_id == auth.require_user())

    total_count = q.count()
    if sort == "top":
        q = q.order_by(Issue.votes.desc(), Issue.created_at.desc(), Issue.id.asc())
    else:
        q = q.order_by(Issue.created_at.desc(), Issue.id.desc())
    issues = q.offset(offset).limit(limit).all()

    return {
        "items": [_issue_out(i) for i in issues],
        "total": total_count,
        "offset": offset,
        "limit": limit,
    }


@router.get("/mine", response_model=list[IssueOut])
def my_issues(db: Session = Depends(get_db), auth: AuthContext = Depends(get_auth_context)):
    owner_id = auth.require_user()
    issues = (
        db.query(Issue)
        .filter(Issue.owner_id == owner_id)
        .order_by(Issue.created_at.desc(), Issue.id.desc())
        .all()
    )
    return [_issue_out(i, db, auth) for i in issues]


@router.get("/{issue_id}", response_model=IssueOut)
def get_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    return _issue_out(_get_issue(db, issue_id), db, auth)


@router.patch("/{issue_id}", response_model=IssueOut)
def update_issue(
    issue_id: int,
    body: IssueUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    obj = _get_issue(db, issue_id)
    lifecycle.apply_edit(obj, auth.user_id, body.model_dump(exclude_unset=True))
    commit_or_rollback(db, "edit issue")
    db.refresh(obj)
    return _issue_out(obj, db, auth)


@router.delete("/{issue_id}", status_code=204)
def delete_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    obj = _get_issue(db, issue_id)
    lifecycle.check_delete(obj, auth.user_id)
    # ledger and audit rows go with the issue, in the same transaction
    db.query(IssueVote).filter(IssueVote.issue_id == issue_id).delete(synchronize_session=False)
    db.query(IssueActivity).filter(IssueActivity.issue_id == issue_id).delete(synchronize_session=False)
    db.delete(obj)
    commit_or_rollback(db, "delete issue")
    logger.info(f"User {auth.user_id} deleted issue {issue_id}")
    return Response(status_code=204)


@router.put("/{issue_id}/image", response_model=IssueOut)
@limiter.limit("10/minute")
def replace_issue_image(
    request: Request,
    issue_id: int,
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    obj = _get_issue(db, issue_id)
    # reject before uploading so a refused edit never leaves an orphaned image
    lifecycle.check_edit(obj, auth.user_id)
    if not image.filename:
        raise ValidationError("image", "Image file is required")
    data = read_upload(image.file)
    key = make_object_key(auth.user_id, image.filename)
    url = upload_image(data, image.content_type or "", key)
    lifecycle.apply_edit(obj, auth.user_id, {"image_url": url})
    commit_or_rollback(db, "replace image")
    db.refresh(obj)
    logger.info(f"User {auth.user_id} replaced the image of issue {issue_id}")
    return _issue_out(obj, db, auth)


@router.delete("/{issue_id}/image", response_model=IssueOut)
def remove_issue_image(
    issue_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    obj = _get_issue(db, issue_id)
    lifecycle.apply_edit(obj, auth.user_id, {"image_url": None})
    commit_or_rollback(db, "remove image")
    db.refresh(obj)
    return _issue_out(obj, db, auth)


@router.patch("/{issue_id}/status", response_model=IssueOut)
def update_status(
    issue_id: int,
    body: IssueStatusPatch,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.admin, UserRole.staff)),
):
    obj = _get_issue(db, issue_id)
    if lifecycle.advance_status(obj, body.status):
        kind = ActivityKind.in_progress if body.status == IssueStatus.in_progress else ActivityKind.resolved
        db.add(IssueActivity(issue_id=obj.id, actor_id=current_user.id, kind=kind.value, at=obj.updated_at))
        commit_or_rollback(db, "status change")
        db.refresh(obj)
        logger.info(f"Issue {issue_id} moved to {obj.status.value} by user {current_user.id}")
    return _issue_out(obj)


@router.post("/{issue_id}/vote", response_model=VoteOut)
@limiter.limit("30/minute")
def vote(
    request: Request,
    issue_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    issue = votes.cast_vote(db, issue_id, auth.user_id)
    return VoteOut(issue_id=issue.id, votes=issue.votes, has_voted=True)


@router.get("/{issue_id}/vote", response_model=VoteOut)
def vote_status(
    issue_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    issue = _get_issue(db, issue_id)
    return VoteOut(
        issue_id=issue.id,
        votes=issue.votes,
        has_voted=votes.has_voted(db, issue_id, auth.user_id),
    )


@router.post("/{issue_id}/votes/reconcile", response_model=VoteOut,
             dependencies=[Depends(require_role(UserRole.admin))])
def reconcile_votes(issue_id: int, db: Session = Depends(get_db)):
    counted = votes.reconcile_votes(db, issue_id)
    return VoteOut(issue_id=issue_id, votes=counted, has_voted=False)


@router.get("/{issue_id}/activity")
def get_issue_activity(issue_id: int, db: Session = Depends(get_db)):
    _get_issue(db, issue_id)
    rows = (
        db.query(IssueActivity)
        .filter(IssueActivity.issue_id == issue_id)
        .order_by(IssueActivity.at, IssueActivity.id)
        .all()
    )
    return [
        {
            "kind": act.kind,
            "at": act.at.isoformat() if act.at else None,
            "actor_id": act.actor_id,
        }
        for act in rows
    ]
