# File: civicvoice/services/lifecycle.py
"""
Issue lifecycle guard.

Rules:
- only the owner may edit or delete an issue, and only while it is pending
- status moves pending -> in-progress -> resolved, one step at a time,
  never backwards, and never through the owner edit path
- a rejected change leaves the issue exactly as it was
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from civicvoice.core.errors import NotAuthenticated, NotEditable, NotOwner, ValidationError
from civicvoice.models.issue import Issue, IssueCategory, IssueStatus

logger = logging.getLogger(__name__)

# (min, max) lengths after stripping surrounding whitespace
FIELD_LIMITS = {
    "title": (5, 100),
    "description": (20, 1000),
    "location": (5, 200),
}
EDITABLE_FIELDS = ("title", "description", "category", "location", "lat", "lng", "image_url")

ALLOWED_TRANSITIONS: Dict[IssueStatus, List[IssueStatus]] = {
    IssueStatus.pending: [IssueStatus.in_progress],
    IssueStatus.in_progress: [IssueStatus.resolved],
    IssueStatus.resolved: [],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def can_edit(issue, actor_id: Optional[int]) -> bool:
    return (
        actor_id is not None
        and issue.owner_id == actor_id
        and issue.status == IssueStatus.pending
    )


def can_delete(issue, actor_id: Optional[int]) -> bool:
    return can_edit(issue, actor_id)


def _check_mutable(issue, actor_id: Optional[int]) -> None:
    if actor_id is None:
        raise NotAuthenticated()
    if issue.owner_id != actor_id:
        logger.info(f"User {actor_id} rejected as non-owner of issue {issue.id}")
        raise NotOwner()
    if issue.status != IssueStatus.pending:
        logger.info(f"Issue {issue.id} is {issue.status.value}; owner change rejected")
        raise NotEditable()


def check_edit(issue, actor_id: Optional[int]) -> None:
    _check_mutable(issue, actor_id)


def check_delete(issue, actor_id: Optional[int]) -> None:
    _check_mutable(issue, actor_id)


def _clean_text(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    value = value.strip()
    lo, hi = FIELD_LIMITS[field]
    if len(value) < lo:
        raise ValidationError(field, f"{field} must be at least {lo} characters")
    if len(value) > hi:
        raise ValidationError(field, f"{field} cannot exceed {hi} characters")
    return value


def _clean_category(value: Any) -> IssueCategory:
    try:
        return IssueCategory(value)
    except ValueError:
        raise ValidationError("category", f"Unknown category: {value}")


def _clean_coordinate(field: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be a number")
    limit = 90.0 if field == "lat" else 180.0
    if not -limit <= value <= limit:
        raise ValidationError(field, f"{field} must be between {-limit} and {limit}")
    return value


def validate_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate issue fields and return the cleaned values.

    With ``partial`` only the keys present are checked (edit patches);
    otherwise title, description and location are required.
    """
    if "status" in fields:
        raise ValidationError("status", "Status cannot be changed through an edit")
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be edited")

    cleaned: Dict[str, Any] = {}
    for field in FIELD_LIMITS:
        if field in fields:
            cleaned[field] = _clean_text(field, fields[field])
        elif not partial:
            raise ValidationError(field, f"{field} is required")

    if "category" in fields:
        cleaned["category"] = _clean_category(fields["category"])
    elif not partial:
        cleaned["category"] = IssueCategory.other

    for field in ("lat", "lng"):
        if field in fields:
            cleaned[field] = _clean_coordinate(field, fields[field])
    if "image_url" in fields:
        cleaned["image_url"] = fields["image_url"] or None
    return cleaned


def apply_create(fields: Mapping[str, Any], actor_id: Optional[int], now: Optional[datetime] = None) -> Issue:
    if actor_id is None:
        raise NotAuthenticated()
    cleaned = validate_fields(fields)
    now = now or _now()
    return Issue(
        **cleaned,
        status=IssueStatus.pending,
        votes=0,
        owner_id=actor_id,
        created_at=now,
        updated_at=now,
    )


def apply_edit(issue: Issue, actor_id: Optional[int], patch: Mapping[str, Any], now: Optional[datetime] = None) -> Issue:
    _check_mutable(issue, actor_id)
    # validate everything before touching the issue
    cleaned = validate_fields(patch, partial=True)
    for field, value in cleaned.items():
        setattr(issue, field, value)
    issue.updated_at = now or _now()
    return issue


def is_valid_transition(from_status: IssueStatus, to_status: IssueStatus) -> bool:
    if from_status == to_status:
        return True
    return to_status in ALLOWED_TRANSITIONS.get(from_status, [])


def advance_status(issue: Issue, new_status: IssueStatus, now: Optional[datetime] = None) -> bool:
    """
    Move the issue to ``new_status``. Returns False for a same-status no-op.

    Raises ValidationError for backward or skipping transitions.
    """
    current = issue.status
    if not is_valid_transition(current, new_status):
        allowed = [s.value for s in ALLOWED_TRANSITIONS.get(current, [])]
        raise ValidationError(
            "status",
            f"Invalid status transition: {current.value} -> {new_status.value}. "
            f"Allowed transitions from {current.value}: {allowed}",
        )
    if current == new_status:
        return False
    now = now or _now()
    issue.status = new_status
    issue.updated_at = now
    if new_status == IssueStatus.in_progress:
        issue.in_progress_at = now
    elif new_status == IssueStatus.resolved:
        issue.resolved_at = now
    return True
