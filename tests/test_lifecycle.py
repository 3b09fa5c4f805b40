from datetime import datetime, timezone

import pytest

from civicvoice.core.errors import NotAuthenticated, NotEditable, NotOwner, ValidationError
from civicvoice.models.issue import IssueCategory, IssueStatus
from civicvoice.services import lifecycle

OWNER = 1
OTHER = 2
T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)

VALID = {
    "title": "  Broken streetlight  ",
    "description": "The streetlight at the corner has been out for a week.",
    "location": "Corner of 5th and Elm",
}


def new_issue(**overrides):
    issue = lifecycle.apply_create({**VALID, **overrides}, OWNER, now=T0)
    issue.id = 42
    return issue


def snapshot(issue):
    return {f: getattr(issue, f) for f in lifecycle.EDITABLE_FIELDS + ("status", "updated_at")}


def test_create_defaults():
    issue = new_issue()
    assert issue.status == IssueStatus.pending
    assert issue.votes == 0
    assert issue.owner_id == OWNER
    assert issue.category == IssueCategory.other
    assert issue.created_at == issue.updated_at == T0
    assert issue.title == "Broken streetlight"


def test_create_requires_user():
    with pytest.raises(NotAuthenticated):
        lifecycle.apply_create(VALID, None)


@pytest.mark.parametrize("field,value", [
    ("title", "abcd"),
    ("title", "x" * 101),
    ("description", "too short to count"),
    ("location", "   ab   "),
    ("category", "potholes"),
    ("lat", 91),
    ("lng", -180.5),
])
def test_create_rejects_invalid_field(field, value):
    with pytest.raises(ValidationError) as exc:
        lifecycle.apply_create({**VALID, field: value}, OWNER)
    assert exc.value.field == field


def test_create_missing_field_is_named():
    fields = dict(VALID)
    del fields["description"]
    with pytest.raises(ValidationError) as exc:
        lifecycle.apply_create(fields, OWNER)
    assert exc.value.field == "description"


def test_title_length_counts_after_strip():
    issue = new_issue(title="  12345  ")
    assert issue.title == "12345"


@pytest.mark.parametrize("actor,status,expected", [
    (OWNER, IssueStatus.pending, True),
    (OWNER, IssueStatus.in_progress, False),
    (OWNER, IssueStatus.resolved, False),
    (OTHER, IssueStatus.pending, False),
    (OTHER, IssueStatus.resolved, False),
    (None, IssueStatus.pending, False),
])
def test_can_edit_and_delete(actor, status, expected):
    issue = new_issue()
    issue.status = status
    assert lifecycle.can_edit(issue, actor) is expected
    assert lifecycle.can_delete(issue, actor) is expected


def test_edit_updates_fields_and_timestamp():
    issue = new_issue()
    lifecycle.apply_edit(issue, OWNER, {"title": "Streetlight out", "category": "electricity"}, now=T1)
    assert issue.title == "Streetlight out"
    assert issue.category == IssueCategory.electricity
    assert issue.updated_at == T1
    assert issue.created_at == T0


def test_edit_rejections_leave_issue_unchanged():
    issue = new_issue()
    before = snapshot(issue)

    with pytest.raises(NotAuthenticated):
        lifecycle.apply_edit(issue, None, {"title": "Another title"})
    with pytest.raises(NotOwner):
        lifecycle.apply_edit(issue, OTHER, {"title": "Another title"})
    with pytest.raises(ValidationError) as exc:
        lifecycle.apply_edit(issue, OWNER, {"status": "resolved"})
    assert exc.value.field == "status"
    # one bad field rejects the whole patch
    with pytest.raises(ValidationError):
        lifecycle.apply_edit(issue, OWNER, {"title": "Perfectly fine", "description": "short"})

    assert snapshot(issue) == before


def test_status_change_mid_session_revokes_edit():
    issue = new_issue()
    assert lifecycle.can_edit(issue, OWNER)

    assert lifecycle.advance_status(issue, IssueStatus.in_progress, now=T1)

    assert not lifecycle.can_edit(issue, OWNER)
    with pytest.raises(NotEditable):
        lifecycle.apply_edit(issue, OWNER, {"title": "Too late now"})
    with pytest.raises(NotEditable):
        lifecycle.check_delete(issue, OWNER)
    assert issue.title == "Broken streetlight"


def test_forward_transitions_stamp_times():
    issue = new_issue()
    lifecycle.advance_status(issue, IssueStatus.in_progress, now=T1)
    assert issue.in_progress_at == T1
    assert issue.resolved_at is None
    lifecycle.advance_status(issue, IssueStatus.resolved, now=T1)
    assert issue.status == IssueStatus.resolved
    assert issue.resolved_at == T1


def test_same_status_is_a_noop():
    issue = new_issue()
    assert lifecycle.advance_status(issue, IssueStatus.pending, now=T1) is False
    assert issue.updated_at == T0


@pytest.mark.parametrize("start,target", [
    (IssueStatus.pending, IssueStatus.resolved),
    (IssueStatus.in_progress, IssueStatus.pending),
    (IssueStatus.resolved, IssueStatus.in_progress),
    (IssueStatus.resolved, IssueStatus.pending),
])
def test_invalid_transitions(start, target):
    issue = new_issue()
    issue.status = start
    with pytest.raises(ValidationError) as exc:
        lifecycle.advance_status(issue, target)
    assert exc.value.field == "status"
    assert issue.status == start
