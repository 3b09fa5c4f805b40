import threading

import pytest

from civicvoice.core.errors import AlreadyVoted, NotAuthenticated, NotFound
from civicvoice.models.issue import Issue
from civicvoice.models.vote import IssueVote
from civicvoice.services import votes


def test_vote_once(db, make_user, make_issue):
    owner = make_user("owner@example.com")
    voter = make_user("voter@example.com")
    issue = make_issue(owner)

    assert not votes.has_voted(db, issue.id, voter.id)
    updated = votes.cast_vote(db, issue.id, voter.id)

    assert updated.votes == 1
    assert votes.has_voted(db, issue.id, voter.id)
    assert votes.count_votes(db, issue.id) == 1


def test_second_vote_rejected_counter_unchanged(db, make_user, make_issue):
    owner = make_user("owner@example.com")
    issue = make_issue(owner)
    votes.cast_vote(db, issue.id, owner.id)

    with pytest.raises(AlreadyVoted):
        votes.cast_vote(db, issue.id, owner.id)

    db.expire_all()
    assert db.get(Issue, issue.id).votes == 1
    assert votes.count_votes(db, issue.id) == 1


def test_anonymous_and_missing(db, make_user, make_issue):
    owner = make_user()
    issue = make_issue(owner)
    with pytest.raises(NotAuthenticated):
        votes.cast_vote(db, issue.id, None)
    with pytest.raises(NotFound):
        votes.cast_vote(db, 9999, owner.id)
    assert votes.has_voted(db, issue.id, None) is False


def test_votes_from_different_users_add_up(db, make_user, make_issue):
    owner = make_user("owner@example.com")
    issue = make_issue(owner)
    for n in range(3):
        voter = make_user(f"voter{n}@example.com")
        votes.cast_vote(db, issue.id, voter.id)
    db.expire_all()
    assert db.get(Issue, issue.id).votes == 3


def test_reconcile_repairs_drift(db, make_user, make_issue):
    owner = make_user()
    issue = make_issue(owner)
    votes.cast_vote(db, issue.id, owner.id)

    issue.votes = 7
    db.commit()

    assert votes.reconcile_votes(db, issue.id) == 1
    db.expire_all()
    assert db.get(Issue, issue.id).votes == 1


def test_concurrent_duplicate_votes(session_factory, make_user, make_issue):
    owner = make_user("owner@example.com")
    voter = make_user("voter@example.com")
    issue = make_issue(owner)
    issue_id, voter_id = issue.id, voter.id

    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        s = session_factory()
        try:
            barrier.wait()
            votes.cast_vote(s, issue_id, voter_id)
            result = "ok"
        except AlreadyVoted:
            result = "dup"
        finally:
            s.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == workers - 1

    check = session_factory()
    try:
        assert check.get(Issue, issue_id).votes == 1
        assert votes.count_votes(check, issue_id) == 1
    finally:
        check.close()


def test_sqlite_connections_enforce_foreign_keys(engine):
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1


def test_deleting_an_issue_removes_its_ledger_rows(db, make_user, make_issue):
    owner = make_user("owner@example.com")
    voter = make_user("voter@example.com")
    issue = make_issue(owner)
    votes.cast_vote(db, issue.id, voter.id)

    db.delete(db.get(Issue, issue.id))
    db.commit()
    assert db.query(IssueVote).count() == 0

    fresh = make_issue(owner)
    assert not votes.has_voted(db, fresh.id, voter.id)
    assert votes.cast_vote(db, fresh.id, voter.id).votes == 1
    assert votes.count_votes(db, fresh.id) == 1
