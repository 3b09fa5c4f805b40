import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_ROLE", None)

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from civicvoice.core.security import hash_password, make_tokens
from civicvoice.db.base import Base
from civicvoice.db.session import get_db, make_engine
from civicvoice.main import app
from civicvoice.models.issue import IssueStatus
from civicvoice.models.user import User, UserRole
from civicvoice.services import lifecycle
from civicvoice.services.profiles import profiles


@pytest.fixture
def engine(tmp_path):
    """Fresh file-backed database per test, so worker threads share it."""
    eng = make_engine(f"sqlite:///{tmp_path / 'civicvoice.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    profiles.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    profiles.clear()


@pytest.fixture
def make_user(db):
    def _make(email="citizen@example.com", role=UserRole.citizen, name="Test Citizen", password="password123"):
        user = User(
            email=email,
            name=name,
            hashed_password=hash_password(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_issue(db):
    def _make(owner, title="Pothole on Main St", description="Deep pothole near the bus stop, getting worse",
              category="road", location="Main Street, Ward 4", lat=12.97, lng=77.59,
              status=IssueStatus.pending, votes=0, created_at=None):
        now = created_at or datetime.now(timezone.utc)
        issue = lifecycle.apply_create(
            {"title": title, "description": description, "category": category,
             "location": location, "lat": lat, "lng": lng},
            owner.id,
            now=now,
        )
        issue.status = status
        issue.votes = votes
        db.add(issue)
        db.commit()
        db.refresh(issue)
        return issue
    return _make


@pytest.fixture
def auth_header():
    def _header(user) -> dict:
        token = make_tokens(user)["access_token"]
        return {"Authorization": f"Bearer {token}"}
    return _header
