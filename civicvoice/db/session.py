# File: civicvoice/db/session.py

import logging
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from civicvoice.core.config import settings
from civicvoice.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

def make_engine(url: str):
    if url.startswith("sqlite"):
        # sqlite has no server-side pool; allow use from worker threads
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

        # sqlite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_timeout=30
    )

engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def commit_or_rollback(db: Session, what: str = "write") -> None:
    """Commit, or roll back and raise UpstreamFailure so prior state is untouched."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure during {what}: {e}", exc_info=True)
        raise UpstreamFailure(f"Storage failure during {what}") from e
