from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

# Point the app at a throwaway SQLite file before anything imports settings
_TEST_DB = Path(tempfile.mkdtemp(prefix="events-api-")) / "test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("DEFAULT_TIMEZONE", "Asia/Kolkata")

from app.db import SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Attendee, Base, Event  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def create_schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    # Ensure a clean slate for each test
    db = SessionLocal()
    try:
        db.execute(delete(Attendee))
        db.execute(delete(Event))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture
def make_event(db_session):
    """Insert an event directly, bypassing API validation (past events included)."""

    def _make(
        name: str = "Tech Conference",
        location: str | None = "Bangalore",
        starts_in: timedelta = timedelta(days=7),
        duration: timedelta = timedelta(hours=8),
        max_capacity: int = 100,
        current_attendees: int = 0,
        start_time: datetime | None = None,
    ) -> Event:
        start = start_time or datetime.now(timezone.utc) + starts_in
        event = Event(
            name=name,
            location=location,
            start_time=start,
            end_time=start + duration,
            max_capacity=max_capacity,
            current_attendees=current_attendees,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make
