"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from interview_scheduler.applications.models import ApplicationStatus, JobApplication
from interview_scheduler.audit.models import AuditLog
from interview_scheduler.database.base import Base
from interview_scheduler.integrations.calendar import NullCalendarClient
from interview_scheduler.interview.models import ScheduledInterview
from interview_scheduler.scheduling.schemas import CalendarEvent

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [JobApplication, ScheduledInterview, AuditLog]


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Note: SQLite hands back naive datetimes for timezone-aware columns;
    everything is stored in UTC, so compare with tzinfo stripped.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def acme_application(db_session):
    application = JobApplication(
        id=uuid.uuid4(),
        company_name="Acme Corp",
        job_title="Backend Engineer",
        status=ApplicationStatus.APPLIED,
        applied_at=datetime(2026, 2, 20, tzinfo=UTC),
    )
    db_session.add(application)
    db_session.commit()
    return application


@pytest.fixture
def globex_application(db_session):
    application = JobApplication(
        id=uuid.uuid4(),
        company_name="Globex",
        job_title="Platform Engineer",
        status=ApplicationStatus.SCREENING,
        applied_at=datetime(2026, 2, 25, tzinfo=UTC),
    )
    db_session.add(application)
    db_session.commit()
    return application


@pytest.fixture
def null_calendar():
    """No-op calendar for testing."""
    return NullCalendarClient()


@pytest.fixture
def mock_calendar():
    """Calendar collaborator double that records write-through calls."""
    calendar = MagicMock()
    calendar.list_events.return_value = []
    calendar.create_event.return_value = {"id": "gcal-1", "html_link": "https://calendar.google.com/event?eid=1"}
    calendar.update_event.return_value = {"id": "gcal-1", "html_link": "https://calendar.google.com/event?eid=1"}
    calendar.delete_event.return_value = True
    return calendar


def make_event(start: datetime, end: datetime, event_id: str = "evt", source: str = "calendar") -> CalendarEvent:
    return CalendarEvent(id=event_id, title="Busy", start=start, end=end, source_tag=source)
