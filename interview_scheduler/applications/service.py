"""Application lookups used when attributing an interview to a job application."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .models import ACTIVE_STATUSES, ApplicationStatus, JobApplication

logger = logging.getLogger(__name__)


def _to_uuid(value) -> UUID | None:
    """Convert string to UUID, returning None on failure."""
    if isinstance(value, UUID):
        return value
    if not value:
        return None
    try:
        return UUID(str(value))
    except (ValueError, AttributeError):
        return None


def get_application(db: Session, application_id) -> JobApplication | None:
    uid = _to_uuid(application_id)
    if uid is None:
        return None
    return db.query(JobApplication).filter(JobApplication.id == uid).first()


def list_active_applications(db: Session) -> list[JobApplication]:
    """Applications still open for interviews, most recently applied first."""
    return (
        db.query(JobApplication)
        .filter(JobApplication.status.in_(ACTIVE_STATUSES))
        .order_by(JobApplication.applied_at.desc(), JobApplication.created_at.desc())
        .all()
    )


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


def find_application_by_company(db: Session, company_name: str | None) -> JobApplication | None:
    """Fuzzy-match an active application by company name.

    A stored name containing the query wins ("Google" -> "Google LLC"); then a
    query containing the stored name ("Acme Corp careers" -> "Acme Corp").
    Returns None when nothing matches; callers must not fall back to a guess.
    """
    if not company_name or not company_name.strip():
        return None

    needle = _normalize(company_name)
    candidates = [a for a in list_active_applications(db) if a.company_name and a.company_name.strip()]

    for app in candidates:
        if needle in _normalize(app.company_name):
            return app
    for app in candidates:
        if _normalize(app.company_name) in needle:
            return app

    logger.info("No active application matches company %r (%d candidates)", company_name, len(candidates))
    return None


def mark_interviewing(db: Session, application: JobApplication) -> None:
    """Move an application to INTERVIEWING once an interview is booked for it."""
    if application.status in (ApplicationStatus.APPLIED, ApplicationStatus.SCREENING):
        application.status = ApplicationStatus.INTERVIEWING
        db.flush()
