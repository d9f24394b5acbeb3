"""Interview lifecycle service: create, approve, revert, update, delete.

Writes rely on the mapper's ``version`` column for optimistic concurrency; a
stale or duplicate write surfaces as ``PersistenceConflict`` and is never
retried here. Functions flush, callers commit.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..applications.models import JobApplication
from ..applications.service import get_application, mark_interviewing
from ..exceptions import (
    CollaboratorUnavailable,
    InterviewNotFound,
    InvalidDateTime,
    InvalidTransition,
    NoMatchingApplication,
    PersistenceConflict,
)
from ..integrations.calendar import CalendarClient, rfc3339
from .models import BUSY_STATUSES, InterviewStatus, InterviewType, ScheduledInterview

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "interview_type",
        "scheduled_at",
        "duration_minutes",
        "timezone",
        "location",
        "meeting_link",
        "interviewer_name",
        "interviewer_email",
        "notes",
        "status",
        "outcome",
        "feedback",
    }
)

_TYPE_LABELS = {
    InterviewType.PHONE: "Phone Interview",
    InterviewType.VIDEO: "Video Interview",
    InterviewType.ONSITE: "Onsite Interview",
    InterviewType.TECHNICAL: "Technical Interview",
    InterviewType.BEHAVIORAL: "Behavioral Interview",
    InterviewType.PANEL: "Panel Interview",
    InterviewType.OTHER: "Interview",
}


def _to_uuid(value) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, AttributeError):
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise InvalidDateTime(f"scheduled_at must carry a UTC offset, got naive {value.isoformat()}")
    return value.astimezone(UTC)


def _flush(db: Session, action: str) -> None:
    try:
        db.flush()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent modification during %s", action)
        raise PersistenceConflict("Interview was modified by someone else. Reload and try again.") from exc
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity error during %s: %s", action, exc.orig)
        raise PersistenceConflict("An interview is already booked for this application at that time.") from exc


# ── Calendar write-through ─────────────────────────────────────────────


def build_event_description(interview: ScheduledInterview, application: JobApplication | None) -> str:
    job_title = application.job_title if application and application.job_title else "Position"
    company = application.company_name if application and application.company_name else "Company"

    lines = [
        f"Interview for {job_title} position at {company}",
        "",
        f"Type: {_TYPE_LABELS.get(interview.interview_type, str(interview.interview_type))}",
        f"Duration: {interview.duration_minutes} minutes",
    ]
    if interview.interviewer_name:
        lines.append(f"Interviewer: {interview.interviewer_name}")
    if interview.meeting_link:
        lines += ["", f"Meeting Link: {interview.meeting_link}"]
    if interview.location:
        lines += ["", f"Location: {interview.location}"]
    if interview.notes:
        lines += ["", "Notes:", interview.notes]
    lines += ["", "---", "Scheduled via Interview Scheduler"]
    return "\n".join(lines)


def _event_body(interview: ScheduledInterview, application: JobApplication | None) -> dict:
    start = interview.scheduled_at if interview.scheduled_at.tzinfo else interview.scheduled_at.replace(tzinfo=UTC)
    end = start + timedelta(minutes=interview.duration_minutes)
    body = {
        "summary": interview.title,
        "description": build_event_description(interview, application),
        "location": interview.meeting_link or interview.location,
        "start": {"dateTime": rfc3339(start), "timeZone": interview.timezone},
        "end": {"dateTime": rfc3339(end), "timeZone": interview.timezone},
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "email", "minutes": 60}, {"method": "popup", "minutes": 30}],
        },
    }
    if interview.interviewer_email:
        body["attendees"] = [{"email": interview.interviewer_email}]
    return body


def _push_to_calendar(calendar: CalendarClient, interview: ScheduledInterview) -> None:
    """Create or patch the external event. Failures never block the local write."""
    try:
        if interview.google_event_id:
            calendar.update_event(interview.google_event_id, _event_body(interview, interview.application))
            return
        created = calendar.create_event(_event_body(interview, interview.application))
    except CollaboratorUnavailable as exc:
        logger.warning("Calendar sync failed for interview %s: %s", interview.id, exc.message)
        return
    if created:
        interview.google_event_id = created.get("id")
        interview.google_event_link = created.get("html_link")


def _remove_from_calendar(calendar: CalendarClient, interview: ScheduledInterview) -> None:
    if not interview.google_event_id:
        return
    try:
        calendar.delete_event(interview.google_event_id)
    except CollaboratorUnavailable as exc:
        logger.warning("Calendar event %s not deleted: %s", interview.google_event_id, exc.message)


# ── Queries ────────────────────────────────────────────────────────────


def get_interview(db: Session, interview_id) -> ScheduledInterview | None:
    uid = _to_uuid(interview_id)
    if uid is None:
        return None
    return db.query(ScheduledInterview).filter(ScheduledInterview.id == uid).first()


def _require_interview(db: Session, interview_id) -> ScheduledInterview:
    interview = get_interview(db, interview_id)
    if interview is None:
        raise InterviewNotFound(f"Interview {interview_id} not found")
    return interview


def list_interviews(db: Session, status: InterviewStatus | None = None) -> list[ScheduledInterview]:
    query = db.query(ScheduledInterview)
    if status is not None:
        query = query.filter(ScheduledInterview.status == status)
    return query.order_by(ScheduledInterview.scheduled_at.asc()).all()


def get_interviews_by_application(db: Session, application_id) -> list[ScheduledInterview]:
    uid = _to_uuid(application_id)
    if uid is None:
        return []
    return (
        db.query(ScheduledInterview)
        .filter(ScheduledInterview.application_id == uid)
        .order_by(ScheduledInterview.scheduled_at.asc())
        .all()
    )


def get_upcoming_interviews(db: Session, days: int = 7) -> list[ScheduledInterview]:
    """Approved interviews starting within the next N days."""
    now = datetime.now(UTC)
    return (
        db.query(ScheduledInterview)
        .filter(
            ScheduledInterview.status == InterviewStatus.SCHEDULED,
            ScheduledInterview.scheduled_at >= now,
            ScheduledInterview.scheduled_at <= now + timedelta(days=days),
        )
        .order_by(ScheduledInterview.scheduled_at.asc())
        .all()
    )


def list_busy_interviews(db: Session, time_min: datetime, time_max: datetime) -> list[ScheduledInterview]:
    """Interviews that occupy calendar time, starting within [time_min, time_max]."""
    return (
        db.query(ScheduledInterview)
        .filter(
            ScheduledInterview.status.in_(BUSY_STATUSES),
            ScheduledInterview.scheduled_at >= _as_utc(time_min),
            ScheduledInterview.scheduled_at <= _as_utc(time_max),
        )
        .order_by(ScheduledInterview.scheduled_at.asc())
        .all()
    )


# ── Lifecycle ──────────────────────────────────────────────────────────


def create_interview(
    db: Session,
    application_id,
    *,
    title: str,
    scheduled_at: datetime,
    duration_minutes: int,
    timezone: str,
    interview_type: InterviewType = InterviewType.VIDEO,
    status: InterviewStatus = InterviewStatus.SCHEDULED,
    location: str | None = None,
    meeting_link: str | None = None,
    interviewer_name: str | None = None,
    interviewer_email: str | None = None,
    notes: str | None = None,
    calendar: CalendarClient | None = None,
) -> ScheduledInterview:
    """Book an interview. Manual bookings start SCHEDULED, assistant bookings PENDING."""
    if status not in BUSY_STATUSES:
        raise InvalidTransition("create", str(status), "pending or scheduled")

    application = get_application(db, application_id)
    if application is None:
        raise NoMatchingApplication(f"No application with id {application_id}. Select an application first.")

    scheduled_at = _as_utc(scheduled_at)
    clash = (
        db.query(ScheduledInterview.id)
        .filter(
            ScheduledInterview.application_id == application.id,
            ScheduledInterview.scheduled_at == scheduled_at,
            ScheduledInterview.status.in_(BUSY_STATUSES),
        )
        .first()
    )
    if clash:
        raise PersistenceConflict("An interview is already booked for this application at that time.")

    interview = ScheduledInterview(
        application=application,
        title=title,
        interview_type=InterviewType(interview_type),
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        timezone=timezone,
        location=location,
        meeting_link=meeting_link,
        interviewer_name=interviewer_name,
        interviewer_email=interviewer_email,
        notes=notes,
        status=InterviewStatus(status),
    )
    db.add(interview)
    _flush(db, "create")

    mark_interviewing(db, application)

    if calendar is not None:
        _push_to_calendar(calendar, interview)
        _flush(db, "calendar link")

    logger.info(
        "Interview %s created (%s) for application %s at %s",
        interview.id, interview.status, application.id, scheduled_at.isoformat(),
    )
    return interview


def approve_interview(db: Session, interview_id) -> ScheduledInterview:
    """pending -> scheduled. Any other current status is rejected unchanged."""
    interview = _require_interview(db, interview_id)
    if interview.status != InterviewStatus.PENDING:
        raise InvalidTransition("approve", interview.status, InterviewStatus.PENDING)
    interview.status = InterviewStatus.SCHEDULED
    _flush(db, "approve")
    logger.info("Interview %s approved", interview.id)
    return interview


def revert_to_pending(db: Session, interview_id) -> ScheduledInterview:
    """scheduled -> pending. Any other current status is rejected unchanged."""
    interview = _require_interview(db, interview_id)
    if interview.status != InterviewStatus.SCHEDULED:
        raise InvalidTransition("revert to pending", interview.status, InterviewStatus.SCHEDULED)
    interview.status = InterviewStatus.PENDING
    _flush(db, "revert")
    logger.info("Interview %s reverted to pending", interview.id)
    return interview


def update_interview(
    db: Session,
    interview_id,
    fields: dict,
    *,
    expected_version: int | None = None,
    calendar: CalendarClient | None = None,
) -> ScheduledInterview:
    """Partial update. Status may be overwritten freely here, unlike approve/revert."""
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

    interview = _require_interview(db, interview_id)
    if expected_version is not None and interview.version != expected_version:
        raise PersistenceConflict(
            f"Interview is at version {interview.version}, not {expected_version}. Reload and try again."
        )

    for key, value in fields.items():
        if key == "scheduled_at":
            value = _as_utc(value)
        elif key == "status":
            value = InterviewStatus(value)
        elif key == "interview_type":
            value = InterviewType(value)
        setattr(interview, key, value)
    _flush(db, "update")

    timing_changed = {"scheduled_at", "duration_minutes", "timezone", "title"} & set(fields)
    if calendar is not None and interview.google_event_id and timing_changed:
        _push_to_calendar(calendar, interview)

    logger.info("Interview %s updated: %s", interview.id, ", ".join(sorted(fields)))
    return interview


def cancel_interview(db: Session, interview_id, *, calendar: CalendarClient | None = None) -> ScheduledInterview:
    interview = update_interview(db, interview_id, {"status": InterviewStatus.CANCELLED})
    if calendar is not None:
        _remove_from_calendar(calendar, interview)
    return interview


def complete_interview(db: Session, interview_id, outcome: str, feedback: str | None = None) -> ScheduledInterview:
    return update_interview(
        db,
        interview_id,
        {"status": InterviewStatus.COMPLETED, "outcome": outcome, "feedback": feedback},
    )


def delete_interview(db: Session, interview_id, *, calendar: CalendarClient | None = None) -> bool:
    """Hard delete. Returns True if deleted."""
    interview = get_interview(db, interview_id)
    if not interview:
        return False
    if calendar is not None:
        _remove_from_calendar(calendar, interview)
    db.delete(interview)
    _flush(db, "delete")
    logger.info("Interview %s deleted", interview_id)
    return True
