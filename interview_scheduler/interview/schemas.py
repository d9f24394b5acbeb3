"""Interview request payloads and the JSON shape returned by the API."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from ..scheduling.timezones import get_zone, parse_instant
from .models import InterviewStatus, InterviewType, ScheduledInterview


class InterviewCreateRequest(BaseModel):
    application_id: str
    title: str = Field(..., min_length=1, max_length=255)
    scheduled_at: datetime
    duration_minutes: int = Field(60, ge=15, le=480)
    timezone: str = "America/New_York"
    interview_type: InterviewType = InterviewType.VIDEO
    location: str | None = Field(None, max_length=500)
    meeting_link: str | None = Field(None, max_length=500)
    interviewer_name: str | None = Field(None, max_length=255)
    interviewer_email: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=2000)
    add_to_calendar: bool = False

    @field_validator("scheduled_at", mode="before")
    @classmethod
    def parse_scheduled_at(cls, v: object) -> datetime:
        return parse_instant(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        get_zone(v)
        return v


class InterviewUpdateRequest(BaseModel):
    """Partial update; only fields actually sent are applied."""

    title: str | None = Field(None, min_length=1, max_length=255)
    scheduled_at: datetime | None = None
    duration_minutes: int | None = Field(None, ge=15, le=480)
    timezone: str | None = None
    interview_type: InterviewType | None = None
    location: str | None = Field(None, max_length=500)
    meeting_link: str | None = Field(None, max_length=500)
    interviewer_name: str | None = Field(None, max_length=255)
    interviewer_email: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=2000)
    status: InterviewStatus | None = None
    outcome: str | None = Field(None, max_length=255)
    feedback: str | None = Field(None, max_length=5000)
    expected_version: int | None = None

    @field_validator("scheduled_at", mode="before")
    @classmethod
    def parse_scheduled_at(cls, v: object) -> datetime | None:
        return None if v is None else parse_instant(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if v is not None:
            get_zone(v)
        return v

    def changed_fields(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"expected_version"})


class CompleteInterviewRequest(BaseModel):
    outcome: str = Field(..., min_length=1, max_length=255)
    feedback: str | None = Field(None, max_length=5000)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive values; everything is stored as UTC
    return (value if value.tzinfo else value.replace(tzinfo=UTC)).astimezone(UTC).isoformat()


def interview_to_dict(interview: ScheduledInterview) -> dict:
    application = interview.application
    return {
        "id": str(interview.id),
        "application_id": str(interview.application_id),
        "company_name": application.company_name if application else None,
        "job_title": application.job_title if application else None,
        "title": interview.title,
        "interview_type": str(interview.interview_type),
        "scheduled_at": _iso(interview.scheduled_at),
        "duration_minutes": interview.duration_minutes,
        "timezone": interview.timezone,
        "location": interview.location,
        "meeting_link": interview.meeting_link,
        "interviewer_name": interview.interviewer_name,
        "interviewer_email": interview.interviewer_email,
        "notes": interview.notes,
        "status": str(interview.status),
        "outcome": interview.outcome,
        "feedback": interview.feedback,
        "google_event_id": interview.google_event_id,
        "google_event_link": interview.google_event_link,
        "version": interview.version,
        "created_at": _iso(interview.created_at),
    }
