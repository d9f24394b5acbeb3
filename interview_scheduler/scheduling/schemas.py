"""Scheduling value types and request/response schemas."""

from datetime import UTC, date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from ..interview.models import InterviewType
from .timezones import parse_instant


class CalendarEvent(BaseModel):
    """A busy interval from one of the event sources. Read-only, per request."""

    id: str
    title: str = "Busy"
    start: datetime
    end: datetime
    source_tag: str

    @field_validator("start", "end")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return v.replace(tzinfo=UTC) if v.tzinfo is None else v.astimezone(UTC)


class AvailableSlot(BaseModel):
    """A free window of exactly ``duration_minutes`` inside the working hours."""

    date: date
    day_name: str
    start: time
    end: time
    duration_minutes: int
    # Size of the gap the slot was taken from
    available_minutes: int

    @field_serializer("start", "end")
    def _hhmm(self, v: time) -> str:
        return v.strftime("%H:%M")


class SuggestedSlot(BaseModel):
    """A slot proposed by the model, keyed the way the model writes JSON."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    start_time: str = Field(alias="startTime")
    end_time: str = Field("", alias="endTime")
    datetime_local: str = Field("", alias="datetime")
    reason: str = ""
    application_id: str | None = Field(None, alias="applicationId")
    company_name: str | None = Field(None, alias="companyName")
    job_title: str | None = Field(None, alias="jobTitle")


class SlotProposal(BaseModel):
    message: str
    suggested_slots: list[SuggestedSlot] = Field(default_factory=list, alias="suggestedSlots")

    model_config = ConfigDict(populate_by_name=True)


class ScheduleAssistantMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    suggested_slots: list[SuggestedSlot] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DateRange(BaseModel):
    """UTC instant range; both day boundaries are inclusive."""

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse(cls, v: object) -> datetime:
        return parse_instant(v)

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("date range end is before start")
        return self


class Availability(BaseModel):
    """Busy intervals and free slots computed for one request."""

    busy: list[CalendarEvent]
    slots: list[AvailableSlot]
    timezone: str
    computed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# ── HTTP payloads ──────────────────────────────────────────────────────


class AvailabilityRequest(BaseModel):
    date_range: DateRange | None = None
    duration_minutes: int = Field(60, ge=15, le=480)
    timezone: str | None = None


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    suggested_slots: list[SuggestedSlot] | None = Field(None, alias="suggestedSlots")

    model_config = ConfigDict(populate_by_name=True)


class SuggestionRequest(BaseModel):
    user_message: str = Field(..., min_length=1, max_length=2000)
    duration_minutes: int = Field(60, ge=15, le=480)
    date_range: DateRange | None = None
    timezone: str | None = None
    conversation_history: list[HistoryTurn] = Field(default_factory=list)


class SessionCreateRequest(BaseModel):
    duration_minutes: int = Field(60, ge=15, le=480)
    timezone: str | None = None
    reschedule_interview_id: str | None = None


class SessionMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    date_range: DateRange | None = None


class SelectSlotRequest(BaseModel):
    index: int = Field(..., ge=0)


class ConfirmSlotRequest(BaseModel):
    interview_type: InterviewType = InterviewType.VIDEO
    add_to_calendar: bool = True
