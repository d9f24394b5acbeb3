"""Scheduled interview model and lifecycle enums."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class InterviewStatus(enum.StrEnum):
    """Interview lifecycle status.

    PENDING interviews were proposed by the assistant and await human approval;
    SCHEDULED ones were approved or booked directly.
    """

    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no_show"


class InterviewType(enum.StrEnum):
    PHONE = "phone"
    VIDEO = "video"
    ONSITE = "onsite"
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    PANEL = "panel"
    OTHER = "other"


# Only these statuses occupy time on the calendar
BUSY_STATUSES = (InterviewStatus.PENDING, InterviewStatus.SCHEDULED)


class ScheduledInterview(Base):
    __tablename__ = "scheduled_interviews"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("job_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(255), nullable=False)
    interview_type = Column(
        SQLEnum(InterviewType, values_callable=lambda e: [t.value for t in e]),
        default=InterviewType.VIDEO,
        nullable=False,
    )
    scheduled_at = Column(DateTime(timezone=True), nullable=False)  # always UTC
    duration_minutes = Column(Integer, nullable=False, default=60)
    timezone = Column(String(64), nullable=False, default="America/New_York")

    location = Column(String(500), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    interviewer_name = Column(String(255), nullable=True)
    interviewer_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(
        SQLEnum(InterviewStatus, values_callable=lambda e: [s.value for s in e]),
        default=InterviewStatus.SCHEDULED,
        nullable=False,
    )
    outcome = Column(String(255), nullable=True)
    feedback = Column(Text, nullable=True)

    google_event_id = Column(String(255), nullable=True)
    google_event_link = Column(String(500), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    application = relationship("JobApplication", back_populates="interviews")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_interviews_scheduled", "scheduled_at"),
        Index("idx_interviews_status", "status"),
        # One live booking per application and start time
        Index(
            "uq_interviews_application_slot",
            "application_id",
            "scheduled_at",
            unique=True,
            postgresql_where=text("status IN ('pending', 'scheduled')"),
            sqlite_where=text("status IN ('pending', 'scheduled')"),
        ),
    )
