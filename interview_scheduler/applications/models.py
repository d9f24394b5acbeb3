"""Job application model and status enum."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Index, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class ApplicationStatus(enum.StrEnum):
    """Application tracking status."""

    APPLIED = "applied"
    SCREENING = "screening"
    INTERVIEWING = "interviewing"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Applications an interview can still be scheduled for
ACTIVE_STATUSES = (ApplicationStatus.APPLIED, ApplicationStatus.SCREENING, ApplicationStatus.INTERVIEWING)


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name = Column(String(255), nullable=False, default="")
    job_title = Column(String(255), nullable=False, default="")
    status = Column(
        SQLEnum(ApplicationStatus, values_callable=lambda e: [s.value for s in e]),
        default=ApplicationStatus.APPLIED,
        nullable=False,
    )
    match_score = Column(Integer, nullable=True)
    applied_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    interviews = relationship("ScheduledInterview", back_populates="application", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_applications_status", "status"),
        Index("idx_applications_company", "company_name"),
    )
