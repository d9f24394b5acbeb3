"""Initial schema: job applications, scheduled interviews, audit logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

application_status = sa.Enum(
    "applied", "screening", "interviewing", "offer", "rejected", "withdrawn", name="applicationstatus"
)
interview_status = sa.Enum(
    "pending", "scheduled", "completed", "cancelled", "rescheduled", "no_show", name="interviewstatus"
)
interview_type = sa.Enum(
    "phone", "video", "onsite", "technical", "behavioral", "panel", "other", name="interviewtype"
)

LIVE_STATUSES = "status IN ('pending', 'scheduled')"


def upgrade() -> None:
    op.create_table(
        "job_applications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("company_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("job_title", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", application_status, nullable=False, server_default="applied"),
        sa.Column("match_score", sa.Integer(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_applications_status", "job_applications", ["status"])
    op.create_index("idx_applications_company", "job_applications", ["company_name"])

    op.create_table(
        "scheduled_interviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            UUID(as_uuid=True),
            sa.ForeignKey("job_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("interview_type", interview_type, nullable=False, server_default="video"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="America/New_York"),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("interviewer_name", sa.String(255), nullable=True),
        sa.Column("interviewer_email", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", interview_status, nullable=False, server_default="scheduled"),
        sa.Column("outcome", sa.String(255), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("google_event_id", sa.String(255), nullable=True),
        sa.Column("google_event_link", sa.String(500), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_scheduled_interviews_application_id", "scheduled_interviews", ["application_id"])
    op.create_index("idx_interviews_scheduled", "scheduled_interviews", ["scheduled_at"])
    op.create_index("idx_interviews_status", "scheduled_interviews", ["status"])
    op.create_index(
        "uq_interviews_application_slot",
        "scheduled_interviews",
        ["application_id", "scheduled_at"],
        unique=True,
        postgresql_where=sa.text(LIVE_STATUSES),
        sqlite_where=sa.text(LIVE_STATUSES),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("detail", sa.Text(), server_default=""),
        sa.Column("ip_address", sa.String(45), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("uq_interviews_application_slot", table_name="scheduled_interviews")
    op.drop_table("scheduled_interviews")
    op.drop_table("job_applications")
    interview_type.drop(op.get_bind(), checkfirst=True)
    interview_status.drop(op.get_bind(), checkfirst=True)
    application_status.drop(op.get_bind(), checkfirst=True)
