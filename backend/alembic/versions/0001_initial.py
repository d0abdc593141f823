"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    user_role_enum = sa.Enum("USER", "DEPARTMENT", "CRD_STAFF", "SYSTEM_ADMIN", name="user_role")
    registration_status_enum = sa.Enum(
        "registered", "approved", "rejected", "invited", "accepted", name="registration_status"
    )
    feedback_status_enum = sa.Enum(
        "pending", "submitted", "missed", "voided", "overridden", "not_required", name="feedback_status"
    )
    exception_status_enum = sa.Enum("pending", "approved", "rejected", name="exception_status")
    attendance_source_enum = sa.Enum("token", "qr", name="attendance_source")
    notification_type_enum = sa.Enum(
        "feedback_reminder",
        "feedback_missed",
        "feedback_received",
        "feedback_override",
        "exception_requested",
        "exception_reviewed",
        name="notification_type",
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("role", user_role_enum, server_default="USER", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("feedback_deadline_hours", sa.Integer(), server_default="24", nullable=False),
        sa.Column("require_feedback", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("allow_organizer_override", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("feedback_average_rating", sa.Float(), server_default="0", nullable=False),
        sa.Column("feedback_total_responses", sa.Integer(), server_default="0", nullable=False),
        sa.Column("feedback_last_calculated_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_events_created_by_user_id", "events", ["created_by_user_id"])

    op.create_table(
        "event_volunteers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", registration_status_enum, server_default="registered", nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_volunteer"),
    )
    op.create_index("ix_event_volunteers_event_id", "event_volunteers", ["event_id"])
    op.create_index("ix_event_volunteers_user_id", "event_volunteers", ["user_id"])

    op.create_table(
        "event_qr_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("check_in_code", sa.String(length=1000), nullable=False),
        sa.Column("check_out_code", sa.String(length=1000), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("generated_by_user_id", postgresql.UUID(as_uuid=True)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["generated_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("event_id", "date", name="uq_event_qr_code_event_day"),
    )
    op.create_index("ix_event_qr_codes_event_id", "event_qr_codes", ["event_id"])

    op.create_table(
        "attendance_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_in", sa.DateTime(timezone=True)),
        sa.Column("time_out", sa.DateTime(timezone=True)),
        sa.Column("day_hours", sa.Float(), server_default="0", nullable=False),
        sa.Column("previous_day_hours", sa.Float(), server_default="0", nullable=False),
        sa.Column("total_hours", sa.Float(), server_default="0", nullable=False),
        sa.Column("is_valid", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("voided_hours", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("status", feedback_status_enum),
        sa.Column("deadline_at", sa.DateTime(timezone=True)),
        sa.Column("feedback_reminder_sent_at", sa.DateTime(timezone=True)),
        sa.Column("feedback_rating", sa.Integer()),
        sa.Column("feedback_comment", sa.String(length=2000)),
        sa.Column("feedback_submitted_at", sa.DateTime(timezone=True)),
        sa.Column("feedback_submitted_by", postgresql.UUID(as_uuid=True)),
        sa.Column("feedback_overridden", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("feedback_override_reason", sa.String(length=1000)),
        sa.Column("exception_reason", sa.String(length=2000)),
        sa.Column("exception_status", exception_status_enum),
        sa.Column("exception_requested_at", sa.DateTime(timezone=True)),
        sa.Column("exception_reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("exception_reviewed_by", postgresql.UUID(as_uuid=True)),
        sa.Column("exception_review_notes", sa.String(length=2000)),
        sa.Column("source", attendance_source_enum),
        sa.Column("scan_reference", sa.String(length=200)),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["feedback_submitted_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["exception_reviewed_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("event_id", "user_id", "date", name="uq_attendance_record_event_user_day"),
    )
    op.create_index("ix_attendance_records_event_id", "attendance_records", ["event_id"])
    op.create_index("ix_attendance_records_user_id", "attendance_records", ["user_id"])
    op.create_index("ix_attendance_records_status", "attendance_records", ["status"])
    op.create_index("ix_attendance_records_deadline_at", "attendance_records", ["deadline_at"])
    op.create_index("ix_attendance_records_exception_status", "attendance_records", ["exception_status"])
    op.create_index("ix_attendance_records_scan_reference", "attendance_records", ["scan_reference"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True)),
        sa.Column("type", notification_type_enum, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("message", sa.String(length=4000), nullable=False),
        sa.Column("payload", postgresql.JSONB()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_event_id", "notifications", ["event_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("attendance_records")
    op.drop_table("event_qr_codes")
    op.drop_table("event_volunteers")
    op.drop_table("events")
    op.drop_table("users")
    for name in (
        "notification_type",
        "attendance_source",
        "exception_status",
        "feedback_status",
        "registration_status",
        "user_role",
    ):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
