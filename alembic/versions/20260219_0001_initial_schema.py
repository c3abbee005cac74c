"""Initial schema

Revision ID: 20260219_0001
Revises:
Create Date: 2026-02-19 22:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20260219_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("MENTEE", "MENTOR", "ADMIN", name="role_enum", native_enum=False)
verification_status_enum = sa.Enum(
    "PENDING",
    "VERIFIED",
    "REJECTED",
    name="verification_status_enum",
    native_enum=False,
)
availability_type_enum = sa.Enum(
    "AVAILABLE",
    "BREAK",
    "BUFFER",
    "BLOCKED",
    name="availability_type_enum",
    native_enum=False,
)
session_status_enum = sa.Enum(
    "SCHEDULED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    "NO_SHOW",
    name="session_status_enum",
    native_enum=False,
)
cancelled_by_enum = sa.Enum("MENTOR", "MENTEE", name="cancelled_by_enum", native_enum=False)
reassignment_status_enum = sa.Enum(
    "PENDING_ACCEPTANCE",
    "ACCEPTED",
    "REJECTED",
    "AWAITING_MENTEE_ACTION",
    "MENTEE_SELECTED",
    "REFUNDED",
    name="reassignment_status_enum",
    native_enum=False,
)
outbox_status_enum = sa.Enum("PENDING", "PROCESSED", "FAILED", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "mentor_profiles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("expertise", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("verification_status", verification_status_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_mentor_profiles_user_id_users",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("user_id", name="uq_mentor_profiles_user_id"),
    )
    op.create_index(
        "ix_mentor_profiles_verification_status",
        "mentor_profiles",
        ["verification_status"],
        unique=False,
    )

    op.create_table(
        "mentor_availability_schedules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("default_session_duration", sa.Integer(), nullable=False),
        sa.Column("buffer_time_between_sessions", sa.Integer(), nullable=False),
        sa.Column("min_advance_booking_hours", sa.Integer(), nullable=False),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("allow_instant_booking", sa.Boolean(), nullable=False),
        sa.Column("require_confirmation", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["mentor_id"],
            ["mentor_profiles.id"],
            name="fk_mentor_availability_schedules_mentor_id_mentor_profiles",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("mentor_id", name="uq_mentor_availability_schedules_mentor_id"),
    )

    op.create_table(
        "mentor_weekly_patterns",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("time_blocks", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["mentor_availability_schedules.id"],
            name="fk_mentor_weekly_patterns_schedule_id_mentor_availability_schedules",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("schedule_id", "day_of_week", name="uq_mentor_weekly_patterns_schedule_id"),
    )
    op.create_index("ix_mentor_weekly_patterns_schedule_id", "mentor_weekly_patterns", ["schedule_id"], unique=False)

    op.create_table(
        "mentor_availability_exceptions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", availability_type_enum, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_full_day", sa.Boolean(), nullable=False),
        sa.Column("time_blocks", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["mentor_availability_schedules.id"],
            name="fk_mentor_availability_exceptions_schedule_id_mentor_availability_schedules",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_mentor_availability_exceptions_schedule_id",
        "mentor_availability_exceptions",
        ["schedule_id"],
        unique=False,
    )
    op.create_index(
        "ix_mentor_availability_exceptions_start_date",
        "mentor_availability_exceptions",
        ["start_date"],
        unique=False,
    )
    op.create_index(
        "ix_mentor_availability_exceptions_end_date",
        "mentor_availability_exceptions",
        ["end_date"],
        unique=False,
    )

    op.create_table(
        "mentoring_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("mentor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mentee_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", session_status_enum, nullable=False),
        sa.Column("cancelled_by", cancelled_by_enum, nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("refund_percentage", sa.Integer(), nullable=False),
        sa.Column("was_reassigned", sa.Boolean(), nullable=False),
        sa.Column("reassigned_from_mentor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reassigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reassignment_status", reassignment_status_enum, nullable=True),
        sa.Column("cancelled_mentor_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(
            ["mentor_id"],
            ["users.id"],
            name="fk_mentoring_sessions_mentor_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["mentee_id"],
            ["users.id"],
            name="fk_mentoring_sessions_mentee_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["reassigned_from_mentor_id"],
            ["users.id"],
            name="fk_mentoring_sessions_reassigned_from_mentor_id_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_mentoring_sessions_mentor_id", "mentoring_sessions", ["mentor_id"], unique=False)
    op.create_index("ix_mentoring_sessions_mentee_id", "mentoring_sessions", ["mentee_id"], unique=False)
    op.create_index("ix_mentoring_sessions_scheduled_at", "mentoring_sessions", ["scheduled_at"], unique=False)
    op.create_index("ix_mentoring_sessions_status", "mentoring_sessions", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_mentoring_sessions_status", table_name="mentoring_sessions")
    op.drop_index("ix_mentoring_sessions_scheduled_at", table_name="mentoring_sessions")
    op.drop_index("ix_mentoring_sessions_mentee_id", table_name="mentoring_sessions")
    op.drop_index("ix_mentoring_sessions_mentor_id", table_name="mentoring_sessions")
    op.drop_table("mentoring_sessions")

    op.drop_index("ix_mentor_availability_exceptions_end_date", table_name="mentor_availability_exceptions")
    op.drop_index("ix_mentor_availability_exceptions_start_date", table_name="mentor_availability_exceptions")
    op.drop_index("ix_mentor_availability_exceptions_schedule_id", table_name="mentor_availability_exceptions")
    op.drop_table("mentor_availability_exceptions")

    op.drop_index("ix_mentor_weekly_patterns_schedule_id", table_name="mentor_weekly_patterns")
    op.drop_table("mentor_weekly_patterns")

    op.drop_table("mentor_availability_schedules")

    op.drop_index("ix_mentor_profiles_verification_status", table_name="mentor_profiles")
    op.drop_table("mentor_profiles")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
