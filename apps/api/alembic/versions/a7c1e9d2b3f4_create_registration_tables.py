"""create registration tables

Revision ID: a7c1e9d2b3f4
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the registration_status and scan_status enum types
2. Creates events, registrations, checkpoint_checkins and scan_logs
3. Adds the unique (registration_id, checkpoint) constraint that makes
   repeated scans idempotent at the database level
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c1e9d2b3f4"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create registration lifecycle tables."""
    registration_status_enum = postgresql.ENUM(
        "pending",
        "approved",
        "rejected",
        "checked-in",
        name="registration_status",
        create_type=False,
    )
    registration_status_enum.create(op.get_bind(), checkfirst=True)

    scan_status_enum = postgresql.ENUM(
        "success",
        "already_checked_in",
        "invalid_token",
        "expired_token",
        "not_found",
        "not_approved",
        "unknown_checkpoint",
        "checkpoint_locked",
        "error",
        name="scan_status",
        create_type=False,
    )
    scan_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("organizer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "checkpoints",
            postgresql.JSON(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[\"Registration\"]'::json"),
        ),
        sa.Column(
            "unlocked_checkpoints",
            postgresql.JSON(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[\"Registration\"]'::json"),
        ),
        sa.Column("is_registration_open", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("registration_close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("form_schema", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "registrations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("responses", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "status",
            registration_status_enum,
            nullable=False,
            server_default="pending",
        ),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("token_secret", sa.String(length=128), nullable=False),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token", name="uq_registrations_token"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_registrations_event_user"),
    )
    op.create_index("ix_registrations_event_status", "registrations", ["event_id", "status"])

    op.create_table(
        "checkpoint_checkins",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("registration_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("checkpoint", sa.String(length=100), nullable=False),
        sa.Column("checked_in_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "checked_in_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["registration_id"], ["registrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "registration_id",
            "checkpoint",
            name="uq_checkpoint_checkins_registration_checkpoint",
        ),
    )

    op.create_table(
        "scan_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("volunteer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("checkpoint", sa.String(length=100), nullable=False),
        sa.Column("scan_status", scan_status_enum, nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("registration_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scan_logs_event_created", "scan_logs", ["event_id", "created_at"])
    op.create_index("ix_scan_logs_volunteer", "scan_logs", ["volunteer_id"])


def downgrade() -> None:
    """Drop registration lifecycle tables."""
    op.drop_index("ix_scan_logs_volunteer", table_name="scan_logs")
    op.drop_index("ix_scan_logs_event_created", table_name="scan_logs")
    op.drop_table("scan_logs")
    op.drop_table("checkpoint_checkins")
    op.drop_index("ix_registrations_event_status", table_name="registrations")
    op.drop_table("registrations")
    op.drop_index("ix_events_organizer_id", table_name="events")
    op.drop_table("events")

    postgresql.ENUM(name="scan_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="registration_status").drop(op.get_bind(), checkfirst=True)
