"""
Registrations Models

Database models for events, participant registrations, per-checkpoint
check-in records and the scan audit log.

Events are owned by the event subsystem; this module only reads them, apart
from the unlocked checkpoint list which organizers toggle during an event.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventgate.core.database import Base

DEFAULT_CHECKPOINT = "Registration"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class RegistrationStatus(str, enum.Enum):
    """Lifecycle status of a registration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHECKED_IN = "checked-in"


class ScanStatus(str, enum.Enum):
    """Outcome of a single scan attempt at a checkpoint."""

    SUCCESS = "success"
    ALREADY_CHECKED_IN = "already_checked_in"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    NOT_FOUND = "not_found"
    NOT_APPROVED = "not_approved"
    UNKNOWN_CHECKPOINT = "unknown_checkpoint"
    CHECKPOINT_LOCKED = "checkpoint_locked"
    ERROR = "error"


class Event(Base):
    """
    An event participants register for.

    ``checkpoints`` is the ordered list of named check-in points; the first
    entry is always the mandatory registration desk.
    """

    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    organizer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )

    # Checkpoints
    checkpoints: Mapped[list] = mapped_column(
        JSON, nullable=False, default=lambda: [DEFAULT_CHECKPOINT]
    )
    unlocked_checkpoints: Mapped[list] = mapped_column(
        JSON, nullable=False, default=lambda: [DEFAULT_CHECKPOINT]
    )

    # Registration window
    is_registration_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    registration_close_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Registration form: {"fields": [{"name", "label", "type", "required"}, ...]}
    form_schema: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="event", cascade="all, delete-orphan"
    )


class Registration(Base):
    """
    A participant's registration for one event.

    The check-in token is issued once at creation and never rotated.
    ``token_secret`` is a per-registration random value embedded in the token.
    """

    __tablename__ = "registrations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Form answers, stored as submitted
    responses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(
            RegistrationStatus,
            name="registration_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )

    # Check-in credential
    token: Mapped[str] = mapped_column(Text, nullable=False)
    token_secret: Mapped[str] = mapped_column(String(128), nullable=False)

    # Decision tracking
    approved_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="registrations")
    checkpoint_checkins: Mapped[list["CheckpointCheckIn"]] = relationship(
        "CheckpointCheckIn",
        back_populates="registration",
        cascade="all, delete-orphan",
        order_by=lambda: (CheckpointCheckIn.checked_in_at, CheckpointCheckIn.id),
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("token", name="uq_registrations_token"),
        UniqueConstraint("event_id", "user_id", name="uq_registrations_event_user"),
        Index("ix_registrations_event_status", "event_id", "status"),
    )


class CheckpointCheckIn(Base):
    """
    One recorded check-in of a registration at a named checkpoint.

    The (registration_id, checkpoint) pair is unique: a participant is
    checked in at most once per checkpoint.
    """

    __tablename__ = "checkpoint_checkins"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    registration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("registrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    checkpoint: Mapped[str] = mapped_column(String(100), nullable=False)
    checked_in_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    checked_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    registration: Mapped["Registration"] = relationship(
        "Registration", back_populates="checkpoint_checkins"
    )

    __table_args__ = (
        UniqueConstraint(
            "registration_id", "checkpoint", name="uq_checkpoint_checkins_registration_checkpoint"
        ),
    )


class ScanLog(Base):
    """
    Audit record of a scan attempt made by a volunteer.

    The raw token is never stored.
    """

    __tablename__ = "scan_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    event_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    volunteer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    checkpoint: Mapped[str] = mapped_column(String(100), nullable=False)
    scan_status: Mapped[ScanStatus] = mapped_column(
        Enum(ScanStatus, name="scan_status", values_callable=_enum_values),
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    registration_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_scan_logs_event_created", "event_id", "created_at"),
        Index("ix_scan_logs_volunteer", "volunteer_id"),
    )
