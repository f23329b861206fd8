"""
Registrations Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from eventgate.modules.registrations.models import RegistrationStatus, ScanStatus

# ============================================
# Registration
# ============================================


class RegistrationCreate(BaseModel):
    """Request body for registering for an event."""

    responses: dict[str, Any] = Field(
        ...,
        description="Answers keyed by form field name",
        json_schema_extra={"example": {"full_name": "Ada Lovelace", "t_shirt": "M"}},
    )


class CheckpointCheckInResponse(BaseModel):
    """One recorded checkpoint check-in."""

    model_config = ConfigDict(from_attributes=True)

    checkpoint: str
    checked_in_by: UUID
    checked_in_at: datetime


class RegistrationResponse(BaseModel):
    """Registration snapshot including its full checkpoint history."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    user_id: UUID
    responses: dict[str, Any]
    status: RegistrationStatus
    checkpoint_checkins: list[CheckpointCheckInResponse] = Field(default_factory=list)
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RegistrationWithTokenResponse(RegistrationResponse):
    """Registration as returned to its owner, with the check-in token."""

    token: str = Field(..., description="Check-in token to render as a QR code")


class RegistrationTokenResponse(BaseModel):
    """The owner's check-in token."""

    registration_id: UUID
    token: str
    status: RegistrationStatus


class RegistrationListResponse(BaseModel):
    """Registrations of an event."""

    items: list[RegistrationResponse]
    total: int


# ============================================
# Check-in
# ============================================


class CheckInRequest(BaseModel):
    """Request body for a checkpoint scan."""

    token: str = Field(..., min_length=1, description="Scanned check-in token")
    checkpoint: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Checkpoint name",
        json_schema_extra={"example": "Registration"},
    )


class CheckInResponse(BaseModel):
    """Result of a successful scan (first or repeated)."""

    registration: RegistrationResponse
    checkpoint_checkin: CheckpointCheckInResponse
    already_checked_in: bool = Field(
        ..., description="True when this checkpoint had already been recorded"
    )
    message: str


# ============================================
# Approval
# ============================================


class DecisionResponse(BaseModel):
    """Response after approving or rejecting a registration."""

    registration: RegistrationResponse
    message: str


# ============================================
# Checkpoints
# ============================================


class CheckpointStateResponse(BaseModel):
    """An event's checkpoints and which of them are open for scanning."""

    event_id: UUID
    checkpoints: list[str]
    unlocked_checkpoints: list[str]


# ============================================
# Scan logs
# ============================================


class ScanLogResponse(BaseModel):
    """One scan attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID | None
    volunteer_id: UUID
    checkpoint: str
    scan_status: ScanStatus
    error_message: str | None
    user_id: UUID | None
    registration_id: UUID | None
    created_at: datetime


class ScanLogListResponse(BaseModel):
    """Recent scan attempts, newest first."""

    scans: list[ScanLogResponse]
