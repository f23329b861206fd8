"""
Registrations Router

Participant and volunteer facing endpoints.

Endpoints:
- POST /events/{event_id}/registrations - Register for an event
- GET /registrations/{registration_id} - Registration snapshot
- GET /registrations/{registration_id}/token - Owner's check-in token
- GET /events/{event_id}/checkpoints - Checkpoints and which are open
- POST /check-in - Scan a participant's token at a checkpoint

Security:
- All endpoints require a session bearer token
- Check-in requires volunteer, organizer or admin role
- Scans are rate limited per volunteer
- Every scan attempt is written to the scan log (never the raw token)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventgate.core.auth import Actor, get_current_actor, require_volunteer
from eventgate.core.config import settings
from eventgate.core.database import get_db
from eventgate.modules.registrations import service
from eventgate.modules.registrations.dependencies import (
    check_action_rate_limit,
    get_token_codec,
    service_error_to_http,
)
from eventgate.modules.registrations.models import ScanStatus
from eventgate.modules.registrations.schemas import (
    CheckInRequest,
    CheckInResponse,
    CheckpointCheckInResponse,
    CheckpointStateResponse,
    RegistrationCreate,
    RegistrationResponse,
    RegistrationTokenResponse,
    RegistrationWithTokenResponse,
)
from eventgate.modules.registrations.service import (
    EventNotFoundError,
    RegistrationNotFoundError,
    RegistrationServiceError,
)
from eventgate.modules.registrations.tokens import CheckinTokenCodec, CheckinTokenContext

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


# ============================================
# Registration
# ============================================


@router.post(
    "/events/{event_id}/registrations",
    response_model=RegistrationWithTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register for an Event",
    description="""
Register the current user for an event.

The registration starts as `pending` and carries the check-in token the
participant presents at checkpoints once approved. The token is issued once
and never changes.
""",
    responses={
        400: {"description": "Registration closed, or missing/invalid form answers"},
        404: {"description": "Event not found"},
        409: {"description": "Already registered for this event"},
    },
)
async def register_for_event(
    event_id: UUID,
    data: RegistrationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    codec: CheckinTokenCodec = Depends(get_token_codec),
) -> RegistrationWithTokenResponse:
    try:
        registration = await service.create_registration(
            db, codec, event_id, actor.id, data.responses
        )
        return RegistrationWithTokenResponse.model_validate(registration)
    except RegistrationServiceError as e:
        logger.warning(f"Registration for event {event_id} refused: {e.error_code}")
        raise service_error_to_http(e) from e
    except Exception as e:
        logger.exception(f"Error registering for event {event_id}: {e}")
        raise _internal_error() from e


@router.get(
    "/registrations/{registration_id}",
    response_model=RegistrationResponse,
    summary="Get Registration",
    description="Registration snapshot with checkpoint history. Owner, organizers and admins only.",
)
async def get_registration(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> RegistrationResponse:
    try:
        registration = await service.get_registration(db, registration_id)
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    if registration.user_id != actor.id and not actor.can_approve:
        # Same answer as a missing registration
        raise service_error_to_http(RegistrationNotFoundError(registration_id))

    return RegistrationResponse.model_validate(registration)


@router.get(
    "/registrations/{registration_id}/token",
    response_model=RegistrationTokenResponse,
    summary="Get Check-In Token",
    description="The registration owner's check-in token, to render as a QR code.",
)
async def get_registration_token(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> RegistrationTokenResponse:
    try:
        registration = await service.get_registration(db, registration_id)
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    if registration.user_id != actor.id:
        raise service_error_to_http(RegistrationNotFoundError(registration_id))

    return RegistrationTokenResponse(
        registration_id=registration.id,
        token=registration.token,
        status=registration.status,
    )


@router.get(
    "/events/{event_id}/checkpoints",
    response_model=CheckpointStateResponse,
    summary="Get Event Checkpoints",
    description="The event's checkpoints in order and which are currently open for scanning.",
)
async def get_event_checkpoints(
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_volunteer),
) -> CheckpointStateResponse:
    try:
        event = await service.get_event(db, event_id)
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    return CheckpointStateResponse(**service.checkpoint_state(event))


# ============================================
# Check-in
# ============================================


async def _check_in_at_open_checkpoint(
    db: AsyncSession,
    context: CheckinTokenContext,
    data: CheckInRequest,
    actor: Actor,
) -> service.CheckInResult:
    try:
        event = await service.get_event(db, context.event_id)
    except EventNotFoundError as e:
        raise RegistrationNotFoundError(context.registration_id) from e

    service.ensure_checkpoint_open(event, data.checkpoint)

    return await service.check_in_verified(db, context, data.token, data.checkpoint, actor.id)


@router.post(
    "/check-in",
    response_model=CheckInResponse,
    summary="Check In at a Checkpoint",
    description="""
Scan a participant's check-in token at a checkpoint.

A repeated scan at a checkpoint that is already recorded succeeds with
`already_checked_in: true` and the existing record; nothing is duplicated.
The first recorded checkpoint moves the registration to `checked-in`.

**Access:** Volunteers, organizers and admins
""",
    responses={
        400: {"description": "Invalid, expired or wrong-kind token; unknown checkpoint"},
        403: {"description": "Registration not approved, or not a volunteer"},
        404: {"description": "Token does not match a registration"},
        409: {"description": "Checkpoint is locked"},
        429: {"description": "Too many scans"},
        503: {"description": "Store unavailable, safe to retry"},
    },
)
async def check_in(
    data: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_volunteer),
    codec: CheckinTokenCodec = Depends(get_token_codec),
) -> CheckInResponse:
    await check_action_rate_limit(
        actor, "scan", settings.scan_rate_limit, settings.scan_rate_window_seconds
    )

    context: CheckinTokenContext | None = None
    try:
        context = codec.verify(data.token)
        result = await _check_in_at_open_checkpoint(db, context, data, actor)
    except RegistrationServiceError as e:
        await service.record_scan(
            db,
            volunteer_id=actor.id,
            checkpoint=data.checkpoint,
            scan_status=service.scan_status_for_error(e),
            event_id=context.event_id if context else None,
            registration_id=context.registration_id if context else None,
            error_message=e.message,
        )
        raise service_error_to_http(e) from e
    except Exception as e:
        logger.exception(f"Error during check-in at '{data.checkpoint}': {e}")
        await service.record_scan(
            db,
            volunteer_id=actor.id,
            checkpoint=data.checkpoint,
            scan_status=ScanStatus.ERROR,
            error_message="Unexpected error",
        )
        raise _internal_error() from e

    registration = result.registration
    response = CheckInResponse(
        registration=RegistrationResponse.model_validate(registration),
        checkpoint_checkin=CheckpointCheckInResponse.model_validate(result.checkpoint_checkin),
        already_checked_in=not result.created,
        message=(
            f"Checked in at {data.checkpoint}"
            if result.created
            else f"Already checked in at {data.checkpoint}"
        ),
    )

    await service.record_scan(
        db,
        volunteer_id=actor.id,
        checkpoint=data.checkpoint,
        scan_status=ScanStatus.SUCCESS if result.created else ScanStatus.ALREADY_CHECKED_IN,
        event_id=context.event_id,
        user_id=registration.user_id,
        registration_id=registration.id,
    )

    return response
