"""
Registrations Admin Router

Organizer and admin endpoints for reviewing registrations and running
checkpoints during an event.

Endpoints:
- GET /events/{event_id}/registrations - List registrations (optional status filter)
- POST /registrations/{registration_id}/approve - Approve a pending registration
- POST /registrations/{registration_id}/reject - Reject a pending registration
- POST /events/{event_id}/checkpoints/{checkpoint}/unlock - Open a checkpoint
- POST /events/{event_id}/checkpoints/{checkpoint}/lock - Close a checkpoint
- GET /scan-logs - Recent scan attempts

Organizers only manage their own events; admins manage all events.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventgate.core.auth import Actor, Role, require_organizer
from eventgate.core.config import settings
from eventgate.core.database import get_db
from eventgate.modules.registrations import service
from eventgate.modules.registrations.dependencies import (
    check_action_rate_limit,
    service_error_to_http,
)
from eventgate.modules.registrations.models import Event, RegistrationStatus
from eventgate.modules.registrations.schemas import (
    CheckpointStateResponse,
    DecisionResponse,
    RegistrationListResponse,
    RegistrationResponse,
    ScanLogListResponse,
    ScanLogResponse,
)
from eventgate.modules.registrations.service import RegistrationServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_SCAN_LOG_LIMIT = 1000


def _is_admin(actor: Actor) -> bool:
    return actor.role == Role.ADMIN


async def _get_managed_event(db: AsyncSession, event_id: UUID, actor: Actor) -> Event:
    event = await service.get_event(db, event_id)
    service.ensure_event_access(event, actor.id, _is_admin(actor))
    return event


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


# ============================================
# Registrations
# ============================================


@router.get(
    "/events/{event_id}/registrations",
    response_model=RegistrationListResponse,
    summary="List Event Registrations",
    description="""
List registrations for an event, newest first.

Use `status=pending` for the approval queue.

**Access:** The event's organizer, or an admin
""",
)
async def list_event_registrations(
    event_id: UUID,
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> RegistrationListResponse:
    try:
        await _get_managed_event(db, event_id, actor)
        registrations = await service.list_registrations(db, event_id, status_filter)
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    return RegistrationListResponse(
        items=[RegistrationResponse.model_validate(r) for r in registrations],
        total=len(registrations),
    )


async def _decide(
    db: AsyncSession,
    registration_id: UUID,
    actor: Actor,
    approve: bool,
) -> DecisionResponse:
    action = "approve" if approve else "reject"
    await check_action_rate_limit(
        actor, action, settings.approval_rate_limit, settings.approval_rate_window_seconds
    )

    try:
        registration = await service.get_registration(db, registration_id)
        await _get_managed_event(db, registration.event_id, actor)

        if approve:
            registration = await service.approve_registration(db, registration_id, actor.id)
            message = "Registration approved"
        else:
            registration = await service.reject_registration(db, registration_id, actor.id)
            message = "Registration rejected"

        return DecisionResponse(
            registration=RegistrationResponse.model_validate(registration),
            message=message,
        )
    except RegistrationServiceError as e:
        logger.warning(f"Cannot {action} registration {registration_id}: {e.message}")
        raise service_error_to_http(e) from e
    except Exception as e:
        logger.exception(f"Error trying to {action} registration {registration_id}: {e}")
        raise _internal_error() from e


@router.post(
    "/registrations/{registration_id}/approve",
    response_model=DecisionResponse,
    summary="Approve Registration",
    description="""
Approve a pending registration. The participant's existing check-in token
becomes usable at checkpoints; no new token is issued.

**Access:** The event's organizer, or an admin
""",
    responses={
        404: {"description": "Registration not found"},
        409: {"description": "Registration is not pending"},
    },
)
async def approve_registration(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> DecisionResponse:
    return await _decide(db, registration_id, actor, approve=True)


@router.post(
    "/registrations/{registration_id}/reject",
    response_model=DecisionResponse,
    summary="Reject Registration",
    description="""
Reject a pending registration. Rejection is final.

**Access:** The event's organizer, or an admin
""",
    responses={
        404: {"description": "Registration not found"},
        409: {"description": "Registration is not pending"},
    },
)
async def reject_registration(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> DecisionResponse:
    return await _decide(db, registration_id, actor, approve=False)


# ============================================
# Checkpoints
# ============================================


async def _set_checkpoint(
    db: AsyncSession,
    event_id: UUID,
    checkpoint: str,
    actor: Actor,
    unlock: bool,
) -> CheckpointStateResponse:
    try:
        await _get_managed_event(db, event_id, actor)
        if unlock:
            event = await service.unlock_checkpoint(db, event_id, checkpoint)
        else:
            event = await service.lock_checkpoint(db, event_id, checkpoint)
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    return CheckpointStateResponse(**service.checkpoint_state(event))


@router.post(
    "/events/{event_id}/checkpoints/{checkpoint}/unlock",
    response_model=CheckpointStateResponse,
    summary="Unlock Checkpoint",
    description="Open a checkpoint for scanning. Unlocking an open checkpoint changes nothing.",
)
async def unlock_checkpoint(
    event_id: UUID,
    checkpoint: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> CheckpointStateResponse:
    return await _set_checkpoint(db, event_id, checkpoint, actor, unlock=True)


@router.post(
    "/events/{event_id}/checkpoints/{checkpoint}/lock",
    response_model=CheckpointStateResponse,
    summary="Lock Checkpoint",
    description="Close a checkpoint; scans there are refused until it is unlocked again.",
)
async def lock_checkpoint(
    event_id: UUID,
    checkpoint: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> CheckpointStateResponse:
    return await _set_checkpoint(db, event_id, checkpoint, actor, unlock=False)


# ============================================
# Scan Logs
# ============================================


@router.get(
    "/scan-logs",
    response_model=ScanLogListResponse,
    summary="List Scan Logs",
    description="""
Recent scan attempts (successful and failed), newest first.

Organizers see scans for their own events; admins see all scans.
""",
)
async def list_scan_logs(
    event_id: UUID | None = Query(None, description="Only scans for this event"),
    limit: int = Query(service.SCAN_LOG_DEFAULT_LIMIT, ge=1, le=MAX_SCAN_LOG_LIMIT),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_organizer),
) -> ScanLogListResponse:
    try:
        scans = await service.list_scan_logs(
            db,
            event_id=event_id,
            organizer_id=None if _is_admin(actor) else actor.id,
            limit=limit,
        )
    except RegistrationServiceError as e:
        raise service_error_to_http(e) from e

    return ScanLogListResponse(scans=[ScanLogResponse.model_validate(s) for s in scans])
