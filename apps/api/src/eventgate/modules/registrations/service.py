"""
Registrations Service Layer

Business logic for the registration lifecycle and checkpoint check-in.

This module implements:
1. Registration (token issuance):
   - Validate the event is open and the form answers are complete
   - Create a pending registration with a freshly issued check-in token

2. Checkpoint Check-In:
   - Verify the scanned token (no database round trip)
   - Reject checkpoints the event does not define, whatever the status
   - Require an approved (or already checked-in) registration
   - Record each checkpoint at most once; a repeated scan is a success
   - Move the registration to checked-in on its first recorded checkpoint

3. Approval Workflow:
   - Approve or reject pending registrations only

4. Checkpoint Gating and Scan Logs:
   - Organizers lock/unlock checkpoints for scanning
   - Every scan attempt made through the API is logged

Concurrency:
- Work on one registration is serialized in-process by a per-registration
  asyncio lock, and across processes by a row lock on the registration
- The (registration_id, checkpoint) unique constraint rejects any duplicate
  that slips past both; the conflict is treated as a repeated scan
- Check-in and approval share the same discipline, so a rejection can't
  interleave with a check-in on the same registration

Failures are raised as typed ``RegistrationServiceError`` subclasses.
Store failures are raised as ``StoreUnavailableError`` and may be retried.
"""

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventgate.core.locks import KeyedLock
from eventgate.modules.registrations import repository
from eventgate.modules.registrations.exceptions import (
    CheckpointLockedError,
    CheckpointNotRecognizedError,
    DuplicateRegistrationError,
    EventAccessDeniedError,
    EventNotFoundError,
    ExpiredTokenError,
    InvalidRegistrationStateError,
    InvalidResponsesError,
    InvalidTokenError,
    MissingResponsesError,
    RegistrationClosedError,
    RegistrationNotApprovedError,
    RegistrationNotFoundError,
    RegistrationServiceError,
    StoreUnavailableError,
    TokenVerificationError,
    WrongTokenKindError,
)
from eventgate.modules.registrations.helpers import (
    event_checkpoints,
    event_unlocked_checkpoints,
    find_checkpoint_checkin,
    invalid_response_fields,
    is_checkpoint_defined,
    is_checkpoint_unlocked,
    missing_required_fields,
    with_checkpoint_locked,
    with_checkpoint_unlocked,
)
from eventgate.modules.registrations.models import (
    CheckpointCheckIn,
    Event,
    Registration,
    RegistrationStatus,
    ScanLog,
    ScanStatus,
)
from eventgate.modules.registrations.state_machine import (
    TransitionTrigger,
    can_check_in,
    status_after_check_in,
)
from eventgate.modules.registrations.tokens import (
    CheckinTokenCodec,
    CheckinTokenContext,
    generate_secret,
)

logger = logging.getLogger(__name__)

SCAN_LOG_DEFAULT_LIMIT = 200

# Per-registration critical section shared by check-in and approval
_registration_locks = KeyedLock()

__all__ = [
    "CheckInResult",
    "CheckpointLockedError",
    "CheckpointNotRecognizedError",
    "DuplicateRegistrationError",
    "EventAccessDeniedError",
    "EventNotFoundError",
    "ExpiredTokenError",
    "InvalidRegistrationStateError",
    "InvalidResponsesError",
    "InvalidTokenError",
    "MissingResponsesError",
    "RegistrationClosedError",
    "RegistrationNotApprovedError",
    "RegistrationNotFoundError",
    "RegistrationServiceError",
    "StoreUnavailableError",
    "TokenVerificationError",
    "WrongTokenKindError",
    "approve_registration",
    "check_in",
    "check_in_verified",
    "checkpoint_state",
    "create_registration",
    "ensure_checkpoint_open",
    "ensure_event_access",
    "get_event",
    "get_registration",
    "list_registrations",
    "list_scan_logs",
    "lock_checkpoint",
    "record_scan",
    "reject_registration",
    "scan_status_for_error",
    "unlock_checkpoint",
]


@dataclass
class CheckInResult:
    """
    Outcome of a successful check-in.

    Attributes:
        registration: Snapshot including the full checkpoint history
        checkpoint_checkin: The record for the scanned checkpoint
        created: False when the checkpoint had already been recorded
    """

    registration: Registration
    checkpoint_checkin: CheckpointCheckIn
    created: bool


@asynccontextmanager
async def _registration_transaction(
    db: AsyncSession, registration_id: UUID
) -> AsyncIterator[None]:
    """
    Serialize work on one registration and translate store failures.

    Business-rule failures roll back (releasing the row lock) and propagate
    unchanged; SQLAlchemy failures become StoreUnavailableError.
    """
    async with _registration_locks.hold(registration_id):
        try:
            yield
        except RegistrationServiceError:
            await repository.rollback(db)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Store failure while updating registration {registration_id}: {e}")
            await repository.rollback(db)
            raise StoreUnavailableError() from e


# ============================================
# Registration (token issuance)
# ============================================


def _ensure_registration_open(event: Event, now: datetime) -> None:
    if not event.is_registration_open:
        raise RegistrationClosedError()
    if event.registration_close_date and now > event.registration_close_date:
        raise RegistrationClosedError()


async def create_registration(
    db: AsyncSession,
    codec: CheckinTokenCodec,
    event_id: UUID,
    user_id: UUID,
    responses: dict,
) -> Registration:
    """
    Register a user for an event and issue their check-in token.

    The token is issued exactly once here and never rotated.

    Args:
        db: Database session
        codec: Token codec used to sign the check-in token
        event_id: Event to register for
        user_id: The applicant
        responses: Form answers keyed by field name

    Returns:
        The new pending Registration

    Raises:
        EventNotFoundError: If the event does not exist
        RegistrationClosedError: If the event no longer accepts registrations
        MissingResponsesError: If required form fields are unanswered
        InvalidResponsesError: If answers don't fit the declared field types
        DuplicateRegistrationError: If the user is already registered
        StoreUnavailableError: If the store fails
    """
    try:
        event = await repository.get_event_by_id(db, event_id)
        if not event:
            raise EventNotFoundError(event_id)

        _ensure_registration_open(event, datetime.now(UTC))

        missing = missing_required_fields(event.form_schema, responses)
        if missing:
            raise MissingResponsesError(missing)

        invalid = invalid_response_fields(event.form_schema, responses)
        if invalid:
            raise InvalidResponsesError(invalid)

        existing = await repository.get_by_event_and_user(db, event_id, user_id)
        if existing:
            logger.warning(f"Duplicate registration attempt: user={user_id}, event={event_id}")
            raise DuplicateRegistrationError()

        registration_id = uuid4()
        token_secret = generate_secret()
        token = codec.issue(registration_id, event_id, token_secret)

        registration = await repository.create(
            db,
            registration_id=registration_id,
            event_id=event_id,
            user_id=user_id,
            responses=responses,
            token=token,
            token_secret=token_secret,
        )
    except IntegrityError as e:
        # Lost a race with a concurrent registration by the same user
        await repository.rollback(db)
        raise DuplicateRegistrationError() from e
    except SQLAlchemyError as e:
        logger.error(f"Store failure while registering user {user_id} for event {event_id}: {e}")
        await repository.rollback(db)
        raise StoreUnavailableError() from e

    logger.info(f"Created registration {registration.id} for event {event_id}")
    return registration


async def get_registration(db: AsyncSession, registration_id: UUID) -> Registration:
    """
    Get a registration by ID.

    Raises:
        RegistrationNotFoundError: If the registration doesn't exist
    """
    try:
        registration = await repository.get_by_id(db, registration_id)
    except SQLAlchemyError as e:
        raise StoreUnavailableError() from e

    if not registration:
        raise RegistrationNotFoundError(registration_id)

    return registration


async def get_event(db: AsyncSession, event_id: UUID) -> Event:
    """
    Get an event by ID.

    Raises:
        EventNotFoundError: If the event doesn't exist
    """
    try:
        event = await repository.get_event_by_id(db, event_id)
    except SQLAlchemyError as e:
        raise StoreUnavailableError() from e

    if not event:
        raise EventNotFoundError(event_id)

    return event


def ensure_event_access(event: Event, actor_id: UUID, is_admin: bool) -> None:
    """
    Organizers may only manage their own events; admins manage all.

    Raises:
        EventAccessDeniedError: If the actor does not own the event
    """
    if not is_admin and event.organizer_id != actor_id:
        raise EventAccessDeniedError()


async def list_registrations(
    db: AsyncSession,
    event_id: UUID,
    status: RegistrationStatus | None = None,
) -> list[Registration]:
    """List an event's registrations, newest first."""
    try:
        return await repository.list_for_event(db, event_id, status)
    except SQLAlchemyError as e:
        raise StoreUnavailableError() from e


# ============================================
# Checkpoint Check-In
# ============================================


async def check_in(
    db: AsyncSession,
    codec: CheckinTokenCodec,
    token: str,
    checkpoint: str,
    actor_id: UUID,
) -> CheckInResult:
    """
    Check a participant in at a checkpoint.

    Args:
        db: Database session
        codec: Token codec used to verify the scanned token
        token: The scanned check-in token
        checkpoint: Checkpoint name
        actor_id: The volunteer performing the scan

    Returns:
        CheckInResult; ``created`` is False for a repeated scan

    Raises:
        InvalidTokenError: Malformed or tampered token (WrongTokenKindError
            for a signed token of another kind)
        ExpiredTokenError: Token past its expiry
        RegistrationNotFoundError: Token does not match a stored registration
        CheckpointNotRecognizedError: Checkpoint not defined for the event
            (checked before the registration status)
        RegistrationNotApprovedError: Registration is pending or rejected
        StoreUnavailableError: If the store fails
    """
    context = codec.verify(token)
    return await check_in_verified(db, context, token, checkpoint, actor_id)


async def check_in_verified(
    db: AsyncSession,
    context: CheckinTokenContext,
    token: str,
    checkpoint: str,
    actor_id: UUID,
) -> CheckInResult:
    """
    Check-in for a token already verified by the codec.

    See ``check_in`` for the contract.
    """
    async with _registration_transaction(db, context.registration_id):
        registration = await repository.get_by_id_for_update(db, context.registration_id)

        if (
            registration is None
            or registration.event_id != context.event_id
            or registration.token != token
            or not secrets.compare_digest(registration.token_secret, context.secret)
        ):
            logger.warning(
                f"Check-in token does not match a registration: {context.registration_id}"
            )
            raise RegistrationNotFoundError(context.registration_id)

        event = await repository.get_event_by_id(db, registration.event_id)
        if not event:
            raise RegistrationNotFoundError(context.registration_id)

        # Membership only, whatever the status: checkpoint order is not enforced
        if not is_checkpoint_defined(event, checkpoint):
            raise CheckpointNotRecognizedError(checkpoint)

        if not can_check_in(registration.status):
            raise RegistrationNotApprovedError(registration.status.value)

        existing = find_checkpoint_checkin(registration, checkpoint)
        if existing:
            await repository.commit(db)
            return CheckInResult(registration, existing, created=False)

        recorded = len(registration.checkpoint_checkins)
        record = await repository.add_checkpoint_checkin(
            db,
            registration.id,
            checkpoint,
            checked_in_by=actor_id,
            checked_in_at=datetime.now(UTC),
        )

        if record is None:
            # Another writer recorded this checkpoint first
            await repository.commit(db)
            registration = await repository.reload(db, registration)
            existing = find_checkpoint_checkin(registration, checkpoint)
            if existing is None:
                raise StoreUnavailableError("Check-in conflict could not be resolved.")
            return CheckInResult(registration, existing, created=False)

        new_status = status_after_check_in(registration.status, recorded + 1)
        registration = await repository.update_status(
            db, registration, new_status, TransitionTrigger.CHECK_IN
        )

    logger.info(f"Registration {registration.id} checked in at '{checkpoint}' by {actor_id}")

    checkin = find_checkpoint_checkin(registration, checkpoint) or record
    return CheckInResult(registration, checkin, created=True)


# ============================================
# Approval Workflow
# ============================================


async def _decide(
    db: AsyncSession,
    registration_id: UUID,
    actor_id: UUID,
    new_status: RegistrationStatus,
) -> Registration:
    async with _registration_transaction(db, registration_id):
        registration = await repository.get_by_id_for_update(db, registration_id)
        if not registration:
            raise RegistrationNotFoundError(registration_id)

        if registration.status != RegistrationStatus.PENDING:
            raise InvalidRegistrationStateError(
                f"Registration is {registration.status.value}.",
                expected_state=RegistrationStatus.PENDING.value,
            )

        now = datetime.now(UTC)
        if new_status == RegistrationStatus.APPROVED:
            fields = {"approved_by": actor_id, "approved_at": now}
        else:
            fields = {"rejected_by": actor_id, "rejected_at": now}

        registration = await repository.update_status(
            db, registration, new_status, TransitionTrigger.APPROVAL, **fields
        )

    logger.info(f"Registration {registration_id} {new_status.value} by {actor_id}")
    return registration


async def approve_registration(
    db: AsyncSession, registration_id: UUID, actor_id: UUID
) -> Registration:
    """
    Approve a pending registration.

    The token and checkpoint history are left untouched.

    Raises:
        RegistrationNotFoundError: If the registration doesn't exist
        InvalidRegistrationStateError: If the registration is not pending
        StoreUnavailableError: If the store fails
    """
    return await _decide(db, registration_id, actor_id, RegistrationStatus.APPROVED)


async def reject_registration(
    db: AsyncSession, registration_id: UUID, actor_id: UUID
) -> Registration:
    """
    Reject a pending registration. Rejection is final.

    Raises:
        RegistrationNotFoundError: If the registration doesn't exist
        InvalidRegistrationStateError: If the registration is not pending
        StoreUnavailableError: If the store fails
    """
    return await _decide(db, registration_id, actor_id, RegistrationStatus.REJECTED)


# ============================================
# Checkpoint Gating
# ============================================


def ensure_checkpoint_open(event: Event, checkpoint: str) -> None:
    """
    Refuse scans at a defined checkpoint that is currently locked.

    Undefined checkpoints pass through so the check-in reports them as
    unrecognized.

    Raises:
        CheckpointLockedError: If the checkpoint exists but is locked
    """
    if is_checkpoint_defined(event, checkpoint) and not is_checkpoint_unlocked(event, checkpoint):
        raise CheckpointLockedError(checkpoint)


async def _set_checkpoint_lock(
    db: AsyncSession, event_id: UUID, checkpoint: str, unlock: bool
) -> Event:
    try:
        event = await repository.get_event_for_update(db, event_id)
        if not event:
            raise EventNotFoundError(event_id)

        if not is_checkpoint_defined(event, checkpoint):
            raise CheckpointNotRecognizedError(checkpoint)

        current = event_unlocked_checkpoints(event)
        if unlock:
            updated = with_checkpoint_unlocked(current, checkpoint)
        else:
            updated = with_checkpoint_locked(current, checkpoint)

        if updated == current:
            await repository.commit(db)
            return event

        event = await repository.set_unlocked_checkpoints(db, event, updated)
    except RegistrationServiceError:
        await repository.rollback(db)
        raise
    except SQLAlchemyError as e:
        logger.error(f"Store failure while updating checkpoints of event {event_id}: {e}")
        await repository.rollback(db)
        raise StoreUnavailableError() from e

    logger.info(
        f"Checkpoint '{checkpoint}' {'unlocked' if unlock else 'locked'} for event {event_id}"
    )
    return event


async def unlock_checkpoint(db: AsyncSession, event_id: UUID, checkpoint: str) -> Event:
    """
    Open a checkpoint for scanning. Unlocking twice is a no-op.

    Raises:
        EventNotFoundError: If the event doesn't exist
        CheckpointNotRecognizedError: If the checkpoint isn't defined
    """
    return await _set_checkpoint_lock(db, event_id, checkpoint, unlock=True)


async def lock_checkpoint(db: AsyncSession, event_id: UUID, checkpoint: str) -> Event:
    """
    Close a checkpoint for scanning.

    Raises:
        EventNotFoundError: If the event doesn't exist
        CheckpointNotRecognizedError: If the checkpoint isn't defined
    """
    return await _set_checkpoint_lock(db, event_id, checkpoint, unlock=False)


def checkpoint_state(event: Event) -> dict:
    return {
        "event_id": event.id,
        "checkpoints": event_checkpoints(event),
        "unlocked_checkpoints": event_unlocked_checkpoints(event),
    }


# ============================================
# Scan Logs
# ============================================

_SCAN_STATUS_BY_ERROR: list[tuple[type[RegistrationServiceError], ScanStatus]] = [
    (ExpiredTokenError, ScanStatus.EXPIRED_TOKEN),
    (InvalidTokenError, ScanStatus.INVALID_TOKEN),
    (RegistrationNotFoundError, ScanStatus.NOT_FOUND),
    (RegistrationNotApprovedError, ScanStatus.NOT_APPROVED),
    (CheckpointNotRecognizedError, ScanStatus.UNKNOWN_CHECKPOINT),
    (CheckpointLockedError, ScanStatus.CHECKPOINT_LOCKED),
]


def scan_status_for_error(error: Exception) -> ScanStatus:
    """Map a check-in failure to the scan log status."""
    for error_type, scan_status in _SCAN_STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return scan_status
    return ScanStatus.ERROR


async def record_scan(
    db: AsyncSession,
    *,
    volunteer_id: UUID,
    checkpoint: str,
    scan_status: ScanStatus,
    event_id: UUID | None = None,
    error_message: str | None = None,
    user_id: UUID | None = None,
    registration_id: UUID | None = None,
) -> ScanLog | None:
    """
    Record a scan attempt.

    Best effort: a logging failure is reported and swallowed so it never
    changes the outcome of the scan itself.
    """
    try:
        return await repository.create_scan_log(
            db,
            volunteer_id=volunteer_id,
            checkpoint=checkpoint,
            scan_status=scan_status,
            event_id=event_id,
            error_message=error_message,
            user_id=user_id,
            registration_id=registration_id,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to record scan log ({scan_status.value}): {e}")
        await repository.rollback(db)
        return None


async def list_scan_logs(
    db: AsyncSession,
    *,
    event_id: UUID | None = None,
    organizer_id: UUID | None = None,
    limit: int = SCAN_LOG_DEFAULT_LIMIT,
) -> list[ScanLog]:
    """List recent scan attempts, newest first."""
    try:
        return await repository.list_scan_logs(
            db, event_id=event_id, organizer_id=organizer_id, limit=limit
        )
    except SQLAlchemyError as e:
        raise StoreUnavailableError() from e
