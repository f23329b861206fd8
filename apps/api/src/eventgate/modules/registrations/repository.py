"""
Registrations Repository

Database operations for events, registrations, checkpoint check-ins and
scan logs. Only data access lives here; business rules belong to the
service layer.

Design Principles:
- All queries are parameterized
- Async operations for non-blocking I/O
- Row locks (SELECT ... FOR UPDATE) for read-modify-write on a registration
- The (registration_id, checkpoint) unique constraint is the last line of
  defence against duplicate check-ins; a conflict is reported as ``None``
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
    validate_transition,
)

# ============================================
# Transactions
# ============================================


async def commit(db: AsyncSession) -> None:
    """Commit the current transaction, releasing any row locks."""
    await db.commit()


async def rollback(db: AsyncSession) -> None:
    """Roll back the current transaction, releasing any row locks."""
    await db.rollback()


async def _refresh_with_history(db: AsyncSession, registration: Registration) -> Registration:
    await db.refresh(registration)
    await db.refresh(registration, attribute_names=["checkpoint_checkins"])
    return registration


# ============================================
# Event Repository
# ============================================


async def get_event_by_id(db: AsyncSession, event_id: UUID) -> Event | None:
    """Get event by ID."""
    return await db.get(Event, event_id)


async def get_event_for_update(db: AsyncSession, event_id: UUID) -> Event | None:
    """Get event by ID, locking its row until the transaction ends."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def set_unlocked_checkpoints(db: AsyncSession, event: Event, unlocked: list[str]) -> Event:
    """Replace the event's unlocked checkpoint list."""
    event.unlocked_checkpoints = list(unlocked)

    await db.commit()
    await db.refresh(event)

    return event


# ============================================
# Registration Repository
# ============================================


async def create(
    db: AsyncSession,
    *,
    registration_id: UUID,
    event_id: UUID,
    user_id: UUID,
    responses: dict[str, Any],
    token: str,
    token_secret: str,
) -> Registration:
    """
    Create a pending registration with an empty checkpoint history.

    Raises:
        IntegrityError: If the user is already registered for the event
    """
    registration = Registration(
        id=registration_id,
        event_id=event_id,
        user_id=user_id,
        responses=responses,
        status=RegistrationStatus.PENDING,
        token=token,
        token_secret=token_secret,
    )

    db.add(registration)
    await db.commit()

    return await _refresh_with_history(db, registration)


async def get_by_id(db: AsyncSession, id: UUID) -> Registration | None:
    """Get registration by ID (checkpoint history is loaded eagerly)."""
    return await db.get(Registration, id)


async def get_by_id_for_update(db: AsyncSession, id: UUID) -> Registration | None:
    """
    Get registration by ID and lock its row until the transaction ends.

    Concurrent check-ins and approval decisions on the same registration
    queue behind this lock.
    """
    result = await db.execute(
        select(Registration)
        .where(Registration.id == id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_event_and_user(
    db: AsyncSession, event_id: UUID, user_id: UUID
) -> Registration | None:
    """Get a user's registration for an event."""
    result = await db.execute(
        select(Registration).where(
            Registration.event_id == event_id,
            Registration.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_for_event(
    db: AsyncSession,
    event_id: UUID,
    status: RegistrationStatus | None = None,
) -> list[Registration]:
    """List an event's registrations, newest first, optionally by status."""
    stmt = select(Registration).where(Registration.event_id == event_id)

    if status:
        stmt = stmt.where(Registration.status == status)

    stmt = stmt.order_by(Registration.created_at.desc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_status(
    db: AsyncSession,
    registration: Registration,
    status: RegistrationStatus,
    trigger: TransitionTrigger,
    **kwargs,
) -> Registration:
    """
    Update registration status and optional fields, then commit.

    Validates the transition against the state machine, so a rejected
    registration can never be moved and ``checked-in`` is only reachable
    through a check-in.

    Args:
        db: Database session
        registration: Registration to update (normally row-locked)
        status: New status to set
        trigger: What is causing the transition
        **kwargs: Additional fields to update (e.g., approved_by, approved_at)

    Raises:
        InvalidStatusTransitionError: If status transition is not allowed
    """
    validate_transition(registration.status, status, trigger)

    registration.status = status

    for key, value in kwargs.items():
        if hasattr(registration, key):
            setattr(registration, key, value)

    await db.commit()

    return await _refresh_with_history(db, registration)


async def reload(db: AsyncSession, registration: Registration) -> Registration:
    """Re-read a registration and its checkpoint history from the database."""
    return await _refresh_with_history(db, registration)


# ============================================
# CheckpointCheckIn Repository
# ============================================


async def add_checkpoint_checkin(
    db: AsyncSession,
    registration_id: UUID,
    checkpoint: str,
    checked_in_by: UUID,
    checked_in_at: datetime,
) -> CheckpointCheckIn | None:
    """
    Insert a checkpoint record inside a savepoint (not committed).

    Returns:
        The new record, or None if the registration already has a record
        for this checkpoint
    """
    record = CheckpointCheckIn(
        registration_id=registration_id,
        checkpoint=checkpoint,
        checked_in_by=checked_in_by,
        checked_in_at=checked_in_at,
    )

    try:
        async with db.begin_nested():
            db.add(record)
            await db.flush()
    except IntegrityError:
        return None

    return record


# ============================================
# ScanLog Repository
# ============================================


async def create_scan_log(
    db: AsyncSession,
    *,
    volunteer_id: UUID,
    checkpoint: str,
    scan_status: ScanStatus,
    event_id: UUID | None = None,
    error_message: str | None = None,
    user_id: UUID | None = None,
    registration_id: UUID | None = None,
) -> ScanLog:
    """Record a scan attempt."""
    scan_log = ScanLog(
        event_id=event_id,
        volunteer_id=volunteer_id,
        checkpoint=checkpoint,
        scan_status=scan_status,
        error_message=error_message,
        user_id=user_id,
        registration_id=registration_id,
    )

    db.add(scan_log)
    await db.commit()
    await db.refresh(scan_log)

    return scan_log


async def list_scan_logs(
    db: AsyncSession,
    *,
    event_id: UUID | None = None,
    organizer_id: UUID | None = None,
    limit: int = 200,
) -> list[ScanLog]:
    """
    List scan attempts, newest first.

    Args:
        event_id: Only scans for this event
        organizer_id: Only scans for events owned by this organizer
        limit: Maximum number of rows
    """
    stmt = select(ScanLog)

    if organizer_id is not None:
        stmt = stmt.join(Event, ScanLog.event_id == Event.id).where(
            Event.organizer_id == organizer_id
        )
    if event_id is not None:
        stmt = stmt.where(ScanLog.event_id == event_id)

    stmt = stmt.order_by(ScanLog.created_at.desc()).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())
