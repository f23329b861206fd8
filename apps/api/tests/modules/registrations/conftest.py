"""
Fixtures for registrations tests.

The service is exercised against ``FakeRepository``, an in-memory stand-in
for the repository module that keeps the same call signatures and enforces
the same (registration_id, checkpoint) uniqueness the database does.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from eventgate.core.rate_limit import reset_memory_store
from eventgate.modules.registrations.models import (
    CheckpointCheckIn,
    Event,
    Registration,
    RegistrationStatus,
    ScanLog,
)
from eventgate.modules.registrations.state_machine import validate_transition
from eventgate.modules.registrations.tokens import CheckinTokenCodec

SIGNING_KEY = "test-checkin-signing-key-0123456789abcdef"
ORGANIZER_ID = UUID("00000000-0000-0000-0000-00000000a001")
VOLUNTEER_ID = UUID("00000000-0000-0000-0000-00000000b001")


class FakeClock:
    """Controllable clock for the token codec."""

    def __init__(self, now: datetime | None = None):
        self.current = now or datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeRepository:
    """In-memory repository with the same interface as the repository module."""

    def __init__(self):
        self.events: dict[UUID, Event] = {}
        self.registrations: dict[UUID, Registration] = {}
        self.scan_logs: list[ScanLog] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_scan_logs = False

    # Transactions

    async def commit(self, db):
        self.commits += 1

    async def rollback(self, db):
        self.rollbacks += 1

    # Events

    def add_event(
        self,
        *,
        checkpoints: list[str] | None = None,
        unlocked: list[str] | None = None,
        form_schema: dict | None = None,
        is_registration_open: bool = True,
        registration_close_date: datetime | None = None,
        organizer_id: UUID = ORGANIZER_ID,
    ) -> Event:
        checkpoints = checkpoints or ["Registration"]
        event = Event(
            id=uuid4(),
            name="Spring Hackathon",
            organizer_id=organizer_id,
            checkpoints=list(checkpoints),
            unlocked_checkpoints=list(unlocked if unlocked is not None else checkpoints),
            is_registration_open=is_registration_open,
            registration_close_date=registration_close_date,
            form_schema=form_schema,
        )
        self.events[event.id] = event
        return event

    async def get_event_by_id(self, db, event_id):
        return self.events.get(event_id)

    async def get_event_for_update(self, db, event_id):
        return self.events.get(event_id)

    async def set_unlocked_checkpoints(self, db, event, unlocked):
        event.unlocked_checkpoints = list(unlocked)
        self.commits += 1
        return event

    # Registrations

    async def create(
        self, db, *, registration_id, event_id, user_id, responses, token, token_secret
    ):
        await asyncio.sleep(0)
        registration = Registration(
            id=registration_id,
            event_id=event_id,
            user_id=user_id,
            responses=responses,
            status=RegistrationStatus.PENDING,
            token=token,
            token_secret=token_secret,
            created_at=datetime.now(UTC),
            updated_at=datetime.now(UTC),
        )
        self.registrations[registration.id] = registration
        self.commits += 1
        return registration

    async def get_by_id(self, db, id):
        return self.registrations.get(id)

    async def get_by_id_for_update(self, db, id):
        await asyncio.sleep(0)
        return self.registrations.get(id)

    async def get_by_event_and_user(self, db, event_id, user_id):
        for registration in self.registrations.values():
            if registration.event_id == event_id and registration.user_id == user_id:
                return registration
        return None

    async def list_for_event(self, db, event_id, status=None):
        items = [
            r
            for r in self.registrations.values()
            if r.event_id == event_id and (status is None or r.status == status)
        ]
        return sorted(items, key=lambda r: r.created_at, reverse=True)

    async def update_status(self, db, registration, status, trigger, **kwargs):
        validate_transition(registration.status, status, trigger)
        registration.status = status
        for key, value in kwargs.items():
            setattr(registration, key, value)
        self.commits += 1
        return registration

    async def reload(self, db, registration):
        return registration

    # Check-ins

    async def add_checkpoint_checkin(
        self, db, registration_id, checkpoint, checked_in_by, checked_in_at
    ):
        # Yield between the caller's read and this write
        await asyncio.sleep(0)
        registration = self.registrations[registration_id]
        if any(r.checkpoint == checkpoint for r in registration.checkpoint_checkins):
            return None
        record = CheckpointCheckIn(
            id=uuid4(),
            registration_id=registration_id,
            checkpoint=checkpoint,
            checked_in_by=checked_in_by,
            checked_in_at=checked_in_at,
        )
        registration.checkpoint_checkins.append(record)
        return record

    # Scan logs

    async def create_scan_log(self, db, **fields):
        if self.fail_scan_logs:
            raise OperationalError("INSERT INTO scan_logs", {}, Exception("connection lost"))
        scan_log = ScanLog(id=uuid4(), created_at=datetime.now(UTC), **fields)
        self.scan_logs.append(scan_log)
        return scan_log

    async def list_scan_logs(self, db, *, event_id=None, organizer_id=None, limit=200):
        logs = list(reversed(self.scan_logs))
        if organizer_id is not None:
            owned = {e.id for e in self.events.values() if e.organizer_id == organizer_id}
            logs = [log for log in logs if log.event_id in owned]
        if event_id is not None:
            logs = [log for log in logs if log.event_id == event_id]
        return logs[:limit]


@pytest.fixture
def mock_db():
    """Database session placeholder; the fake repository never touches it."""
    return AsyncMock()


@pytest.fixture
def fake_repo():
    """Patch the service's repository with an in-memory fake."""
    repo = FakeRepository()
    with patch("eventgate.modules.registrations.service.repository", repo):
        yield repo


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    """Codec on the wall clock, as the service uses it."""
    return CheckinTokenCodec(SIGNING_KEY)


@pytest.fixture
def clocked_codec(clock):
    return CheckinTokenCodec(SIGNING_KEY, clock=clock)


@pytest.fixture
def event(fake_repo):
    """Event with three checkpoints, all open."""
    return fake_repo.add_event(checkpoints=["Registration", "Lunch", "Dinner"])


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()
