"""
API tests for the registration and check-in endpoints.

Authentication, the database session and the token codec are replaced
through FastAPI dependency overrides; the service runs against the
in-memory fake repository.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from eventgate.core.auth import Actor, Role, get_current_actor
from eventgate.core.database import get_db
from eventgate.main import app
from eventgate.modules.registrations.dependencies import get_token_codec
from eventgate.modules.registrations.models import ScanStatus

from .conftest import ORGANIZER_ID, VOLUNTEER_ID

API = "/api/v1"

PARTICIPANT = Actor(id=uuid4(), email="ada@example.com", role=Role.PARTICIPANT)
ORGANIZER = Actor(id=ORGANIZER_ID, email="org@example.com", role=Role.ORGANIZER)
OTHER_ORGANIZER = Actor(id=uuid4(), email="other@example.com", role=Role.ORGANIZER)
VOLUNTEER = Actor(id=VOLUNTEER_ID, email="vol@example.com", role=Role.VOLUNTEER)


class _Session:
    """Holds the actor the next request is made as."""

    actor: Actor = PARTICIPANT


@pytest.fixture
def client(fake_repo, codec):
    session = _Session()

    async def _db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_current_actor] = lambda: session.actor
    app.dependency_overrides[get_token_codec] = lambda: codec

    test_client = TestClient(app)
    test_client.session = session
    yield test_client

    app.dependency_overrides.clear()


def _as(client, actor: Actor) -> TestClient:
    client.session.actor = actor
    return client


def _register(client, event) -> dict:
    response = _as(client, PARTICIPANT).post(
        f"{API}/events/{event.id}/registrations", json={"responses": {"name": "Ada"}}
    )
    assert response.status_code == 201
    return response.json()


def _approve(client, registration_id) -> dict:
    response = _as(client, ORGANIZER).post(f"{API}/registrations/{registration_id}/approve")
    assert response.status_code == 200
    return response.json()


def _scan(client, token, checkpoint="Registration"):
    return _as(client, VOLUNTEER).post(
        f"{API}/check-in", json={"token": token, "checkpoint": checkpoint}
    )


class TestRegistrationEndpoints:
    """Tests for registration endpoints."""

    def test_register_returns_token(self, client, event):
        body = _register(client, event)

        assert body["status"] == "pending"
        assert body["token"]
        assert body["checkpoint_checkins"] == []

    def test_register_unknown_event(self, client):
        response = client.post(f"{API}/events/{uuid4()}/registrations", json={"responses": {}})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "EVENT_NOT_FOUND"

    def test_owner_reads_token(self, client, event):
        body = _register(client, event)

        response = client.get(f"{API}/registrations/{body['id']}/token")

        assert response.status_code == 200
        assert response.json()["token"] == body["token"]

    def test_other_participant_gets_not_found(self, client, event):
        body = _register(client, event)
        stranger = Actor(id=uuid4(), email="eve@example.com", role=Role.PARTICIPANT)

        response = _as(client, stranger).get(f"{API}/registrations/{body['id']}")

        assert response.status_code == 404

    def test_volunteer_reads_checkpoints(self, client, fake_repo):
        event = fake_repo.add_event(
            checkpoints=["Registration", "Lunch"], unlocked=["Registration"]
        )

        response = _as(client, VOLUNTEER).get(f"{API}/events/{event.id}/checkpoints")

        assert response.status_code == 200
        assert response.json()["unlocked_checkpoints"] == ["Registration"]


class TestCheckInEndpoint:
    """Tests for POST /check-in."""

    def test_first_then_repeated_scan(self, client, event, fake_repo):
        body = _register(client, event)
        _approve(client, body["id"])

        first = _scan(client, body["token"])
        again = _scan(client, body["token"])

        assert first.status_code == 200
        assert first.json()["already_checked_in"] is False
        assert first.json()["registration"]["status"] == "checked-in"
        assert again.status_code == 200
        assert again.json()["already_checked_in"] is True
        assert len(again.json()["registration"]["checkpoint_checkins"]) == 1

        statuses = [log.scan_status for log in fake_repo.scan_logs]
        assert statuses == [ScanStatus.SUCCESS, ScanStatus.ALREADY_CHECKED_IN]
        assert all(log.volunteer_id == VOLUNTEER_ID for log in fake_repo.scan_logs)

    def test_pending_registration_refused(self, client, event, fake_repo):
        body = _register(client, event)

        response = _scan(client, body["token"])

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "REGISTRATION_NOT_APPROVED"
        assert fake_repo.scan_logs[-1].scan_status == ScanStatus.NOT_APPROVED
        assert fake_repo.scan_logs[-1].registration_id is not None

    def test_unknown_checkpoint_reported_before_status(self, client, event, fake_repo):
        body = _register(client, event)

        response = _scan(client, body["token"], "Breakfast")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "CHECKPOINT_NOT_RECOGNIZED"
        assert fake_repo.scan_logs[-1].scan_status == ScanStatus.UNKNOWN_CHECKPOINT

    def test_locked_checkpoint_refused(self, client, fake_repo):
        event = fake_repo.add_event(
            checkpoints=["Registration", "Lunch"], unlocked=["Registration"]
        )
        body = _register(client, event)
        _approve(client, body["id"])

        response = _scan(client, body["token"], "Lunch")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "CHECKPOINT_LOCKED"
        assert fake_repo.scan_logs[-1].scan_status == ScanStatus.CHECKPOINT_LOCKED

    def test_unlocked_checkpoint_accepted(self, client, fake_repo):
        event = fake_repo.add_event(
            checkpoints=["Registration", "Lunch"], unlocked=["Registration"]
        )
        body = _register(client, event)
        _approve(client, body["id"])

        unlock = _as(client, ORGANIZER).post(
            f"{API}/events/{event.id}/checkpoints/Lunch/unlock"
        )
        response = _scan(client, body["token"], "Lunch")

        assert unlock.status_code == 200
        assert response.status_code == 200

    def test_invalid_token(self, client, fake_repo):
        response = _scan(client, "not-a-token")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_TOKEN"
        log = fake_repo.scan_logs[-1]
        assert log.scan_status == ScanStatus.INVALID_TOKEN
        assert log.event_id is None

    def test_participant_cannot_scan(self, client, event):
        body = _register(client, event)

        response = _as(client, PARTICIPANT).post(
            f"{API}/check-in", json={"token": body["token"], "checkpoint": "Registration"}
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "VOLUNTEER_ACCESS_REQUIRED"


class TestAdminEndpoints:
    """Tests for organizer endpoints."""

    def test_other_organizer_cannot_approve(self, client, event):
        body = _register(client, event)

        response = _as(client, OTHER_ORGANIZER).post(f"{API}/registrations/{body['id']}/approve")

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "EVENT_ACCESS_DENIED"

    def test_reject_then_approve_conflicts(self, client, event):
        body = _register(client, event)

        rejected = _as(client, ORGANIZER).post(f"{API}/registrations/{body['id']}/reject")
        approved = client.post(f"{API}/registrations/{body['id']}/approve")

        assert rejected.status_code == 200
        assert rejected.json()["registration"]["status"] == "rejected"
        assert approved.status_code == 409

    def test_list_pending(self, client, event):
        pending = _register(client, event)

        response = _as(client, ORGANIZER).get(
            f"{API}/events/{event.id}/registrations", params={"status": "pending"}
        )

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == [pending["id"]]

    def test_scan_logs_scoped_to_organizer(self, client, event, fake_repo):
        body = _register(client, event)
        _approve(client, body["id"])
        _scan(client, body["token"])

        mine = _as(client, ORGANIZER).get(f"{API}/scan-logs")
        theirs = _as(client, OTHER_ORGANIZER).get(f"{API}/scan-logs")

        assert len(mine.json()["scans"]) == 1
        assert mine.json()["scans"][0]["scan_status"] == "success"
        assert theirs.json()["scans"] == []

    def test_scan_log_limit_bounded(self, client):
        response = _as(client, ORGANIZER).get(f"{API}/scan-logs", params={"limit": 5000})

        assert response.status_code == 422
