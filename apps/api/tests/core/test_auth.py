"""
Unit tests for session authentication and role checks.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException

from eventgate.core.auth import (
    Actor,
    Role,
    actor_from_token,
    require_organizer,
    require_volunteer,
)
from eventgate.core.security import create_access_token


def _actor(role: Role) -> Actor:
    return Actor(id=uuid4(), email=f"{role.value}@example.com", role=role)


class TestActorFromToken:
    """Tests for actor_from_token."""

    def test_valid_token(self):
        user_id = uuid4()
        token = create_access_token(
            str(user_id),
            additional_claims={"email": "vol@example.com", "role": "volunteer", "name": "Vol"},
        )

        actor = actor_from_token(token)

        assert actor.id == user_id
        assert actor.role == Role.VOLUNTEER
        assert actor.email == "vol@example.com"
        assert actor.name == "Vol"

    def test_expired_token(self):
        token = create_access_token(
            str(uuid4()),
            additional_claims={"role": "volunteer"},
            expires_delta=timedelta(seconds=-10),
        )

        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "INVALID_SESSION"

    def test_refresh_token_refused(self):
        token = create_access_token(
            str(uuid4()), additional_claims={"role": "volunteer", "type": "refresh"}
        )

        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)

        assert exc_info.value.detail["error"] == "INVALID_SESSION_TYPE"

    def test_unknown_role(self):
        token = create_access_token(str(uuid4()), additional_claims={"role": "superuser"})

        with pytest.raises(HTTPException) as exc_info:
            actor_from_token(token)

        assert exc_info.value.detail["error"] == "INVALID_SESSION_CLAIMS"

    def test_garbage_token(self):
        with pytest.raises(HTTPException) as exc_info:
            actor_from_token("not-a-jwt")

        assert exc_info.value.status_code == 401


class TestRoleChecks:
    """Tests for role dependencies."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.VOLUNTEER, Role.ORGANIZER, Role.ADMIN])
    async def test_volunteer_roles_may_check_in(self, role):
        actor = _actor(role)
        assert await require_volunteer(actor) is actor

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.PARTICIPANT, Role.APPLICANT])
    async def test_participants_may_not_check_in(self, role):
        with pytest.raises(HTTPException) as exc_info:
            await require_volunteer(_actor(role))

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error"] == "VOLUNTEER_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    async def test_volunteer_may_not_approve(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_organizer(_actor(Role.VOLUNTEER))

        assert exc_info.value.detail["error"] == "ORGANIZER_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.ORGANIZER, Role.ADMIN])
    async def test_organizers_may_approve(self, role):
        actor = _actor(role)
        assert await require_organizer(actor) is actor
