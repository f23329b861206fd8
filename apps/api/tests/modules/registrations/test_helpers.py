"""
Unit tests for registrations helpers module.
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from eventgate.modules.registrations.helpers import (
    event_checkpoints,
    event_unlocked_checkpoints,
    find_checkpoint_checkin,
    invalid_response_fields,
    is_checkpoint_defined,
    is_checkpoint_unlocked,
    missing_required_fields,
    recorded_checkpoints,
    required_field_names,
    with_checkpoint_locked,
    with_checkpoint_unlocked,
)


def _event(checkpoints=None, unlocked=None):
    event = MagicMock()
    event.checkpoints = checkpoints
    event.unlocked_checkpoints = unlocked
    return event


def _record(checkpoint):
    record = MagicMock()
    record.id = uuid4()
    record.checkpoint = checkpoint
    return record


class TestRequiredFields:
    """Tests for required field detection."""

    def test_no_schema_has_no_required_fields(self):
        assert required_field_names(None) == []
        assert missing_required_fields(None, {}) == []

    def test_required_names_in_declaration_order(self):
        schema = {
            "fields": [
                {"name": "b", "required": True},
                {"name": "a", "required": False},
                {"name": "c", "required": True},
            ]
        }
        assert required_field_names(schema) == ["b", "c"]

    def test_blank_values_count_as_missing(self):
        schema = {
            "fields": [
                {"name": "name", "required": True},
                {"name": "tags", "required": True},
                {"name": "notes", "required": True},
            ]
        }
        missing = missing_required_fields(schema, {"name": "   ", "tags": [], "notes": None})
        assert missing == ["name", "tags", "notes"]

    def test_zero_and_false_are_answers(self):
        schema = {
            "fields": [
                {"name": "count", "required": True},
                {"name": "consent", "required": True},
            ]
        }
        assert missing_required_fields(schema, {"count": 0, "consent": False}) == []


class TestInvalidResponses:
    """Tests for response type checks."""

    def test_number_field(self):
        schema = {"fields": [{"name": "age", "type": "number"}]}
        assert invalid_response_fields(schema, {"age": 30}) == []
        assert invalid_response_fields(schema, {"age": 2.5}) == []
        assert invalid_response_fields(schema, {"age": "30"}) == ["age"]
        assert invalid_response_fields(schema, {"age": True}) == ["age"]

    def test_select_field(self):
        schema = {"fields": [{"name": "size", "type": "select", "options": ["S", "M"]}]}
        assert invalid_response_fields(schema, {"size": "M"}) == []
        assert invalid_response_fields(schema, {"size": "XL"}) == ["size"]

    def test_multiselect_field(self):
        schema = {
            "fields": [{"name": "diet", "type": "multiselect", "options": ["vegan", "halal"]}]
        }
        assert invalid_response_fields(schema, {"diet": ["vegan"]}) == []
        assert invalid_response_fields(schema, {"diet": ["vegan", "keto"]}) == ["diet"]
        assert invalid_response_fields(schema, {"diet": "vegan"}) == ["diet"]

    def test_checkbox_field(self):
        schema = {"fields": [{"name": "consent", "type": "checkbox"}]}
        assert invalid_response_fields(schema, {"consent": True}) == []
        assert invalid_response_fields(schema, {"consent": "yes"}) == ["consent"]

    def test_pattern_validation(self):
        schema = {
            "fields": [
                {"name": "phone", "type": "text", "validation": {"pattern": r"\+?[0-9]{7,15}"}}
            ]
        }
        assert invalid_response_fields(schema, {"phone": "+233123456789"}) == []
        assert invalid_response_fields(schema, {"phone": "call me"}) == ["phone"]

    def test_broken_pattern_accepts_value(self):
        schema = {"fields": [{"name": "code", "type": "text", "validation": {"pattern": "(["}}]}
        assert invalid_response_fields(schema, {"code": "anything"}) == []

    def test_blank_and_undeclared_answers_skipped(self):
        schema = {"fields": [{"name": "age", "type": "number"}]}
        assert invalid_response_fields(schema, {"age": None, "extra": object()}) == []


class TestCheckpoints:
    """Tests for checkpoint helpers."""

    def test_default_checkpoint_when_unset(self):
        event = _event(checkpoints=None, unlocked=None)
        assert event_checkpoints(event) == ["Registration"]
        assert event_unlocked_checkpoints(event) == ["Registration"]

    def test_empty_unlocked_list_means_all_locked(self):
        event = _event(checkpoints=["Registration", "Lunch"], unlocked=[])
        assert event_unlocked_checkpoints(event) == []
        assert not is_checkpoint_unlocked(event, "Registration")

    def test_membership_is_exact(self):
        event = _event(checkpoints=["Registration", "Lunch"])
        assert is_checkpoint_defined(event, "Lunch")
        assert not is_checkpoint_defined(event, "lunch")

    def test_unlock_does_not_duplicate(self):
        assert with_checkpoint_unlocked(["Registration"], "Lunch") == ["Registration", "Lunch"]
        assert with_checkpoint_unlocked(["Registration"], "Registration") == ["Registration"]

    def test_lock_removes_checkpoint(self):
        assert with_checkpoint_locked(["Registration", "Lunch"], "Lunch") == ["Registration"]
        assert with_checkpoint_locked(["Registration"], "Lunch") == ["Registration"]

    def test_unlock_returns_new_list(self):
        unlocked = ["Registration"]
        result = with_checkpoint_unlocked(unlocked, "Registration")
        assert result == unlocked
        assert result is not unlocked


class TestCheckpointHistory:
    """Tests for checkpoint history lookups."""

    @pytest.fixture
    def registration(self):
        registration = MagicMock()
        registration.checkpoint_checkins = [_record("Registration"), _record("Lunch")]
        return registration

    def test_find_existing_record(self, registration):
        record = find_checkpoint_checkin(registration, "Lunch")
        assert record is registration.checkpoint_checkins[1]

    def test_find_missing_record(self, registration):
        assert find_checkpoint_checkin(registration, "Dinner") is None

    def test_recorded_checkpoints_in_order(self, registration):
        assert recorded_checkpoints(registration) == ["Registration", "Lunch"]
