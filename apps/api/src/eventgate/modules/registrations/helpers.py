"""
Registrations Shared Helpers

Pure functions over events, registrations and form responses used by the
service layer and the routers.
"""

import re
from typing import Any

from eventgate.modules.registrations.models import (
    DEFAULT_CHECKPOINT,
    CheckpointCheckIn,
    Event,
    Registration,
)


def required_field_names(form_schema: dict | None) -> list[str]:
    """
    Names of the required fields declared by an event's form schema.

    Args:
        form_schema: ``{"fields": [{"name": ..., "required": bool}, ...]}`` or None

    Returns:
        Field names in declaration order
    """
    if not form_schema:
        return []
    return [
        field["name"]
        for field in form_schema.get("fields", [])
        if field.get("required") and field.get("name")
    ]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def missing_required_fields(form_schema: dict | None, responses: dict[str, Any]) -> list[str]:
    """
    Required fields with no answer in ``responses``.

    Blank strings, empty lists and None count as missing; ``0`` and ``False``
    are answers.
    """
    return [name for name in required_field_names(form_schema) if _is_blank(responses.get(name))]


def _matches_field_type(field: dict, value: Any) -> bool:
    field_type = field.get("type", "text")
    options = field.get("options")

    if field_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field_type == "checkbox":
        return isinstance(value, bool) or (
            isinstance(value, list) and all(isinstance(v, str) for v in value)
        )
    if field_type == "multiselect":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return False
        return not options or all(v in options for v in value)
    if not isinstance(value, str):
        return False
    if field_type == "select" and options:
        return value in options

    pattern = (field.get("validation") or {}).get("pattern")
    if pattern:
        try:
            return re.fullmatch(pattern, value) is not None
        except re.error:
            # Broken patterns are a form-builder problem, not the applicant's
            return True
    return True


def invalid_response_fields(form_schema: dict | None, responses: dict[str, Any]) -> list[str]:
    """
    Answered fields whose value does not fit the declared field type.

    Blank answers are skipped here; ``missing_required_fields`` reports them.
    Keys not declared by the form are ignored.
    """
    if not form_schema:
        return []
    invalid = []
    for field in form_schema.get("fields", []):
        name = field.get("name")
        if not name or _is_blank(responses.get(name)):
            continue
        if not _matches_field_type(field, responses[name]):
            invalid.append(name)
    return invalid


# ============================================
# Checkpoints
# ============================================


def event_checkpoints(event: Event) -> list[str]:
    """The event's ordered checkpoints, defaulting to the registration desk."""
    return list(event.checkpoints or [DEFAULT_CHECKPOINT])


def event_unlocked_checkpoints(event: Event) -> list[str]:
    """Checkpoints currently open for scanning."""
    if event.unlocked_checkpoints is None:
        return [DEFAULT_CHECKPOINT]
    return list(event.unlocked_checkpoints)


def is_checkpoint_defined(event: Event, checkpoint: str) -> bool:
    return checkpoint in event_checkpoints(event)


def is_checkpoint_unlocked(event: Event, checkpoint: str) -> bool:
    return checkpoint in event_unlocked_checkpoints(event)


def with_checkpoint_unlocked(unlocked: list[str], checkpoint: str) -> list[str]:
    """Return a new unlocked list including ``checkpoint`` (no duplicates)."""
    if checkpoint in unlocked:
        return list(unlocked)
    return [*unlocked, checkpoint]


def with_checkpoint_locked(unlocked: list[str], checkpoint: str) -> list[str]:
    """Return a new unlocked list without ``checkpoint``."""
    return [cp for cp in unlocked if cp != checkpoint]


def find_checkpoint_checkin(
    registration: Registration, checkpoint: str
) -> CheckpointCheckIn | None:
    """The registration's record for ``checkpoint``, if it has one."""
    for record in registration.checkpoint_checkins:
        if record.checkpoint == checkpoint:
            return record
    return None


def recorded_checkpoints(registration: Registration) -> list[str]:
    """Checkpoint names recorded for a registration, in check-in order."""
    return [record.checkpoint for record in registration.checkpoint_checkins]
