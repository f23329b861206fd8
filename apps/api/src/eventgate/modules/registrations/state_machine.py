"""
Registration Status State Machine

Legal status transitions and the trigger allowed to cause each one:

    pending    -> approved    (approval)
    pending    -> rejected    (approval)
    approved   -> checked-in  (check_in, first recorded checkpoint)
    checked-in -> checked-in  (check_in, each further checkpoint)

``rejected`` is terminal. ``checked-in`` means "at least one checkpoint has
been recorded" and is only ever reached through a check-in.
"""

import enum

from eventgate.modules.registrations.models import RegistrationStatus


class TransitionTrigger(str, enum.Enum):
    """Who is moving the registration."""

    APPROVAL = "approval"
    CHECK_IN = "check_in"


VALID_STATUS_TRANSITIONS: dict[RegistrationStatus, set[RegistrationStatus]] = {
    RegistrationStatus.PENDING: {
        RegistrationStatus.APPROVED,
        RegistrationStatus.REJECTED,
    },
    RegistrationStatus.APPROVED: {
        RegistrationStatus.CHECKED_IN,  # First checkpoint recorded
    },
    RegistrationStatus.CHECKED_IN: {
        RegistrationStatus.CHECKED_IN,  # Further checkpoints
    },
    # Terminal
    RegistrationStatus.REJECTED: set(),
}

TRANSITION_TRIGGERS: dict[tuple[RegistrationStatus, RegistrationStatus], TransitionTrigger] = {
    (RegistrationStatus.PENDING, RegistrationStatus.APPROVED): TransitionTrigger.APPROVAL,
    (RegistrationStatus.PENDING, RegistrationStatus.REJECTED): TransitionTrigger.APPROVAL,
    (RegistrationStatus.APPROVED, RegistrationStatus.CHECKED_IN): TransitionTrigger.CHECK_IN,
    (RegistrationStatus.CHECKED_IN, RegistrationStatus.CHECKED_IN): TransitionTrigger.CHECK_IN,
}

CHECK_IN_ALLOWED_STATUSES = frozenset({RegistrationStatus.APPROVED, RegistrationStatus.CHECKED_IN})


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: RegistrationStatus,
        new_status: RegistrationStatus,
        trigger: TransitionTrigger | None = None,
    ):
        self.current_status = current_status
        self.new_status = new_status
        self.trigger = trigger
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        by = f" by {trigger.value}" if trigger else ""
        super().__init__(
            f"Invalid status transition{by}: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


def is_valid_transition(
    current: RegistrationStatus,
    new: RegistrationStatus,
    trigger: TransitionTrigger,
) -> bool:
    """Return True if ``trigger`` may move a registration from ``current`` to ``new``."""
    if new not in VALID_STATUS_TRANSITIONS.get(current, set()):
        return False
    return TRANSITION_TRIGGERS.get((current, new)) == trigger


def validate_transition(
    current: RegistrationStatus,
    new: RegistrationStatus,
    trigger: TransitionTrigger,
) -> None:
    """
    Validate a status transition.

    Raises:
        InvalidStatusTransitionError: If the edge does not exist or belongs
            to a different trigger
    """
    if not is_valid_transition(current, new, trigger):
        raise InvalidStatusTransitionError(current, new, trigger)


def can_check_in(status: RegistrationStatus) -> bool:
    """Whether a registration in ``status`` may record checkpoints."""
    return status in CHECK_IN_ALLOWED_STATUSES


def status_after_check_in(
    status: RegistrationStatus,
    recorded_checkpoints: int,
) -> RegistrationStatus:
    """
    Status after a new checkpoint has been recorded.

    Args:
        status: Status before the new record
        recorded_checkpoints: Number of checkpoint records including the new one

    Raises:
        InvalidStatusTransitionError: If the registration may not be checked in
    """
    if recorded_checkpoints < 1:
        raise ValueError("A check-in status requires at least one recorded checkpoint")
    validate_transition(status, RegistrationStatus.CHECKED_IN, TransitionTrigger.CHECK_IN)
    return RegistrationStatus.CHECKED_IN


__all__ = [
    "CHECK_IN_ALLOWED_STATUSES",
    "TRANSITION_TRIGGERS",
    "VALID_STATUS_TRANSITIONS",
    "InvalidStatusTransitionError",
    "TransitionTrigger",
    "can_check_in",
    "is_valid_transition",
    "status_after_check_in",
    "validate_transition",
]
