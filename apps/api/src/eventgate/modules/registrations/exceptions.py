"""
Registrations Errors

Typed failures raised by the token codec and the registration service.
Routers translate them into HTTP responses using ``error_code`` and
``status_code``; business-rule failures are never retried, while
``StoreUnavailableError`` marks an infrastructure failure the caller may retry.
"""

from uuid import UUID


class RegistrationServiceError(Exception):
    """Base exception for registration service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


# ============================================
# Token verification
# ============================================


class TokenVerificationError(RegistrationServiceError):
    """Base class for check-in token verification failures."""

    reason = "invalid"

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=400)


class InvalidTokenError(TokenVerificationError):
    """Raised when a token is malformed or its signature does not match."""

    reason = "invalid"

    def __init__(self, message: str = "Invalid check-in token."):
        super().__init__(message=message, error_code="INVALID_TOKEN")


class WrongTokenKindError(InvalidTokenError):
    """Raised when a correctly signed token is not a check-in token."""

    reason = "wrong_kind"

    def __init__(self, kind: object = None):
        self.kind = kind
        super().__init__(message="Token is not a participant check-in token.")


class ExpiredTokenError(TokenVerificationError):
    """Raised when a correctly signed token is past its expiry."""

    reason = "expired"

    def __init__(self):
        super().__init__(
            message="This check-in token has expired. Please contact the organizers.",
            error_code="EXPIRED_TOKEN",
        )


# ============================================
# Registration state
# ============================================


class RegistrationNotFoundError(RegistrationServiceError):
    """Raised when a registration does not exist."""

    def __init__(self, registration_id: UUID | None = None):
        message = (
            f"Registration {registration_id} not found"
            if registration_id
            else "Registration not found"
        )
        super().__init__(
            message=message,
            error_code="REGISTRATION_NOT_FOUND",
            status_code=404,
        )


class RegistrationNotApprovedError(RegistrationServiceError):
    """Raised when checking in a registration that is pending or rejected."""

    def __init__(self, status: str):
        self.status = status
        if status == "rejected":
            message = "This registration was rejected."
        else:
            message = "This registration is not yet approved."
        super().__init__(
            message=message,
            error_code="REGISTRATION_NOT_APPROVED",
            status_code=403,
        )


class CheckpointNotRecognizedError(RegistrationServiceError):
    """Raised when a checkpoint name is not defined for the event."""

    def __init__(self, checkpoint: str):
        self.checkpoint = checkpoint
        super().__init__(
            message=f"Checkpoint '{checkpoint}' is not defined for this event.",
            error_code="CHECKPOINT_NOT_RECOGNIZED",
            status_code=400,
        )


class CheckpointLockedError(RegistrationServiceError):
    """Raised when scanning at a checkpoint that is not currently unlocked."""

    def __init__(self, checkpoint: str):
        self.checkpoint = checkpoint
        super().__init__(
            message=f"Checkpoint '{checkpoint}' is locked. Ask an organizer to unlock it.",
            error_code="CHECKPOINT_LOCKED",
            status_code=409,
        )


class InvalidRegistrationStateError(RegistrationServiceError):
    """Raised when a registration is not in the expected state for an operation."""

    def __init__(self, message: str, expected_state: str | None = None):
        detail = message
        if expected_state:
            detail = f"{message} Expected state: {expected_state}"
        super().__init__(
            message=detail,
            error_code="INVALID_REGISTRATION_STATE",
            status_code=409,
        )


class EventAccessDeniedError(RegistrationServiceError):
    """Raised when an organizer acts on an event they do not own."""

    def __init__(self):
        super().__init__(
            message="You can only manage registrations for your own events.",
            error_code="EVENT_ACCESS_DENIED",
            status_code=403,
        )


# ============================================
# Registration creation
# ============================================


class EventNotFoundError(RegistrationServiceError):
    """Raised when an event does not exist."""

    def __init__(self, event_id: UUID | None = None):
        message = f"Event {event_id} not found" if event_id else "Event not found"
        super().__init__(
            message=message,
            error_code="EVENT_NOT_FOUND",
            status_code=404,
        )


class RegistrationClosedError(RegistrationServiceError):
    """Raised when registering for an event that no longer accepts registrations."""

    def __init__(self):
        super().__init__(
            message="Registration for this event is closed.",
            error_code="REGISTRATION_CLOSED",
            status_code=400,
        )


class MissingResponsesError(RegistrationServiceError):
    """Raised when required form fields are missing from the responses."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = missing_fields
        super().__init__(
            message=f"Missing required fields: {', '.join(missing_fields)}",
            error_code="MISSING_REQUIRED_FIELDS",
            status_code=400,
        )


class InvalidResponsesError(RegistrationServiceError):
    """Raised when form answers do not match the declared field types."""

    def __init__(self, invalid_fields: list[str]):
        self.invalid_fields = invalid_fields
        super().__init__(
            message=f"Invalid values for fields: {', '.join(invalid_fields)}",
            error_code="INVALID_RESPONSES",
            status_code=400,
        )


class DuplicateRegistrationError(RegistrationServiceError):
    """Raised when the user already has a registration for the event."""

    def __init__(self):
        super().__init__(
            message="You are already registered for this event.",
            error_code="DUPLICATE_REGISTRATION",
            status_code=409,
        )


# ============================================
# Infrastructure
# ============================================


class StoreUnavailableError(RegistrationServiceError):
    """Raised when the registration store fails. Safe to retry."""

    def __init__(self, message: str = "Registration store is temporarily unavailable."):
        super().__init__(
            message=message,
            error_code="STORE_UNAVAILABLE",
            status_code=503,
        )
