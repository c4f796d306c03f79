"""
Portal-wide exception hierarchy.

Every service raises one of these types. The app-level handlers in
``thesis_portal.utils.errors`` map each class to its HTTP status and
machine code once, so blueprints never translate errors by hand.

Usage:
    from thesis_portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Thesis", resource_id=42)
    raise ValidationError("title is required", details={"title": "required"})

Status mapping:
    ValidationError      400
    AuthenticationError  401
    AuthorizationError   403
    NotFoundError        404
    ConflictError        409
    InternalError        500
"""


class ValidationError(Exception):
    """Raised when input is malformed or outside its allowed range.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    status = 400
    code = "ERR_VALIDATION_INVALID"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MissingReasonError(ValidationError):
    code = "ERR_MISSING_REASON"

    def __init__(self, message: str = "cancellation_reason is required to cancel a thesis") -> None:
        super().__init__(message, details={"cancellation_reason": "required"})


class OutOfRangeError(ValidationError):
    code = "ERR_OUT_OF_RANGE"


class RoleMismatchError(ValidationError):
    code = "ERR_ROLE_MISMATCH"


class SelfInviteError(ValidationError):
    code = "ERR_SELF_INVITE"


class UploadLimitError(ValidationError):
    code = "ERR_UPLOAD_LIMIT"


class AuthenticationError(Exception):
    """Missing, expired or invalid credential."""

    status = 401
    code = "ERR_UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required") -> None:
        self.message = message
        self.details = {}
        super().__init__(message)


class AuthorizationError(Exception):
    """Authenticated, but the role or ownership does not permit the action."""

    status = 403
    code = "ERR_FORBIDDEN"

    def __init__(self, message: str = "Access denied") -> None:
        self.message = message
        self.details = {}
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Thesis", "Invitation").
        resource_id: The PK that was looked up. Logged, not returned to the client.
    """

    status = 404
    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.message = f"{resource} not found"
        self.details = {}
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness or state invariant.

    Args:
        message: Human-readable explanation.
        details: Optional structured payload (e.g. attempted transition).
    """

    status = 409
    code = "ERR_CONFLICT_STATE"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(ConflictError):
    code = "ERR_INVALID_TRANSITION"

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state}",
            details={"from": from_state, "to": to_state},
        )


class InvalidStateError(ConflictError):
    code = "ERR_INVALID_STATE"


class ThesisClosedError(ConflictError):
    code = "ERR_THESIS_CLOSED"


class AlreadyMemberError(ConflictError):
    code = "ERR_ALREADY_MEMBER"


class DuplicateInviteError(ConflictError):
    code = "ERR_DUPLICATE_INVITE"


class AlreadyRespondedError(ConflictError):
    code = "ERR_ALREADY_RESPONDED"


class AlreadyScheduledError(ConflictError):
    code = "ERR_ALREADY_SCHEDULED"


class DuplicateGradeError(ConflictError):
    code = "ERR_DUPLICATE_GRADE"


class ActiveThesisExistsError(ConflictError):
    code = "ERR_ACTIVE_THESIS_EXISTS"


class InternalError(Exception):
    """Unexpected store failure. The session is rolled back before raising."""

    status = 500
    code = "ERR_INTERNAL"

    def __init__(self, message: str = "Internal server error") -> None:
        self.message = message
        self.details = {}
        super().__init__(message)


# Every class above; used by the app-level handler registration.
PORTAL_ERRORS = (
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    InternalError,
)
