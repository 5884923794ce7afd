"""Custom exceptions for the reviews360 application."""

# Shown for every invitation failure so callers cannot tell which tokens exist
INVALID_INVITATION_MESSAGE = "This invitation link is invalid or has expired."


class ReviewsError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(ReviewsError):
    """Raised for malformed or missing input."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(ReviewsError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ForbiddenError(ReviewsError):
    """Raised when a principal lacks permission for an action."""
    def __init__(self, message="You do not have permission to perform this action."):
        super().__init__(message, 403)


class UnauthenticatedError(ReviewsError):
    """Raised when a request carries no signed-in principal."""
    def __init__(self, message="Authentication required."):
        super().__init__(message, 401)


class InvitationError(ReviewsError):
    """
    Base class for invitation failures.

    Every subclass answers with the same message and status code; `reason`
    keeps the precise cause for logging.
    """
    reason = 'invalid'

    def __init__(self):
        super().__init__(INVALID_INVITATION_MESSAGE, 410)


class InvitationNotFoundError(InvitationError):
    reason = 'not_found'


class InvitationExpiredError(InvitationError):
    reason = 'expired'


class InvitationUsedError(InvitationError):
    reason = 'already_used'


class DomainMismatchError(ReviewsError):
    """Raised when an invitation is redeemed from a foreign email domain."""
    def __init__(self, message="This invitation cannot be used with this email address."):
        super().__init__(message, 403)


class UninvitedDomainError(ReviewsError):
    """Raised when signing up to an existing organization without an invitation."""
    def __init__(self, message="Your organization requires an invitation to sign up. Ask an administrator for an invitation link."):
        super().__init__(message, 403)


class DuplicateGrantError(ReviewsError):
    """Raised when an area permission already exists for the principal."""
    def __init__(self, message="This user already has a permission on this area. Update it instead."):
        super().__init__(message, 409)


class ConstraintViolationError(ReviewsError):
    """Raised when a write loses a race on a unique key."""
    def __init__(self, message="A conflicting record already exists."):
        super().__init__(message, 409)


class StorageError(ReviewsError):
    """Transient storage failure; the caller may retry."""
    def __init__(self, message="Storage is temporarily unavailable. Please retry."):
        super().__init__(message, 503)
