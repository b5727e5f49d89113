"""
Error taxonomy for the messaging core.

Every error carries the HTTP status it maps to and a human-readable message
that is safe to return to clients. Handlers in ``alumnet.main`` render them
as ``{"success": false, "error": message}``.
"""


class MessagingError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MessagingError):
    """Empty or oversized content, malformed id, bad query."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(MessagingError):
    """Missing, invalid or expired identity token."""

    status_code = 401
    default_message = "Authentication required"


class Unauthorized(MessagingError):
    """Caller may not interact with the target user (no connection)."""

    status_code = 403
    default_message = "You can only message connected users"


class Forbidden(MessagingError):
    """Caller is not a participant, not the sender, or lacks a role."""

    status_code = 403
    default_message = "Access denied"


class NotFound(MessagingError):
    status_code = 404
    default_message = "Not found"


class InternalError(MessagingError):
    status_code = 500
