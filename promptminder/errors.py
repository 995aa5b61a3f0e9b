"""Typed errors raised by the auth core and rendered by the API layer.

Every error carries the HTTP status it maps to and a user-safe ``detail``.
Provider and store internals never go into ``detail``; they are logged where
the failure happens.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for errors with a client-facing status and message."""

    status_code: int = 400
    default_detail: str = "Request failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(AuthError):
    status_code = 400
    default_detail = "Invalid input"


class Unauthenticated(AuthError):
    status_code = 401
    default_detail = "Authentication required"


class Forbidden(AuthError):
    status_code = 403
    default_detail = "Insufficient privileges"


class NotFound(AuthError):
    status_code = 404
    default_detail = "Not found"


class Conflict(AuthError):
    status_code = 409
    default_detail = "Resource already exists"


class InvitationNotFound(NotFound):
    default_detail = "Invitation link is invalid"


class InvitationUnusable(AuthError):
    """The invitation exists but is in a terminal state."""

    status_code = 410
    default_detail = "This invitation can no longer be used"


class InvitationExpired(InvitationUnusable):
    default_detail = "This invitation has expired"


class InvitationAlreadyUsed(InvitationUnusable):
    default_detail = "This invitation has already been accepted"


class InvitationRevoked(InvitationUnusable):
    default_detail = "This invitation has been revoked"


class RateLimited(AuthError):
    status_code = 429
    default_detail = "Too many requests, please try again later"


class UpstreamFailure(AuthError):
    status_code = 502
    default_detail = "The request could not be completed, please try again"
