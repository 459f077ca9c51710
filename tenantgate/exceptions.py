"""Error kinds raised by the authorization, routing and invitation services.

Services raise these; routers translate them into ``HTTPException`` using the
``status_code`` and ``message`` carried by each class. Messages are written
for end users and never reveal membership or account existence.
"""

from fastapi import status


class TenantGateError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Request could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class EntropyUnavailable(TenantGateError):
    """The secure randomness source failed. Fatal."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Secure randomness is unavailable."


class InviteNotFound(TenantGateError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Invalid or expired invite link."


class InviteExpired(TenantGateError):
    status_code = status.HTTP_410_GONE
    message = "This invite has expired."


class InviteAlreadyRedeemed(TenantGateError):
    """Raised for invitations that were redeemed, superseded or revoked."""

    status_code = status.HTTP_409_CONFLICT
    message = "This invite is no longer valid."


class InviteEmailMismatch(TenantGateError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "This invite was sent to a different email. Sign in with that email to accept."


class InsufficientPrivilege(TenantGateError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You do not have permission to perform this action."


class InvalidRoleUpgrade(TenantGateError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You cannot grant a role higher than your own."


class NotReady(TenantGateError):
    """The session must be re-routed before it can act."""

    status_code = status.HTTP_403_FORBIDDEN
    message = "Your account setup is not complete."

    def __init__(self, location: str | None = None):
        super().__init__()
        self.location = location


class SlugAllocationExhausted(TenantGateError):
    status_code = status.HTTP_409_CONFLICT
    message = "Could not allocate a unique identifier. Please try again."


class ConcurrentModification(TenantGateError):
    status_code = status.HTTP_409_CONFLICT
    message = "The record was changed by another request. Please try again."


class LastOwnerRequired(TenantGateError):
    status_code = status.HTTP_409_CONFLICT
    message = "A company must keep at least one owner."


class MemberNotFound(TenantGateError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Member not found."


class WorkspaceNotFound(TenantGateError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Workspace not found."


class ProjectNotFound(TenantGateError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Project not found."


class VerificationFailed(TenantGateError):
    """Email verification was rejected.

    Attributes:
        code: Machine readable reason (INVALID, EXPIRED, LOCKED, RATE_LIMITED, BAD_FORMAT).
    """

    message = "That code is incorrect or expired."

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message)
        self.code = code
        if code == "RATE_LIMITED":
            self.status_code = status.HTTP_429_TOO_MANY_REQUESTS
