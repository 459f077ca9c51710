"""Invitations module."""

from tenantgate.invitations.service import (
    CreatedInvitation,
    InvitationService,
    RedemptionResult,
    RevokeOutcome,
    get_invitation_service,
)

__all__ = [
    "CreatedInvitation",
    "InvitationService",
    "RedemptionResult",
    "RevokeOutcome",
    "get_invitation_service",
]
