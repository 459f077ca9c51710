"""Pydantic schemas for invitations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class InvitationCreate(BaseModel):
    """Schema for creating an invitation.

    ``role`` is a company role for company invitations and a workspace role
    when ``workspace_id`` is set.
    """

    email: EmailStr
    role: str = Field(default="member", min_length=1, max_length=32)
    workspace_id: str | None = None
    ttl_days: int | None = Field(default=None, ge=1, le=30)


class InvitationCreatedResponse(BaseModel):
    """Schema returned once after creation; the only time the token is shown."""

    id: str
    email: str
    scope: str
    role: str
    workspace_id: str | None = None
    expires_at: datetime
    token: str
    invite_link: str
    superseded_count: int = 0


class InvitationResponse(BaseModel):
    """Schema for invitation list items."""

    id: str
    email: str
    scope: str
    role: str
    workspace_id: str | None = None
    state: str
    created_at: datetime
    expires_at: datetime
    invited_by_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InvitationValidation(BaseModel):
    """Schema for previewing an invitation token (public endpoint)."""

    email: str
    company_name: str
    workspace_name: str | None = None
    role: str
    expires_at: datetime


class InvitationAccept(BaseModel):
    """Schema for accepting an invitation."""

    token: str = Field(..., min_length=1, max_length=256)


class InvitationAcceptResponse(BaseModel):
    """Schema for accepted invitation."""

    company_id: str
    workspace_id: str | None = None
    role: str
    no_role_change: bool
    redirect_to: str


class PendingInvitation(BaseModel):
    """Schema for an invitation waiting for the current user."""

    id: str
    company_name: str
    workspace_name: str | None = None
    role: str
    expires_at: datetime


class RevokeResponse(BaseModel):
    """Schema for revocation result."""

    outcome: str
