"""Pydantic schemas for company members."""

from datetime import datetime

from pydantic import BaseModel, Field


class MemberResponse(BaseModel):
    """Schema for a company member."""

    id: str
    user_id: str
    email: str
    full_name: str | None = None
    role: str
    created_at: datetime


class MemberRoleUpdate(BaseModel):
    """Schema for changing a member's company role."""

    role: str = Field(..., min_length=1, max_length=32)


class WorkspaceMemberResponse(BaseModel):
    """Schema for an explicit workspace member."""

    id: str
    workspace_id: str
    user_id: str
    email: str
    full_name: str | None = None
    role: str
    created_at: datetime


class WorkspaceRoleUpdate(BaseModel):
    """Schema for changing a member's workspace role."""

    role: str = Field(..., min_length=1, max_length=32)
