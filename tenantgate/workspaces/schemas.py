"""Pydantic schemas for workspaces."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WorkspaceBase(BaseModel):
    """Base schema for workspaces."""

    name: str = Field(..., min_length=1, max_length=255)


class WorkspaceCreate(WorkspaceBase):
    """Schema for creating a workspace."""

    pass


class WorkspaceUpdate(WorkspaceBase):
    """Schema for renaming a workspace."""

    pass


class WorkspaceResponse(WorkspaceBase):
    """Schema for workspace response."""

    id: str
    company_id: str
    slug: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
