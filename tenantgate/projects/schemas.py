"""Pydantic schemas for projects."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProjectBase(BaseModel):
    """Base schema for projects."""

    name: str = Field(..., min_length=1, max_length=255)


class ProjectCreate(ProjectBase):
    """Schema for creating a project."""

    pass


class ProjectUpdate(ProjectBase):
    """Schema for renaming a project."""

    pass


class ProjectResponse(ProjectBase):
    """Schema for project response."""

    id: str
    workspace_id: str
    slug: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
