"""Pydantic schemas for onboarding."""

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    """Schema for creating a company during onboarding."""

    company_name: str | None = Field(None, max_length=80)
    workspace_name: str | None = Field(None, max_length=80)


class CompanyCreatedResponse(BaseModel):
    """Schema for a newly created company.

    ``session_token`` is scoped to the new company.
    """

    company_id: str
    company_slug: str
    workspace_id: str
    workspace_slug: str
    session_token: str
    redirect_to: str


class OnboardingComplete(BaseModel):
    """Schema for completing (or skipping) workspace onboarding."""

    workspace_name: str | None = Field(None, min_length=2, max_length=80)
    company_name: str | None = Field(None, max_length=80)
    return_to: str | None = None


class OnboardingCompleteResponse(BaseModel):
    """Schema for completed onboarding."""

    workspace_id: str
    workspace_slug: str
    redirect_to: str
