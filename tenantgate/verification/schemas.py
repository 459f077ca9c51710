"""Pydantic schemas for email verification."""

from datetime import datetime

from pydantic import BaseModel, Field


class ChallengeResponse(BaseModel):
    """Schema for an issued challenge.

    ``code`` and ``link`` are only filled in debug mode, when no email
    delivery is wired up.
    """

    sent: bool
    expires_at: datetime | None = None
    resend_after_seconds: int
    code: str | None = None
    link: str | None = None


class CodeVerify(BaseModel):
    """Schema for verifying with a one-time code."""

    code: str = Field(..., min_length=1, max_length=16)
    return_to: str | None = None


class LinkVerify(BaseModel):
    """Schema for verifying with a magic link token."""

    token: str = Field(..., min_length=1, max_length=256)
    return_to: str | None = None


class VerifiedResponse(BaseModel):
    """Schema for a successful verification."""

    verified: bool = True
    redirect_to: str
