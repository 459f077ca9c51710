"""Email verification module."""

from tenantgate.verification.service import (
    IssuedChallenge,
    VerificationService,
    get_verification_service,
)

__all__ = ["IssuedChallenge", "VerificationService", "get_verification_service"]
