"""Email verification API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from tenantgate.auth.session import SessionProvider
from tenantgate.config import get_settings
from tenantgate.dependencies import (
    CurrentSession,
    CurrentSessionOptional,
    DbSession,
    to_http_error,
)
from tenantgate.exceptions import TenantGateError
from tenantgate.routing.redirects import to_login
from tenantgate.routing.service import post_login_destination
from tenantgate.verification.schemas import (
    ChallengeResponse,
    CodeVerify,
    LinkVerify,
    VerifiedResponse,
)
from tenantgate.verification.service import VerificationService, get_verification_service

router = APIRouter()


def get_service(db: DbSession) -> VerificationService:
    """Get verification service dependency."""
    return get_verification_service(db)


VerificationServiceDep = Annotated[VerificationService, Depends(get_service)]


@router.post("/challenges", response_model=ChallengeResponse)
async def issue_challenge(
    session: CurrentSession,
    service: VerificationServiceDep,
):
    """Send (or resend) a verification code and link.

    Args:
        session: Current session.
        service: Verification service.

    Returns:
        ChallengeResponse: Whether a challenge was issued.
    """
    settings = get_settings()
    try:
        issued = service.issue_challenge(session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)

    if issued is None:
        return ChallengeResponse(sent=False, resend_after_seconds=0)
    return ChallengeResponse(
        sent=True,
        expires_at=issued.challenge.expires_at,
        resend_after_seconds=settings.verification_resend_seconds,
        code=issued.code if settings.debug else None,
        link=issued.link if settings.debug else None,
    )


@router.post("/code", response_model=VerifiedResponse)
async def verify_code(
    data: CodeVerify,
    session: CurrentSession,
    service: VerificationServiceDep,
    db: DbSession,
):
    """Verify the current user's email with a one-time code.

    Args:
        data: Code and return path.
        session: Current session.
        service: Verification service.
        db: Database session.

    Returns:
        VerifiedResponse: Where to go next.
    """
    try:
        service.verify_code(session.user_id, data.code)
    except TenantGateError as e:
        raise to_http_error(e)

    refreshed = SessionProvider(db).load(session.user_id, session.company_id)
    return VerifiedResponse(
        redirect_to=post_login_destination(refreshed, data.return_to, get_settings().default_home)
    )


@router.post("/link", response_model=VerifiedResponse)
async def verify_link(
    data: LinkVerify,
    session: CurrentSessionOptional,
    service: VerificationServiceDep,
    db: DbSession,
):
    """Verify an email from a magic link; works without a session.

    Args:
        data: Link token and return path.
        session: Current session, if any.
        service: Verification service.
        db: Database session.

    Returns:
        VerifiedResponse: Where to go next.
    """
    try:
        user = service.verify_link(data.token)
    except TenantGateError as e:
        raise to_http_error(e)

    if session is None or session.user_id != user.id:
        return VerifiedResponse(redirect_to=to_login(data.return_to))
    refreshed = SessionProvider(db).load(session.user_id, session.company_id)
    return VerifiedResponse(
        redirect_to=post_login_destination(refreshed, data.return_to, get_settings().default_home)
    )
