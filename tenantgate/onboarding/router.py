"""Onboarding API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from tenantgate.auth.utils import create_session_token
from tenantgate.dependencies import CurrentSession, DbSession, to_http_error
from tenantgate.exceptions import NotReady, TenantGateError
from tenantgate.onboarding.schemas import (
    CompanyCreate,
    CompanyCreatedResponse,
    OnboardingComplete,
    OnboardingCompleteResponse,
)
from tenantgate.onboarding.service import OnboardingService, get_onboarding_service
from tenantgate.routing.redirects import safe_return_to, to_onboarding
from tenantgate.routing.service import route

router = APIRouter()


def get_service(db: DbSession) -> OnboardingService:
    """Get onboarding service dependency."""
    return get_onboarding_service(db)


OnboardingServiceDep = Annotated[OnboardingService, Depends(get_service)]


@router.post("/company", response_model=CompanyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_company(
    data: CompanyCreate,
    session: CurrentSession,
    service: OnboardingServiceDep,
):
    """Create a company and its first workspace for the current user.

    Args:
        data: Company and workspace names.
        session: Current session.
        service: Onboarding service.

    Returns:
        CompanyCreatedResponse: New company with a session token scoped to it.
    """
    try:
        if not session.email_verified:
            raise NotReady(location=route(session).location)
        created = service.create_company(session.user_id, data.company_name, data.workspace_name)
    except TenantGateError as e:
        raise to_http_error(e)

    return CompanyCreatedResponse(
        company_id=created.company.id,
        company_slug=created.company.slug,
        workspace_id=created.workspace.id,
        workspace_slug=created.workspace.slug,
        session_token=create_session_token(session.user_id, created.company.id),
        redirect_to=to_onboarding(created.workspace.id),
    )


@router.post("/{workspace_id}/complete", response_model=OnboardingCompleteResponse)
async def complete_onboarding(
    workspace_id: str,
    data: OnboardingComplete,
    session: CurrentSession,
    service: OnboardingServiceDep,
):
    """Complete a workspace's onboarding; an empty body skips the form.

    Args:
        workspace_id: Workspace UUID.
        data: Optional new names and return path.
        session: Current session.
        service: Onboarding service.

    Returns:
        OnboardingCompleteResponse: Completed workspace and where to go next.
    """
    try:
        if not session.email_verified:
            raise NotReady(location=route(session, data.return_to).location)
        workspace = service.complete_workspace(
            session,
            workspace_id,
            workspace_name=data.workspace_name,
            company_name=data.company_name,
        )
    except TenantGateError as e:
        raise to_http_error(e)

    return OnboardingCompleteResponse(
        workspace_id=workspace.id,
        workspace_slug=workspace.slug,
        redirect_to=safe_return_to(data.return_to),
    )
