"""Invitation API routes."""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from tenantgate.access.gate import Action, Scope, require
from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.db.models import Invitation, InvitationState
from tenantgate.dependencies import CurrentSession, DbSession, to_http_error
from tenantgate.exceptions import NotReady, TenantGateError
from tenantgate.invitations.schemas import (
    InvitationAccept,
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationCreatedResponse,
    InvitationResponse,
    InvitationValidation,
    PendingInvitation,
    RevokeResponse,
)
from tenantgate.invitations.service import (
    InvitationService,
    RedemptionResult,
    get_invitation_service,
)
from tenantgate.routing.service import route

router = APIRouter()


def get_service(db: DbSession) -> InvitationService:
    """Get invitation service dependency."""
    return get_invitation_service(db)


InvitationServiceDep = Annotated[InvitationService, Depends(get_service)]


def _require_verified(session: PrincipalSession) -> None:
    """Accepting needs a verified email; company membership is not required."""
    if not session.email_verified:
        raise to_http_error(NotReady(location=route(session).location))


def _company_and_workspace_names(invitation: Invitation) -> tuple[str, str | None]:
    company_name = invitation.company.name if invitation.company else ""
    workspace_name = invitation.workspace.name if invitation.workspace else None
    return company_name, workspace_name


def _invitation_response(invitation: Invitation, state: InvitationState) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        scope=invitation.scope.value,
        role=invitation.invited_role.value,
        workspace_id=invitation.workspace_id,
        state=state.value,
        created_at=invitation.created_at,
        expires_at=invitation.expires_at,
        invited_by_name=invitation.invited_by.full_name if invitation.invited_by else None,
    )


def _accept_response(result: RedemptionResult) -> InvitationAcceptResponse:
    return InvitationAcceptResponse(
        company_id=result.invitation.company_id,
        workspace_id=result.invitation.workspace_id,
        role=result.granted_role.value,
        no_role_change=result.no_role_change,
        redirect_to=result.redirect_to,
    )


@router.post(
    "/companies/{company_id}/invitations",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    company_id: str,
    data: InvitationCreate,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """Invite someone to the company or one of its workspaces.

    Args:
        company_id: Company UUID.
        data: Invitation data.
        session: Current session.
        service: Invitation service.

    Returns:
        InvitationCreatedResponse: Invitation with its one-time token.

    Raises:
        HTTPException: If the caller may not invite or the data is invalid.
    """
    try:
        require(session, Action.MANAGE_INVITES, Scope.company(company_id))
        ttl = timedelta(days=data.ttl_days) if data.ttl_days is not None else None
        created = service.create(
            inviter=session,
            company_id=company_id,
            invitee_email=data.email,
            invited_role=data.role,
            workspace_id=data.workspace_id,
            ttl=ttl,
        )
    except TenantGateError as e:
        raise to_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    invitation = created.invitation
    return InvitationCreatedResponse(
        id=invitation.id,
        email=invitation.email,
        scope=invitation.scope.value,
        role=invitation.invited_role.value,
        workspace_id=invitation.workspace_id,
        expires_at=invitation.expires_at,
        token=created.token,
        invite_link=created.invite_link,
        superseded_count=len(created.superseded_ids),
    )


@router.get("/companies/{company_id}/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    company_id: str,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """List the company's invitations, newest first.

    Args:
        company_id: Company UUID.
        session: Current session.
        service: Invitation service.

    Returns:
        list[InvitationResponse]: Invitations with their current state.
    """
    try:
        require(session, Action.MANAGE_INVITES, Scope.company(company_id))
        rows = service.list_invitations(company_id, session)
    except TenantGateError as e:
        raise to_http_error(e)

    return [_invitation_response(invitation, state) for invitation, state in rows]


@router.get("/workspaces/{workspace_id}/invitations", response_model=list[InvitationResponse])
async def list_workspace_invitations(
    workspace_id: str,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """List a workspace's invitations, newest first.

    Args:
        workspace_id: Workspace UUID.
        session: Current session.
        service: Invitation service.

    Returns:
        list[InvitationResponse]: Invitations with their current state.
    """
    try:
        workspace = service.get_workspace(workspace_id)
        scope = Scope.workspace(workspace.id, workspace.company_id)
        require(session, Action.ADMIN_WORKSPACE, scope)
        rows = service.list_workspace_invitations(workspace_id, session)
    except TenantGateError as e:
        raise to_http_error(e)
    return [_invitation_response(invitation, state) for invitation, state in rows]


@router.post("/invitations/{invitation_id}/revoke", response_model=RevokeResponse)
async def revoke_invitation(
    invitation_id: str,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """Revoke a pending invitation.

    Args:
        invitation_id: Invitation UUID.
        session: Current session.
        service: Invitation service.

    Returns:
        RevokeResponse: ``revoked`` or ``no_op``.
    """
    try:
        invitation = service.get_invitation(invitation_id, session.user_id)
        require(session, Action.MANAGE_INVITES, Scope.company(invitation.company_id))
        outcome = service.revoke(invitation_id, session)
    except TenantGateError as e:
        raise to_http_error(e)
    return RevokeResponse(outcome=outcome.value)


@router.get("/invitations/validate/{token}", response_model=InvitationValidation)
async def validate_invitation(
    token: str,
    service: InvitationServiceDep,
):
    """Preview an invitation before signing in (public endpoint).

    Args:
        token: Raw invite token.
        service: Invitation service.

    Returns:
        InvitationValidation: Invitation details.
    """
    try:
        invitation = service.validate(token)
    except TenantGateError as e:
        raise to_http_error(e)

    company_name, workspace_name = _company_and_workspace_names(invitation)
    return InvitationValidation(
        email=invitation.email,
        company_name=company_name,
        workspace_name=workspace_name,
        role=invitation.invited_role.value,
        expires_at=invitation.expires_at,
    )


@router.post("/invitations/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    data: InvitationAccept,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """Accept an invitation with the token from the invite link.

    Args:
        data: Token payload.
        session: Current session.
        service: Invitation service.

    Returns:
        InvitationAcceptResponse: Granted role and where to go next.
    """
    _require_verified(session)
    try:
        result = service.redeem(data.token, session.user_id, session.email)
    except TenantGateError as e:
        raise to_http_error(e)
    return _accept_response(result)


@router.get("/invitations/pending", response_model=list[PendingInvitation])
async def pending_invitations(
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """List active invitations addressed to the current user's email.

    Args:
        session: Current session.
        service: Invitation service.

    Returns:
        list[PendingInvitation]: Invitations, oldest first.
    """
    _require_verified(session)
    pending = []
    for invitation in service.pending_for_email(session.email):
        if invitation.company is None or invitation.company.deleted_at is not None:
            continue
        company_name, workspace_name = _company_and_workspace_names(invitation)
        pending.append(
            PendingInvitation(
                id=invitation.id,
                company_name=company_name,
                workspace_name=workspace_name,
                role=invitation.invited_role.value,
                expires_at=invitation.expires_at,
            )
        )
    return pending


@router.post(
    "/invitations/pending/{invitation_id}/accept",
    response_model=InvitationAcceptResponse,
)
async def accept_pending_invitation(
    invitation_id: str,
    session: CurrentSession,
    service: InvitationServiceDep,
):
    """Accept a pending invitation addressed to the current user's email.

    Args:
        invitation_id: Invitation UUID.
        session: Current session.
        service: Invitation service.

    Returns:
        InvitationAcceptResponse: Granted role and where to go next.
    """
    _require_verified(session)
    try:
        result = service.redeem_pending(invitation_id, session.user_id, session.email)
    except TenantGateError as e:
        raise to_http_error(e)
    return _accept_response(result)
