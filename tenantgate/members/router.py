"""Company and workspace member API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from tenantgate.access.gate import Action, Scope, require
from tenantgate.db.models import CompanyMember, User, WorkspaceMember
from tenantgate.dependencies import CurrentSession, DbSession, to_http_error
from tenantgate.exceptions import TenantGateError
from tenantgate.members.schemas import (
    MemberResponse,
    MemberRoleUpdate,
    WorkspaceMemberResponse,
    WorkspaceRoleUpdate,
)
from tenantgate.members.service import MemberService, get_member_service
from tenantgate.roles.hierarchy import parse_company_role, parse_workspace_role

router = APIRouter()


def get_service(company_id: str, db: DbSession) -> MemberService:
    """Get member service dependency."""
    return get_member_service(db, company_id)


MemberServiceDep = Annotated[MemberService, Depends(get_service)]


def _to_response(member: CompanyMember, user: User) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=member.role.value,
        created_at=member.created_at,
    )


@router.get("/{company_id}/members", response_model=list[MemberResponse])
async def list_members(
    company_id: str,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """List company members, highest role first.

    Args:
        company_id: Company UUID.
        session: Current session.
        service: Member service.

    Returns:
        list[MemberResponse]: Members.
    """
    try:
        require(session, Action.VIEW_COMPANY, Scope.company(company_id))
    except TenantGateError as e:
        raise to_http_error(e)
    return [_to_response(member, user) for member, user in service.list_company_members()]


@router.patch("/{company_id}/members/{member_id}", response_model=MemberResponse)
async def update_member_role(
    company_id: str,
    member_id: str,
    data: MemberRoleUpdate,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """Change a member's company role.

    Args:
        company_id: Company UUID.
        member_id: CompanyMember UUID.
        data: New role.
        session: Current session.
        service: Member service.

    Returns:
        MemberResponse: Updated member.
    """
    role = parse_company_role(data.role)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role: {data.role}",
        )

    try:
        require(session, Action.MANAGE_MEMBERS, Scope.company(company_id))
        member = service.update_company_role(member_id, role, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)
    return _to_response(member, member.user)


@router.delete("/{company_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    company_id: str,
    member_id: str,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """Remove a member from the company.

    Args:
        company_id: Company UUID.
        member_id: CompanyMember UUID.
        session: Current session.
        service: Member service.
    """
    try:
        require(session, Action.MANAGE_MEMBERS, Scope.company(company_id))
        service.remove_company_member(member_id, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)


def _to_workspace_response(member: WorkspaceMember, user: User) -> WorkspaceMemberResponse:
    return WorkspaceMemberResponse(
        id=member.id,
        workspace_id=member.workspace_id,
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=member.role.value,
        created_at=member.created_at,
    )


@router.get(
    "/{company_id}/workspaces/{workspace_id}/members",
    response_model=list[WorkspaceMemberResponse],
)
async def list_workspace_members(
    company_id: str,
    workspace_id: str,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """List a workspace's explicit members, highest role first."""
    try:
        require(session, Action.VIEW_WORKSPACE, Scope.workspace(workspace_id, company_id))
        rows = service.list_workspace_members(workspace_id)
    except TenantGateError as e:
        raise to_http_error(e)
    return [_to_workspace_response(member, user) for member, user in rows]


@router.patch(
    "/{company_id}/workspaces/{workspace_id}/members/{member_id}",
    response_model=WorkspaceMemberResponse,
)
async def update_workspace_member_role(
    company_id: str,
    workspace_id: str,
    member_id: str,
    data: WorkspaceRoleUpdate,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """Change a member's workspace role.

    Args:
        company_id: Company UUID.
        workspace_id: Workspace UUID.
        member_id: WorkspaceMember UUID.
        data: New role.
        session: Current session.
        service: Member service.

    Returns:
        WorkspaceMemberResponse: Updated member.
    """
    role = parse_workspace_role(data.role)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role: {data.role}",
        )

    try:
        require(session, Action.ADMIN_WORKSPACE, Scope.workspace(workspace_id, company_id))
        member = service.update_workspace_role(workspace_id, member_id, role, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)
    return _to_workspace_response(member, member.user)


@router.delete(
    "/{company_id}/workspaces/{workspace_id}/members/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_workspace_member(
    company_id: str,
    workspace_id: str,
    member_id: str,
    session: CurrentSession,
    service: MemberServiceDep,
):
    """Remove a member from a workspace; the company membership stays.

    Args:
        company_id: Company UUID.
        workspace_id: Workspace UUID.
        member_id: WorkspaceMember UUID.
        session: Current session.
        service: Member service.
    """
    try:
        require(session, Action.ADMIN_WORKSPACE, Scope.workspace(workspace_id, company_id))
        service.remove_workspace_member(workspace_id, member_id, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)
