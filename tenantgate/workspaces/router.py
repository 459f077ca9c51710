"""Workspace API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from tenantgate.access.gate import Action, Scope, require
from tenantgate.dependencies import CurrentSession, DbSession, to_http_error
from tenantgate.exceptions import TenantGateError
from tenantgate.workspaces.schemas import WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate
from tenantgate.workspaces.service import WorkspaceService, get_workspace_service

router = APIRouter()


def get_service(company_id: str, db: DbSession) -> WorkspaceService:
    """Get workspace service dependency."""
    return get_workspace_service(db, company_id)


WorkspaceServiceDep = Annotated[WorkspaceService, Depends(get_service)]


@router.get("/{company_id}/workspaces", response_model=list[WorkspaceResponse])
async def list_workspaces(
    company_id: str,
    session: CurrentSession,
    service: WorkspaceServiceDep,
):
    """List the company's active workspaces.

    Args:
        company_id: Company UUID.
        session: Current session.
        service: Workspace service.

    Returns:
        list[WorkspaceResponse]: Workspaces ordered by name.
    """
    try:
        require(session, Action.VIEW_COMPANY, Scope.company(company_id))
    except TenantGateError as e:
        raise to_http_error(e)
    return service.list_workspaces()


@router.post(
    "/{company_id}/workspaces",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_workspace(
    company_id: str,
    data: WorkspaceCreate,
    session: CurrentSession,
    service: WorkspaceServiceDep,
):
    """Create a workspace; the creator becomes its admin.

    Args:
        company_id: Company UUID.
        data: Workspace data.
        session: Current session.
        service: Workspace service.

    Returns:
        WorkspaceResponse: Created workspace.
    """
    try:
        require(session, Action.MANAGE_WORKSPACES, Scope.company(company_id))
        return service.create_workspace(data.name, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)


@router.patch("/{company_id}/workspaces/{workspace_id}", response_model=WorkspaceResponse)
async def rename_workspace(
    company_id: str,
    workspace_id: str,
    data: WorkspaceUpdate,
    session: CurrentSession,
    service: WorkspaceServiceDep,
):
    """Rename a workspace; its slug follows the new name.

    Args:
        company_id: Company UUID.
        workspace_id: Workspace UUID.
        data: New name.
        session: Current session.
        service: Workspace service.

    Returns:
        WorkspaceResponse: Renamed workspace.
    """
    try:
        require(session, Action.MANAGE_WORKSPACES, Scope.company(company_id))
        return service.rename_workspace(workspace_id, data.name, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)
