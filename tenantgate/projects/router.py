"""Project API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from tenantgate.access.gate import Action, Scope, require
from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.dependencies import CurrentSession, DbSession, to_http_error
from tenantgate.exceptions import TenantGateError
from tenantgate.projects.schemas import ProjectCreate, ProjectResponse, ProjectUpdate
from tenantgate.projects.service import ProjectService, get_project_service

router = APIRouter()


def get_service(workspace_id: str, db: DbSession) -> ProjectService:
    """Get project service dependency."""
    return get_project_service(db, workspace_id)


ProjectServiceDep = Annotated[ProjectService, Depends(get_service)]


def _authorize(service: ProjectService, session: PrincipalSession, action: Action) -> None:
    workspace = service.get_workspace()
    require(session, action, Scope.workspace(workspace.id, workspace.company_id))


@router.get("/{workspace_id}/projects", response_model=list[ProjectResponse])
async def list_projects(
    session: CurrentSession,
    service: ProjectServiceDep,
):
    """List active projects in a workspace.

    Args:
        session: Current session.
        service: Project service.

    Returns:
        list[ProjectResponse]: Projects ordered by name.
    """
    try:
        _authorize(service, session, Action.VIEW_WORKSPACE)
    except TenantGateError as e:
        raise to_http_error(e)
    return service.list_projects()


@router.post(
    "/{workspace_id}/projects",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    data: ProjectCreate,
    session: CurrentSession,
    service: ProjectServiceDep,
):
    """Create a project with a unique slug.

    Args:
        data: Project data.
        session: Current session.
        service: Project service.

    Returns:
        ProjectResponse: Created project.
    """
    try:
        _authorize(service, session, Action.WRITE_WORKSPACE)
        return service.create_project(data.name, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)


@router.patch("/{workspace_id}/projects/{project_id}", response_model=ProjectResponse)
async def rename_project(
    project_id: str,
    data: ProjectUpdate,
    session: CurrentSession,
    service: ProjectServiceDep,
):
    """Rename a project; its slug follows the new name.

    Args:
        project_id: Project UUID.
        data: New name.
        session: Current session.
        service: Project service.

    Returns:
        ProjectResponse: Renamed project.
    """
    try:
        _authorize(service, session, Action.WRITE_WORKSPACE)
        return service.rename_project(project_id, data.name)
    except TenantGateError as e:
        raise to_http_error(e)


@router.delete("/{workspace_id}/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    session: CurrentSession,
    service: ProjectServiceDep,
):
    """Soft delete a project.

    Args:
        project_id: Project UUID.
        session: Current session.
        service: Project service.
    """
    try:
        _authorize(service, session, Action.WRITE_WORKSPACE)
        service.delete_project(project_id, session.user_id)
    except TenantGateError as e:
        raise to_http_error(e)
