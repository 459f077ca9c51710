"""Project service layer."""

import logging

from sqlalchemy.orm import Session

from tenantgate.db.models import Project, Workspace, generate_uuid, record_audit, utcnow
from tenantgate.exceptions import ProjectNotFound, WorkspaceNotFound
from tenantgate.slugs.service import SlugAllocator

logger = logging.getLogger(__name__)


class ProjectService:
    """Service class for project operations within one workspace."""

    def __init__(self, db: Session, workspace_id: str):
        """Initialize project service.

        Args:
            db: Database session.
            workspace_id: Workspace the projects belong to.
        """
        self.db = db
        self.workspace_id = workspace_id
        self.slugs = SlugAllocator(db, Project)

    def get_workspace(self) -> Workspace:
        """Get the active workspace.

        Raises:
            WorkspaceNotFound: If the workspace is missing or deleted.
        """
        workspace = (
            self.db.query(Workspace)
            .filter(Workspace.id == self.workspace_id, Workspace.deleted_at.is_(None))
            .first()
        )
        if workspace is None:
            raise WorkspaceNotFound()
        return workspace

    def list_projects(self) -> list[Project]:
        """List active projects by name."""
        return (
            self.db.query(Project)
            .filter(Project.workspace_id == self.workspace_id, Project.deleted_at.is_(None))
            .order_by(Project.name)
            .all()
        )

    def get_project(self, project_id: str) -> Project:
        """Get an active project of this workspace.

        Raises:
            ProjectNotFound: If the project is missing or deleted.
        """
        project = (
            self.db.query(Project)
            .filter(
                Project.id == project_id,
                Project.workspace_id == self.workspace_id,
                Project.deleted_at.is_(None),
            )
            .first()
        )
        if project is None:
            raise ProjectNotFound()
        return project

    def create_project(self, name: str, created_by_id: str) -> Project:
        """Create a project with a slug unique among the workspace's active projects.

        Args:
            name: Project name.
            created_by_id: Creating user.

        Returns:
            Project: Created project.

        Raises:
            SlugAllocationExhausted: If the slug kept colliding with concurrent inserts.
        """
        company_id = self.get_workspace().company_id

        def build(slug: str) -> Project:
            project = Project(
                id=generate_uuid(),
                workspace_id=self.workspace_id,
                name=name,
                slug=slug,
                created_by_user_id=created_by_id,
            )
            self.db.add(project)
            record_audit(
                self.db,
                action="PROJECT_CREATED",
                resource_type="Project",
                resource_id=project.id,
                user_id=created_by_id,
                company_id=company_id,
                details={"slug": slug},
            )
            return project

        project = self.slugs.insert_with_unique_slug(self.workspace_id, name, build)
        logger.info(f"Project {project.id} created as '{project.slug}' in workspace {self.workspace_id}")
        return project

    def rename_project(self, project_id: str, name: str) -> Project:
        """Rename a project and re-allocate its slug.

        Raises:
            ProjectNotFound: If the project is missing or deleted.
            SlugAllocationExhausted: If the slug kept colliding with concurrent updates.
        """
        project = self.get_project(project_id)
        if project.name == name:
            return project
        return self.slugs.rename(project, name)

    def delete_project(self, project_id: str, deleted_by_id: str) -> None:
        """Soft delete a project and free its slug.

        Raises:
            ProjectNotFound: If the project is missing or deleted.
        """
        project = self.get_project(project_id)
        project.deleted_at = utcnow()
        self.slugs.release(project)
        record_audit(
            self.db,
            action="PROJECT_DELETED",
            resource_type="Project",
            resource_id=project.id,
            user_id=deleted_by_id,
            company_id=self.get_workspace().company_id,
        )
        self.db.commit()
        logger.info(f"Project {project.id} deleted from workspace {self.workspace_id}")


def get_project_service(db: Session, workspace_id: str) -> ProjectService:
    """Factory function for ProjectService.

    Args:
        db: Database session.
        workspace_id: Workspace ID.

    Returns:
        ProjectService: Project service instance.
    """
    return ProjectService(db, workspace_id)
