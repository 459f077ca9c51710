"""Workspace service layer."""

import logging

from sqlalchemy.orm import Session

from tenantgate.db.models import (
    OnboardingStatus,
    Workspace,
    WorkspaceMember,
    generate_uuid,
    record_audit,
)
from tenantgate.exceptions import WorkspaceNotFound
from tenantgate.roles.hierarchy import WorkspaceRole
from tenantgate.slugs.service import SlugAllocator

logger = logging.getLogger(__name__)


class WorkspaceService:
    """Service class for workspace operations within one company."""

    def __init__(self, db: Session, company_id: str):
        """Initialize workspace service.

        Args:
            db: Database session.
            company_id: Company the workspaces belong to.
        """
        self.db = db
        self.company_id = company_id
        self.slugs = SlugAllocator(db, Workspace)

    def list_workspaces(self) -> list[Workspace]:
        """List the company's active workspaces by name."""
        return (
            self.db.query(Workspace)
            .filter(Workspace.company_id == self.company_id, Workspace.deleted_at.is_(None))
            .order_by(Workspace.name)
            .all()
        )

    def get_workspace(self, workspace_id: str) -> Workspace:
        """Get an active workspace of this company.

        Raises:
            WorkspaceNotFound: If the workspace is missing, deleted or in another company.
        """
        workspace = (
            self.db.query(Workspace)
            .filter(
                Workspace.id == workspace_id,
                Workspace.company_id == self.company_id,
                Workspace.deleted_at.is_(None),
            )
            .first()
        )
        if workspace is None:
            raise WorkspaceNotFound()
        return workspace

    def create_workspace(self, name: str, created_by_id: str) -> Workspace:
        """Create a workspace with a slug unique among the company's workspaces.

        The creator becomes the workspace's ADMIN. Workspaces created here
        skip onboarding; only a company's first workspace goes through it.

        Args:
            name: Workspace name.
            created_by_id: Creating user.

        Returns:
            Workspace: Created workspace.

        Raises:
            SlugAllocationExhausted: If the slug kept colliding with concurrent inserts.
        """

        def build(slug: str) -> Workspace:
            workspace = Workspace(
                id=generate_uuid(),
                company_id=self.company_id,
                name=name,
                slug=slug,
                onboarding_status=OnboardingStatus.COMPLETE,
            )
            self.db.add_all(
                [
                    workspace,
                    WorkspaceMember(
                        workspace_id=workspace.id,
                        user_id=created_by_id,
                        role=WorkspaceRole.ADMIN,
                    ),
                ]
            )
            record_audit(
                self.db,
                action="WORKSPACE_CREATED",
                resource_type="Workspace",
                resource_id=workspace.id,
                user_id=created_by_id,
                company_id=self.company_id,
                details={"name": name, "slug": slug},
            )
            return workspace

        workspace = self.slugs.insert_with_unique_slug(self.company_id, name, build)
        logger.info(
            f"Workspace {workspace.id} created as '{workspace.slug}' in company {self.company_id}"
        )
        return workspace

    def rename_workspace(self, workspace_id: str, name: str, renamed_by_id: str) -> Workspace:
        """Rename a workspace and re-allocate its slug.

        Raises:
            WorkspaceNotFound: If the workspace is missing, deleted or in another company.
            SlugAllocationExhausted: If the slug kept colliding with concurrent updates.
        """
        workspace = self.get_workspace(workspace_id)
        previous = workspace.name
        if previous == name:
            return workspace

        workspace = self.slugs.rename(workspace, name)
        record_audit(
            self.db,
            action="WORKSPACE_UPDATED",
            resource_type="Workspace",
            resource_id=workspace.id,
            user_id=renamed_by_id,
            company_id=self.company_id,
            details={"from": {"name": previous}, "to": {"name": name, "slug": workspace.slug}},
        )
        self.db.commit()
        self.db.refresh(workspace)
        logger.info(f"Workspace {workspace.id} renamed to '{workspace.slug}'")
        return workspace


def get_workspace_service(db: Session, company_id: str) -> WorkspaceService:
    """Factory function for WorkspaceService.

    Args:
        db: Database session.
        company_id: Company ID.

    Returns:
        WorkspaceService: Workspace service instance.
    """
    return WorkspaceService(db, company_id)
