"""Company creation and workspace onboarding."""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.db.models import (
    Company,
    CompanyMember,
    OnboardingStatus,
    Workspace,
    generate_uuid,
    record_audit,
)
from tenantgate.exceptions import InsufficientPrivilege, WorkspaceNotFound
from tenantgate.roles.hierarchy import CompanyRole
from tenantgate.slugs.service import SlugAllocator, slug_key, slugify

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "My Company"
DEFAULT_WORKSPACE_NAME = "General"


@dataclass
class CreatedCompany:
    company: Company
    workspace: Workspace


class OnboardingService:
    """Service class for onboarding operations."""

    def __init__(self, db: Session):
        """Initialize onboarding service.

        Args:
            db: Database session.
        """
        self.db = db

    def create_company(
        self,
        user_id: str,
        company_name: str | None = None,
        workspace_name: str | None = None,
    ) -> CreatedCompany:
        """Create a company owned by ``user_id`` with its first workspace.

        The workspace starts with onboarding PENDING, so the creator is
        routed to onboarding until it is completed.

        Args:
            user_id: Creating user, who becomes OWNER.
            company_name: Company name.
            workspace_name: First workspace name.

        Returns:
            CreatedCompany: The company and its first workspace.
        """
        company_name = (company_name or "").strip() or DEFAULT_COMPANY_NAME
        workspace_name = (workspace_name or "").strip() or DEFAULT_WORKSPACE_NAME
        created = {}

        def build(slug: str) -> Company:
            # A brand-new company has no sibling workspaces to collide with.
            company = Company(id=generate_uuid(), name=company_name, created_by_user_id=user_id)
            workspace_slug = slugify(workspace_name) or "workspace"
            workspace = Workspace(
                id=generate_uuid(),
                company_id=company.id,
                name=workspace_name,
                slug=workspace_slug,
                slug_key=slug_key(company.id, workspace_slug),
                onboarding_status=OnboardingStatus.PENDING,
            )
            self.db.add_all(
                [
                    company,
                    workspace,
                    CompanyMember(company_id=company.id, user_id=user_id, role=CompanyRole.OWNER),
                ]
            )
            record_audit(
                self.db,
                action="COMPANY_CREATED",
                resource_type="Company",
                resource_id=company.id,
                user_id=user_id,
                company_id=company.id,
                details={"workspace_id": workspace.id},
            )
            created["workspace"] = workspace
            return company

        company = SlugAllocator(self.db, Company).insert_with_unique_slug(None, company_name, build)
        workspace = created["workspace"]
        self.db.refresh(workspace)
        logger.info(f"Company {company.id} ('{company.slug}') created by {user_id}")
        return CreatedCompany(company=company, workspace=workspace)

    def complete_workspace(
        self,
        session: PrincipalSession,
        workspace_id: str,
        workspace_name: str | None = None,
        company_name: str | None = None,
    ) -> Workspace:
        """Mark a workspace's onboarding complete, optionally renaming it.

        Only the company's creator onboards. Completing without names is the
        "skip for now" path.

        Args:
            session: Creator's session.
            workspace_id: Workspace being onboarded.
            workspace_name: New workspace name.
            company_name: New company name.

        Returns:
            Workspace: The completed workspace.

        Raises:
            InsufficientPrivilege: If the session is not the company creator.
            WorkspaceNotFound: If the workspace is not an active workspace of the company.
        """
        if not session.is_company_creator:
            raise InsufficientPrivilege()

        workspace = (
            self.db.query(Workspace)
            .filter(
                Workspace.id == workspace_id,
                Workspace.company_id == session.company_id,
                Workspace.deleted_at.is_(None),
            )
            .first()
        )
        if workspace is None:
            raise WorkspaceNotFound()

        workspace_name = (workspace_name or "").strip()
        company_name = (company_name or "").strip()

        workspace.onboarding_status = OnboardingStatus.COMPLETE
        record_audit(
            self.db,
            action="SETTINGS_UPDATE",
            resource_type="Workspace",
            resource_id=workspace.id,
            user_id=session.user_id,
            company_id=workspace.company_id,
            details={
                "onboarding": {
                    "workspace_name": workspace_name or None,
                    "company_name": company_name or None,
                }
            },
        )

        self.db.commit()

        if workspace_name and workspace_name != workspace.name:
            SlugAllocator(self.db, Workspace).rename(workspace, workspace_name)

        company = workspace.company
        if company_name and company_name != company.name:
            SlugAllocator(self.db, Company).rename(company, company_name)

        self.db.refresh(workspace)
        logger.info(f"Workspace {workspace.id} onboarding completed by {session.user_id}")
        return workspace


def get_onboarding_service(db: Session) -> OnboardingService:
    """Factory function for OnboardingService.

    Args:
        db: Database session.

    Returns:
        OnboardingService: Onboarding service instance.
    """
    return OnboardingService(db)
