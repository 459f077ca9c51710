"""Principal session model and its loader.

A :class:`Session` is built once per request and passed explicitly to the
router and the access gate. Nothing in the core reads it from ambient state.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session as DbSession

from tenantgate.db.models import (
    Company,
    CompanyMember,
    OnboardingStatus,
    User,
    Workspace,
    WorkspaceMember,
)
from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceMembership:
    """Explicit membership of the principal in a workspace."""

    workspace_id: str
    role: WorkspaceRole


@dataclass(frozen=True)
class Session:
    """Authenticated principal as seen by routing and authorization.

    Attributes:
        user_id: User UUID.
        email: User email.
        email_verified: Whether the email has been verified.
        company_id: Active company, None before the user has one.
        company_created_by_user_id: Creator of the active company.
        company_role: Principal's role in the active company.
        workspace_memberships: Explicit workspace memberships in the active company.
        pending_onboarding_workspace_ids: The company's workspaces still being
            onboarded, oldest first.
    """

    user_id: str
    email: str
    email_verified: bool
    company_id: str | None = None
    company_created_by_user_id: str | None = None
    company_role: CompanyRole | None = None
    workspace_memberships: tuple[WorkspaceMembership, ...] = field(default_factory=tuple)
    pending_onboarding_workspace_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_company_creator(self) -> bool:
        return (
            self.company_id is not None
            and self.company_created_by_user_id is not None
            and self.company_created_by_user_id == self.user_id
        )

    def workspace_role(self, workspace_id: str) -> WorkspaceRole | None:
        """Explicit role in a workspace, or None without membership."""
        for membership in self.workspace_memberships:
            if membership.workspace_id == workspace_id:
                return membership.role
        return None


class SessionProvider:
    """Builds :class:`Session` objects from the database."""

    def __init__(self, db: DbSession):
        """Initialize session provider.

        Args:
            db: Database session.
        """
        self.db = db

    def load(self, user_id: str, company_id: str | None = None) -> Session | None:
        """Load the session for a user acting in a company.

        When ``company_id`` is missing or the user is not a member of it, the
        user's oldest company membership is used instead.

        Args:
            user_id: User UUID.
            company_id: Requested active company.

        Returns:
            Session | None: Session, or None if the user does not exist.
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None

        membership = self._resolve_membership(user.id, company_id)
        if membership is None:
            return Session(
                user_id=user.id,
                email=user.email,
                email_verified=bool(user.email_verified),
            )

        company = membership.company
        workspace_rows = (
            self.db.query(WorkspaceMember)
            .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
            .filter(
                WorkspaceMember.user_id == user.id,
                Workspace.company_id == company.id,
                Workspace.deleted_at.is_(None),
            )
            .order_by(Workspace.created_at)
            .all()
        )
        pending = (
            self.db.query(Workspace.id)
            .filter(
                Workspace.company_id == company.id,
                Workspace.deleted_at.is_(None),
                Workspace.onboarding_status == OnboardingStatus.PENDING,
            )
            .order_by(Workspace.created_at.asc())
            .all()
        )

        return Session(
            user_id=user.id,
            email=user.email,
            email_verified=bool(user.email_verified),
            company_id=company.id,
            company_created_by_user_id=company.created_by_user_id,
            company_role=membership.role,
            workspace_memberships=tuple(
                WorkspaceMembership(workspace_id=row.workspace_id, role=row.role)
                for row in workspace_rows
            ),
            pending_onboarding_workspace_ids=tuple(row.id for row in pending),
        )

    def _resolve_membership(self, user_id: str, company_id: str | None) -> CompanyMember | None:
        query = (
            self.db.query(CompanyMember)
            .join(Company, Company.id == CompanyMember.company_id)
            .filter(CompanyMember.user_id == user_id, Company.deleted_at.is_(None))
        )
        if company_id:
            membership = query.filter(CompanyMember.company_id == company_id).first()
            if membership is not None:
                return membership
            logger.info(f"User {user_id} is not a member of company {company_id}")
        return query.order_by(CompanyMember.created_at.asc()).first()
