"""Membership lookups and member administration."""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, aliased

from tenantgate.access.gate import Scope, ScopeKind
from tenantgate.db.models import (
    Company,
    CompanyMember,
    User,
    Workspace,
    WorkspaceMember,
    record_audit,
    utcnow,
)
from tenantgate.exceptions import (
    ConcurrentModification,
    InsufficientPrivilege,
    InvalidRoleUpgrade,
    LastOwnerRequired,
    MemberNotFound,
    WorkspaceNotFound,
)
from tenantgate.roles.hierarchy import (
    CompanyRole,
    WorkspaceRole,
    at_least,
    effective_workspace_role,
    level,
)

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Normalize email for storage and comparison: lowercase, trim."""
    return email.strip().lower()


def find_company_role(db: Session, user_id: str, company_id: str) -> CompanyRole | None:
    """Role of a user in an active company, or None if not a member."""
    row = (
        db.query(CompanyMember.role)
        .join(Company, Company.id == CompanyMember.company_id)
        .filter(
            CompanyMember.user_id == user_id,
            CompanyMember.company_id == company_id,
            Company.deleted_at.is_(None),
        )
        .first()
    )
    return row.role if row else None


def find_workspace_role(db: Session, user_id: str, workspace_id: str) -> WorkspaceRole | None:
    """Explicit role of a user in an active workspace, or None."""
    row = (
        db.query(WorkspaceMember.role)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .filter(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
            Workspace.deleted_at.is_(None),
        )
        .first()
    )
    return row.role if row else None


def find_membership_role(
    db: Session, user_id: str, scope: Scope
) -> CompanyRole | WorkspaceRole | None:
    """Stored role of a user in a company or workspace scope.

    Args:
        db: Database session.
        user_id: User UUID.
        scope: Company or workspace scope.

    Returns:
        CompanyRole | WorkspaceRole | None: Stored role, None without membership.
    """
    if scope.kind == ScopeKind.COMPANY:
        return find_company_role(db, user_id, scope.id)
    return find_workspace_role(db, user_id, scope.id)


class MemberService:
    """Service class for company and workspace member administration."""

    def __init__(self, db: Session, company_id: str):
        """Initialize member service.

        Args:
            db: Database session.
            company_id: Company being administered.
        """
        self.db = db
        self.company_id = company_id

    def list_company_members(self) -> list[tuple[CompanyMember, User]]:
        """List company members, highest role first.

        Returns:
            list[tuple[CompanyMember, User]]: Memberships with their users.
        """
        rows = (
            self.db.query(CompanyMember, User)
            .join(User, User.id == CompanyMember.user_id)
            .filter(CompanyMember.company_id == self.company_id)
            .order_by(CompanyMember.created_at.asc())
            .all()
        )
        return sorted(rows, key=lambda pair: level(pair[0].role), reverse=True)

    def _get_company_member(self, member_id: str) -> CompanyMember:
        member = (
            self.db.query(CompanyMember)
            .filter(CompanyMember.id == member_id, CompanyMember.company_id == self.company_id)
            .first()
        )
        if member is None:
            raise MemberNotFound()
        return member

    def _owner_count(self) -> int:
        return (
            self.db.query(func.count(CompanyMember.id))
            .filter(
                CompanyMember.company_id == self.company_id,
                CompanyMember.role == CompanyRole.OWNER,
            )
            .scalar()
        )

    def _other_owner_exists(self, member_id: str):
        """EXISTS clause: an owner other than ``member_id`` remains."""
        other = aliased(CompanyMember)
        # MySQL rejects a subquery on the table being written unless it is a derived table.
        other_owners = (
            select(other.id)
            .where(
                other.company_id == self.company_id,
                other.role == CompanyRole.OWNER,
                other.id != member_id,
            )
            .subquery("other_owners")
        )
        return select(other_owners.c.id).exists()

    def _actor_role(self, actor_id: str) -> CompanyRole:
        role = find_company_role(self.db, actor_id, self.company_id)
        if not at_least(role, CompanyRole.ADMIN):
            raise InsufficientPrivilege()
        return role

    def update_company_role(self, member_id: str, role: CompanyRole, actor_id: str) -> CompanyMember:
        """Change a member's company role.

        Admins cannot grant or take away ownership; only owners can. Demoting
        an owner is a single guarded UPDATE that only matches while another
        owner exists, so owners demoting each other concurrently cannot leave
        the company without one.

        Args:
            member_id: CompanyMember UUID.
            role: New role.
            actor_id: User making the change.

        Returns:
            CompanyMember: Updated membership.

        Raises:
            InsufficientPrivilege: If the actor is not an admin or owner.
            InvalidRoleUpgrade: If the change involves a role above the actor's own.
            LastOwnerRequired: If the last owner would be demoted.
            MemberNotFound: If the member is not in this company.
            ConcurrentModification: If the role changed since it was read.
        """
        actor_role = self._actor_role(actor_id)
        member = self._get_company_member(member_id)

        if level(role) > level(actor_role) or level(member.role) > level(actor_role):
            raise InvalidRoleUpgrade()

        previous = member.role
        demotes_owner = previous == CompanyRole.OWNER and role != CompanyRole.OWNER
        if demotes_owner and self._owner_count() <= 1:
            raise LastOwnerRequired("Cannot demote the last owner.")

        stmt = update(CompanyMember).where(
            CompanyMember.id == member.id,
            CompanyMember.role == previous,
        )
        if demotes_owner:
            stmt = stmt.where(self._other_owner_exists(member.id))
        result = self.db.execute(
            stmt.values(role=role, updated_at=utcnow(), updated_by_user_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            if demotes_owner:
                logger.warning(f"Refused demoting {member.id}: last owner of {self.company_id}")
                raise LastOwnerRequired("Cannot demote the last owner.")
            raise ConcurrentModification()

        record_audit(
            self.db,
            action="MEMBER_ROLE_UPDATED",
            resource_type="CompanyMember",
            resource_id=member.id,
            user_id=actor_id,
            company_id=self.company_id,
            details={"from": previous.value, "to": role.value},
        )
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"Company member {member.id} role changed {previous.value} -> {role.value}")
        return member

    def remove_company_member(self, member_id: str, actor_id: str) -> None:
        """Remove a member and their workspace memberships in this company.

        Raises:
            InsufficientPrivilege: If the actor is not an admin or owner.
            InvalidRoleUpgrade: If an admin tries to remove an owner.
            LastOwnerRequired: If the last owner would be removed.
            MemberNotFound: If the member is not in this company.
        """
        actor_role = self._actor_role(actor_id)
        member = self._get_company_member(member_id)

        if level(member.role) > level(actor_role):
            raise InvalidRoleUpgrade()
        removes_owner = member.role == CompanyRole.OWNER
        if removes_owner and self._owner_count() <= 1:
            raise LastOwnerRequired("Cannot remove the last owner.")

        removed_id, removed_user_id = member.id, member.user_id
        stmt = delete(CompanyMember).where(CompanyMember.id == removed_id)
        if removes_owner:
            stmt = stmt.where(
                CompanyMember.role == CompanyRole.OWNER,
                self._other_owner_exists(removed_id),
            )
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount != 1:
            self.db.rollback()
            if removes_owner:
                logger.warning(f"Refused removing {removed_id}: last owner of {self.company_id}")
                raise LastOwnerRequired("Cannot remove the last owner.")
            raise MemberNotFound()

        workspace_ids = select(Workspace.id).where(Workspace.company_id == self.company_id)
        self.db.query(WorkspaceMember).filter(
            WorkspaceMember.user_id == removed_user_id,
            WorkspaceMember.workspace_id.in_(workspace_ids),
        ).delete(synchronize_session=False)
        record_audit(
            self.db,
            action="MEMBER_REMOVED",
            resource_type="CompanyMember",
            resource_id=removed_id,
            user_id=actor_id,
            company_id=self.company_id,
            details={"removed_user_id": removed_user_id},
        )
        self.db.commit()
        logger.info(f"Removed user {removed_user_id} from company {self.company_id}")

    # -- workspace members ----------------------------------------------

    def _get_workspace(self, workspace_id: str) -> Workspace:
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

    def _get_workspace_member(self, workspace_id: str, member_id: str) -> WorkspaceMember:
        member = (
            self.db.query(WorkspaceMember)
            .filter(WorkspaceMember.id == member_id, WorkspaceMember.workspace_id == workspace_id)
            .first()
        )
        if member is None:
            raise MemberNotFound()
        return member

    def _require_workspace_admin(self, workspace_id: str, actor_id: str) -> None:
        role = effective_workspace_role(
            find_company_role(self.db, actor_id, self.company_id),
            find_workspace_role(self.db, actor_id, workspace_id),
        )
        if not at_least(role, WorkspaceRole.ADMIN):
            raise InsufficientPrivilege()

    def list_workspace_members(self, workspace_id: str) -> list[tuple[WorkspaceMember, User]]:
        """List a workspace's explicit members, highest role first.

        Raises:
            WorkspaceNotFound: If the workspace is not an active workspace of the company.
        """
        self._get_workspace(workspace_id)
        rows = (
            self.db.query(WorkspaceMember, User)
            .join(User, User.id == WorkspaceMember.user_id)
            .filter(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.created_at.asc())
            .all()
        )
        return sorted(rows, key=lambda pair: level(pair[0].role), reverse=True)

    def update_workspace_role(
        self, workspace_id: str, member_id: str, role: WorkspaceRole, actor_id: str
    ) -> WorkspaceMember:
        """Change a member's explicit workspace role.

        Args:
            workspace_id: Workspace UUID.
            member_id: WorkspaceMember UUID.
            role: New role.
            actor_id: User making the change.

        Returns:
            WorkspaceMember: Updated membership.

        Raises:
            WorkspaceNotFound: If the workspace is not an active workspace of the company.
            InsufficientPrivilege: If the actor is not a workspace admin.
            MemberNotFound: If the member is not in this workspace.
        """
        self._get_workspace(workspace_id)
        self._require_workspace_admin(workspace_id, actor_id)
        member = self._get_workspace_member(workspace_id, member_id)

        previous = member.role
        member.role = role
        member.updated_at = utcnow()
        member.updated_by_user_id = actor_id
        record_audit(
            self.db,
            action="MEMBER_ROLE_UPDATED",
            resource_type="WorkspaceMember",
            resource_id=member.id,
            user_id=actor_id,
            company_id=self.company_id,
            details={"workspace_id": workspace_id, "from": previous.value, "to": role.value},
        )
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"Workspace member {member.id} role changed {previous.value} -> {role.value}")
        return member

    def remove_workspace_member(self, workspace_id: str, member_id: str, actor_id: str) -> None:
        """Remove an explicit workspace membership; company membership is kept.

        Raises:
            WorkspaceNotFound: If the workspace is not an active workspace of the company.
            InsufficientPrivilege: If the actor is not a workspace admin.
            MemberNotFound: If the member is not in this workspace.
        """
        self._get_workspace(workspace_id)
        self._require_workspace_admin(workspace_id, actor_id)
        member = self._get_workspace_member(workspace_id, member_id)

        removed_user_id = member.user_id
        record_audit(
            self.db,
            action="MEMBER_REMOVED",
            resource_type="WorkspaceMember",
            resource_id=member.id,
            user_id=actor_id,
            company_id=self.company_id,
            details={"workspace_id": workspace_id, "removed_user_id": removed_user_id},
        )
        self.db.delete(member)
        self.db.commit()
        logger.info(f"Removed user {removed_user_id} from workspace {workspace_id}")


def get_member_service(db: Session, company_id: str) -> MemberService:
    """Factory function for MemberService.

    Args:
        db: Database session.
        company_id: Company ID.

    Returns:
        MemberService: Member service instance.
    """
    return MemberService(db, company_id)
