"""Invitation lifecycle: create, redeem, revoke.

Only the SHA-256 digest of an invite token is stored. The raw token is
returned once from :meth:`InvitationService.create` and is never logged.

State changes use compare-and-set updates (``WHERE status = 'pending'``)
checked by rowcount, so two requests racing on the same invitation cannot
both succeed.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.auth.tokens import generate_token, hash_token
from tenantgate.config import get_settings
from tenantgate.db.models import (
    CompanyMember,
    Invitation,
    InvitationScope,
    InvitationState,
    InvitationStatus,
    Workspace,
    WorkspaceMember,
    generate_uuid,
    record_audit,
    utcnow,
)
from tenantgate.exceptions import (
    ConcurrentModification,
    InsufficientPrivilege,
    InvalidRoleUpgrade,
    InviteAlreadyRedeemed,
    InviteEmailMismatch,
    InviteExpired,
    InviteNotFound,
    WorkspaceNotFound,
)
from tenantgate.members.service import find_company_role, find_workspace_role, normalize_email
from tenantgate.roles.hierarchy import (
    CompanyRole,
    WorkspaceRole,
    at_least,
    effective_workspace_role,
    is_upgrade,
    level,
    parse_company_role,
    parse_workspace_role,
)

logger = logging.getLogger(__name__)


class RevokeOutcome(str, enum.Enum):
    REVOKED = "revoked"
    NO_OP = "no_op"


@dataclass
class CreatedInvitation:
    """A freshly created invitation and its one-time raw token."""

    invitation: Invitation
    token: str
    invite_link: str
    superseded_ids: list[str]


@dataclass
class RedemptionResult:
    """Outcome of a successful redemption.

    Attributes:
        invitation: The redeemed invitation.
        granted_role: Role the redeemer now holds in the target scope.
        previous_role: Role held before redemption, if any.
        no_role_change: True when an equal or higher role was already held.
        redirect_to: Where to send the redeemer next.
    """

    invitation: Invitation
    granted_role: CompanyRole | WorkspaceRole
    previous_role: CompanyRole | WorkspaceRole | None
    no_role_change: bool
    redirect_to: str


def pending_key(company_id: str, workspace_id: str | None, email: str) -> str:
    """Uniqueness key shared by all active invitations for one invitee and scope."""
    if workspace_id:
        return f"workspace:{workspace_id}:{email}"
    return f"company:{company_id}:{email}"


def _is_retryable_conflict(error: IntegrityError) -> bool:
    message = str(error.orig)
    return "pending_key" in message or "token_digest" in message


class InvitationService:
    """Service class for invitation operations."""

    def __init__(self, db: Session):
        """Initialize invitation service.

        Args:
            db: Database session.
        """
        self.db = db
        self.settings = get_settings()

    # -- lookups --------------------------------------------------------

    def find_invitation_by_token_digest(self, digest: str) -> Invitation | None:
        """Find an invitation by the SHA-256 digest of its raw token.

        Args:
            digest: Hex digest from :func:`hash_token`.

        Returns:
            Invitation | None: Invitation if found, None otherwise.
        """
        return self.db.query(Invitation).filter(Invitation.token_digest == digest).first()

    def get_invitation(self, invitation_id: str, viewer_id: str) -> Invitation:
        """Load an invitation belonging to one of the viewer's companies.

        Invitations of other companies are reported as missing.

        Raises:
            InviteNotFound: If the invitation does not exist or the viewer
                is not a member of its company.
        """
        invitation = self.db.query(Invitation).filter(Invitation.id == invitation_id).first()
        if invitation is None:
            raise InviteNotFound()
        if find_company_role(self.db, viewer_id, invitation.company_id) is None:
            raise InviteNotFound()
        return invitation

    def _require_admin(self, user_id: str, company_id: str) -> CompanyRole:
        role = find_company_role(self.db, user_id, company_id)
        if not at_least(role, CompanyRole.ADMIN):
            logger.info(f"User {user_id} lacks invite rights in company {company_id}")
            raise InsufficientPrivilege()
        return role

    def _check_redeemable(self, invitation: Invitation | None, now: datetime) -> Invitation:
        if invitation is None:
            raise InviteNotFound()
        if now >= invitation.expires_at:
            raise InviteExpired()
        if invitation.status != InvitationStatus.PENDING or invitation.redeemed_at is not None:
            raise InviteAlreadyRedeemed()
        return invitation

    # -- create ---------------------------------------------------------

    def create(
        self,
        inviter: PrincipalSession,
        company_id: str,
        invitee_email: str,
        invited_role: CompanyRole | WorkspaceRole | str,
        workspace_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> CreatedInvitation:
        """Create an invitation, superseding any active one for the same invitee.

        Args:
            inviter: Session of the inviting user.
            company_id: Company the invitation belongs to.
            invitee_email: Address to invite.
            invited_role: Company role, or workspace role when ``workspace_id`` is set.
            workspace_id: Target workspace for workspace invitations.
            ttl: Lifetime, defaults to ``invite_ttl_days``.

        Returns:
            CreatedInvitation: Invitation with its raw token and invite link.

        Raises:
            InsufficientPrivilege: If the inviter is not a company admin or owner.
            InvalidRoleUpgrade: If the inviter would grant a role above their own.
            WorkspaceNotFound: If the workspace is not an active workspace of the company.
            ValueError: If the role does not match the invitation scope.
            ConcurrentModification: If concurrent creations kept conflicting.
        """
        inviter_role = self._require_admin(inviter.user_id, company_id)

        if workspace_id:
            scope = InvitationScope.WORKSPACE
            workspace_role = parse_workspace_role(invited_role)
            if workspace_role is None or isinstance(invited_role, CompanyRole):
                raise ValueError(f"Invalid workspace role: {invited_role}")
            company_role = None
            workspace = (
                self.db.query(Workspace)
                .filter(
                    Workspace.id == workspace_id,
                    Workspace.company_id == company_id,
                    Workspace.deleted_at.is_(None),
                )
                .first()
            )
            if workspace is None:
                raise WorkspaceNotFound()
        else:
            scope = InvitationScope.COMPANY
            company_role = parse_company_role(invited_role)
            if company_role is None or isinstance(invited_role, WorkspaceRole):
                raise ValueError(f"Invalid company role: {invited_role}")
            workspace_role = None
            if level(company_role) > level(inviter_role):
                raise InvalidRoleUpgrade()

        email = normalize_email(invitee_email)
        key = pending_key(company_id, workspace_id, email)
        lifetime = ttl if ttl is not None else timedelta(days=self.settings.invite_ttl_days)
        budget = self.settings.storage_retry_budget

        for attempt in range(1, budget + 1):
            token = generate_token(self.settings.invite_token_bytes)
            now = utcnow()

            superseded_ids = self._supersede(key, now)
            invitation = Invitation(
                id=generate_uuid(),
                company_id=company_id,
                workspace_id=workspace_id,
                invited_by_user_id=inviter.user_id,
                email=email,
                email_normalized=email,
                scope=scope,
                company_role=company_role,
                workspace_role=workspace_role,
                token_digest=hash_token(token),
                status=InvitationStatus.PENDING,
                pending_key=key,
                created_at=now,
                expires_at=now + lifetime,
            )
            self.db.add(invitation)

            for superseded_id in superseded_ids:
                record_audit(
                    self.db,
                    action="INVITE_SUPERSEDED",
                    resource_type="Invitation",
                    resource_id=superseded_id,
                    user_id=inviter.user_id,
                    company_id=company_id,
                    details={"replaced_by": invitation.id},
                )
            record_audit(
                self.db,
                action="MEMBER_INVITED",
                resource_type="Invitation",
                resource_id=invitation.id,
                user_id=inviter.user_id,
                company_id=company_id,
                details={
                    "email": email,
                    "scope": scope.value,
                    "role": invitation.invited_role.value,
                    "workspace_id": workspace_id,
                },
            )
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if not _is_retryable_conflict(e):
                    raise
                logger.warning(
                    f"Concurrent invitation for {scope.value} key in company {company_id} "
                    f"(attempt {attempt}/{budget})"
                )
                continue

            self.db.refresh(invitation)
            logger.info(
                f"Invitation {invitation.id} created in company {company_id} "
                f"by {inviter.user_id} ({len(superseded_ids)} superseded)"
            )
            return CreatedInvitation(
                invitation=invitation,
                token=token,
                invite_link=f"{self.settings.app_base_url.rstrip('/')}/invite/{token}",
                superseded_ids=superseded_ids,
            )

        raise ConcurrentModification()

    def _supersede(self, key: str, now: datetime) -> list[str]:
        """Mark active invitations for ``key`` superseded (no commit).

        Expired ones keep their status, so they still read as expired, and
        only give up their ``pending_key``.
        """
        prior = (
            self.db.query(Invitation.id, Invitation.expires_at)
            .filter(
                Invitation.pending_key == key,
                Invitation.status == InvitationStatus.PENDING,
            )
            .all()
        )
        prior_ids = [row.id for row in prior if row.expires_at > now]
        expired_ids = [row.id for row in prior if row.expires_at <= now]

        if expired_ids:
            self.db.execute(
                update(Invitation)
                .where(
                    Invitation.id.in_(expired_ids),
                    Invitation.status == InvitationStatus.PENDING,
                )
                .values(pending_key=None)
                .execution_options(synchronize_session=False)
            )
        if not prior_ids:
            return []

        self.db.execute(
            update(Invitation)
            .where(
                Invitation.id.in_(prior_ids),
                Invitation.status == InvitationStatus.PENDING,
            )
            .values(
                status=InvitationStatus.SUPERSEDED,
                superseded_at=now,
                pending_key=None,
            )
            .execution_options(synchronize_session=False)
        )
        return prior_ids

    # -- redeem ---------------------------------------------------------

    def validate(self, raw_token: str) -> Invitation:
        """Look up a redeemable invitation without changing it.

        Raises:
            InviteNotFound: If no invitation matches the token.
            InviteExpired: If the invitation has expired.
            InviteAlreadyRedeemed: If it was redeemed, superseded or revoked.
        """
        invitation = self.find_invitation_by_token_digest(hash_token(raw_token))
        return self._check_redeemable(invitation, utcnow())

    def redeem(
        self,
        raw_token: str,
        redeemer_user_id: str,
        redeemer_email: str | None = None,
    ) -> RedemptionResult:
        """Redeem an invitation and grant its role.

        An existing membership is only ever upgraded, never downgraded.

        Args:
            raw_token: Token from the invite link.
            redeemer_user_id: User accepting the invitation.
            redeemer_email: Email of the redeemer, checked against the invitee.

        Returns:
            RedemptionResult: Granted role and redirect target.

        Raises:
            InviteNotFound: If no invitation matches the token.
            InviteExpired: If the invitation has expired.
            InviteAlreadyRedeemed: If it was redeemed, superseded or revoked.
            InviteEmailMismatch: If the redeemer's email differs from the invitee's.
            ConcurrentModification: If a membership was created concurrently.
        """
        invitation = self.find_invitation_by_token_digest(hash_token(raw_token))
        return self._redeem(invitation, redeemer_user_id, redeemer_email)

    def redeem_pending(
        self, invitation_id: str, redeemer_user_id: str, redeemer_email: str
    ) -> RedemptionResult:
        """Redeem an invitation listed by :meth:`pending_for_email` without its token.

        The redeemer's verified email stands in for the token, so it is
        required here.

        Raises:
            InviteNotFound: If the invitation does not exist.
            InviteEmailMismatch: If it is addressed to another email.
        """
        invitation = self.db.query(Invitation).filter(Invitation.id == invitation_id).first()
        return self._redeem(invitation, redeemer_user_id, redeemer_email)

    def _redeem(
        self,
        invitation: Invitation | None,
        redeemer_user_id: str,
        redeemer_email: str | None,
    ) -> RedemptionResult:
        now = utcnow()
        try:
            self._check_redeemable(invitation, now)
        except (InviteNotFound, InviteExpired, InviteAlreadyRedeemed) as e:
            logger.warning(f"Rejected redemption by user {redeemer_user_id}: {type(e).__name__}")
            raise

        if redeemer_email is not None and normalize_email(redeemer_email) != invitation.email_normalized:
            logger.warning(f"Invitation {invitation.id} redeemed with mismatching email")
            raise InviteEmailMismatch()

        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.redeemed_at.is_(None),
            )
            .values(
                status=InvitationStatus.REDEEMED,
                redeemed_at=now,
                redeemed_by_user_id=redeemer_user_id,
                pending_key=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            logger.warning(f"Invitation {invitation.id} was consumed concurrently")
            raise InviteAlreadyRedeemed()

        if invitation.scope == InvitationScope.WORKSPACE:
            previous, granted = self._grant_workspace_role(invitation, redeemer_user_id, now)
            redirect_to = f"/workspaces/{invitation.workspace_id}"
        else:
            previous, granted = self._grant_company_role(
                invitation.company_id, redeemer_user_id, invitation.company_role, now
            )
            redirect_to = "/workspaces"
        no_role_change = previous is not None and granted == previous

        record_audit(
            self.db,
            action="MEMBER_INVITE_ACCEPTED",
            resource_type="Invitation",
            resource_id=invitation.id,
            user_id=redeemer_user_id,
            company_id=invitation.company_id,
            details={
                "role": granted.value,
                "previous_role": previous.value if previous else None,
                "no_role_change": no_role_change,
            },
        )
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Membership conflict redeeming invitation {invitation.id}: {e.orig}")
            raise ConcurrentModification() from e

        self.db.refresh(invitation)
        logger.info(
            f"Invitation {invitation.id} redeemed by {redeemer_user_id} "
            f"({granted.value}{', unchanged' if no_role_change else ''})"
        )
        return RedemptionResult(
            invitation=invitation,
            granted_role=granted,
            previous_role=previous,
            no_role_change=no_role_change,
            redirect_to=redirect_to,
        )

    def _grant_company_role(
        self,
        company_id: str,
        user_id: str,
        role: CompanyRole,
        now: datetime,
    ) -> tuple[CompanyRole | None, CompanyRole]:
        member = (
            self.db.query(CompanyMember)
            .filter(CompanyMember.company_id == company_id, CompanyMember.user_id == user_id)
            .first()
        )
        if member is None:
            self.db.add(CompanyMember(company_id=company_id, user_id=user_id, role=role))
            return None, role

        previous = member.role
        if not is_upgrade(previous, role):
            return previous, previous
        member.role = role
        member.updated_at = now
        member.updated_by_user_id = user_id
        return previous, role

    def _grant_workspace_role(
        self,
        invitation: Invitation,
        user_id: str,
        now: datetime,
    ) -> tuple[WorkspaceRole | None, WorkspaceRole]:
        # Workspace members always hold at least a baseline company membership.
        self._grant_company_role(invitation.company_id, user_id, CompanyRole.MEMBER, now)

        role = invitation.workspace_role
        member = (
            self.db.query(WorkspaceMember)
            .filter(
                WorkspaceMember.workspace_id == invitation.workspace_id,
                WorkspaceMember.user_id == user_id,
            )
            .first()
        )
        if member is None:
            self.db.add(
                WorkspaceMember(workspace_id=invitation.workspace_id, user_id=user_id, role=role)
            )
            return None, role

        previous = member.role
        if not is_upgrade(previous, role):
            return previous, previous
        member.role = role
        member.updated_at = now
        member.updated_by_user_id = user_id
        return previous, role

    # -- revoke ---------------------------------------------------------

    def revoke(self, invitation_id: str, revoker: PrincipalSession) -> RevokeOutcome:
        """Revoke a pending invitation.

        Revoking an invitation that is already redeemed, superseded, revoked
        or expired changes nothing and reports ``NO_OP``.

        Args:
            invitation_id: Invitation UUID.
            revoker: Session of the revoking user.

        Returns:
            RevokeOutcome: REVOKED or NO_OP.

        Raises:
            InviteNotFound: If the invitation does not exist in a company of the revoker.
            InsufficientPrivilege: If the revoker is not a company admin or owner.
        """
        invitation = self.get_invitation(invitation_id, revoker.user_id)
        self._require_admin(revoker.user_id, invitation.company_id)

        now = utcnow()
        if invitation.state(now) != InvitationState.ACTIVE:
            return RevokeOutcome.NO_OP

        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.redeemed_at.is_(None),
            )
            .values(
                status=InvitationStatus.REVOKED,
                revoked_at=now,
                revoked_by_user_id=revoker.user_id,
                pending_key=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return RevokeOutcome.NO_OP

        record_audit(
            self.db,
            action="INVITE_REVOKED",
            resource_type="Invitation",
            resource_id=invitation.id,
            user_id=revoker.user_id,
            company_id=invitation.company_id,
            details={"email": invitation.email_normalized},
        )
        self.db.commit()
        logger.info(f"Invitation {invitation.id} revoked by {revoker.user_id}")
        return RevokeOutcome.REVOKED

    # -- listings -------------------------------------------------------

    def list_invitations(
        self, company_id: str, viewer: PrincipalSession
    ) -> list[tuple[Invitation, InvitationState]]:
        """List a company's invitations, newest first, with their derived state.

        Raises:
            InsufficientPrivilege: If the viewer is not a company admin or owner.
        """
        self._require_admin(viewer.user_id, company_id)
        now = utcnow()
        invitations = (
            self.db.query(Invitation)
            .filter(Invitation.company_id == company_id)
            .order_by(Invitation.created_at.desc())
            .all()
        )
        return [(invitation, invitation.state(now)) for invitation in invitations]

    def get_workspace(self, workspace_id: str) -> Workspace:
        """Get an active workspace.

        Raises:
            WorkspaceNotFound: If the workspace is missing or deleted.
        """
        workspace = (
            self.db.query(Workspace)
            .filter(Workspace.id == workspace_id, Workspace.deleted_at.is_(None))
            .first()
        )
        if workspace is None:
            raise WorkspaceNotFound()
        return workspace

    def list_workspace_invitations(
        self, workspace_id: str, viewer: PrincipalSession
    ) -> list[tuple[Invitation, InvitationState]]:
        """List a workspace's invitations, newest first, with their derived state.

        Company admins and owners see every workspace; others need an
        explicit workspace ADMIN role.

        Raises:
            WorkspaceNotFound: If the workspace is missing or deleted.
            InsufficientPrivilege: If the viewer is not a workspace admin.
        """
        workspace = self.get_workspace(workspace_id)
        role = effective_workspace_role(
            find_company_role(self.db, viewer.user_id, workspace.company_id),
            find_workspace_role(self.db, viewer.user_id, workspace.id),
        )
        if not at_least(role, WorkspaceRole.ADMIN):
            logger.info(f"User {viewer.user_id} may not list invites of workspace {workspace.id}")
            raise InsufficientPrivilege()

        now = utcnow()
        invitations = (
            self.db.query(Invitation)
            .filter(Invitation.workspace_id == workspace.id)
            .order_by(Invitation.created_at.desc())
            .all()
        )
        return [(invitation, invitation.state(now)) for invitation in invitations]

    def pending_for_email(self, email: str) -> list[Invitation]:
        """Active invitations addressed to ``email``, oldest first."""
        return (
            self.db.query(Invitation)
            .filter(
                Invitation.email_normalized == normalize_email(email),
                Invitation.status == InvitationStatus.PENDING,
                Invitation.redeemed_at.is_(None),
                Invitation.expires_at > utcnow(),
            )
            .order_by(Invitation.created_at.asc())
            .all()
        )


def get_invitation_service(db: Session) -> InvitationService:
    """Factory function for InvitationService.

    Args:
        db: Database session.

    Returns:
        InvitationService: Invitation service instance.
    """
    return InvitationService(db)
