"""SQLAlchemy database models."""

import enum
from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.mysql import CHAR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys.

    Returns:
        str: UUID as 36-character string.
    """
    return str(uuid4())


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching the stored columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class OnboardingStatus(str, enum.Enum):
    """Workspace onboarding status enumeration."""

    PENDING = "pending"
    COMPLETE = "complete"


class InvitationScope(str, enum.Enum):
    """Whether an invitation grants a company or a workspace role."""

    COMPANY = "company"
    WORKSPACE = "workspace"


class InvitationStatus(str, enum.Enum):
    """Stored invitation status. Expiry is derived, never stored."""

    PENDING = "pending"
    REDEEMED = "redeemed"
    SUPERSEDED = "superseded"
    REVOKED = "revoked"


class InvitationState(str, enum.Enum):
    """Lifecycle state of an invitation at a given instant."""

    ACTIVE = "active"
    REDEEMED = "redeemed"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"
    REVOKED = "revoked"


class User(Base):
    """User model.

    Credentials live with the identity provider; this row only holds what the
    authorization core needs.

    Attributes:
        id: Primary key UUID.
        email: Email as entered.
        email_normalized: Lowercase, trimmed email (unique).
        full_name: Display name.
        email_verified: Whether the email address has been verified.
        email_verified_at: When the email was verified.
        created_at: Creation timestamp.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    email_normalized: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    company_memberships: Mapped[list["CompanyMember"]] = relationship(
        "CompanyMember", back_populates="user", cascade="all, delete-orphan"
    )


class Company(Base):
    """Company model, the top-level tenant.

    Attributes:
        id: Primary key UUID.
        name: Company name.
        slug: URL-friendly identifier, unique among active companies.
        slug_key: Uniqueness guard, NULL once the company is deleted.
        created_by_user_id: The user who created the company at signup.
        created_at: Creation timestamp.
        deleted_at: Soft delete timestamp.
    """

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    slug_key: Mapped[str | None] = mapped_column(String(160), unique=True, nullable=True)
    created_by_user_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    workspaces: Mapped[list["Workspace"]] = relationship("Workspace", back_populates="company")
    members: Mapped[list["CompanyMember"]] = relationship(
        "CompanyMember", back_populates="company", cascade="all, delete-orphan"
    )


class Workspace(Base):
    """Workspace model, a sub-tenant of a company.

    Attributes:
        id: Primary key UUID.
        company_id: FK to the owning company.
        name: Workspace name.
        slug: URL-friendly identifier, unique among the company's active workspaces.
        slug_key: Uniqueness guard, NULL once the workspace is deleted.
        onboarding_status: Whether the workspace finished onboarding.
        created_at: Creation timestamp.
        deleted_at: Soft delete timestamp.
    """

    __tablename__ = "workspaces"
    __table_args__ = (Index("ix_workspaces_company_id", "company_id"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    company_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    slug_key: Mapped[str | None] = mapped_column(String(160), unique=True, nullable=True)
    onboarding_status: Mapped[OnboardingStatus] = mapped_column(
        Enum(OnboardingStatus, values_callable=_enum_values),
        default=OnboardingStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    company: Mapped["Company"] = relationship("Company", back_populates="workspaces")
    members: Mapped[list["WorkspaceMember"]] = relationship(
        "WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan"
    )
    projects: Mapped[list["Project"]] = relationship("Project", back_populates="workspace")


class CompanyMember(Base):
    """Company membership with its role.

    Attributes:
        id: Primary key UUID.
        company_id: FK to company.
        user_id: FK to user.
        role: Company role.
        created_at: Creation timestamp.
        updated_at: Last role change.
        updated_by_user_id: Who last changed the role.
    """

    __tablename__ = "company_members"
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_company_member_user_company"),
        Index("ix_company_members_company_id", "company_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    company_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[CompanyRole] = mapped_column(
        Enum(CompanyRole, values_callable=_enum_values), default=CompanyRole.MEMBER
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_by_user_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)

    company: Mapped["Company"] = relationship("Company", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="company_memberships")


class WorkspaceMember(Base):
    """Explicit workspace membership with its role.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to workspace.
        user_id: FK to user.
        role: Workspace role.
        created_at: Creation timestamp.
        updated_at: Last role change.
        updated_by_user_id: Who last changed the role.
    """

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_workspace_member_user_workspace"),
        Index("ix_workspace_members_workspace_id", "workspace_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[WorkspaceRole] = mapped_column(
        Enum(WorkspaceRole, values_callable=_enum_values), default=WorkspaceRole.READER
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_by_user_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)

    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="members")
    user: Mapped["User"] = relationship("User")


class Project(Base):
    """Project model, addressed by a slug unique within its workspace.

    Attributes:
        id: Primary key UUID.
        workspace_id: FK to workspace.
        name: Project name.
        slug: URL-friendly identifier.
        slug_key: Uniqueness guard, NULL once the project is deleted.
        created_by_user_id: Creator.
        created_at: Creation timestamp.
        deleted_at: Soft delete timestamp.
    """

    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    workspace_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    slug_key: Mapped[str | None] = mapped_column(String(160), unique=True, nullable=True)
    created_by_user_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="projects")


class Invitation(Base):
    """Invitation to join a company or one of its workspaces.

    Only the SHA-256 digest of the invite token is stored.

    Attributes:
        id: Primary key UUID.
        company_id: FK to the target company.
        workspace_id: FK to the target workspace for workspace invites.
        invited_by_user_id: FK to the inviter.
        email: Invitee email as entered.
        email_normalized: Lowercase, trimmed invitee email.
        scope: Company or workspace invitation.
        company_role: Role granted in the company (company invites).
        workspace_role: Role granted in the workspace (workspace invites).
        token_digest: Hex SHA-256 of the raw token.
        status: Stored status.
        pending_key: Active-invitation key, NULL once the invitation leaves PENDING.
        created_at: Creation timestamp.
        expires_at: Expiry timestamp.
        redeemed_at: When the invitation was redeemed.
        redeemed_by_user_id: Who redeemed it.
        revoked_at: When it was revoked.
        revoked_by_user_id: Who revoked it.
        superseded_at: When a newer invitation replaced it.
    """

    __tablename__ = "invitations"
    __table_args__ = (
        Index("ix_invitations_company_id", "company_id"),
        Index("ix_invitations_email_normalized", "email_normalized"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    company_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    workspace_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=True
    )
    invited_by_user_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    email_normalized: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[InvitationScope] = mapped_column(
        Enum(InvitationScope, values_callable=_enum_values), nullable=False
    )
    company_role: Mapped[CompanyRole | None] = mapped_column(
        Enum(CompanyRole, values_callable=_enum_values), nullable=True
    )
    workspace_role: Mapped[WorkspaceRole | None] = mapped_column(
        Enum(WorkspaceRole, values_callable=_enum_values), nullable=True
    )
    token_digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus, values_callable=_enum_values),
        default=InvitationStatus.PENDING,
    )
    pending_key: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    redeemed_by_user_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    revoked_by_user_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    company: Mapped["Company"] = relationship("Company")
    workspace: Mapped[Optional["Workspace"]] = relationship("Workspace")
    invited_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[invited_by_user_id])

    @property
    def invited_role(self) -> CompanyRole | WorkspaceRole | None:
        """Role this invitation grants in its target scope."""
        if self.scope == InvitationScope.WORKSPACE:
            return self.workspace_role
        return self.company_role

    def state(self, now: datetime) -> InvitationState:
        """Derive the lifecycle state at ``now``.

        Args:
            now: Naive UTC timestamp.

        Returns:
            InvitationState: Current state.
        """
        if self.status == InvitationStatus.REDEEMED or self.redeemed_at is not None:
            return InvitationState.REDEEMED
        if self.status == InvitationStatus.SUPERSEDED:
            return InvitationState.SUPERSEDED
        if self.status == InvitationStatus.REVOKED:
            return InvitationState.REVOKED
        if now >= self.expires_at:
            return InvitationState.EXPIRED
        return InvitationState.ACTIVE


class EmailVerificationChallenge(Base):
    """One-time code and magic link issued to verify an email address.

    Attributes:
        id: Primary key UUID.
        user_id: FK to user.
        email: Normalized email being verified.
        code_digest: SHA-256 of the numeric code.
        link_token_digest: SHA-256 of the magic link token.
        expires_at: Expiry for both code and link.
        attempts: Failed code attempts.
        last_sent_at: When the challenge was last (re)sent.
        used_at: When the challenge was consumed.
        revoked_at: When a newer challenge replaced it.
        created_at: Creation timestamp.
    """

    __tablename__ = "email_verification_challenges"
    __table_args__ = (Index("ix_email_verification_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    code_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    link_token_digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_sent_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship("User")


class AuditLog(Base):
    """Audit trail entry written in the same transaction as the change.

    Attributes:
        id: Primary key UUID.
        user_id: Acting user.
        company_id: Company the change belongs to.
        action: Action name (e.g. MEMBER_INVITED).
        resource_type: Affected model name.
        resource_id: Affected row id.
        details: Free-form JSON details.
        created_at: Creation timestamp.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_company_id", "company_id"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)
    company_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(CHAR(36), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


def record_audit(
    db,
    action: str,
    resource_type: str,
    resource_id: str | None,
    user_id: str | None = None,
    company_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Add an audit entry to the current transaction without committing.

    Args:
        db: Database session.
        action: Action name.
        resource_type: Affected model name.
        resource_id: Affected row id.
        user_id: Acting user.
        company_id: Company the change belongs to.
        details: Extra JSON details.

    Returns:
        AuditLog: The pending entry.
    """
    entry = AuditLog(
        user_id=user_id,
        company_id=company_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
    db.add(entry)
    return entry
