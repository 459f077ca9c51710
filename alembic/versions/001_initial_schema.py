"""Initial schema: tenants, memberships, invitations and verification.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Adds:
- users, companies, workspaces, company_members, workspace_members, projects
- invitations with digest-only tokens and the pending_key uniqueness guard
- email_verification_challenges
- audit_logs
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

COMPANY_ROLES = ("member", "billing", "admin", "owner")
WORKSPACE_ROLES = ("reader", "writer", "admin")


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("email_normalized", sa.String(255), unique=True, nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("email_verified", sa.Boolean, default=False),
        sa.Column("email_verified_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "companies",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("slug_key", sa.String(160), unique=True, nullable=True),
        sa.Column(
            "created_by_user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "workspaces",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "company_id",
            sa.CHAR(36),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("slug_key", sa.String(160), unique=True, nullable=True),
        sa.Column(
            "onboarding_status",
            sa.Enum("pending", "complete", name="onboardingstatus"),
            default="pending",
        ),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_workspaces_company_id", "workspaces", ["company_id"])

    op.create_table(
        "company_members",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "company_id",
            sa.CHAR(36),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Enum(*COMPANY_ROLES, name="companyrole"), default="member"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.Column("updated_by_user_id", sa.CHAR(36), nullable=True),
        sa.UniqueConstraint("user_id", "company_id", name="uq_company_member_user_company"),
    )
    op.create_index("ix_company_members_company_id", "company_members", ["company_id"])

    op.create_table(
        "workspace_members",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "workspace_id",
            sa.CHAR(36),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Enum(*WORKSPACE_ROLES, name="workspacerole"), default="reader"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.Column("updated_by_user_id", sa.CHAR(36), nullable=True),
        sa.UniqueConstraint(
            "user_id", "workspace_id", name="uq_workspace_member_user_workspace"
        ),
    )
    op.create_index("ix_workspace_members_workspace_id", "workspace_members", ["workspace_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "workspace_id",
            sa.CHAR(36),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("slug_key", sa.String(160), unique=True, nullable=True),
        sa.Column(
            "created_by_user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_projects_workspace_id", "projects", ["workspace_id"])

    op.create_table(
        "invitations",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "company_id",
            sa.CHAR(36),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "workspace_id",
            sa.CHAR(36),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "invited_by_user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("email_normalized", sa.String(255), nullable=False),
        sa.Column(
            "scope",
            sa.Enum("company", "workspace", name="invitationscope"),
            nullable=False,
        ),
        sa.Column("company_role", sa.Enum(*COMPANY_ROLES, name="companyrole"), nullable=True),
        sa.Column(
            "workspace_role", sa.Enum(*WORKSPACE_ROLES, name="workspacerole"), nullable=True
        ),
        sa.Column("token_digest", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "redeemed", "superseded", "revoked", name="invitationstatus"),
            default="pending",
        ),
        sa.Column("pending_key", sa.String(320), unique=True, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("redeemed_at", sa.DateTime, nullable=True),
        sa.Column("redeemed_by_user_id", sa.CHAR(36), nullable=True),
        sa.Column("revoked_at", sa.DateTime, nullable=True),
        sa.Column("revoked_by_user_id", sa.CHAR(36), nullable=True),
        sa.Column("superseded_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_invitations_company_id", "invitations", ["company_id"])
    op.create_index("ix_invitations_email_normalized", "invitations", ["email_normalized"])

    op.create_table(
        "email_verification_challenges",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("code_digest", sa.String(64), nullable=False),
        sa.Column("link_token_digest", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("attempts", sa.Integer, default=0),
        sa.Column("last_sent_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("used_at", sa.DateTime, nullable=True),
        sa.Column("revoked_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_email_verification_user_id", "email_verification_challenges", ["user_id"]
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column("user_id", sa.CHAR(36), nullable=True),
        sa.Column("company_id", sa.CHAR(36), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("resource_type", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.CHAR(36), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_audit_logs_company_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_email_verification_user_id", table_name="email_verification_challenges")
    op.drop_table("email_verification_challenges")
    op.drop_index("ix_invitations_email_normalized", table_name="invitations")
    op.drop_index("ix_invitations_company_id", table_name="invitations")
    op.drop_table("invitations")
    op.drop_index("ix_projects_workspace_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_workspace_members_workspace_id", table_name="workspace_members")
    op.drop_table("workspace_members")
    op.drop_index("ix_company_members_company_id", table_name="company_members")
    op.drop_table("company_members")
    op.drop_index("ix_workspaces_company_id", table_name="workspaces")
    op.drop_table("workspaces")
    op.drop_table("companies")
    op.drop_table("users")
