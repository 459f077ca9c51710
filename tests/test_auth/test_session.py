"""Tests for session tokens and the session provider."""

from datetime import timedelta

from sqlalchemy.orm import Session

from tenantgate.auth.session import SessionProvider
from tenantgate.auth.utils import create_session_token, decode_session_token
from tenantgate.db.models import Company, utcnow
from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole


class TestSessionToken:
    """Tests for signed session tokens."""

    def test_round_trip_claims(self):
        token = create_session_token("user-1", "company-1")
        claims = decode_session_token(token)
        assert claims.user_id == "user-1"
        assert claims.company_id == "company-1"

    def test_expired_token_is_rejected(self):
        token = create_session_token("user-1", expires_delta=timedelta(seconds=-1))
        assert decode_session_token(token) is None

    def test_garbage_token_is_rejected(self):
        assert decode_session_token("not-a-token") is None


class TestSessionProvider:
    """Tests for building sessions from the database."""

    def test_unknown_user(self, db: Session):
        assert SessionProvider(db).load("missing") is None

    def test_user_without_company(self, db: Session, make_user):
        user = make_user(verified=False)
        session = SessionProvider(db).load(user.id)
        assert session.company_id is None
        assert session.company_role is None
        assert session.email_verified is False

    def test_owner_session(self, db: Session, owner, company, workspace):
        session = SessionProvider(db).load(owner.id, company.id)
        assert session.company_id == company.id
        assert session.company_role == CompanyRole.OWNER
        assert session.is_company_creator
        assert session.pending_onboarding_workspace_ids == ()

    def test_pending_workspaces_oldest_first(self, db: Session, owner, make_company, make_workspace):
        company = make_company(owner, onboarding_pending=True)
        later = make_workspace(company, "Later", pending=True)
        session = SessionProvider(db).load(owner.id, company.id)
        assert len(session.pending_onboarding_workspace_ids) == 2
        assert session.pending_onboarding_workspace_ids[-1] == later.id

    def test_falls_back_to_oldest_membership(
        self, db: Session, make_user, make_company, add_member
    ):
        """Test an unknown requested company falls back to the user's first company."""
        user = make_user()
        first = make_company(user, name="First")
        other_owner = make_user()
        second = make_company(other_owner, name="Second")
        add_member(user, second)

        assert SessionProvider(db).load(user.id, "not-a-member").company_id == first.id
        assert SessionProvider(db).load(user.id, second.id).company_role == CompanyRole.MEMBER

    def test_deleted_company_is_ignored(self, db: Session, owner, company):
        company.deleted_at = utcnow()
        db.commit()
        assert SessionProvider(db).load(owner.id, company.id).company_id is None

    def test_workspace_memberships_loaded(
        self, db: Session, make_user, company, workspace, add_member, add_workspace_member
    ):
        user = make_user()
        add_member(user, company)
        add_workspace_member(user, workspace, WorkspaceRole.WRITER)
        session = SessionProvider(db).load(user.id, company.id)
        assert session.workspace_role(workspace.id) == WorkspaceRole.WRITER
        assert not session.is_company_creator


def test_company_fixture_has_one_workspace(db: Session, company: Company):
    """Test the shared fixture matches what the session tests assume."""
    assert len(company.workspaces) == 1
