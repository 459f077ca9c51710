"""Tests for post-login routing decisions."""

import pytest

from tenantgate.auth.session import Session, WorkspaceMembership
from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole
from tenantgate.routing.service import (
    NeedsLogin,
    NeedsOnboarding,
    NeedsVerification,
    Ready,
    post_login_destination,
    route,
)


def make_session(**overrides) -> Session:
    values = {
        "user_id": "user-1",
        "email": "user@example.com",
        "email_verified": True,
        "company_id": "company-1",
        "company_created_by_user_id": "someone-else",
        "company_role": CompanyRole.MEMBER,
    }
    values.update(overrides)
    return Session(**values)


class TestRouteOrder:
    """Tests for the fixed order of routing checks."""

    def test_no_session_needs_login(self):
        outcome = route(None, "/settings")
        assert outcome == NeedsLogin(return_to="/settings")
        assert outcome.location == "/auth/login?callbackURL=%2Fsettings"

    def test_unverified_needs_verification(self):
        outcome = route(make_session(email_verified=False), "/settings")
        assert isinstance(outcome, NeedsVerification)
        assert outcome.return_to == "/settings"
        assert "email=user%40example.com" in outcome.location

    def test_verification_checked_before_onboarding(self):
        """Test an unverified user without a company is sent to verify first."""
        session = make_session(email_verified=False, company_id=None, company_role=None)
        assert isinstance(route(session), NeedsVerification)

    def test_no_company_needs_onboarding(self):
        session = make_session(company_id=None, company_role=None)
        outcome = route(session, "/x")
        assert outcome == NeedsOnboarding(workspace_id=None, return_to="/x")
        assert outcome.location == "/onboarding?returnTo=%2Fx"

    def test_creator_with_pending_workspace_needs_onboarding(self):
        session = make_session(
            company_created_by_user_id="user-1",
            company_role=CompanyRole.OWNER,
            pending_onboarding_workspace_ids=("ws-pending", "ws-later"),
        )
        outcome = route(session, "/x")
        assert outcome == NeedsOnboarding(workspace_id="ws-pending", return_to="/x")

    def test_invited_member_never_forced_into_onboarding(self):
        """Test pending workspaces only hold back the company creator."""
        session = make_session(pending_onboarding_workspace_ids=("ws-pending",))
        assert isinstance(route(session), Ready)

    def test_ready_goes_to_return_path(self):
        outcome = route(make_session(), "/settings")
        assert outcome == Ready(destination="/settings")
        assert outcome.location == "/settings"

    def test_ready_with_unsafe_path_goes_home(self):
        outcome = route(make_session(), "//evil.com", default_home="/workspaces")
        assert outcome == Ready(destination="/workspaces")

    def test_ready_with_root_path_stays_at_root(self):
        assert route(make_session(), "/", default_home="/workspaces") == Ready(destination="/")

    def test_unsafe_path_sanitized_in_every_outcome(self):
        assert route(None, "//evil.com").return_to == "/"
        assert route(make_session(email_verified=False), "//evil.com").return_to == "/"


class TestRouteProperties:
    """Tests for properties holding across many sessions."""

    @pytest.mark.parametrize("verified", [True, False])
    @pytest.mark.parametrize("company_id", [None, "company-1"])
    @pytest.mark.parametrize("creator", [True, False])
    @pytest.mark.parametrize("pending", [(), ("ws-1",)])
    def test_exactly_one_outcome(self, verified, company_id, creator, pending):
        """Test every session maps to exactly one outcome, never Ready when unverified."""
        session = make_session(
            email_verified=verified,
            company_id=company_id,
            company_created_by_user_id="user-1" if creator else "someone-else",
            pending_onboarding_workspace_ids=pending,
            workspace_memberships=(WorkspaceMembership("ws-2", WorkspaceRole.READER),),
        )
        outcome = route(session, "/next")
        assert isinstance(outcome, NeedsLogin | NeedsVerification | NeedsOnboarding | Ready)
        if not verified:
            assert isinstance(outcome, NeedsVerification)

    def test_no_company_best_guess_uses_membership(self):
        session = make_session(
            company_id=None,
            workspace_memberships=(WorkspaceMembership("ws-9", WorkspaceRole.READER),),
        )
        assert route(session).workspace_id == "ws-9"


def test_post_login_destination_is_outcome_location():
    """Test the post-login redirect is the routed location."""
    assert post_login_destination(None, "/a") == "/auth/login?callbackURL=%2Fa"
    assert post_login_destination(make_session(), "/a") == "/a"
