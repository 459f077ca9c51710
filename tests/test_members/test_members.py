"""Tests for company member administration."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tenantgate.db.models import AuditLog, CompanyMember, WorkspaceMember
from tenantgate.exceptions import (
    ConcurrentModification,
    InsufficientPrivilege,
    InvalidRoleUpgrade,
    LastOwnerRequired,
    MemberNotFound,
    WorkspaceNotFound,
)
from tenantgate.members.service import MemberService, find_company_role, normalize_email
from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole


def membership(db: Session, user, company) -> CompanyMember:
    return (
        db.query(CompanyMember)
        .filter(CompanyMember.user_id == user.id, CompanyMember.company_id == company.id)
        .one()
    )


def test_normalize_email():
    assert normalize_email("  Someone@Example.COM ") == "someone@example.com"


def test_find_company_role_ignores_deleted_company(db: Session, owner, company):
    from tenantgate.db.models import utcnow

    assert find_company_role(db, owner.id, company.id) == CompanyRole.OWNER
    company.deleted_at = utcnow()
    db.commit()
    assert find_company_role(db, owner.id, company.id) is None


class TestMemberService:
    """Tests for MemberService."""

    def test_list_highest_role_first(self, db: Session, owner, company, make_user, add_member):
        add_member(make_user(), company, CompanyRole.MEMBER)
        add_member(make_user(), company, CompanyRole.ADMIN)

        roles = [m.role for m, _ in MemberService(db, company.id).list_company_members()]
        assert roles == [CompanyRole.OWNER, CompanyRole.ADMIN, CompanyRole.MEMBER]

    def test_owner_promotes_member(self, db: Session, owner, company, make_user, add_member):
        member = add_member(make_user(), company)
        updated = MemberService(db, company.id).update_company_role(
            member.id, CompanyRole.ADMIN, owner.id
        )
        assert updated.role == CompanyRole.ADMIN
        assert updated.updated_by_user_id == owner.id

    def test_admin_cannot_grant_ownership(self, db: Session, company, make_user, add_member):
        admin = make_user()
        add_member(admin, company, CompanyRole.ADMIN)
        member = add_member(make_user(), company)
        with pytest.raises(InvalidRoleUpgrade):
            MemberService(db, company.id).update_company_role(
                member.id, CompanyRole.OWNER, admin.id
            )

    def test_admin_cannot_demote_owner(self, db: Session, owner, company, make_user, add_member):
        admin = make_user()
        add_member(admin, company, CompanyRole.ADMIN)
        with pytest.raises(InvalidRoleUpgrade):
            MemberService(db, company.id).update_company_role(
                membership(db, owner, company).id, CompanyRole.MEMBER, admin.id
            )

    def test_last_owner_cannot_be_demoted(self, db: Session, owner, company):
        with pytest.raises(LastOwnerRequired):
            MemberService(db, company.id).update_company_role(
                membership(db, owner, company).id, CompanyRole.ADMIN, owner.id
            )

    def test_owner_can_step_down_when_another_owner_exists(
        self, db: Session, owner, company, make_user, add_member
    ):
        add_member(make_user(), company, CompanyRole.OWNER)
        updated = MemberService(db, company.id).update_company_role(
            membership(db, owner, company).id, CompanyRole.ADMIN, owner.id
        )
        assert updated.role == CompanyRole.ADMIN

    def test_member_cannot_manage(self, db: Session, company, make_user, add_member):
        actor = make_user()
        add_member(actor, company)
        target = add_member(make_user(), company)
        with pytest.raises(InsufficientPrivilege):
            MemberService(db, company.id).update_company_role(
                target.id, CompanyRole.ADMIN, actor.id
            )

    def test_unknown_member(self, db: Session, owner, company):
        with pytest.raises(MemberNotFound):
            MemberService(db, company.id).remove_company_member("missing", owner.id)

    def test_remove_drops_workspace_memberships(
        self, db: Session, owner, company, workspace, make_user, add_member,
        add_workspace_member,
    ):
        user = make_user()
        member = add_member(user, company)
        add_workspace_member(user, workspace, WorkspaceRole.WRITER)

        MemberService(db, company.id).remove_company_member(member.id, owner.id)

        assert find_company_role(db, user.id, company.id) is None
        assert db.query(WorkspaceMember).filter(WorkspaceMember.user_id == user.id).count() == 0

    def test_last_owner_cannot_be_removed(self, db: Session, owner, company):
        with pytest.raises(LastOwnerRequired):
            MemberService(db, company.id).remove_company_member(
                membership(db, owner, company).id, owner.id
            )


class TestOwnersRacing:
    """Two owners acting on each other after both passed the owner count."""

    def owner_count_then(self, racing_service, other_change):
        """Run ``other_change`` right after ``racing_service`` counts the owners."""
        real_count = MemberService._owner_count

        def count(service):
            result = real_count(service)
            if service is racing_service:
                other_change()
            return result

        return patch.object(MemberService, "_owner_count", autospec=True, side_effect=count)

    def owners_left(self, db: Session, company) -> int:
        db.expire_all()
        return (
            db.query(CompanyMember)
            .filter(CompanyMember.company_id == company.id, CompanyMember.role == CompanyRole.OWNER)
            .count()
        )

    def test_owners_demoting_each_other(
        self, db: Session, other_db: Session, owner, company, make_user, add_member
    ):
        second = make_user()
        second_membership = add_member(second, company, CompanyRole.OWNER)
        first_membership = membership(db, owner, company)
        first_request = MemberService(db, company.id)
        second_request = MemberService(other_db, company.id)

        def first_demotes_second():
            first_request.update_company_role(second_membership.id, CompanyRole.ADMIN, owner.id)

        with self.owner_count_then(second_request, first_demotes_second):
            with pytest.raises(LastOwnerRequired):
                second_request.update_company_role(
                    first_membership.id, CompanyRole.ADMIN, second.id
                )

        assert self.owners_left(db, company) == 1
        assert membership(db, owner, company).role == CompanyRole.OWNER

    def test_owners_removing_each_other(
        self, db: Session, other_db: Session, owner, company, make_user, add_member
    ):
        second = make_user()
        second_membership = add_member(second, company, CompanyRole.OWNER)
        first_membership = membership(db, owner, company)
        first_request = MemberService(db, company.id)
        second_request = MemberService(other_db, company.id)

        def first_removes_second():
            first_request.remove_company_member(second_membership.id, owner.id)

        with self.owner_count_then(second_request, first_removes_second):
            with pytest.raises(LastOwnerRequired):
                second_request.remove_company_member(first_membership.id, second.id)

        assert self.owners_left(db, company) == 1
        assert membership(db, owner, company).role == CompanyRole.OWNER

    def test_stale_role_change_conflicts(
        self, db: Session, other_db: Session, owner, company, make_user, add_member
    ):
        target = add_member(make_user(), company)
        second_request = MemberService(other_db, company.id)
        other_db.get(CompanyMember, target.id)

        MemberService(db, company.id).update_company_role(target.id, CompanyRole.BILLING, owner.id)
        with pytest.raises(ConcurrentModification):
            second_request.update_company_role(target.id, CompanyRole.ADMIN, owner.id)

        db.expire_all()
        assert db.get(CompanyMember, target.id).role == CompanyRole.BILLING


class TestWorkspaceMembers:
    """Tests for workspace-level member administration."""

    def test_list_highest_role_first(
        self, db: Session, company, workspace, make_user, add_member, add_workspace_member
    ):
        for role in (WorkspaceRole.READER, WorkspaceRole.ADMIN, WorkspaceRole.WRITER):
            user = make_user()
            add_member(user, company)
            add_workspace_member(user, workspace, role)

        rows = MemberService(db, company.id).list_workspace_members(workspace.id)
        assert [m.role for m, _ in rows] == [
            WorkspaceRole.ADMIN,
            WorkspaceRole.WRITER,
            WorkspaceRole.READER,
        ]

    def test_company_admin_changes_workspace_role(
        self, db: Session, owner, company, workspace, make_user, add_member,
        add_workspace_member,
    ):
        user = make_user()
        add_member(user, company)
        ws_member = add_workspace_member(user, workspace, WorkspaceRole.READER)

        updated = MemberService(db, company.id).update_workspace_role(
            workspace.id, ws_member.id, WorkspaceRole.WRITER, owner.id
        )

        assert updated.role == WorkspaceRole.WRITER
        assert updated.updated_by_user_id == owner.id
        audit = db.query(AuditLog).filter(AuditLog.resource_id == ws_member.id).one()
        assert audit.action == "MEMBER_ROLE_UPDATED"
        assert audit.details["workspace_id"] == workspace.id

    def test_workspace_admin_can_demote(
        self, db: Session, company, workspace, make_user, add_member, add_workspace_member
    ):
        ws_admin = make_user()
        add_member(ws_admin, company)
        add_workspace_member(ws_admin, workspace, WorkspaceRole.ADMIN)
        writer = make_user()
        add_member(writer, company)
        target = add_workspace_member(writer, workspace, WorkspaceRole.WRITER)

        updated = MemberService(db, company.id).update_workspace_role(
            workspace.id, target.id, WorkspaceRole.READER, ws_admin.id
        )
        assert updated.role == WorkspaceRole.READER

    def test_writer_cannot_change_roles(
        self, db: Session, company, workspace, make_user, add_member, add_workspace_member
    ):
        writer = make_user()
        add_member(writer, company)
        add_workspace_member(writer, workspace, WorkspaceRole.WRITER)
        reader = make_user()
        add_member(reader, company)
        target = add_workspace_member(reader, workspace)

        with pytest.raises(InsufficientPrivilege):
            MemberService(db, company.id).update_workspace_role(
                workspace.id, target.id, WorkspaceRole.ADMIN, writer.id
            )

    def test_member_of_other_workspace(
        self, db: Session, owner, company, workspace, make_workspace, make_user, add_member,
        add_workspace_member,
    ):
        user = make_user()
        add_member(user, company)
        ws_member = add_workspace_member(user, make_workspace(company))

        with pytest.raises(MemberNotFound):
            MemberService(db, company.id).remove_workspace_member(
                workspace.id, ws_member.id, owner.id
            )

    def test_workspace_of_other_company(
        self, db: Session, owner, company, make_user, make_company
    ):
        other = make_company(make_user(), name="Other")
        other_workspace_id = other.workspaces[0].id

        with pytest.raises(WorkspaceNotFound):
            MemberService(db, company.id).list_workspace_members(other_workspace_id)

    def test_remove_keeps_company_membership(
        self, db: Session, owner, company, workspace, make_user, add_member,
        add_workspace_member,
    ):
        user = make_user()
        add_member(user, company, CompanyRole.MEMBER)
        ws_member = add_workspace_member(user, workspace, WorkspaceRole.WRITER)

        MemberService(db, company.id).remove_workspace_member(workspace.id, ws_member.id, owner.id)

        assert db.query(WorkspaceMember).filter(WorkspaceMember.user_id == user.id).count() == 0
        assert find_company_role(db, user.id, company.id) == CompanyRole.MEMBER


class TestMembersAPI:
    """Tests for the member endpoints."""

    def test_list_members(self, client: TestClient, owner, company, session_headers):
        response = client.get(
            f"/api/companies/{company.id}/members", headers=session_headers(owner, company)
        )
        assert response.status_code == 200
        assert response.json()[0]["email"] == "owner@acme.test"
        assert response.json()[0]["role"] == "owner"

    def test_update_role(
        self, client: TestClient, owner, company, make_user, add_member, session_headers
    ):
        member = add_member(make_user(), company)
        response = client.patch(
            f"/api/companies/{company.id}/members/{member.id}",
            json={"role": "Billing"},
            headers=session_headers(owner, company),
        )
        assert response.status_code == 200
        assert response.json()["role"] == "billing"

    def test_invalid_role(
        self, client: TestClient, owner, company, make_user, add_member, session_headers
    ):
        member = add_member(make_user(), company)
        response = client.patch(
            f"/api/companies/{company.id}/members/{member.id}",
            json={"role": "superuser"},
            headers=session_headers(owner, company),
        )
        assert response.status_code == 400

    def test_member_cannot_update(
        self, client: TestClient, company, make_user, add_member, session_headers
    ):
        actor = make_user()
        add_member(actor, company)
        target = add_member(make_user(), company)
        response = client.patch(
            f"/api/companies/{company.id}/members/{target.id}",
            json={"role": "admin"},
            headers=session_headers(actor, company),
        )
        assert response.status_code == 403

    def test_remove_member(
        self, client: TestClient, owner, company, make_user, add_member, session_headers
    ):
        member = add_member(make_user(), company)
        response = client.delete(
            f"/api/companies/{company.id}/members/{member.id}",
            headers=session_headers(owner, company),
        )
        assert response.status_code == 204

    def test_remove_last_owner_conflicts(
        self, client: TestClient, db: Session, owner, company, session_headers
    ):
        response = client.delete(
            f"/api/companies/{company.id}/members/{membership(db, owner, company).id}",
            headers=session_headers(owner, company),
        )
        assert response.status_code == 409


class TestWorkspaceMembersAPI:
    """Tests for the workspace member endpoints."""

    def url(self, company, workspace, member_id: str = "") -> str:
        base = f"/api/companies/{company.id}/workspaces/{workspace.id}/members"
        return f"{base}/{member_id}" if member_id else base

    def test_list_workspace_members(
        self, client: TestClient, owner, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        user = make_user(email="writer@acme.test")
        add_member(user, company)
        add_workspace_member(user, workspace, WorkspaceRole.WRITER)

        response = client.get(self.url(company, workspace), headers=session_headers(owner, company))

        assert response.status_code == 200
        assert [(m["email"], m["role"]) for m in response.json()] == [
            ("writer@acme.test", "writer")
        ]

    def test_update_workspace_role(
        self, client: TestClient, owner, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        user = make_user()
        add_member(user, company)
        ws_member = add_workspace_member(user, workspace)

        response = client.patch(
            self.url(company, workspace, ws_member.id),
            json={"role": "Admin"},
            headers=session_headers(owner, company),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["user_id"] == user.id

    def test_company_role_is_rejected(
        self, client: TestClient, owner, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        user = make_user()
        add_member(user, company)
        ws_member = add_workspace_member(user, workspace)

        response = client.patch(
            self.url(company, workspace, ws_member.id),
            json={"role": "owner"},
            headers=session_headers(owner, company),
        )
        assert response.status_code == 400

    def test_writer_is_forbidden(
        self, client: TestClient, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        writer = make_user()
        add_member(writer, company)
        add_workspace_member(writer, workspace, WorkspaceRole.WRITER)
        reader = make_user()
        add_member(reader, company)
        target = add_workspace_member(reader, workspace)

        response = client.delete(
            self.url(company, workspace, target.id), headers=session_headers(writer, company)
        )
        assert response.status_code == 403

    def test_remove_workspace_member(
        self, client: TestClient, db: Session, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        ws_admin = make_user()
        add_member(ws_admin, company)
        add_workspace_member(ws_admin, workspace, WorkspaceRole.ADMIN)
        reader = make_user()
        add_member(reader, company)
        target = add_workspace_member(reader, workspace)

        response = client.delete(
            self.url(company, workspace, target.id), headers=session_headers(ws_admin, company)
        )

        assert response.status_code == 204
        assert db.query(WorkspaceMember).filter(WorkspaceMember.user_id == reader.id).count() == 0

    def test_unverified_admin_gets_location(
        self, client: TestClient, company, workspace, make_user, add_member,
        add_workspace_member, session_headers,
    ):
        admin = make_user(verified=False)
        add_member(admin, company, CompanyRole.ADMIN)
        reader = make_user()
        add_member(reader, company)
        target = add_workspace_member(reader, workspace)

        response = client.delete(
            self.url(company, workspace, target.id), headers=session_headers(admin, company)
        )

        assert response.status_code == 403
        assert response.headers["location"].startswith("/auth/check-email")
