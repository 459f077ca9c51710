"""Single authorization chokepoint for company and workspace actions."""

import enum
import logging
from dataclasses import dataclass

from tenantgate.auth.session import Session
from tenantgate.exceptions import InsufficientPrivilege, NotReady
from tenantgate.roles.hierarchy import (
    CompanyRole,
    WorkspaceRole,
    at_least,
    effective_workspace_role,
)
from tenantgate.routing.service import Ready, RoutingOutcome, route

logger = logging.getLogger(__name__)


class ScopeKind(str, enum.Enum):
    COMPANY = "company"
    WORKSPACE = "workspace"


@dataclass(frozen=True)
class Scope:
    """Tenant boundary an action is evaluated against.

    Attributes:
        kind: Company or workspace.
        id: Company or workspace id.
        company_id: Owning company; equals ``id`` for company scopes.
    """

    kind: ScopeKind
    id: str
    company_id: str

    @classmethod
    def company(cls, company_id: str) -> "Scope":
        return cls(kind=ScopeKind.COMPANY, id=company_id, company_id=company_id)

    @classmethod
    def workspace(cls, workspace_id: str, company_id: str) -> "Scope":
        return cls(kind=ScopeKind.WORKSPACE, id=workspace_id, company_id=company_id)


class Action(str, enum.Enum):
    VIEW_COMPANY = "view_company"
    MANAGE_BILLING = "manage_billing"
    MANAGE_INVITES = "manage_invites"
    MANAGE_MEMBERS = "manage_members"
    MANAGE_OWNERSHIP = "manage_ownership"
    MANAGE_WORKSPACES = "manage_workspaces"
    VIEW_WORKSPACE = "view_workspace"
    WRITE_WORKSPACE = "write_workspace"
    ADMIN_WORKSPACE = "admin_workspace"


# Minimum role per action. The role's type fixes the scope kind it applies to.
ACTION_REQUIREMENTS: dict[Action, CompanyRole | WorkspaceRole] = {
    Action.VIEW_COMPANY: CompanyRole.MEMBER,
    Action.MANAGE_BILLING: CompanyRole.BILLING,
    Action.MANAGE_INVITES: CompanyRole.ADMIN,
    Action.MANAGE_MEMBERS: CompanyRole.ADMIN,
    Action.MANAGE_OWNERSHIP: CompanyRole.OWNER,
    Action.MANAGE_WORKSPACES: CompanyRole.ADMIN,
    Action.VIEW_WORKSPACE: WorkspaceRole.READER,
    Action.WRITE_WORKSPACE: WorkspaceRole.WRITER,
    Action.ADMIN_WORKSPACE: WorkspaceRole.ADMIN,
}


class DenialReason(str, enum.Enum):
    NOT_READY = "not_ready"
    INSUFFICIENT_PRIVILEGE = "insufficient_privilege"


@dataclass(frozen=True)
class Allowed:
    allowed = True


@dataclass(frozen=True)
class Denied:
    """Authorization refusal.

    Attributes:
        reason: Why the action was refused.
        outcome: Routing outcome when the session was not ready.
    """

    reason: DenialReason
    outcome: RoutingOutcome | None = None
    allowed = False


Decision = Allowed | Denied


def resolve_role(session: Session, scope: Scope) -> CompanyRole | WorkspaceRole | None:
    """Role the principal holds in ``scope``, or None.

    Args:
        session: Ready principal session.
        scope: Company or workspace scope.

    Returns:
        CompanyRole | WorkspaceRole | None: Company role for company scopes,
        effective workspace role for workspace scopes.
    """
    if session.company_id is None or scope.company_id != session.company_id:
        return None
    if scope.kind == ScopeKind.COMPANY:
        return session.company_role
    return effective_workspace_role(session.company_role, session.workspace_role(scope.id))


def authorize(session: Session | None, action: Action, scope: Scope) -> Decision:
    """Decide whether a principal may perform ``action`` in ``scope``.

    Args:
        session: Principal session.
        action: Requested action.
        scope: Target scope.

    Returns:
        Decision: Allowed, or Denied with a reason.
    """
    outcome = route(session)
    if not isinstance(outcome, Ready):
        return Denied(reason=DenialReason.NOT_READY, outcome=outcome)

    minimum = ACTION_REQUIREMENTS[action]
    expected_kind = ScopeKind.COMPANY if isinstance(minimum, CompanyRole) else ScopeKind.WORKSPACE
    if scope.kind != expected_kind:
        return Denied(reason=DenialReason.INSUFFICIENT_PRIVILEGE)

    role = resolve_role(session, scope)
    if not at_least(role, minimum):
        logger.info(
            f"Denied {action.value} on {scope.kind.value} {scope.id} for user {session.user_id}"
        )
        return Denied(reason=DenialReason.INSUFFICIENT_PRIVILEGE)
    return Allowed()


def require(session: Session | None, action: Action, scope: Scope) -> Session:
    """Authorize or raise.

    Args:
        session: Principal session.
        action: Requested action.
        scope: Target scope.

    Returns:
        Session: The authorized session.

    Raises:
        NotReady: If the session must be re-routed first.
        InsufficientPrivilege: If the role is below the action's minimum.
    """
    decision = authorize(session, action, scope)
    if isinstance(decision, Denied):
        if decision.reason == DenialReason.NOT_READY:
            raise NotReady(location=decision.outcome.location if decision.outcome else None)
        raise InsufficientPrivilege()
    return session
