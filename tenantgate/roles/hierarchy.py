"""Company and workspace role hierarchies.

Each hierarchy is a fixed sequence ordered from lowest to highest privilege.
A role's level is its index in that sequence, and every privilege comparison
in the application goes through :func:`level` and :func:`is_upgrade`.
"""

import enum


class CompanyRole(str, enum.Enum):
    """Company membership role enumeration."""

    MEMBER = "member"
    BILLING = "billing"  # Read-only at workspace level
    ADMIN = "admin"
    OWNER = "owner"


class WorkspaceRole(str, enum.Enum):
    """Workspace membership role enumeration."""

    READER = "reader"
    WRITER = "writer"
    ADMIN = "admin"


COMPANY_ROLE_ORDER: tuple[CompanyRole, ...] = (
    CompanyRole.MEMBER,
    CompanyRole.BILLING,
    CompanyRole.ADMIN,
    CompanyRole.OWNER,
)

WORKSPACE_ROLE_ORDER: tuple[WorkspaceRole, ...] = (
    WorkspaceRole.READER,
    WorkspaceRole.WRITER,
    WorkspaceRole.ADMIN,
)

Role = CompanyRole | WorkspaceRole


def _order_for(role) -> tuple:
    if isinstance(role, WorkspaceRole):
        return WORKSPACE_ROLE_ORDER
    return COMPANY_ROLE_ORDER


def level(role: Role | None) -> int:
    """Return the privilege level of a role.

    Unknown values, including ``None``, map to the lowest
    level so that a bad role can never grant privilege.

    Args:
        role: Company or workspace role.

    Returns:
        int: Index of the role in its hierarchy.
    """
    order = _order_for(role)
    try:
        return order.index(role)
    except ValueError:
        return 0


def is_upgrade(existing: Role | None, proposed: Role | None) -> bool:
    """Check whether ``proposed`` is strictly more privileged than ``existing``.

    Args:
        existing: Role currently held.
        proposed: Role being offered.

    Returns:
        bool: True only when the proposed level is strictly greater.
    """
    return level(proposed) > level(existing)


def at_least(role: Role | None, minimum: Role) -> bool:
    """Check whether ``role`` meets ``minimum`` within the same hierarchy."""
    if role is None or type(role) is not type(minimum):
        return False
    return level(role) >= level(minimum)


def parse_company_role(value: str | None) -> CompanyRole | None:
    """Convert a string to a CompanyRole, case-insensitively.

    Returns:
        CompanyRole | None: Parsed role, or None for unknown input.
    """
    if isinstance(value, CompanyRole):
        return value
    try:
        return CompanyRole(str(value).strip().lower())
    except ValueError:
        return None


def parse_workspace_role(value: str | None) -> WorkspaceRole | None:
    """Convert a string to a WorkspaceRole, case-insensitively.

    Returns:
        WorkspaceRole | None: Parsed role, or None for unknown input.
    """
    if isinstance(value, WorkspaceRole):
        return value
    try:
        return WorkspaceRole(str(value).strip().lower())
    except ValueError:
        return None


def effective_workspace_role(
    company_role: CompanyRole | None,
    workspace_role: WorkspaceRole | None,
) -> WorkspaceRole | None:
    """Resolve the workspace role a principal effectively holds.

    Company owners and admins administer every workspace, billing users can
    read every workspace, and plain members only reach workspaces they were
    explicitly added to.

    Args:
        company_role: Role in the workspace's company, None if not a member.
        workspace_role: Explicit workspace membership role, if any.

    Returns:
        WorkspaceRole | None: Effective role, or None for no access.
    """
    if company_role is None:
        return None
    if company_role in (CompanyRole.OWNER, CompanyRole.ADMIN):
        return WorkspaceRole.ADMIN
    if company_role == CompanyRole.BILLING:
        return WorkspaceRole.READER
    return workspace_role
