"""Role hierarchy module."""

from tenantgate.roles.hierarchy import (
    COMPANY_ROLE_ORDER,
    WORKSPACE_ROLE_ORDER,
    CompanyRole,
    WorkspaceRole,
    at_least,
    effective_workspace_role,
    is_upgrade,
    level,
    parse_company_role,
    parse_workspace_role,
)

__all__ = [
    "COMPANY_ROLE_ORDER",
    "WORKSPACE_ROLE_ORDER",
    "CompanyRole",
    "WorkspaceRole",
    "at_least",
    "effective_workspace_role",
    "is_upgrade",
    "level",
    "parse_company_role",
    "parse_workspace_role",
]
