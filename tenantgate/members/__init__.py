"""Members module."""

from tenantgate.members.service import (
    MemberService,
    find_company_role,
    find_membership_role,
    find_workspace_role,
    get_member_service,
    normalize_email,
)

__all__ = [
    "MemberService",
    "find_company_role",
    "find_membership_role",
    "find_workspace_role",
    "get_member_service",
    "normalize_email",
]
