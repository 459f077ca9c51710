"""Access gate module."""

from tenantgate.access.gate import (
    ACTION_REQUIREMENTS,
    Action,
    Allowed,
    Denied,
    DenialReason,
    Scope,
    ScopeKind,
    authorize,
    require,
    resolve_role,
)

__all__ = [
    "ACTION_REQUIREMENTS",
    "Action",
    "Allowed",
    "Denied",
    "DenialReason",
    "Scope",
    "ScopeKind",
    "authorize",
    "require",
    "resolve_role",
]
