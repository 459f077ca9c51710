"""Post-authentication routing module."""

from tenantgate.routing.redirects import safe_return_to, to_check_email, to_login, to_onboarding
from tenantgate.routing.service import (
    NeedsLogin,
    NeedsOnboarding,
    NeedsVerification,
    Ready,
    RoutingOutcome,
    needs_onboarding,
    post_login_destination,
    route,
)

__all__ = [
    "NeedsLogin",
    "NeedsOnboarding",
    "NeedsVerification",
    "Ready",
    "RoutingOutcome",
    "needs_onboarding",
    "post_login_destination",
    "route",
    "safe_return_to",
    "to_check_email",
    "to_login",
    "to_onboarding",
]
