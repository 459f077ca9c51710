"""Post-authentication routing decisions.

:func:`route` classifies a session into exactly one outcome. The checks run
in a fixed order: login, email verification, company/onboarding, ready.
Verification comes before onboarding because the company context of an
unverified identity cannot be trusted.
"""

from dataclasses import dataclass
from typing import ClassVar

from tenantgate.auth.session import Session
from tenantgate.routing.redirects import safe_return_to, to_check_email, to_login, to_onboarding


@dataclass(frozen=True)
class NeedsLogin:
    """No session: send the client to the login page."""

    return_to: str
    kind: ClassVar[str] = "needs_login"

    @property
    def location(self) -> str:
        return to_login(self.return_to)


@dataclass(frozen=True)
class NeedsVerification:
    """Email not verified yet."""

    return_to: str
    email: str = ""
    kind: ClassVar[str] = "needs_verification"

    @property
    def location(self) -> str:
        return to_check_email(self.email, self.return_to)


@dataclass(frozen=True)
class NeedsOnboarding:
    """No company context, or the company creator has onboarding left."""

    workspace_id: str | None
    return_to: str
    kind: ClassVar[str] = "needs_onboarding"

    @property
    def location(self) -> str:
        return to_onboarding(self.workspace_id, self.return_to)


@dataclass(frozen=True)
class Ready:
    """Session may enter the product."""

    destination: str
    kind: ClassVar[str] = "ready"

    @property
    def location(self) -> str:
        return self.destination


RoutingOutcome = NeedsLogin | NeedsVerification | NeedsOnboarding | Ready


def _best_guess_workspace(session: Session) -> str | None:
    if session.pending_onboarding_workspace_ids:
        return session.pending_onboarding_workspace_ids[0]
    if session.workspace_memberships:
        return session.workspace_memberships[0].workspace_id
    return None


def needs_onboarding(session: Session) -> bool:
    """Whether the session must finish onboarding before entering.

    Only the company's creator is held back by pending workspaces; invited
    members are never forced through onboarding.
    """
    if session.company_id is None:
        return True
    return session.is_company_creator and bool(session.pending_onboarding_workspace_ids)


def route(
    session: Session | None,
    requested_return_to: str | None = None,
    default_home: str = "/",
) -> RoutingOutcome:
    """Decide where a session goes next.

    Args:
        session: Principal session, None when unauthenticated.
        requested_return_to: Path the client asked to return to.
        default_home: Destination for ready sessions without a usable path.

    Returns:
        RoutingOutcome: Exactly one outcome.
    """
    rt = safe_return_to(requested_return_to)

    if session is None:
        return NeedsLogin(return_to=rt)

    if not session.email_verified:
        return NeedsVerification(return_to=rt, email=session.email)

    if needs_onboarding(session):
        return NeedsOnboarding(workspace_id=_best_guess_workspace(session), return_to=rt)

    if rt == "/" and requested_return_to != "/":
        return Ready(destination=safe_return_to(default_home))
    return Ready(destination=rt)


def post_login_destination(
    session: Session | None,
    requested_return_to: str | None = None,
    default_home: str = "/",
) -> str:
    """Redirect URL for a session right after it authenticates."""
    return route(session, requested_return_to, default_home).location
