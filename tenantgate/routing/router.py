"""Routing API routes."""

from fastapi import APIRouter, Query

from tenantgate.config import get_settings
from tenantgate.dependencies import CurrentSessionOptional
from tenantgate.routing.schemas import RoutingDecision
from tenantgate.routing.service import NeedsOnboarding, route

router = APIRouter()


@router.get("/post-login", response_model=RoutingDecision)
async def post_login(
    session: CurrentSessionOptional,
    return_to: str | None = Query(None, alias="returnTo"),
):
    """Decide where the client goes after authenticating.

    Args:
        session: Current session, if any.
        return_to: Requested return path.

    Returns:
        RoutingDecision: Outcome kind and redirect location.
    """
    outcome = route(session, return_to, get_settings().default_home)
    return RoutingDecision(
        kind=outcome.kind,
        location=outcome.location,
        workspace_id=outcome.workspace_id if isinstance(outcome, NeedsOnboarding) else None,
    )
