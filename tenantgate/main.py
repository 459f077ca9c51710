"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from tenantgate import __version__
from tenantgate.config import get_settings
from tenantgate.db.database import init_db
from tenantgate.dependencies import CurrentSessionOptional, DbSession
from tenantgate.exceptions import TenantGateError
from tenantgate.invitations.service import get_invitation_service
from tenantgate.routing.redirects import to_login
from tenantgate.routing.service import NeedsVerification, route

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events.

    Args:
        app: FastAPI application instance.
    """
    # Startup
    init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant authorization, invitations and post-login routing",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Import and include routers
from tenantgate.invitations.router import router as invitations_router
from tenantgate.members.router import router as members_router
from tenantgate.onboarding.router import router as onboarding_router
from tenantgate.projects.router import router as projects_router
from tenantgate.routing.router import router as routing_router
from tenantgate.verification.router import router as verification_router
from tenantgate.workspaces.router import router as workspaces_router

# API routes
app.include_router(routing_router, prefix="/api/routing", tags=["routing"])
app.include_router(invitations_router, prefix="/api", tags=["invitations"])
app.include_router(members_router, prefix="/api/companies", tags=["members"])
app.include_router(workspaces_router, prefix="/api/companies", tags=["workspaces"])
app.include_router(projects_router, prefix="/api/workspaces", tags=["projects"])
app.include_router(onboarding_router, prefix="/api/onboarding", tags=["onboarding"])
app.include_router(verification_router, prefix="/api/verification", tags=["verification"])


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/invite/{token}")
async def open_invite_link(token: str, session: CurrentSessionOptional, db: DbSession):
    """Follow an invite link: sign in first, then accept and redirect.

    Args:
        token: Raw invite token.
        session: Current session, if any.
        db: Database session.

    Returns:
        RedirectResponse: Login, email check, or the invitation's destination.
    """
    here = f"/invite/{quote(token, safe='')}"
    if session is None:
        return RedirectResponse(url=to_login(here), status_code=302)

    outcome = route(session, here)
    if isinstance(outcome, NeedsVerification):
        return RedirectResponse(url=outcome.location, status_code=302)

    try:
        result = get_invitation_service(db).redeem(token, session.user_id, session.email)
    except TenantGateError as e:
        logger.info(f"Invite link for user {session.user_id} not accepted: {type(e).__name__}")
        return RedirectResponse(url=f"/?invite_error={quote(e.message)}", status_code=302)
    return RedirectResponse(url=result.redirect_to, status_code=302)
