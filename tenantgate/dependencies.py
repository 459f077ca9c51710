"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.auth.session import SessionProvider
from tenantgate.auth.utils import decode_session_token
from tenantgate.db.database import get_db
from tenantgate.exceptions import NotReady, TenantGateError

security = HTTPBearer(auto_error=False)


async def get_session_optional(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    session_token: str | None = Cookie(None),
) -> PrincipalSession | None:
    """Build the principal session from a Bearer token or cookie.

    Args:
        request: FastAPI request object.
        credentials: HTTP Bearer token credentials.
        db: Database session.
        session_token: Session token from cookie.

    Returns:
        PrincipalSession | None: Session, or None when unauthenticated.
    """
    # Try Bearer token first, then fall back to cookie
    token = None
    if credentials is not None:
        token = credentials.credentials
    elif session_token is not None:
        token = session_token

    if token is None:
        return None

    claims = decode_session_token(token)
    if claims is None:
        return None

    return SessionProvider(db).load(claims.user_id, claims.company_id)


async def get_session(
    session: Annotated[PrincipalSession | None, Depends(get_session_optional)],
) -> PrincipalSession:
    """Get the principal session or fail with 401.

    Raises:
        HTTPException: If the request is not authenticated.
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def to_http_error(error: TenantGateError) -> HTTPException:
    """Translate a domain error into an HTTPException.

    ``NotReady`` carries the redirect target in a ``Location`` header so
    clients can re-route.

    Args:
        error: Domain error raised by a service.

    Returns:
        HTTPException: Exception to raise from the route.
    """
    headers = None
    if isinstance(error, NotReady) and error.location:
        headers = {"Location": error.location}
    return HTTPException(status_code=error.status_code, detail=error.message, headers=headers)


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db)]
CurrentSession = Annotated[PrincipalSession, Depends(get_session)]
CurrentSessionOptional = Annotated[PrincipalSession | None, Depends(get_session_optional)]
