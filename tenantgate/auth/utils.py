"""Session token signing and decoding.

The identity provider authenticates users; once it has, the application
carries the result in a short-lived signed token naming the user and the
company they are acting in.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from pydantic import BaseModel

from tenantgate.config import get_settings

settings = get_settings()


class SessionClaims(BaseModel):
    """Session token payload.

    Attributes:
        user_id: User's UUID.
        company_id: Active company UUID, if any.
    """

    user_id: str
    company_id: str | None = None


def create_session_token(
    user_id: str,
    company_id: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token.

    Args:
        user_id: User's UUID.
        company_id: Active company UUID.
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.session_token_expire_minutes)

    to_encode = {
        "sub": user_id,
        "company_id": company_id,
        "exp": expire,
        "type": "session",
    }

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_session_token(token: str) -> SessionClaims | None:
    """Decode and validate a session token.

    Args:
        token: JWT token string.

    Returns:
        SessionClaims | None: Claims if valid, None otherwise.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError:
        return None

    user_id: str | None = payload.get("sub")
    if user_id is None or payload.get("type") != "session":
        return None

    return SessionClaims(user_id=user_id, company_id=payload.get("company_id"))
