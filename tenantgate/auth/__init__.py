"""Authentication module."""

from tenantgate.auth.session import Session, SessionProvider, WorkspaceMembership
from tenantgate.auth.tokens import generate_numeric_code, generate_token, hash_token
from tenantgate.auth.utils import create_session_token, decode_session_token

__all__ = [
    "Session",
    "SessionProvider",
    "WorkspaceMembership",
    "create_session_token",
    "decode_session_token",
    "generate_numeric_code",
    "generate_token",
    "hash_token",
]
