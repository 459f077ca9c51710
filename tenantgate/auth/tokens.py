"""Secure token generation and hashing for invitations and one-time codes."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

from tenantgate.exceptions import EntropyUnavailable

# Token configuration
DEFAULT_TOKEN_BYTES = 32  # 256 bits of entropy
MIN_TOKEN_BYTES = 16
DEFAULT_CODE_DIGITS = 6


def generate_token(byte_length: int = DEFAULT_TOKEN_BYTES) -> str:
    """Generate a cryptographically secure URL-safe token.

    Args:
        byte_length: Number of random bytes, at least 16.

    Returns:
        str: Unpadded URL-safe base64 token.

    Raises:
        ValueError: If byte_length is below the minimum.
        EntropyUnavailable: If the OS randomness source fails.
    """
    if byte_length < MIN_TOKEN_BYTES:
        raise ValueError(f"Tokens need at least {MIN_TOKEN_BYTES} bytes of entropy")
    try:
        return secrets.token_urlsafe(byte_length)
    except (OSError, NotImplementedError) as e:
        raise EntropyUnavailable() from e


def hash_token(token: str) -> str:
    """Hash a token for secure storage.

    Uses SHA-256 for fast lookup while maintaining security.
    The token itself has enough entropy that rainbow tables are infeasible.

    Args:
        token: The plaintext token to hash.

    Returns:
        str: Hex-encoded SHA-256 hash of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(digest_a: str, digest_b: str) -> bool:
    """Compare two digests in constant time."""
    return hmac.compare_digest(digest_a.encode("utf-8"), digest_b.encode("utf-8"))


def generate_numeric_code(digits: int = DEFAULT_CODE_DIGITS) -> str:
    """Generate a zero-padded numeric one-time code.

    ``secrets.randbelow`` samples uniformly over the whole range, so every
    code is equally likely.

    Args:
        digits: Code length.

    Returns:
        str: Code of exactly ``digits`` characters.

    Raises:
        ValueError: If digits is not positive.
        EntropyUnavailable: If the OS randomness source fails.
    """
    if digits < 1:
        raise ValueError("Code length must be positive")
    try:
        value = secrets.randbelow(10**digits)
    except (OSError, NotImplementedError) as e:
        raise EntropyUnavailable() from e
    return str(value).zfill(digits)


def token_expiry(ttl: timedelta, now: datetime | None = None) -> datetime:
    """Calculate an expiry timestamp as naive UTC.

    Args:
        ttl: Time to live.
        now: Start instant, defaults to the current time.

    Returns:
        datetime: Naive UTC expiry.
    """
    start = as_utc(now) if now else datetime.now(UTC)
    return (start + ttl).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes loaded from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """Check if an expiry timestamp has been reached.

    Args:
        expires_at: The expiry timestamp.
        now: Instant to check at, defaults to the current time.

    Returns:
        bool: True once ``now >= expires_at``.
    """
    current = as_utc(now) if now else datetime.now(UTC)
    return current >= as_utc(expires_at)
