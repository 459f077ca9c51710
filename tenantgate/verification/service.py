"""Email verification with one-time codes and magic links.

Each challenge carries a numeric code and a link token; only their SHA-256
digests are stored. Issuing a challenge revokes the user's earlier ones, so
only the latest code or link works.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from tenantgate.auth.tokens import (
    generate_numeric_code,
    generate_token,
    hash_token,
    is_expired,
    token_expiry,
    tokens_match,
)
from tenantgate.config import get_settings
from tenantgate.db.models import EmailVerificationChallenge, User, utcnow
from tenantgate.exceptions import VerificationFailed
from tenantgate.members.service import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class IssuedChallenge:
    """A new challenge with its raw code and link, to hand to email delivery."""

    challenge: EmailVerificationChallenge
    code: str
    link_token: str
    link: str


class VerificationService:
    """Service class for email verification."""

    def __init__(self, db: Session):
        """Initialize verification service.

        Args:
            db: Database session.
        """
        self.db = db
        self.settings = get_settings()

    def _get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise VerificationFailed("INVALID")
        return user

    def _latest_challenge(self, user_id: str) -> EmailVerificationChallenge | None:
        return (
            self.db.query(EmailVerificationChallenge)
            .filter(
                EmailVerificationChallenge.user_id == user_id,
                EmailVerificationChallenge.used_at.is_(None),
                EmailVerificationChallenge.revoked_at.is_(None),
            )
            .order_by(EmailVerificationChallenge.created_at.desc())
            .first()
        )

    def issue_challenge(self, user_id: str) -> IssuedChallenge | None:
        """Issue a new code and link for the user's current email.

        Args:
            user_id: User to verify.

        Returns:
            IssuedChallenge | None: New challenge, or None if already verified.

        Raises:
            VerificationFailed: RATE_LIMITED when asked again too soon.
        """
        user = self._get_user(user_id)
        if user.email_verified:
            return None

        now = utcnow()
        latest = self._latest_challenge(user.id)
        resend_after = timedelta(seconds=self.settings.verification_resend_seconds)
        if latest is not None and now < latest.last_sent_at + resend_after:
            logger.warning(f"Verification resend for user {user.id} rate limited")
            raise VerificationFailed("RATE_LIMITED", "Please wait before requesting another code.")

        self.db.execute(
            update(EmailVerificationChallenge)
            .where(
                EmailVerificationChallenge.user_id == user.id,
                EmailVerificationChallenge.used_at.is_(None),
                EmailVerificationChallenge.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )

        code = generate_numeric_code(self.settings.verification_code_digits)
        link_token = generate_token(self.settings.invite_token_bytes)
        challenge = EmailVerificationChallenge(
            user_id=user.id,
            email=normalize_email(user.email),
            code_digest=hash_token(code),
            link_token_digest=hash_token(link_token),
            expires_at=token_expiry(timedelta(minutes=self.settings.verification_ttl_minutes), now),
            attempts=0,
            last_sent_at=now,
            created_at=now,
        )
        self.db.add(challenge)
        self.db.commit()
        self.db.refresh(challenge)

        logger.info(f"Verification challenge {challenge.id} issued for user {user.id}")
        return IssuedChallenge(
            challenge=challenge,
            code=code,
            link_token=link_token,
            link=f"{self.settings.app_base_url.rstrip('/')}/auth/verify-email?token={link_token}",
        )

    def verify_code(self, user_id: str, code: str) -> User:
        """Verify the user's email with a one-time code.

        Args:
            user_id: User being verified.
            code: Code as typed by the user.

        Returns:
            User: The verified user.

        Raises:
            VerificationFailed: BAD_FORMAT, INVALID, EXPIRED or LOCKED.
        """
        code = (code or "").strip()
        digits = self.settings.verification_code_digits
        if len(code) != digits or not code.isdigit():
            raise VerificationFailed("BAD_FORMAT", f"Enter the {digits}-digit code.")

        user = self._get_user(user_id)
        challenge = self._latest_challenge(user.id)
        if challenge is None or challenge.email != normalize_email(user.email):
            raise VerificationFailed("INVALID")
        if is_expired(challenge.expires_at):
            raise VerificationFailed("EXPIRED", "That code has expired. Request a new one.")
        max_attempts = self.settings.verification_max_attempts
        if challenge.attempts >= max_attempts:
            raise VerificationFailed("LOCKED", "Too many attempts. Request a new code.")

        if not tokens_match(hash_token(code), challenge.code_digest):
            self._count_failed_attempt(challenge, max_attempts)
            raise VerificationFailed("INVALID")

        return self._consume(challenge, user)

    def _count_failed_attempt(
        self, challenge: EmailVerificationChallenge, max_attempts: int
    ) -> None:
        """Increment the attempt counter in SQL so parallel guesses all count.

        Raises:
            VerificationFailed: LOCKED if the budget ran out in the meantime.
        """
        challenge_id, user_id = challenge.id, challenge.user_id
        result = self.db.execute(
            update(EmailVerificationChallenge)
            .where(
                EmailVerificationChallenge.id == challenge_id,
                EmailVerificationChallenge.attempts < max_attempts,
                EmailVerificationChallenge.used_at.is_(None),
                EmailVerificationChallenge.revoked_at.is_(None),
            )
            .values(attempts=EmailVerificationChallenge.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        counted = result.rowcount
        self.db.commit()
        if counted != 1:
            logger.warning(f"Verification challenge {challenge_id} exhausted for user {user_id}")
            raise VerificationFailed("LOCKED", "Too many attempts. Request a new code.")
        logger.warning(f"Wrong verification code for user {user_id}")

    def verify_link(self, link_token: str) -> User:
        """Verify an email from the magic link.

        Raises:
            VerificationFailed: INVALID or EXPIRED.
        """
        challenge = (
            self.db.query(EmailVerificationChallenge)
            .filter(EmailVerificationChallenge.link_token_digest == hash_token(link_token or ""))
            .first()
        )
        if challenge is None or challenge.used_at is not None or challenge.revoked_at is not None:
            raise VerificationFailed("INVALID", "This link is invalid or was already used.")
        if is_expired(challenge.expires_at):
            raise VerificationFailed("EXPIRED", "This link has expired. Request a new one.")

        user = self._get_user(challenge.user_id)
        if challenge.email != normalize_email(user.email):
            raise VerificationFailed("INVALID", "This link is invalid or was already used.")
        return self._consume(challenge, user)

    def _consume(self, challenge: EmailVerificationChallenge, user: User) -> User:
        now = utcnow()
        result = self.db.execute(
            update(EmailVerificationChallenge)
            .where(
                EmailVerificationChallenge.id == challenge.id,
                EmailVerificationChallenge.used_at.is_(None),
                EmailVerificationChallenge.revoked_at.is_(None),
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise VerificationFailed("INVALID")

        user.email_verified = True
        user.email_verified_at = now
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Email verified for user {user.id}")
        return user


def get_verification_service(db: Session) -> VerificationService:
    """Factory function for VerificationService.

    Args:
        db: Database session.

    Returns:
        VerificationService: Verification service instance.
    """
    return VerificationService(db)
