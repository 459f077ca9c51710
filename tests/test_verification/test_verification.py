"""Tests for email verification codes and links."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tenantgate.config import get_settings
from tenantgate.db.models import EmailVerificationChallenge, utcnow
from tenantgate.exceptions import VerificationFailed
from tenantgate.verification.service import VerificationService


@pytest.fixture
def service(db: Session) -> VerificationService:
    return VerificationService(db)


@pytest.fixture
def unverified(make_user):
    return make_user(email="New@Example.com", verified=False)


def allow_resend(db: Session, challenge: EmailVerificationChallenge) -> None:
    challenge.last_sent_at = utcnow() - timedelta(seconds=61)
    db.commit()


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


class TestIssueChallenge:
    """Tests for issuing challenges."""

    def test_issue_stores_digests_only(self, service, unverified):
        issued = service.issue_challenge(unverified.id)

        assert len(issued.code) == 6 and issued.code.isdigit()
        assert issued.challenge.email == "new@example.com"
        assert issued.challenge.code_digest != issued.code
        assert issued.link_token not in issued.challenge.link_token_digest
        assert issued.link.endswith(f"/auth/verify-email?token={issued.link_token}")

    def test_already_verified(self, service, make_user):
        assert service.issue_challenge(make_user().id) is None

    def test_resend_is_rate_limited(self, service, unverified):
        service.issue_challenge(unverified.id)
        with pytest.raises(VerificationFailed) as exc_info:
            service.issue_challenge(unverified.id)
        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.status_code == 429

    def test_resend_revokes_previous(self, db: Session, service, unverified):
        first = service.issue_challenge(unverified.id)
        allow_resend(db, first.challenge)
        second = service.issue_challenge(unverified.id)

        db.refresh(first.challenge)
        assert first.challenge.revoked_at is not None
        with pytest.raises(VerificationFailed):
            service.verify_link(first.link_token)
        assert service.verify_link(second.link_token).email_verified is True


class TestVerifyCode:
    """Tests for code verification."""

    def test_correct_code_verifies(self, service, unverified):
        issued = service.issue_challenge(unverified.id)
        user = service.verify_code(unverified.id, f" {issued.code} ")
        assert user.email_verified is True
        assert user.email_verified_at is not None

    def test_code_is_single_use(self, service, unverified):
        issued = service.issue_challenge(unverified.id)
        service.verify_code(unverified.id, issued.code)
        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_code(unverified.id, issued.code)
        assert exc_info.value.code == "INVALID"

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef"])
    def test_bad_format(self, service, unverified, code):
        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_code(unverified.id, code)
        assert exc_info.value.code == "BAD_FORMAT"

    def test_wrong_code_counts_attempts(self, db: Session, service, unverified):
        issued = service.issue_challenge(unverified.id)
        with pytest.raises(VerificationFailed):
            service.verify_code(unverified.id, wrong_code(issued.code))
        db.refresh(issued.challenge)
        assert issued.challenge.attempts == 1

    def test_locked_after_max_attempts(self, service, unverified):
        issued = service.issue_challenge(unverified.id)
        for _ in range(get_settings().verification_max_attempts):
            with pytest.raises(VerificationFailed):
                service.verify_code(unverified.id, wrong_code(issued.code))

        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_code(unverified.id, issued.code)
        assert exc_info.value.code == "LOCKED"

    def test_interleaved_wrong_codes_all_count(
        self, db: Session, other_db: Session, service, unverified
    ):
        issued = service.issue_challenge(unverified.id)
        other = VerificationService(other_db)
        # The second request has already read the challenge before the first one fails.
        other_db.get(EmailVerificationChallenge, issued.challenge.id)

        with pytest.raises(VerificationFailed):
            service.verify_code(unverified.id, wrong_code(issued.code))
        with pytest.raises(VerificationFailed):
            other.verify_code(unverified.id, wrong_code(issued.code))

        db.refresh(issued.challenge)
        assert issued.challenge.attempts == 2

    def test_interleaved_last_attempt_locks(
        self, db: Session, other_db: Session, service, unverified
    ):
        max_attempts = get_settings().verification_max_attempts
        issued = service.issue_challenge(unverified.id)
        issued.challenge.attempts = max_attempts - 1
        db.commit()
        other = VerificationService(other_db)
        other_db.get(EmailVerificationChallenge, issued.challenge.id)

        with pytest.raises(VerificationFailed) as first:
            service.verify_code(unverified.id, wrong_code(issued.code))
        with pytest.raises(VerificationFailed) as second:
            other.verify_code(unverified.id, wrong_code(issued.code))

        assert first.value.code == "INVALID"
        assert second.value.code == "LOCKED"
        db.refresh(issued.challenge)
        assert issued.challenge.attempts == max_attempts

    def test_expired_code(self, db: Session, service, unverified):
        issued = service.issue_challenge(unverified.id)
        issued.challenge.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()
        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_code(unverified.id, issued.code)
        assert exc_info.value.code == "EXPIRED"

    def test_changed_email_invalidates_challenge(self, db: Session, service, unverified):
        issued = service.issue_challenge(unverified.id)
        unverified.email = "changed@example.com"
        db.commit()
        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_code(unverified.id, issued.code)
        assert exc_info.value.code == "INVALID"


class TestVerifyLink:
    """Tests for magic link verification."""

    def test_link_verifies_once(self, service, unverified):
        issued = service.issue_challenge(unverified.id)
        assert service.verify_link(issued.link_token).email_verified is True
        with pytest.raises(VerificationFailed):
            service.verify_link(issued.link_token)

    def test_unknown_link(self, service):
        with pytest.raises(VerificationFailed) as exc_info:
            service.verify_link("bogus")
        assert exc_info.value.code == "INVALID"


class TestVerificationAPI:
    """Tests for the verification endpoints."""

    def test_issue_hides_code_outside_debug(
        self, client: TestClient, unverified, session_headers
    ):
        response = client.post("/api/verification/challenges", headers=session_headers(unverified))
        assert response.status_code == 200
        data = response.json()
        assert data["sent"] is True
        assert data["code"] is None
        assert data["link"] is None

    def test_issue_returns_code_in_debug(
        self, client: TestClient, unverified, session_headers, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "debug", True)
        data = client.post(
            "/api/verification/challenges", headers=session_headers(unverified)
        ).json()
        assert len(data["code"]) == 6

    def test_resend_too_soon(self, client: TestClient, unverified, session_headers):
        headers = session_headers(unverified)
        client.post("/api/verification/challenges", headers=headers)
        assert client.post("/api/verification/challenges", headers=headers).status_code == 429

    def test_verify_code_routes_onward(
        self, client: TestClient, service, unverified, session_headers
    ):
        issued = service.issue_challenge(unverified.id)
        response = client.post(
            "/api/verification/code",
            json={"code": issued.code, "return_to": "/settings"},
            headers=session_headers(unverified),
        )
        assert response.status_code == 200
        assert response.json() == {
            "verified": True,
            "redirect_to": "/onboarding?returnTo=%2Fsettings",
        }

    def test_wrong_code(self, client: TestClient, service, unverified, session_headers):
        issued = service.issue_challenge(unverified.id)
        response = client.post(
            "/api/verification/code",
            json={"code": wrong_code(issued.code)},
            headers=session_headers(unverified),
        )
        assert response.status_code == 400

    def test_link_without_session_goes_to_login(self, client: TestClient, service, unverified):
        issued = service.issue_challenge(unverified.id)
        response = client.post(
            "/api/verification/link", json={"token": issued.link_token, "return_to": "/x"}
        )
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/auth/login?callbackURL=%2Fx"
