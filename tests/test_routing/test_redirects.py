"""Tests for return path sanitization and redirect builders."""

import pytest

from tenantgate.routing.redirects import safe_return_to, to_check_email, to_login, to_onboarding


class TestSafeReturnTo:
    """Tests for open redirect protection."""

    @pytest.mark.parametrize(
        "path",
        [
            "//evil.com",
            "/\\evil.com",
            "",
            None,
            "evil.com",
            "https://evil.com/path",
            "javascript:alert(1)",
            "/\t/evil.com",
            "/settings\r\nLocation: https://evil.com",
        ],
    )
    def test_rejects_unsafe_paths(self, path):
        """Test unsafe or foreign targets collapse to the root."""
        assert safe_return_to(path) == "/"

    @pytest.mark.parametrize("path", ["/settings", "/", "/workspaces/abc?tab=members#top"])
    def test_accepts_same_site_paths(self, path):
        """Test same-site absolute paths pass through unchanged."""
        assert safe_return_to(path) == path

    def test_rejects_non_strings(self):
        """Test non-string input is rejected."""
        assert safe_return_to(42) == "/"


class TestRedirectBuilders:
    """Tests for redirect URL construction."""

    def test_login_encodes_return_path(self):
        assert to_login("/settings?a=1") == "/auth/login?callbackURL=%2Fsettings%3Fa%3D1"

    def test_login_sanitizes_return_path(self):
        assert to_login("//evil.com") == "/auth/login?callbackURL=%2F"

    def test_check_email_carries_email(self):
        url = to_check_email("a+b@example.com", "/x")
        assert url == "/auth/check-email?email=a%2Bb%40example.com&returnTo=%2Fx"

    def test_onboarding_with_workspace(self):
        assert to_onboarding("ws-1", "/x") == "/onboarding?workspaceId=ws-1&returnTo=%2Fx"

    def test_onboarding_without_workspace(self):
        assert to_onboarding(None, "/x") == "/onboarding?returnTo=%2Fx"
