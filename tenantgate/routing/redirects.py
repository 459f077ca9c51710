"""Redirect target sanitization and redirect URL builders.

``safe_return_to`` is the only defense against open redirects, so every
user-supplied return path must pass through it before it is echoed back in
a ``Location`` header or a link.
"""

import re
from urllib.parse import quote

# Browsers drop tab/newline characters before resolving a URL, so "/\t/evil"
# becomes "//evil". Any control character disqualifies a path.
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def safe_return_to(path: str | None) -> str:
    """Return ``path`` if it is a same-site absolute path, else ``"/"``.

    Args:
        path: Requested return path.

    Returns:
        str: The path unchanged, or "/".
    """
    if not path or not isinstance(path, str):
        return "/"
    if not path.startswith("/"):
        return "/"
    if path.startswith("//") or path.startswith("/\\"):
        return "/"
    if _CONTROL_CHARS.search(path):
        return "/"
    return path


def _encode(value: str) -> str:
    return quote(value, safe="")


def to_login(return_to: str | None = None) -> str:
    """Login page URL carrying the sanitized return path."""
    return f"/auth/login?callbackURL={_encode(safe_return_to(return_to))}"


def to_check_email(email: str, return_to: str | None = None) -> str:
    """Email verification page URL."""
    rt = safe_return_to(return_to)
    return f"/auth/check-email?email={_encode(email)}&returnTo={_encode(rt)}"


def to_onboarding(workspace_id: str | None, return_to: str | None = None) -> str:
    """Onboarding page URL, optionally pinned to a workspace."""
    rt = safe_return_to(return_to)
    if workspace_id:
        return f"/onboarding?workspaceId={_encode(workspace_id)}&returnTo={_encode(rt)}"
    return f"/onboarding?returnTo={_encode(rt)}"
