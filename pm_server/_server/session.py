from __future__ import annotations

import os


SESSION_COOKIE = "pm_session"
SESSION_TTL_SECONDS = 7 * 24 * 60 * 60


def build_session_cookie(token: str, *, expires_immediately: bool = False, secure: bool | None = None) -> str:
    parts = [f"{SESSION_COOKIE}={token}", "Path=/", "HttpOnly", "SameSite=Lax"]
    if secure is None:
        secure = os.environ.get("PM_COOKIE_SECURE") == "1"
    if secure:
        parts.append("Secure")
    if expires_immediately:
        parts.append("Max-Age=0")
    return "; ".join(parts)
