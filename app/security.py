"""
Double-submit CSRF tokens and per-process rate limiting for form posts.
"""
from __future__ import annotations

import hmac
import html
import os
import secrets
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

CSRF_COOKIE_NAME = "csrf_token"
# Cookies get the Secure flag when forced or when the site is served over https.
SECURE_COOKIES = os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes") or os.getenv(
    "PUBLIC_BASE_URL", ""
).lower().startswith("https://")


def issue_csrf_token(existing: str | None = None) -> str:
    """Keep the visitor's current token so open tabs stay valid; mint one otherwise."""
    return existing or secrets.token_urlsafe(16)


def attach_csrf_cookie(response, token: str) -> None:
    # Readable by the page; the form echoes it back in a hidden field.
    response.set_cookie(CSRF_COOKIE_NAME, token, httponly=False, samesite="lax", secure=SECURE_COOKIES)


def csrf_input(token: str) -> str:
    return f'<input type="hidden" name="csrf_token" value="{html.escape(token or "", quote=True)}" />'


def validate_csrf(request, form_token: str | None) -> bool:
    """True when the posted token matches the csrf cookie."""
    expected = request.cookies.get(CSRF_COOKIE_NAME) or ""
    return bool(expected and form_token) and hmac.compare_digest(expected, form_token)


def client_ip(request) -> str:
    client = getattr(request, "client", None)
    return client.host if client else "unknown"


# In-process sliding windows keyed by "<action>:<ip>"; each holds request times.
_windows: Dict[str, Deque[float]] = defaultdict(deque)


def allow_request_with_remaining(key: str, limit: int = 5, window_seconds: int = 60) -> Tuple[bool, int]:
    """Record one attempt under `key`. Returns (allowed, attempts left in the window)."""
    now = time.monotonic()
    window = _windows[key]
    while window and window[0] <= now - window_seconds:
        window.popleft()
    if len(window) >= limit:
        return False, 0
    window.append(now)
    return True, limit - len(window)


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    return allow_request_with_remaining(key, limit, window_seconds)[0]


def reset_rate_limits() -> None:
    _windows.clear()


__all__ = [
    "CSRF_COOKIE_NAME",
    "SECURE_COOKIES",
    "issue_csrf_token",
    "attach_csrf_cookie",
    "csrf_input",
    "validate_csrf",
    "client_ip",
    "allow_request",
    "allow_request_with_remaining",
    "reset_rate_limits",
]
