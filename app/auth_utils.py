"""
Session cookie handling, current-user lookup and role guards.
"""
from __future__ import annotations

from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.security import SECURE_COOKIES
from core.database import SESSION_TIMEOUT_MINUTES, delete_session, get_session, get_user_by_id, touch_session

SESSION_COOKIE_NAME = "session_id"


def _session_user(token: str) -> Optional[dict]:
    session = get_session(token)
    if not session:
        return None
    user = get_user_by_id(session["user_id"])
    # Unverified or deleted accounts cannot hold a session
    if not user or user.get("email_verified_at") in (None, ""):
        delete_session(token)
        return None
    touch_session(token)
    return user


def get_current_user(request: Request):
    """
    (user, session token) for the request's session cookie.

    The token is returned even when it no longer maps to a user so logout
    can still clear it; (None, None) means there was no cookie at all.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None, None
    return _session_user(token), token


def require_user(request: Request, *roles: str) -> Tuple[Optional[dict], Optional[Response]]:
    """
    Return (user, None) when signed in with one of `roles` (any role when none given).

    Otherwise (None, response): a 303 to /login for anonymous visitors,
    a 403 for the wrong role.
    """
    user, _ = get_current_user(request)
    if not user:
        return None, RedirectResponse(url="/login", status_code=303)
    if roles and user.get("role") not in roles:
        return None, HTMLResponse("Forbidden", status_code=403)
    return user, None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_TIMEOUT_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
