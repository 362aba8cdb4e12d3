"""
Login sessions with a sliding inactivity timeout.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from core.db.base import get_conn

SESSION_TIMEOUT_MINUTES = 30


def _window() -> Tuple[str, str]:
    now = datetime.utcnow()
    expires = now + timedelta(minutes=SESSION_TIMEOUT_MINUTES)
    return now.isoformat(timespec="seconds"), expires.isoformat(timespec="seconds")


def create_session(user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    now, expires = _window()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO sessions (id, user_id, created_at, last_seen_at, expires_at) VALUES (?, ?, ?, ?, ?)",
        (token, user_id, now, now, expires),
    )
    conn.commit()
    conn.close()
    return token


def delete_session(session_id: str) -> None:
    if not session_id:
        return
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    conn.commit()
    conn.close()


def get_session(session_id: str) -> Optional[Dict]:
    """Live session row or None; an expired session is deleted on sight."""
    if not session_id:
        return None
    now, _ = _window()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE id = ? AND expires_at <= ?", (session_id, now))
    cur.execute(
        "SELECT id, user_id, created_at, last_seen_at, expires_at FROM sessions WHERE id = ?",
        (session_id,),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row) if row else None


def touch_session(session_id: str) -> None:
    if not session_id:
        return
    now, expires = _window()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE sessions SET last_seen_at = ?, expires_at = ? WHERE id = ?", (now, expires, session_id))
    conn.commit()
    conn.close()


__all__ = [
    "SESSION_TIMEOUT_MINUTES",
    "create_session",
    "delete_session",
    "get_session",
    "touch_session",
]
