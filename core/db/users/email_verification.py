"""
Email verification links and the users.email_verified_at flag.

Signing up, logging in unverified and the resend form all issue a fresh
link; only the newest one in the inbox works.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional

from core.db.base import get_conn, utcnow_iso
from core.db.users.tokens import TokenTable

VERIFY_TOKEN_HOURS = 24

_verify_tokens = TokenTable("email_verification_tokens", timedelta(hours=VERIFY_TOKEN_HOURS))


def create_email_verification_token(user_id: int) -> str:
    return _verify_tokens.issue(user_id)


def get_email_verification_token(token: str) -> Optional[Dict]:
    return _verify_tokens.lookup(token)


def mark_email_verification_token_used(token: str) -> None:
    _verify_tokens.consume(token)


def mark_user_email_verified(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET email_verified_at = ? WHERE id = ? AND COALESCE(email_verified_at, '') = ''",
        (utcnow_iso(), user_id),
    )
    conn.commit()
    conn.close()


__all__ = [
    "VERIFY_TOKEN_HOURS",
    "create_email_verification_token",
    "get_email_verification_token",
    "mark_email_verification_token_used",
    "mark_user_email_verified",
]
