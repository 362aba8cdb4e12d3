"""
Password reset links. One live token per user, valid for an hour.

Accounts an employer creates on someone's behalf get the same kind of link
as their activation link, with a longer lifetime.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional

from core.db.users.tokens import TokenTable

RESET_TOKEN_MINUTES = 60
ACTIVATION_TOKEN_HOURS = 72

_reset_tokens = TokenTable("password_reset_tokens", timedelta(minutes=RESET_TOKEN_MINUTES))
_activation_tokens = TokenTable("password_reset_tokens", timedelta(hours=ACTIVATION_TOKEN_HOURS))


def create_password_reset_token(user_id: int) -> str:
    return _reset_tokens.issue(user_id)


def create_activation_token(user_id: int) -> str:
    return _activation_tokens.issue(user_id)


def get_password_reset_token(token: str) -> Optional[Dict]:
    return _reset_tokens.lookup(token)


def mark_reset_token_used(token: str) -> None:
    _reset_tokens.consume(token)


__all__ = [
    "RESET_TOKEN_MINUTES",
    "ACTIVATION_TOKEN_HOURS",
    "create_password_reset_token",
    "create_activation_token",
    "get_password_reset_token",
    "mark_reset_token_used",
]
