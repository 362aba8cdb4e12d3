"""
Single-use, expiring tokens mailed to users (password reset, email verification).

Both token tables share the same columns; `TokenTable` binds the queries to
one of them. Timestamps are ISO strings in UTC, so expiry is a plain string
comparison in SQL.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import get_conn, utcnow_iso


class TokenTable:
    def __init__(self, table: str, lifetime: timedelta):
        self.table = table
        self.lifetime = lifetime

    def issue(self, user_id: int) -> str:
        """New token for `user_id`; earlier unused tokens stop working."""
        token = secrets.token_urlsafe(32)
        now = datetime.utcnow()
        conn = get_conn()
        cur = conn.cursor()
        cur.execute(f"DELETE FROM {self.table} WHERE user_id = ? AND used_at IS NULL", (user_id,))
        cur.execute(
            f"INSERT INTO {self.table} (user_id, token, created_at, expires_at) VALUES (?, ?, ?, ?)",
            (
                user_id,
                token,
                now.isoformat(timespec="seconds"),
                (now + self.lifetime).isoformat(timespec="seconds"),
            ),
        )
        conn.commit()
        conn.close()
        return token

    def lookup(self, token: str) -> Optional[Dict]:
        """The live token row, or None. A used or expired row is purged."""
        if not token:
            return None
        conn = get_conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT id, user_id, token, created_at, expires_at, used_at
            FROM {self.table}
            WHERE token = ? AND used_at IS NULL AND expires_at > ?
            """,
            (token, utcnow_iso()),
        )
        row = cur.fetchone()
        if not row:
            cur.execute(f"DELETE FROM {self.table} WHERE token = ?", (token,))
            conn.commit()
        conn.close()
        return dict(row) if row else None

    def consume(self, token: str) -> None:
        """Mark `token` used and drop any other token of the same user."""
        if not token:
            return
        conn = get_conn()
        cur = conn.cursor()
        cur.execute(
            f"UPDATE {self.table} SET used_at = ? WHERE token = ? AND used_at IS NULL RETURNING user_id",
            (utcnow_iso(), token),
        )
        row = cur.fetchone()
        if row:
            cur.execute(f"DELETE FROM {self.table} WHERE user_id = ? AND token <> ?", (row["user_id"], token))
        conn.commit()
        conn.close()


__all__ = ["TokenTable"]
