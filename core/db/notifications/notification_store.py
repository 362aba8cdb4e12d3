"""
In-app notifications and the outgoing email delivery log.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from core.db.base import get_conn, utcnow_iso


def create_notification(
    user_id: int,
    title: str,
    message: str,
    *,
    type: str = "general",
    link: str | None = None,
) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO notifications (user_id, type, title, message, link, is_read, created_at)
        VALUES (?, ?, ?, ?, ?, 0, ?)
        RETURNING id
        """,
        (user_id, type, title, message, link, utcnow_iso()),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def list_unread_notifications(user_id: int, limit: int = 50) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, type, title, message, link, is_read, created_at
        FROM notifications
        WHERE user_id = ? AND is_read = 0
        ORDER BY created_at DESC, id DESC
        LIMIT ?
        """,
        (user_id, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_recent_notifications(user_id: int, limit: int = 50) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, type, title, message, link, is_read, created_at
        FROM notifications
        WHERE user_id = ?
        ORDER BY created_at DESC, id DESC
        LIMIT ?
        """,
        (user_id, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_unread_notifications(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS n FROM notifications WHERE user_id = ? AND is_read = 0", (user_id,))
    row = cur.fetchone()
    conn.close()
    return int(row["n"]) if row else 0


def mark_notification_read(user_id: int, notification_id: int) -> bool:
    """Only the owner can mark a notification read."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
        (notification_id, user_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def mark_all_notifications_read(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0", (user_id,))
    count = cur.rowcount
    conn.commit()
    conn.close()
    return int(count or 0)


def list_group_recipients(roles: Iterable[str]) -> List[Dict]:
    """Active users with one of `roles`, with their notification preferences."""
    roles = list(roles)
    if not roles:
        return []
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT u.id, u.email, u.role, p.full_name,
               COALESCE(p.email_notifications, 1) AS email_notifications
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.active = 1 AND u.role IN ({", ".join("?" for _ in roles)})
        ORDER BY u.id
        """,
        roles,
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


# --- email delivery log ---------------------------------------------------


def record_email_delivery(
    *,
    to_email: str,
    kind: str,
    subject: str | None,
    user_id: int | None = None,
    status: str = "queued",
    error: str | None = None,
) -> int:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO email_deliveries (user_id, to_email, kind, subject, status, error, created_at, sent_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            user_id,
            to_email,
            kind,
            subject,
            status,
            (error or "").strip()[:500] or None,
            now,
            now if status == "sent" else None,
        ),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def list_email_deliveries(user_id: Optional[int] = None, limit: int = 200) -> List[Dict]:
    sql = """
        SELECT id, user_id, to_email, kind, subject, status, error, created_at, sent_at
        FROM email_deliveries
    """
    params: list = []
    if user_id is not None:
        sql += " WHERE user_id = ?"
        params.append(user_id)
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "create_notification",
    "list_unread_notifications",
    "list_recent_notifications",
    "count_unread_notifications",
    "mark_notification_read",
    "mark_all_notifications_read",
    "list_group_recipients",
    "record_email_delivery",
    "list_email_deliveries",
]
