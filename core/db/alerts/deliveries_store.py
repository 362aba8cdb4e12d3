"""
Shift alert delivery history.

One row per (user, shift) pair that the alert worker matched, so a shift is
never announced twice to the same employee and failures stay visible.
"""
from __future__ import annotations

from typing import Dict, Iterable, List

from core.db.base import get_conn, utcnow_iso


def create_shift_alert_deliveries(*, user_id: int, shift_ids: Iterable[int]) -> List[int]:
    """
    Insert queued delivery rows for (user_id, shift_id) if missing.

    Returns the shift ids that were newly inserted.
    """
    shift_ids_list = [int(s) for s in shift_ids if s is not None]
    if not shift_ids_list:
        return []

    now = utcnow_iso()
    inserted: List[int] = []

    conn = get_conn()
    cur = conn.cursor()
    for shift_id in shift_ids_list:
        cur.execute(
            """
            INSERT INTO shift_alert_deliveries (user_id, shift_id, status, created_at, sent_at, error)
            VALUES (?, ?, 'queued', ?, NULL, NULL)
            ON CONFLICT (user_id, shift_id) DO NOTHING
            """,
            (user_id, shift_id, now),
        )
        if cur.rowcount:
            inserted.append(shift_id)

    conn.commit()
    conn.close()
    return inserted


def mark_shift_alerts_sent(*, user_id: int, shift_ids: Iterable[int]) -> None:
    shift_ids_list = [int(s) for s in shift_ids if s is not None]
    if not shift_ids_list:
        return

    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.executemany(
        """
        UPDATE shift_alert_deliveries
        SET status='sent', sent_at=?, error=NULL
        WHERE user_id=? AND shift_id=?
        """,
        [(now, user_id, shift_id) for shift_id in shift_ids_list],
    )
    conn.commit()
    conn.close()


def mark_shift_alerts_failed(*, user_id: int, shift_ids: Iterable[int], error: str) -> None:
    shift_ids_list = [int(s) for s in shift_ids if s is not None]
    if not shift_ids_list:
        return

    message = f"{error}".strip()[:500]
    conn = get_conn()
    cur = conn.cursor()
    cur.executemany(
        """
        UPDATE shift_alert_deliveries
        SET status='failed', sent_at=NULL, error=?
        WHERE user_id=? AND shift_id=?
        """,
        [(message, user_id, shift_id) for shift_id in shift_ids_list],
    )
    conn.commit()
    conn.close()


def get_shift_alert_deliveries_for_user(*, user_id: int, limit: int = 200) -> List[Dict]:
    """Delivery history joined with shift fields, newest first."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
          d.id AS delivery_id,
          d.status,
          d.created_at AS delivery_created_at,
          d.sent_at,
          d.error,
          s.id AS shift_id,
          s.title,
          s.date,
          s.start_time,
          s.end_time,
          s.location,
          s.status AS shift_status
        FROM shift_alert_deliveries d
        JOIN shift_needs s ON s.id = d.shift_id
        WHERE d.user_id = ?
        ORDER BY d.created_at DESC, d.id DESC
        LIMIT ?
        """,
        (user_id, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_alert_recipients(roles: Iterable[str]) -> List[Dict]:
    """
    Employees eligible for shift alerts: active, verified email and license, notifications on.
    """
    roles = list(roles)
    if not roles:
        return []
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT u.id, u.email, u.role, p.full_name, p.notification_cities, p.city
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.active = 1
          AND u.email_verified_at IS NOT NULL AND u.email_verified_at != ''
          AND COALESCE(p.email_notifications, 1) = 1
          AND COALESCE(p.license_verified, 0) = 1
          AND u.role IN ({", ".join("?" for _ in roles)})
        ORDER BY u.id
        """,
        roles,
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "create_shift_alert_deliveries",
    "mark_shift_alerts_sent",
    "mark_shift_alerts_failed",
    "get_shift_alert_deliveries_for_user",
    "list_alert_recipients",
]
