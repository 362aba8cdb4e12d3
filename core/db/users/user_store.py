"""
User CRUD and activation/deactivation helpers.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, utcnow_iso
from core.db.users.auth import hash_password

_USER_COLUMNS = "id, email, password_hash, role, active, created_at, email_verified_at"


def create_user(
    email: str,
    raw_password: str,
    role: str = "pharmacist",
    verified: bool = True,
    full_name: str | None = None,
    pharmacy_name: str | None = None,
) -> int:
    """Insert a user and an empty profile row. Returns the new user id."""
    conn = get_conn()
    cur = conn.cursor()
    now = utcnow_iso()

    password_hash = hash_password(raw_password)
    email_verified_at = now if verified else None

    cur.execute(
        """
        INSERT INTO users (email, password_hash, role, created_at, email_verified_at)
        VALUES (?, ?, ?, ?, ?)
        RETURNING id
        """,
        (email.strip().lower(), password_hash, role, now, email_verified_at),
    )
    row = cur.fetchone()
    user_id = int(row["id"]) if row else 0

    if user_id:
        cur.execute(
            """
            INSERT INTO profiles (user_id, full_name, pharmacy_name, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (user_id) DO NOTHING
            """,
            (user_id, (full_name or "").strip() or None, (pharmacy_name or "").strip() or None, now),
        )

    conn.commit()
    conn.close()
    return user_id


def get_user_by_email(email: str) -> Dict | None:
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?",
        (email.strip().lower(),),
    )
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def get_user_by_id(user_id: int) -> Optional[Dict]:
    """Look up a user by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def update_user_password(user_id: int, raw_password: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET password_hash=? WHERE id=?",
        (hash_password(raw_password), user_id),
    )
    conn.commit()
    conn.close()


def deactivate_user(user_id: int) -> None:
    """Deactivate a user and end their live sessions."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=0 WHERE id=?", (user_id,))
    cur.execute("DELETE FROM sessions WHERE user_id=?", (user_id,))
    conn.commit()
    conn.close()


def reactivate_user(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=1 WHERE id=?", (user_id,))
    conn.commit()
    conn.close()


def list_users(role: str | None = None, search: str | None = None, limit: int = 500) -> List[Dict]:
    """Users joined with their profile, newest first (admin listing)."""
    sql = """
        SELECT u.id, u.email, u.role, u.active, u.created_at, u.email_verified_at,
               p.full_name, p.pharmacy_name, p.city, p.license_verified
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE 1=1
    """
    params: list = []
    if role:
        sql += " AND u.role = ?"
        params.append(role)
    if search:
        like = f"%{search.strip().lower()}%"
        sql += " AND (lower(u.email) LIKE ? OR lower(COALESCE(p.full_name, '')) LIKE ? OR lower(COALESCE(p.pharmacy_name, '')) LIKE ?)"
        params.extend([like, like, like])
    sql += " ORDER BY u.created_at DESC, u.id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def delete_user_data(user_id: int) -> List[Dict]:
    """
    Remove a user and everything hanging off the account.

    Upcoming shifts and postings the user was filling go back to open
    (shifts as urgent) and are returned so their employers can be told.
    Past ones only lose the assignee.

    Employers also lose their shifts, postings and schedules (and, through
    them, every application and alert pointing at those rows).
    """
    conn = get_conn()
    cur = conn.cursor()

    cur.execute("SELECT role FROM users WHERE id=?", (user_id,))
    row = cur.fetchone()
    if not row:
        conn.close()
        return []

    now = utcnow_iso()
    today = now[:10]
    cur.execute(
        """
        UPDATE shift_needs
        SET status='open', assigned_to=NULL, is_urgent=1, updated_at=?
        WHERE assigned_to=? AND status='filled' AND date >= ?
        RETURNING id, employer_id, title, date
        """,
        (now, user_id, today),
    )
    reopened = [{"kind": "shift", **dict(r)} for r in cur.fetchall()]
    cur.execute(
        """
        UPDATE job_postings
        SET status='open', assigned_to=NULL, updated_at=?
        WHERE assigned_to=? AND status='filled' AND period_end_date >= ?
        RETURNING id, employer_id, title, period_start_date AS date
        """,
        (now, user_id, today),
    )
    reopened += [{"kind": "posting", **dict(r)} for r in cur.fetchall()]

    cur.execute("DELETE FROM shift_alert_deliveries WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM email_deliveries WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM notifications WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM shift_applications WHERE applicant_id=?", (user_id,))
    cur.execute("DELETE FROM job_posting_applications WHERE applicant_id=?", (user_id,))
    cur.execute(
        "DELETE FROM employer_employee_relationships WHERE employer_id=? OR employee_id=?",
        (user_id, user_id),
    )
    cur.execute("UPDATE shift_needs SET assigned_to=NULL WHERE assigned_to=?", (user_id,))
    cur.execute("UPDATE job_postings SET assigned_to=NULL WHERE assigned_to=?", (user_id,))

    if row["role"] == "employer":
        cur.execute("DELETE FROM schedules WHERE employer_id=?", (user_id,))
        cur.execute("DELETE FROM employer_manual_staff WHERE employer_id=?", (user_id,))
        cur.execute("DELETE FROM shift_needs WHERE employer_id=?", (user_id,))
        cur.execute("DELETE FROM job_postings WHERE employer_id=?", (user_id,))

    cur.execute("DELETE FROM password_reset_tokens WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM email_verification_tokens WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM sessions WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM profiles WHERE user_id=?", (user_id,))
    cur.execute("DELETE FROM users WHERE id=?", (user_id,))

    conn.commit()
    conn.close()
    return reopened


__all__ = [
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "update_user_password",
    "deactivate_user",
    "reactivate_user",
    "list_users",
    "delete_user_data",
]
