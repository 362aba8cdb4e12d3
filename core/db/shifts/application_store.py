"""
Shift applications: apply / withdraw / accept / reject and the sick-report flow.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, utcnow_iso

APPLICATION_STATUSES = ("pending", "accepted", "rejected", "withdrawn")


def get_application(application_id: int) -> Optional[Dict]:
    """Application joined with the fields of its shift needed for permission checks."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.shift_id, a.applicant_id, a.status, a.notes, a.created_at, a.updated_at,
               s.employer_id, s.title AS shift_title, s.date AS shift_date,
               s.start_time, s.end_time, s.status AS shift_status
        FROM shift_applications a
        JOIN shift_needs s ON s.id = a.shift_id
        WHERE a.id = ?
        """,
        (application_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def find_active_application(shift_id: int, applicant_id: int) -> Optional[Dict]:
    """The applicant's pending or accepted application for a shift, if any."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, shift_id, applicant_id, status
        FROM shift_applications
        WHERE shift_id = ? AND applicant_id = ? AND status IN ('pending', 'accepted')
        ORDER BY id DESC
        LIMIT 1
        """,
        (shift_id, applicant_id),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def has_applied(shift_id: int, applicant_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT 1 FROM shift_applications WHERE shift_id = ? AND applicant_id = ? LIMIT 1",
        (shift_id, applicant_id),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


def create_application(shift_id: int, applicant_id: int, notes: str | None = None) -> int:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO shift_applications (shift_id, applicant_id, status, notes, created_at, updated_at)
        VALUES (?, ?, 'pending', ?, ?, ?)
        RETURNING id
        """,
        (shift_id, applicant_id, notes, now, now),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def set_application_status(application_id: int, status: str, *, only_if: str | None = None) -> bool:
    """Move an application to `status`; with `only_if`, only from that current status."""
    if status not in APPLICATION_STATUSES:
        raise ValueError(f"unknown application status: {status}")
    sql = "UPDATE shift_applications SET status = ?, updated_at = ? WHERE id = ?"
    params: list = [status, utcnow_iso(), application_id]
    if only_if:
        sql += " AND status = ?"
        params.append(only_if)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def accept_application_tx(application_id: int) -> Optional[List[int]]:
    """
    Accept one pending application in a single transaction.

    The shift becomes `filled` and assigned to the applicant, every other
    pending application for it is rejected. Returns the rejected applicant
    ids, or None when the shift was no longer open or the application no
    longer pending (nothing is changed then).
    """
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            SELECT a.shift_id, a.applicant_id
            FROM shift_applications a
            JOIN shift_needs s ON s.id = a.shift_id
            WHERE a.id = ? AND a.status = 'pending' AND s.status = 'open'
            FOR UPDATE
            """,
            (application_id,),
        )
        row = cur.fetchone()
        if not row:
            conn.rollback()
            return None

        shift_id, applicant_id = row["shift_id"], row["applicant_id"]
        cur.execute(
            "UPDATE shift_applications SET status = 'accepted', updated_at = ? WHERE id = ?",
            (now, application_id),
        )
        cur.execute(
            "UPDATE shift_needs SET status = 'filled', assigned_to = ?, updated_at = ? WHERE id = ?",
            (applicant_id, now, shift_id),
        )
        cur.execute(
            """
            UPDATE shift_applications SET status = 'rejected', updated_at = ?
            WHERE shift_id = ? AND id != ? AND status = 'pending'
            RETURNING applicant_id
            """,
            (now, shift_id, application_id),
        )
        rejected = [int(r["applicant_id"]) for r in cur.fetchall()]
        conn.commit()
        return rejected
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def release_assignment_tx(shift_id: int, user_id: int) -> bool:
    """
    Sick report: withdraw the assignee's accepted application and reopen the
    shift as urgent with no assignee. False when `user_id` is not the
    assignee of a filled shift.
    """
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            UPDATE shift_needs
            SET status = 'open', assigned_to = NULL, is_urgent = 1, updated_at = ?
            WHERE id = ? AND assigned_to = ? AND status = 'filled'
            """,
            (now, shift_id, user_id),
        )
        if cur.rowcount == 0:
            conn.rollback()
            return False
        cur.execute(
            """
            UPDATE shift_applications SET status = 'withdrawn', updated_at = ?
            WHERE shift_id = ? AND applicant_id = ? AND status = 'accepted'
            """,
            (now, shift_id, user_id),
        )
        conn.commit()
        return True
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def list_shift_applications(shift_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.applicant_id, a.status, a.notes, a.created_at,
               u.email AS applicant_email, u.role AS applicant_role,
               p.full_name AS applicant_name, p.experience, COALESCE(p.license_verified, 0) AS license_verified
        FROM shift_applications a
        JOIN users u ON u.id = a.applicant_id
        LEFT JOIN profiles p ON p.user_id = a.applicant_id
        WHERE a.shift_id = ?
        ORDER BY a.created_at ASC, a.id ASC
        """,
        (shift_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_pending_application_details(employer_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.shift_id, a.applicant_id, a.notes, a.created_at,
               s.title AS shift_title, s.date AS shift_date, s.start_time, s.end_time,
               u.email AS applicant_email, u.role AS applicant_role,
               p.full_name AS applicant_name
        FROM shift_applications a
        JOIN shift_needs s ON s.id = a.shift_id
        JOIN users u ON u.id = a.applicant_id
        LEFT JOIN profiles p ON p.user_id = a.applicant_id
        WHERE s.employer_id = ? AND a.status = 'pending'
        ORDER BY s.date ASC, a.created_at ASC
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_pending_applications(employer_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS n
        FROM shift_applications a JOIN shift_needs s ON s.id = a.shift_id
        WHERE s.employer_id = ? AND a.status = 'pending'
        """,
        (employer_id,),
    )
    row = cur.fetchone()
    conn.close()
    return int(row["n"]) if row else 0


def list_my_applications(applicant_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.shift_id, a.status, a.notes, a.created_at,
               s.title AS shift_title, s.date AS shift_date, s.start_time, s.end_time,
               s.location, s.status AS shift_status, s.assigned_to,
               COALESCE(NULLIF(p.pharmacy_name, ''), NULLIF(p.full_name, ''), 'Okänd arbetsgivare') AS employer_name
        FROM shift_applications a
        JOIN shift_needs s ON s.id = a.shift_id
        LEFT JOIN profiles p ON p.user_id = s.employer_id
        WHERE a.applicant_id = ?
        ORDER BY s.date DESC, a.created_at DESC
        """,
        (applicant_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "APPLICATION_STATUSES",
    "get_application",
    "find_active_application",
    "has_applied",
    "create_application",
    "set_application_status",
    "accept_application_tx",
    "release_assignment_tx",
    "list_shift_applications",
    "list_pending_application_details",
    "count_pending_applications",
    "list_my_applications",
]
