"""
Employer-employee relationships (invitations and active staff links).
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn, utcnow_iso

RELATIONSHIP_STATUSES = ("pending", "active", "declined", "ended")


def find_live_relationship(employer_id: int, *, employee_id: int | None = None, email: str | None = None) -> Optional[Dict]:
    """A pending or active relationship for the pair, matched by user id or invitee email."""
    if employee_id is None and not email:
        return None
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, employer_id, employee_id, invitee_email, relationship_type, status
        FROM employer_employee_relationships
        WHERE employer_id = ?
          AND status IN ('pending', 'active')
          AND (employee_id = ? OR lower(invitee_email) = lower(?))
        ORDER BY id DESC LIMIT 1
        """,
        (employer_id, employee_id, (email or "").strip()),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def create_relationship(
    employer_id: int,
    invitee_email: str,
    relationship_type: str,
    employee_id: int | None = None,
) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO employer_employee_relationships
          (employer_id, employee_id, invitee_email, relationship_type, status, created_at)
        VALUES (?, ?, ?, ?, 'pending', ?)
        RETURNING id
        """,
        (employer_id, employee_id, invitee_email.strip().lower(), relationship_type, utcnow_iso()),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def link_pending_invitations(user_id: int, email: str) -> int:
    """Bind email-only pending invitations to a freshly verified account."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE employer_employee_relationships
        SET employee_id = ?
        WHERE employee_id IS NULL AND status = 'pending' AND lower(invitee_email) = lower(?)
        """,
        (user_id, email.strip()),
    )
    count = cur.rowcount
    conn.commit()
    conn.close()
    return int(count or 0)


def get_relationship(relationship_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, employer_id, employee_id, invitee_email, relationship_type, status,
               created_at, responded_at
        FROM employer_employee_relationships
        WHERE id = ?
        """,
        (relationship_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def set_relationship_status(relationship_id: int, status: str, *, only_if: str | None = None) -> bool:
    if status not in RELATIONSHIP_STATUSES:
        raise ValueError(f"unknown relationship status: {status}")
    sql = "UPDATE employer_employee_relationships SET status = ?, responded_at = ? WHERE id = ?"
    params: list = [status, utcnow_iso(), relationship_id]
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


def list_pending_invitations(employee_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT r.id, r.employer_id, r.relationship_type, r.created_at,
               COALESCE(NULLIF(p.pharmacy_name, ''), NULLIF(p.full_name, ''), 'Okänd arbetsgivare') AS employer_name,
               p.city AS employer_city
        FROM employer_employee_relationships r
        LEFT JOIN profiles p ON p.user_id = r.employer_id
        WHERE r.employee_id = ? AND r.status = 'pending'
        ORDER BY r.created_at DESC
        """,
        (employee_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_my_employees(employer_id: int, statuses: tuple = ("pending", "active")) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT r.id, r.employee_id, r.invitee_email, r.relationship_type, r.status,
               r.created_at, r.responded_at,
               u.role, p.full_name, p.phone, p.city
        FROM employer_employee_relationships r
        LEFT JOIN users u ON u.id = r.employee_id
        LEFT JOIN profiles p ON p.user_id = r.employee_id
        WHERE r.employer_id = ? AND r.status IN ({", ".join("?" for _ in statuses)})
        ORDER BY r.status ASC, COALESCE(p.full_name, r.invitee_email)
        """,
        [employer_id] + list(statuses),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "RELATIONSHIP_STATUSES",
    "find_live_relationship",
    "create_relationship",
    "link_pending_invitations",
    "get_relationship",
    "set_relationship_status",
    "list_pending_invitations",
    "list_my_employees",
]
