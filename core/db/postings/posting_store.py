"""
Job postings (multi-week assignments) and their applications.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from core.db.base import get_conn, utcnow_iso

POSTING_STATUSES = ("open", "filled", "cancelled", "completed")

UNKNOWN_POSTING_EMPLOYER = "Unknown Employer"

POSTING_FIELDS = (
    "title",
    "description",
    "required_role",
    "required_experience",
    "location",
    "period_start_date",
    "period_end_date",
    "estimated_hours",
    "salary_description",
    "hourly_rate",
)

_POSTING_SELECT = f"""
    SELECT j.id, j.employer_id, j.title, j.description, j.required_role, j.required_experience,
           j.location, j.period_start_date, j.period_end_date, j.estimated_hours,
           j.salary_description, j.hourly_rate, j.status, j.assigned_to, j.created_at, j.updated_at,
           COALESCE(NULLIF(p.pharmacy_name, ''), NULLIF(p.full_name, ''), '{UNKNOWN_POSTING_EMPLOYER}') AS employer_name,
           p.city AS employer_city
    FROM job_postings j
    LEFT JOIN profiles p ON p.user_id = j.employer_id
"""


def create_posting(employer_id: int, data: Dict) -> int:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO job_postings (employer_id, {", ".join(POSTING_FIELDS)}, status, created_at, updated_at)
        VALUES (?, {", ".join("?" for _ in POSTING_FIELDS)}, 'open', ?, ?)
        RETURNING id
        """,
        [employer_id] + [data.get(f) for f in POSTING_FIELDS] + [now, now],
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def get_posting(posting_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(_POSTING_SELECT + " WHERE j.id = ?", (posting_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def update_posting(posting_id: int, fields: Dict) -> bool:
    """Update only the provided (non-None) fields."""
    assignments = ", ".join(f"{name} = COALESCE(?, {name})" for name in POSTING_FIELDS)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE job_postings SET {assignments}, updated_at = ? WHERE id = ?",
        [fields.get(f) for f in POSTING_FIELDS] + [utcnow_iso(), posting_id],
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def delete_posting(posting_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM job_postings WHERE id = ?", (posting_id,))
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def update_posting_status(posting_id: int, status: str) -> bool:
    if status not in POSTING_STATUSES:
        raise ValueError(f"unknown posting status: {status}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE job_postings SET status = ?, updated_at = ? WHERE id = ?",
        (status, utcnow_iso(), posting_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def list_available_postings(
    roles: Iterable[str],
    today: str,
    *,
    location: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> List[Dict]:
    """Open postings that have not ended, restricted to `roles`."""
    roles = list(roles)
    if not roles:
        return []
    sql = _POSTING_SELECT + f"""
        WHERE j.status = 'open' AND j.period_end_date >= ?
          AND j.required_role IN ({", ".join("?" for _ in roles)})
    """
    params: list = [today] + roles
    if location:
        sql += " AND lower(COALESCE(j.location, '')) LIKE ?"
        params.append(f"%{location.strip().lower()}%")
    if date_from:
        sql += " AND j.period_end_date >= ?"
        params.append(date_from)
    if date_to:
        sql += " AND j.period_start_date <= ?"
        params.append(date_to)
    sql += " ORDER BY j.period_start_date ASC, j.id ASC"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_employer_postings(employer_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*,
               (SELECT COUNT(*) FROM job_posting_applications a
                WHERE a.job_posting_id = j.id AND a.status = 'pending') AS pending_count
        FROM job_postings j
        WHERE j.employer_id = ?
        ORDER BY j.period_start_date DESC, j.id DESC
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_all_postings_admin(
    *,
    status: str | None = None,
    role: str | None = None,
    employer_id: int | None = None,
    search: str | None = None,
) -> List[Dict]:
    sql = _POSTING_SELECT + " WHERE 1=1"
    params: list = []
    if status:
        sql += " AND j.status = ?"
        params.append(status)
    if role:
        sql += " AND j.required_role = ?"
        params.append(role)
    if employer_id:
        sql += " AND j.employer_id = ?"
        params.append(employer_id)
    if search:
        like = f"%{search.strip().lower()}%"
        sql += """
            AND (lower(j.title) LIKE ?
                 OR lower(COALESCE(j.location, '')) LIKE ?
                 OR lower(j.description) LIKE ?
                 OR lower(COALESCE(p.pharmacy_name, p.full_name, '')) LIKE ?)
        """
        params.extend([like, like, like, like])
    sql += " ORDER BY j.created_at DESC, j.id DESC"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


# --- applications ---------------------------------------------------------


def get_posting_application(application_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.job_posting_id, a.applicant_id, a.status, a.notes, a.created_at,
               j.employer_id, j.title AS posting_title, j.status AS posting_status
        FROM job_posting_applications a
        JOIN job_postings j ON j.id = a.job_posting_id
        WHERE a.id = ?
        """,
        (application_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def find_active_posting_application(posting_id: int, applicant_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, status FROM job_posting_applications
        WHERE job_posting_id = ? AND applicant_id = ? AND status IN ('pending', 'accepted')
        ORDER BY id DESC LIMIT 1
        """,
        (posting_id, applicant_id),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def create_posting_application(posting_id: int, applicant_id: int, notes: str | None = None) -> int:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO job_posting_applications (job_posting_id, applicant_id, status, notes, created_at, updated_at)
        VALUES (?, ?, 'pending', ?, ?, ?)
        RETURNING id
        """,
        (posting_id, applicant_id, notes, now, now),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def set_posting_application_status(application_id: int, status: str, *, only_if: str | None = None) -> bool:
    sql = "UPDATE job_posting_applications SET status = ?, updated_at = ? WHERE id = ?"
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


def accept_posting_application_tx(application_id: int) -> Optional[List[int]]:
    """Accept a pending application, fill the posting, reject the rest. None if stale."""
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            SELECT a.job_posting_id, a.applicant_id
            FROM job_posting_applications a
            JOIN job_postings j ON j.id = a.job_posting_id
            WHERE a.id = ? AND a.status = 'pending' AND j.status = 'open'
            FOR UPDATE
            """,
            (application_id,),
        )
        row = cur.fetchone()
        if not row:
            conn.rollback()
            return None
        posting_id, applicant_id = row["job_posting_id"], row["applicant_id"]
        cur.execute(
            "UPDATE job_posting_applications SET status = 'accepted', updated_at = ? WHERE id = ?",
            (now, application_id),
        )
        cur.execute(
            "UPDATE job_postings SET status = 'filled', assigned_to = ?, updated_at = ? WHERE id = ?",
            (applicant_id, now, posting_id),
        )
        cur.execute(
            """
            UPDATE job_posting_applications SET status = 'rejected', updated_at = ?
            WHERE job_posting_id = ? AND id != ? AND status = 'pending'
            RETURNING applicant_id
            """,
            (now, posting_id, application_id),
        )
        rejected = [int(r["applicant_id"]) for r in cur.fetchall()]
        conn.commit()
        return rejected
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def list_posting_applications(posting_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.id, a.applicant_id, a.status, a.notes, a.created_at,
               u.email AS applicant_email, u.role AS applicant_role,
               p.full_name AS applicant_name, p.experience
        FROM job_posting_applications a
        JOIN users u ON u.id = a.applicant_id
        LEFT JOIN profiles p ON p.user_id = a.applicant_id
        WHERE a.job_posting_id = ?
        ORDER BY a.created_at ASC, a.id ASC
        """,
        (posting_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_my_posting_applications(applicant_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT a.id, a.job_posting_id, a.status, a.notes, a.created_at,
               j.title AS posting_title, j.period_start_date, j.period_end_date,
               j.location, j.status AS posting_status,
               COALESCE(NULLIF(p.pharmacy_name, ''), NULLIF(p.full_name, ''), '{UNKNOWN_POSTING_EMPLOYER}') AS employer_name
        FROM job_posting_applications a
        JOIN job_postings j ON j.id = a.job_posting_id
        LEFT JOIN profiles p ON p.user_id = j.employer_id
        WHERE a.applicant_id = ?
        ORDER BY a.created_at DESC
        """,
        (applicant_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_my_applied_posting_ids(applicant_id: int) -> List[int]:
    """Postings with a live (pending or accepted) application from the user."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT DISTINCT job_posting_id FROM job_posting_applications
        WHERE applicant_id = ? AND status IN ('pending', 'accepted')
        """,
        (applicant_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [int(r["job_posting_id"]) for r in rows]


def list_my_accepted_postings(applicant_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        _POSTING_SELECT
        + """
        JOIN job_posting_applications a ON a.job_posting_id = j.id
        WHERE a.applicant_id = ? AND a.status = 'accepted'
        ORDER BY j.period_start_date ASC
        """,
        (applicant_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_pending_posting_applications(employer_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT COUNT(*) AS n
        FROM job_posting_applications a JOIN job_postings j ON j.id = a.job_posting_id
        WHERE j.employer_id = ? AND a.status = 'pending'
        """,
        (employer_id,),
    )
    row = cur.fetchone()
    conn.close()
    return int(row["n"]) if row else 0


__all__ = [
    "POSTING_STATUSES",
    "UNKNOWN_POSTING_EMPLOYER",
    "POSTING_FIELDS",
    "create_posting",
    "get_posting",
    "update_posting",
    "delete_posting",
    "update_posting_status",
    "list_available_postings",
    "list_employer_postings",
    "list_all_postings_admin",
    "get_posting_application",
    "find_active_posting_application",
    "create_posting_application",
    "set_posting_application_status",
    "accept_posting_application_tx",
    "list_posting_applications",
    "list_my_posting_applications",
    "list_my_applied_posting_ids",
    "list_my_accepted_postings",
    "count_pending_posting_applications",
]
