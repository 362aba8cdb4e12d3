"""
Shift needs (single work passes posted by employers).
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from core.db.base import get_conn, utcnow_iso

SHIFT_STATUSES = ("open", "filled", "cancelled", "completed")

UNKNOWN_EMPLOYER = "Okänd arbetsgivare"

# Fields update_shift() may touch. None means "keep the stored value".
UPDATABLE_FIELDS = (
    "title",
    "description",
    "date",
    "start_time",
    "end_time",
    "lunch_minutes",
    "location",
    "required_role",
    "required_experience",
    "hourly_rate",
    "is_urgent",
    "urgent_pay_adjustment",
)

_SHIFT_SELECT = f"""
    SELECT s.id, s.employer_id, s.title, s.description, s.date, s.start_time, s.end_time,
           s.lunch_minutes, s.location, s.required_role, s.required_experience,
           s.hourly_rate, s.is_urgent, s.urgent_pay_adjustment, s.status, s.assigned_to,
           s.created_at, s.updated_at,
           COALESCE(NULLIF(p.pharmacy_name, ''), NULLIF(p.full_name, ''), '{UNKNOWN_EMPLOYER}') AS employer_name,
           p.city AS employer_city
    FROM shift_needs s
    LEFT JOIN profiles p ON p.user_id = s.employer_id
"""


def create_shift_needs(employer_id: int, data: Dict, slots: Sequence[Tuple[str, str, str]]) -> List[int]:
    """Insert one open shift per (date, start_time, end_time) slot. Returns the new ids."""
    now = utcnow_iso()
    ids: List[int] = []

    conn = get_conn()
    cur = conn.cursor()
    for date, start_time, end_time in slots:
        cur.execute(
            """
            INSERT INTO shift_needs
              (employer_id, title, description, date, start_time, end_time, lunch_minutes,
               location, required_role, required_experience, hourly_rate, is_urgent,
               urgent_pay_adjustment, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'open', ?, ?)
            RETURNING id
            """,
            (
                employer_id,
                data["title"],
                data.get("description"),
                date,
                start_time,
                end_time,
                data.get("lunch_minutes"),
                data.get("location"),
                data["required_role"],
                data.get("required_experience"),
                data.get("hourly_rate"),
                1 if data.get("is_urgent") else 0,
                data.get("urgent_pay_adjustment"),
                now,
                now,
            ),
        )
        row = cur.fetchone()
        ids.append(int(row["id"]))
    conn.commit()
    conn.close()
    return ids


def get_shift(shift_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(_SHIFT_SELECT + " WHERE s.id = ?", (shift_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def update_shift(shift_id: int, fields: Dict) -> bool:
    """Update only the provided (non-None) fields."""
    values = [fields.get(name) for name in UPDATABLE_FIELDS]
    if "is_urgent" in fields and fields["is_urgent"] is not None:
        values[UPDATABLE_FIELDS.index("is_urgent")] = 1 if fields["is_urgent"] else 0
    urgent_flag = values[UPDATABLE_FIELDS.index("is_urgent")]
    assignments = []
    for name in UPDATABLE_FIELDS:
        if name == "urgent_pay_adjustment":
            # Clearing urgency also clears its pay adjustment.
            assignments.append(f"{name} = CASE WHEN ? = 0 THEN NULL ELSE COALESCE(?, {name}) END")
        else:
            assignments.append(f"{name} = COALESCE(?, {name})")
    params = []
    for name, value in zip(UPDATABLE_FIELDS, values):
        params += [urgent_flag, value] if name == "urgent_pay_adjustment" else [value]

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE shift_needs SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
        params + [utcnow_iso(), shift_id],
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def delete_shift(shift_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE schedule_shifts SET published_shift_need_id = NULL WHERE published_shift_need_id = ?", (shift_id,))
    cur.execute("DELETE FROM shift_needs WHERE id = ?", (shift_id,))
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def duplicate_shift(shift_id: int) -> Optional[int]:
    """Copy a shift as a new open, unassigned pass titled '... (Copy)'."""
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO shift_needs
          (employer_id, title, description, date, start_time, end_time, lunch_minutes,
           location, required_role, required_experience, hourly_rate, is_urgent,
           urgent_pay_adjustment, status, assigned_to, created_at, updated_at)
        SELECT employer_id, title || ' (Copy)', description, date, start_time, end_time,
               lunch_minutes, location, required_role, required_experience, hourly_rate,
               is_urgent, urgent_pay_adjustment, 'open', NULL, ?, ?
        FROM shift_needs WHERE id = ?
        RETURNING id
        """,
        (now, now, shift_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"]) if row else None


def update_shift_status(shift_id: int, status: str) -> bool:
    if status not in SHIFT_STATUSES:
        raise ValueError(f"unknown shift status: {status}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE shift_needs SET status = ?, updated_at = ? WHERE id = ?",
        (status, utcnow_iso(), shift_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def list_available_shifts(
    roles: Iterable[str],
    today: str,
    *,
    date_from: str | None = None,
    date_to: str | None = None,
    location: str | None = None,
    urgent_only: bool = False,
) -> List[Dict]:
    """Open shifts from `today` onwards whose required role is in `roles`."""
    roles = list(roles)
    if not roles:
        return []

    sql = _SHIFT_SELECT + f"""
        WHERE s.status = 'open' AND s.date >= ?
          AND s.required_role IN ({", ".join("?" for _ in roles)})
    """
    params: list = [today] + roles
    if date_from:
        sql += " AND s.date >= ?"
        params.append(date_from)
    if date_to:
        sql += " AND s.date <= ?"
        params.append(date_to)
    if location:
        sql += " AND lower(COALESCE(s.location, '')) LIKE ?"
        params.append(f"%{location.strip().lower()}%")
    if urgent_only:
        sql += " AND s.is_urgent = 1"
    sql += " ORDER BY s.date ASC, s.start_time ASC"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_employer_shifts(employer_id: int) -> List[Dict]:
    """An employer's shifts with their pending application counts."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT s.*,
               (SELECT COUNT(*) FROM shift_applications a
                WHERE a.shift_id = s.id AND a.status = 'pending') AS pending_count,
               COALESCE(NULLIF(ap.full_name, ''), au.email) AS assigned_name
        FROM shift_needs s
        LEFT JOIN users au ON au.id = s.assigned_to
        LEFT JOIN profiles ap ON ap.user_id = s.assigned_to
        WHERE s.employer_id = ?
        ORDER BY s.date DESC, s.start_time ASC
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_all_shifts_admin(
    *,
    status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    role: str | None = None,
    employer_id: int | None = None,
    urgent_only: bool = False,
    location: str | None = None,
    search: str | None = None,
) -> List[Dict]:
    sql = _SHIFT_SELECT + " WHERE 1=1"
    params: list = []
    if status:
        sql += " AND s.status = ?"
        params.append(status)
    if date_from:
        sql += " AND s.date >= ?"
        params.append(date_from)
    if date_to:
        sql += " AND s.date <= ?"
        params.append(date_to)
    if role:
        sql += " AND s.required_role = ?"
        params.append(role)
    if employer_id:
        sql += " AND s.employer_id = ?"
        params.append(employer_id)
    if urgent_only:
        sql += " AND s.is_urgent = 1"
    if location:
        sql += " AND lower(COALESCE(s.location, '')) LIKE ?"
        params.append(f"%{location.strip().lower()}%")
    if search:
        like = f"%{search.strip().lower()}%"
        sql += """
            AND (lower(s.title) LIKE ?
                 OR lower(COALESCE(s.location, '')) LIKE ?
                 OR lower(COALESCE(s.description, '')) LIKE ?
                 OR lower(COALESCE(p.pharmacy_name, p.full_name, '')) LIKE ?)
        """
        params.extend([like, like, like, like])
    sql += " ORDER BY s.date DESC, s.start_time ASC"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_employer_shift_stats(employer_id: int) -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
          COUNT(*) FILTER (WHERE status = 'open') AS open_shifts,
          COUNT(*) FILTER (WHERE status = 'filled') AS filled_shifts,
          COUNT(*) FILTER (WHERE status = 'completed') AS completed_shifts
        FROM shift_needs WHERE employer_id = ?
        """,
        (employer_id,),
    )
    row = dict(cur.fetchone() or {})
    cur.execute(
        """
        SELECT COUNT(*) AS n
        FROM shift_applications a JOIN shift_needs s ON s.id = a.shift_id
        WHERE s.employer_id = ? AND a.status = 'pending'
        """,
        (employer_id,),
    )
    pending = cur.fetchone()
    conn.close()
    return {
        "open_shifts": int(row.get("open_shifts") or 0),
        "filled_shifts": int(row.get("filled_shifts") or 0),
        "completed_shifts": int(row.get("completed_shifts") or 0),
        "pending_applications": int(pending["n"] if pending else 0),
    }


def get_employee_shift_stats(user_id: int) -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
          COUNT(*) FILTER (WHERE status = 'pending') AS pending_applications,
          COUNT(*) FILTER (WHERE status = 'accepted') AS accepted_applications
        FROM shift_applications WHERE applicant_id = ?
        """,
        (user_id,),
    )
    row = dict(cur.fetchone() or {})
    cur.execute(
        "SELECT COUNT(*) AS n FROM shift_needs WHERE assigned_to = ? AND status = 'completed'",
        (user_id,),
    )
    completed = cur.fetchone()
    conn.close()
    return {
        "pending_applications": int(row.get("pending_applications") or 0),
        "accepted_applications": int(row.get("accepted_applications") or 0),
        "completed_shifts": int(completed["n"] if completed else 0),
    }


def list_accepted_shift_events(user_id: int) -> List[Dict]:
    """Shifts the user was accepted for, as calendar rows."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT s.id, s.title, s.date, s.start_time, s.end_time, s.location, s.status
        FROM shift_applications a
        JOIN shift_needs s ON s.id = a.shift_id
        WHERE a.applicant_id = ? AND a.status = 'accepted'
        ORDER BY s.date ASC, s.start_time ASC
        """,
        (user_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_unalerted_open_shifts(today: str, since: str | None = None, limit: int = 500) -> List[Dict]:
    """
    Open, current shifts that no alert delivery row references yet.

    `since` (ISO timestamp) restricts to shifts created at or after it.
    """
    sql = _SHIFT_SELECT + """
        WHERE s.status = 'open' AND s.date >= ?
          AND NOT EXISTS (SELECT 1 FROM shift_alert_deliveries d WHERE d.shift_id = s.id)
    """
    params: list = [today]
    if since:
        sql += " AND s.created_at >= ?"
        params.append(since)
    sql += " ORDER BY s.created_at ASC, s.id ASC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "SHIFT_STATUSES",
    "UNKNOWN_EMPLOYER",
    "UPDATABLE_FIELDS",
    "create_shift_needs",
    "get_shift",
    "update_shift",
    "delete_shift",
    "duplicate_shift",
    "update_shift_status",
    "list_available_shifts",
    "list_employer_shifts",
    "list_all_shifts_admin",
    "get_employer_shift_stats",
    "get_employee_shift_stats",
    "list_accepted_shift_events",
    "list_unalerted_open_shifts",
]
