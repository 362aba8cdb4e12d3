"""
Saved schedules, their slots and the employer's manually entered staff.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from core.db.base import get_conn, utcnow_iso

DEFAULT_MAX_CONSECUTIVE_DAYS = 5

_SLOT_COLUMNS = (
    "date",
    "start_time",
    "end_time",
    "required_role",
    "lunch_minutes",
    "assigned_staff_key",
    "assigned_staff_name",
    "is_unfilled",
    "notes",
)


# --- manual staff ---------------------------------------------------------


def add_manual_staff(
    employer_id: int,
    full_name: str,
    role: str,
    max_consecutive_days: int = DEFAULT_MAX_CONSECUTIVE_DAYS,
) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO employer_manual_staff (employer_id, full_name, role, max_consecutive_days, created_at)
        VALUES (?, ?, ?, ?, ?)
        RETURNING id
        """,
        (employer_id, full_name.strip(), role, int(max_consecutive_days), utcnow_iso()),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["id"])


def remove_manual_staff(employer_id: int, staff_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "DELETE FROM employer_manual_staff WHERE id = ? AND employer_id = ?",
        (staff_id, employer_id),
    )
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def list_manual_staff(employer_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, full_name, role, max_consecutive_days, created_at
        FROM employer_manual_staff
        WHERE employer_id = ?
        ORDER BY full_name
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_schedule_staff(employer_id: int) -> List[Dict]:
    """
    Everyone the generator may assign: active employees ("emp:{user_id}")
    followed by manual staff ("manual:{id}").
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT r.employee_id, r.relationship_type, u.role, u.email, p.full_name
        FROM employer_employee_relationships r
        JOIN users u ON u.id = r.employee_id
        LEFT JOIN profiles p ON p.user_id = r.employee_id
        WHERE r.employer_id = ? AND r.status = 'active' AND u.active = 1
        ORDER BY COALESCE(p.full_name, u.email)
        """,
        (employer_id,),
    )
    employees = cur.fetchall()
    cur.execute(
        """
        SELECT id, full_name, role, max_consecutive_days
        FROM employer_manual_staff
        WHERE employer_id = ?
        ORDER BY full_name
        """,
        (employer_id,),
    )
    manual = cur.fetchall()
    conn.close()

    staff: List[Dict] = []
    for r in employees:
        staff.append(
            {
                "key": f"emp:{r['employee_id']}",
                "name": r["full_name"] or r["email"],
                "role": r["role"],
                "max_consecutive_days": DEFAULT_MAX_CONSECUTIVE_DAYS,
                "employment_type": r["relationship_type"],
            }
        )
    for r in manual:
        staff.append(
            {
                "key": f"manual:{r['id']}",
                "name": r["full_name"],
                "role": r["role"],
                "max_consecutive_days": int(r["max_consecutive_days"] or DEFAULT_MAX_CONSECUTIVE_DAYS),
                "employment_type": None,
            }
        )
    return staff


# --- schedules ------------------------------------------------------------


def save_schedule(
    employer_id: int,
    schedule_name: str,
    period_start_date: str,
    period_end_date: str,
    slots: Sequence[Dict],
    schedule_id: int | None = None,
) -> Optional[int]:
    """
    Insert or update a draft schedule header and replace all of its slots.

    Returns the schedule id, or None when `schedule_id` is not owned by the employer.
    """
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    try:
        if schedule_id is None:
            cur.execute(
                """
                INSERT INTO schedules (employer_id, schedule_name, period_start_date, period_end_date,
                                       status, created_at, updated_at)
                VALUES (?, ?, ?, ?, 'draft', ?, ?)
                RETURNING id
                """,
                (employer_id, schedule_name, period_start_date, period_end_date, now, now),
            )
            schedule_id = int(cur.fetchone()["id"])
        else:
            cur.execute(
                """
                UPDATE schedules
                SET schedule_name = ?, period_start_date = ?, period_end_date = ?,
                    status = 'draft', updated_at = ?
                WHERE id = ? AND employer_id = ?
                """,
                (schedule_name, period_start_date, period_end_date, now, schedule_id, employer_id),
            )
            if cur.rowcount == 0:
                conn.rollback()
                return None
            cur.execute("DELETE FROM schedule_shifts WHERE schedule_id = ?", (schedule_id,))

        if slots:
            cur.executemany(
                f"""
                INSERT INTO schedule_shifts (schedule_id, employer_id, {", ".join(_SLOT_COLUMNS)})
                VALUES (?, ?, {", ".join("?" for _ in _SLOT_COLUMNS)})
                """,
                [
                    [schedule_id, employer_id]
                    + [
                        (1 if slot.get(c) else 0) if c == "is_unfilled" else slot.get(c)
                        for c in _SLOT_COLUMNS
                    ]
                    for slot in slots
                ],
            )
        conn.commit()
        return schedule_id
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def list_schedules(employer_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT s.id, s.schedule_name, s.period_start_date, s.period_end_date, s.status,
               s.created_at, s.updated_at,
               (SELECT COUNT(*) FROM schedule_shifts ss WHERE ss.schedule_id = s.id) AS slot_count,
               (SELECT COUNT(*) FROM schedule_shifts ss
                WHERE ss.schedule_id = s.id AND ss.is_unfilled = 1) AS unfilled_count
        FROM schedules s
        WHERE s.employer_id = ?
        ORDER BY s.period_start_date DESC, s.id DESC
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_schedule(schedule_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, employer_id, schedule_name, period_start_date, period_end_date, status,
               created_at, updated_at
        FROM schedules WHERE id = ?
        """,
        (schedule_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def list_schedule_shifts(schedule_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, schedule_id, employer_id, date, start_time, end_time, required_role,
               lunch_minutes, assigned_staff_key, assigned_staff_name, is_unfilled, notes,
               published_shift_need_id
        FROM schedule_shifts
        WHERE schedule_id = ?
        ORDER BY date ASC, start_time ASC, id ASC
        """,
        (schedule_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def delete_schedule(employer_id: int, schedule_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM schedules WHERE id = ? AND employer_id = ?", (schedule_id, employer_id))
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def get_schedule_shift(schedule_shift_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT ss.*, s.schedule_name
        FROM schedule_shifts ss
        JOIN schedules s ON s.id = ss.schedule_id
        WHERE ss.id = ?
        """,
        (schedule_shift_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def update_schedule_shift_assignment(
    schedule_shift_id: int,
    staff_key: str | None,
    staff_name: str | None,
    notes: str | None,
) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE schedule_shifts
        SET assigned_staff_key = ?, assigned_staff_name = ?, is_unfilled = ?, notes = ?
        WHERE id = ?
        """,
        (staff_key, staff_name, 0 if staff_key else 1, notes, schedule_shift_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def link_published_shift(schedule_shift_id: int, shift_need_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE schedule_shifts SET published_shift_need_id = ? WHERE id = ?",
        (shift_need_id, schedule_shift_id),
    )
    conn.commit()
    conn.close()


def set_schedule_status(schedule_id: int, status: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE schedules SET status = ?, updated_at = ? WHERE id = ?",
        (status, utcnow_iso(), schedule_id),
    )
    conn.commit()
    conn.close()


__all__ = [
    "DEFAULT_MAX_CONSECUTIVE_DAYS",
    "add_manual_staff",
    "remove_manual_staff",
    "list_manual_staff",
    "list_schedule_staff",
    "save_schedule",
    "list_schedules",
    "get_schedule",
    "list_schedule_shifts",
    "delete_schedule",
    "get_schedule_shift",
    "update_schedule_shift_assignment",
    "link_published_shift",
    "set_schedule_status",
]
