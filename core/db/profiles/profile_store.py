"""
Profile storage: personal details, employee skills and notification preferences.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from core.db.base import get_conn, split_list, utcnow_iso

# Columns a user (or an admin on their behalf) may edit through update_profile.
EDITABLE_FIELDS = (
    "full_name",
    "pharmacy_name",
    "phone",
    "street_address",
    "postal_code",
    "city",
    "description",
    "experience",
    "systems",
    "hourly_rate",
    "notification_cities",
    "email_notifications",
)

_PROFILE_SELECT = """
    SELECT u.id AS user_id, u.email, u.role, u.active, u.email_verified_at, u.created_at,
           p.full_name, p.pharmacy_name, p.phone, p.street_address, p.postal_code, p.city,
           p.description, p.experience, p.systems, p.hourly_rate,
           COALESCE(p.license_verified, 0) AS license_verified,
           p.notification_cities,
           COALESCE(p.email_notifications, 1) AS email_notifications,
           p.updated_at
    FROM users u
    LEFT JOIN profiles p ON p.user_id = u.id
"""


def _decorate(row) -> Dict:
    data = dict(row)
    data["experience_list"] = split_list(data.get("experience"))
    data["systems_list"] = split_list(data.get("systems"))
    data["notification_cities_list"] = split_list(data.get("notification_cities"))
    return data


def get_profile(user_id: int) -> Optional[Dict]:
    """Profile joined with the owning user row, or None for an unknown user."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(_PROFILE_SELECT + " WHERE u.id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return _decorate(row) if row else None


def update_profile(user_id: int, fields: Dict) -> bool:
    """
    Upsert the given profile fields. Unknown keys are ignored.

    Returns False when nothing editable was supplied.
    """
    updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    if not updates:
        return False
    updates["updated_at"] = utcnow_iso()

    columns = list(updates)
    placeholders = ", ".join("?" for _ in columns)
    assignments = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO profiles (user_id, {", ".join(columns)})
        VALUES (?, {placeholders})
        ON CONFLICT (user_id) DO UPDATE SET {assignments}
        """,
        [user_id] + [updates[c] for c in columns],
    )
    conn.commit()
    conn.close()
    return True


def set_license_verified(user_id: int, verified: bool) -> bool:
    """Set the verification flag. Returns True when it flipped from unverified to verified."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COALESCE(license_verified, 0) AS v FROM profiles WHERE user_id = ?", (user_id,))
    row = cur.fetchone()
    was_verified = bool(row and row["v"])
    cur.execute(
        """
        INSERT INTO profiles (user_id, license_verified, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT (user_id) DO UPDATE SET license_verified = EXCLUDED.license_verified,
                                            updated_at = EXCLUDED.updated_at
        """,
        (user_id, 1 if verified else 0, utcnow_iso()),
    )
    conn.commit()
    conn.close()
    return verified and not was_verified


def list_employers() -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        _PROFILE_SELECT
        + " WHERE u.role = 'employer' ORDER BY COALESCE(p.pharmacy_name, p.full_name, u.email)"
    )
    rows = cur.fetchall()
    conn.close()
    return [_decorate(r) for r in rows]


def list_employee_profiles(
    roles: Iterable[str],
    *,
    search: str | None = None,
    role: str | None = None,
    employer_id: int | None = None,
    worked_for_me: bool = False,
    relationship_type: str | None = None,
) -> List[Dict]:
    """
    Employee directory for admins and employers.

    `worked_for_me` keeps employees with a completed or filled shift at
    `employer_id`; `relationship_type` keeps employees with an active
    relationship of that type to `employer_id`.
    """
    roles = list(roles)
    if not roles:
        return []

    sql = _PROFILE_SELECT + f" WHERE u.role IN ({', '.join('?' for _ in roles)})"
    params: list = list(roles)

    if role:
        sql += " AND u.role = ?"
        params.append(role)
    if search:
        like = f"%{search.strip().lower()}%"
        sql += """
            AND (lower(COALESCE(p.full_name, '')) LIKE ?
                 OR lower(u.email) LIKE ?
                 OR lower(COALESCE(p.city, '')) LIKE ?)
        """
        params.extend([like, like, like])
    if employer_id is not None and worked_for_me:
        sql += """
            AND EXISTS (SELECT 1 FROM shift_needs s
                        WHERE s.assigned_to = u.id AND s.employer_id = ?
                          AND s.status IN ('filled', 'completed'))
        """
        params.append(employer_id)
    if employer_id is not None and relationship_type:
        sql += """
            AND EXISTS (SELECT 1 FROM employer_employee_relationships r
                        WHERE r.employee_id = u.id AND r.employer_id = ?
                          AND r.status = 'active' AND r.relationship_type = ?)
        """
        params.extend([employer_id, relationship_type])

    sql += " ORDER BY COALESCE(p.full_name, u.email)"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [_decorate(r) for r in rows]


__all__ = [
    "EDITABLE_FIELDS",
    "get_profile",
    "update_profile",
    "set_license_verified",
    "list_employers",
    "list_employee_profiles",
]
