"""
Postgres DDL for the marketplace plus startup seeding.

Tables are declared as (name, body) pairs so `init_db` and `truncate_all`
share one source of truth. Children come first, which is the order TRUNCATE
wants; CREATE walks the list in reverse.
"""
from __future__ import annotations

import logging
import os

from core.db.base import get_conn, utcnow_iso
from core.db.users import create_user, get_user_by_email, hash_password

log = logging.getLogger("db")

_USER_FK = "FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE"
_EMPLOYER_FK = "FOREIGN KEY(employer_id) REFERENCES users(id) ON DELETE CASCADE"
_ASSIGNEE_FK = "FOREIGN KEY(assigned_to) REFERENCES users(id) ON DELETE SET NULL"
_APPLICANT_FK = "FOREIGN KEY(applicant_id) REFERENCES users(id) ON DELETE CASCADE"

_TOKEN_TABLE = f"""
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL,
    token TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    used_at TEXT,
    {_USER_FK}
"""

_SCHEMA: list[tuple[str, str]] = [
    ("shift_alert_deliveries", """
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        shift_id INTEGER NOT NULL REFERENCES shift_needs(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'queued',
        error TEXT,
        created_at TEXT NOT NULL,
        sent_at TEXT,
        UNIQUE(user_id, shift_id)
    """),
    ("email_deliveries", f"""
        id SERIAL PRIMARY KEY,
        user_id INTEGER,
        to_email TEXT NOT NULL,
        kind TEXT NOT NULL,
        subject TEXT,
        status TEXT NOT NULL DEFAULT 'queued',
        error TEXT,
        created_at TEXT NOT NULL,
        sent_at TEXT,
        {_USER_FK}
    """),
    ("notifications", f"""
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL,
        type TEXT NOT NULL DEFAULT 'general',
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        link TEXT,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        {_USER_FK}
    """),
    ("schedule_shifts", """
        id SERIAL PRIMARY KEY,
        schedule_id INTEGER NOT NULL REFERENCES schedules(id) ON DELETE CASCADE,
        employer_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        required_role TEXT NOT NULL,
        lunch_minutes INTEGER,
        assigned_staff_key TEXT,
        assigned_staff_name TEXT,
        is_unfilled INTEGER NOT NULL DEFAULT 1,
        notes TEXT,
        published_shift_need_id INTEGER REFERENCES shift_needs(id) ON DELETE SET NULL
    """),
    ("schedules", f"""
        id SERIAL PRIMARY KEY,
        employer_id INTEGER NOT NULL,
        schedule_name TEXT NOT NULL,
        period_start_date TEXT NOT NULL,
        period_end_date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'draft',
        created_at TEXT NOT NULL,
        updated_at TEXT,
        {_EMPLOYER_FK}
    """),
    ("employer_manual_staff", f"""
        id SERIAL PRIMARY KEY,
        employer_id INTEGER NOT NULL,
        full_name TEXT NOT NULL,
        role TEXT NOT NULL,
        max_consecutive_days INTEGER NOT NULL DEFAULT 5,
        created_at TEXT NOT NULL,
        {_EMPLOYER_FK}
    """),
    ("employer_employee_relationships", f"""
        id SERIAL PRIMARY KEY,
        employer_id INTEGER NOT NULL,
        employee_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        invitee_email TEXT NOT NULL,
        relationship_type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        responded_at TEXT,
        {_EMPLOYER_FK}
    """),
    ("job_posting_applications", f"""
        id SERIAL PRIMARY KEY,
        job_posting_id INTEGER NOT NULL REFERENCES job_postings(id) ON DELETE CASCADE,
        applicant_id INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        {_APPLICANT_FK}
    """),
    ("job_postings", f"""
        id SERIAL PRIMARY KEY,
        employer_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        required_role TEXT NOT NULL,
        required_experience TEXT,
        location TEXT,
        period_start_date TEXT NOT NULL,
        period_end_date TEXT NOT NULL,
        estimated_hours TEXT,
        salary_description TEXT,
        hourly_rate NUMERIC,
        status TEXT NOT NULL DEFAULT 'open',
        assigned_to INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        {_EMPLOYER_FK},
        {_ASSIGNEE_FK}
    """),
    ("shift_applications", f"""
        id SERIAL PRIMARY KEY,
        shift_id INTEGER NOT NULL REFERENCES shift_needs(id) ON DELETE CASCADE,
        applicant_id INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        {_APPLICANT_FK}
    """),
    ("shift_needs", f"""
        id SERIAL PRIMARY KEY,
        employer_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        lunch_minutes INTEGER,
        location TEXT,
        required_role TEXT NOT NULL,
        required_experience TEXT,
        hourly_rate NUMERIC,
        is_urgent INTEGER NOT NULL DEFAULT 0,
        urgent_pay_adjustment NUMERIC,
        status TEXT NOT NULL DEFAULT 'open',
        assigned_to INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        {_EMPLOYER_FK},
        {_ASSIGNEE_FK}
    """),
    ("profiles", f"""
        user_id INTEGER PRIMARY KEY,
        full_name TEXT,
        pharmacy_name TEXT,
        phone TEXT,
        street_address TEXT,
        postal_code TEXT,
        city TEXT,
        description TEXT,
        experience TEXT,
        systems TEXT,
        hourly_rate NUMERIC,
        license_verified INTEGER NOT NULL DEFAULT 0,
        notification_cities TEXT,
        email_notifications INTEGER NOT NULL DEFAULT 1,
        updated_at TEXT,
        {_USER_FK}
    """),
    ("email_verification_tokens", _TOKEN_TABLE),
    ("password_reset_tokens", _TOKEN_TABLE),
    ("sessions", f"""
        id TEXT PRIMARY KEY,
        user_id INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        last_seen_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        {_USER_FK}
    """),
    ("users", """
        id SERIAL PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'pharmacist',
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT,
        email_verified_at TEXT
    """),
]

TABLES = [name for name, _ in _SCHEMA]

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_shift_needs_status_date ON shift_needs(status, date)",
    "CREATE INDEX IF NOT EXISTS idx_shift_apps_shift ON shift_applications(shift_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, is_read)",
]


def init_db() -> None:
    """Create every table and index if missing, then seed the env admin."""
    conn = get_conn()
    cur = conn.cursor()
    for name, body in reversed(_SCHEMA):
        cur.execute(f"CREATE TABLE IF NOT EXISTS {name}({body})")
    for statement in _INDEXES:
        cur.execute(statement)
    conn.commit()
    conn.close()

    ensure_admin_from_env()


def truncate_all() -> None:
    """Empty every table (used by the test-suite)."""
    conn = get_conn()
    conn.cursor().execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")
    conn.commit()
    conn.close()


def ensure_admin_from_env() -> None:
    """
    ADMIN_EMAIL + ADMIN_PASSWORD, when both are set, make sure that account
    exists as a verified admin with that password. Without them this is a no-op.
    """
    email = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
    password = os.getenv("ADMIN_PASSWORD") or ""
    if not email or not password:
        return

    if not get_user_by_email(email):
        create_user(email, password, role="admin", verified=True, full_name="Admin")
        log.info("Seeded admin account", extra={"email": email})
        return

    conn = get_conn()
    conn.cursor().execute(
        """
        UPDATE users
        SET role = 'admin',
            password_hash = ?,
            email_verified_at = COALESCE(NULLIF(email_verified_at, ''), ?)
        WHERE email = ?
        """,
        (hash_password(password), utcnow_iso(), email),
    )
    conn.commit()
    conn.close()
    log.info("Refreshed admin account", extra={"email": email})


def get_stats() -> dict:
    """Row counts for the health check and the admin dashboard."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
          (SELECT COUNT(*) FROM users) AS users,
          (SELECT COUNT(*) FROM shift_needs WHERE status = 'open') AS open_shifts,
          (SELECT COUNT(*) FROM job_postings WHERE status = 'open') AS open_postings
        """
    )
    row = cur.fetchone()
    conn.close()
    return {k: int(v or 0) for k, v in dict(row).items()}


__all__ = [
    "TABLES",
    "init_db",
    "truncate_all",
    "ensure_admin_from_env",
    "get_stats",
]
