"""
Run one SQL statement against the configured Postgres database.

Usage:
  python -m scripts.db_shell                                  # list tables
  python -m scripts.db_shell "SELECT id, email, role FROM users"
"""
from __future__ import annotations

import sys

import psycopg
from dotenv import load_dotenv
from psycopg.rows import dict_row

from core.db.base import database_url

LIST_TABLES = "SELECT tablename AS name FROM pg_tables WHERE schemaname = 'public' ORDER BY tablename"


def main(argv: list[str] | None = None) -> None:
    load_dotenv(override=True)
    query = " ".join(argv if argv is not None else sys.argv[1:]).strip() or LIST_TABLES

    try:
        url = database_url()
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    # Raw psycopg on purpose: ad-hoc SQL typed here uses %s, not the stores' ? style.
    with psycopg.connect(url, row_factory=dict_row) as conn:
        cur = conn.execute(query)
        if cur.description is None:
            conn.commit()
            print(f"OK ({cur.rowcount} row(s) affected)")
            return
        for row in cur.fetchall():
            print(row)


if __name__ == "__main__":
    main()
