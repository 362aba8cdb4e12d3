"""
Postgres access for the store modules.

Stores write SQL with `?` placeholders; the cursor returned here rewrites
them to psycopg's `%s` style. Rows come back as dicts.
"""
from __future__ import annotations

import os
from datetime import datetime
from typing import Iterable

import psycopg
from psycopg.rows import dict_row


def database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL must be set for Postgres usage")
    if not url.startswith(("postgres://", "postgresql://")):
        raise RuntimeError("DATABASE_URL must start with postgres:// or postgresql://")
    return url


def _placeholders(sql: str) -> str:
    return sql.replace("?", "%s")


class QmarkCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def execute(self, sql: str, params: Iterable | None = None):
        if params is None:
            return self._cursor.execute(sql)
        return self._cursor.execute(_placeholders(sql), params)

    def executemany(self, sql: str, seq_of_params: Iterable):
        return self._cursor.executemany(_placeholders(sql), seq_of_params)

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self):
        return self._cursor.fetchall()

    def __iter__(self):
        return iter(self._cursor)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class Connection:
    """Thin psycopg connection handle; callers commit and close explicitly."""

    def __init__(self, conn):
        self._conn = conn

    def cursor(self) -> QmarkCursor:
        return QmarkCursor(self._conn.cursor())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def get_conn() -> Connection:
    """Open a new connection; DATABASE_URL is read on every call so tests can set it late."""
    return Connection(psycopg.connect(database_url(), row_factory=dict_row))


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def split_list(raw: str | None) -> list[str]:
    """Split a comma separated TEXT column into trimmed, non-empty values."""
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def join_list(values: Iterable[str] | None) -> str:
    if not values:
        return ""
    return ", ".join(v.strip() for v in values if v and v.strip())


__all__ = ["get_conn", "utcnow_iso", "split_list", "join_list"]
