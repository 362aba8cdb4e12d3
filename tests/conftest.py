import os

import pytest

from app import security


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    security.reset_rate_limits()
    yield
    security.reset_rate_limits()


@pytest.fixture
def db():
    """Clean Postgres schema for store-level tests; skipped without DATABASE_URL."""
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-backed tests.")

    from core.db.schema import init_db, truncate_all

    init_db()
    truncate_all()
    yield
    truncate_all()
