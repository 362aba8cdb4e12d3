"""
Single import surface for storage helpers.

Routes, the worker and scripts import from here rather than from the
individual `core.db.*` subpackages.
"""
from core.db import alerts as _alerts
from core.db import notifications as _notifications
from core.db import postings as _postings
from core.db import profiles as _profiles
from core.db import relationships as _relationships
from core.db import schedules as _schedules
from core.db import shifts as _shifts
from core.db import users as _users
from core.db.alerts import *  # noqa: F401,F403
from core.db.base import get_conn, join_list, split_list, utcnow_iso
from core.db.notifications import *  # noqa: F401,F403
from core.db.postings import *  # noqa: F401,F403
from core.db.profiles import *  # noqa: F401,F403
from core.db.relationships import *  # noqa: F401,F403
from core.db.schedules import *  # noqa: F401,F403
from core.db.schema import ensure_admin_from_env, get_stats, init_db, truncate_all
from core.db.shifts import *  # noqa: F401,F403
from core.db.users import *  # noqa: F401,F403

__all__ = (
    ["get_conn", "join_list", "split_list", "utcnow_iso", "init_db", "truncate_all", "ensure_admin_from_env", "get_stats"]
    + _users.__all__
    + _profiles.__all__
    + _shifts.__all__
    + _postings.__all__
    + _notifications.__all__
    + _relationships.__all__
    + _schedules.__all__
    + _alerts.__all__
)
