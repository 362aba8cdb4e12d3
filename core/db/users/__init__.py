"""
Accounts, credentials, sessions and the single-use links mailed to users.
"""
from core.db.users import auth as _auth
from core.db.users import email_verification as _email_verification
from core.db.users import password_reset as _password_reset
from core.db.users import sessions as _sessions
from core.db.users import user_store as _user_store
from core.db.users.auth import *  # noqa: F401,F403
from core.db.users.email_verification import *  # noqa: F401,F403
from core.db.users.password_reset import *  # noqa: F401,F403
from core.db.users.sessions import *  # noqa: F401,F403
from core.db.users.user_store import *  # noqa: F401,F403

__all__ = (
    _auth.__all__
    + _user_store.__all__
    + _sessions.__all__
    + _password_reset.__all__
    + _email_verification.__all__
)
