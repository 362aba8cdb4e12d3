"""
Profile storage re-exports.
"""
from core.db.profiles.profile_store import (
    EDITABLE_FIELDS,
    get_profile,
    update_profile,
    set_license_verified,
    list_employers,
    list_employee_profiles,
)

__all__ = [
    "EDITABLE_FIELDS",
    "get_profile",
    "update_profile",
    "set_license_verified",
    "list_employers",
    "list_employee_profiles",
]
