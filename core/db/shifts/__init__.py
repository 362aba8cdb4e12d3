"""
Shift and shift-application storage re-exports.
"""
from core.db.shifts.shift_store import (
    SHIFT_STATUSES,
    UNKNOWN_EMPLOYER,
    UPDATABLE_FIELDS,
    create_shift_needs,
    get_shift,
    update_shift,
    delete_shift,
    duplicate_shift,
    update_shift_status,
    list_available_shifts,
    list_employer_shifts,
    list_all_shifts_admin,
    get_employer_shift_stats,
    get_employee_shift_stats,
    list_accepted_shift_events,
    list_unalerted_open_shifts,
)
from core.db.shifts.application_store import (
    APPLICATION_STATUSES,
    get_application,
    find_active_application,
    has_applied,
    create_application,
    set_application_status,
    accept_application_tx,
    release_assignment_tx,
    list_shift_applications,
    list_pending_application_details,
    count_pending_applications,
    list_my_applications,
)

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
    "APPLICATION_STATUSES",
    "get_application",
    "find_active_application",
    "has_applied",
    "create_application",
    "set_application_status",
    "accept_application_tx",
    "release_assignment_tx",
    "list_shift_applications",
    "list_pending_application_details",
    "count_pending_applications",
    "list_my_applications",
]
