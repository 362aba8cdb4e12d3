"""
Schedule and manual staff storage re-exports.
"""
from core.db.schedules.schedule_store import (
    DEFAULT_MAX_CONSECUTIVE_DAYS,
    add_manual_staff,
    remove_manual_staff,
    list_manual_staff,
    list_schedule_staff,
    save_schedule,
    list_schedules,
    get_schedule,
    list_schedule_shifts,
    delete_schedule,
    get_schedule_shift,
    update_schedule_shift_assignment,
    link_published_shift,
    set_schedule_status,
)

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
