"""
Shift alert delivery history.

Shifts live in `shift_needs`; `shift_alert_deliveries` links them to the
employees the alert worker emailed so that:
  - a shift is announced at most once per employee,
  - account deletion can wipe the user's alert history.
"""
from core.db.alerts.deliveries_store import (
    create_shift_alert_deliveries,
    mark_shift_alerts_sent,
    mark_shift_alerts_failed,
    get_shift_alert_deliveries_for_user,
    list_alert_recipients,
)

__all__ = [
    "create_shift_alert_deliveries",
    "mark_shift_alerts_sent",
    "mark_shift_alerts_failed",
    "get_shift_alert_deliveries_for_user",
    "list_alert_recipients",
]
