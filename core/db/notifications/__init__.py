"""
Notification storage re-exports.
"""
from core.db.notifications.notification_store import (
    create_notification,
    list_unread_notifications,
    list_recent_notifications,
    count_unread_notifications,
    mark_notification_read,
    mark_all_notifications_read,
    list_group_recipients,
    record_email_delivery,
    list_email_deliveries,
)

__all__ = [
    "create_notification",
    "list_unread_notifications",
    "list_recent_notifications",
    "count_unread_notifications",
    "mark_notification_read",
    "mark_all_notifications_read",
    "list_group_recipients",
    "record_email_delivery",
    "list_email_deliveries",
]
