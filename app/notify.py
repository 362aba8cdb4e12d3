"""
In-app notifications plus their email counterparts.

Email failures are logged and written to `email_deliveries`; they never
propagate to the caller.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from app.email_templates import build_email
from app.email_utils import send_html_email
from core.database import (
    create_notification,
    get_profile,
    list_group_recipients,
    record_email_delivery,
)
from core.roles import EMPLOYEE_ROLES, EMPLOYER

log = logging.getLogger("notifications")

ROLE_GROUPS = {
    "employee": EMPLOYEE_ROLES,
    "employer": (EMPLOYER,),
}


def send_kind_email(to_email: str, kind: str, payload: Dict, *, user_id: int | None = None) -> bool:
    """Build and send one templated email. Returns True when SMTP accepted it."""
    subject, html = build_email(kind, payload)
    try:
        send_html_email(to_email, subject, html)
    except Exception as exc:
        log.error(
            "Failed to send email",
            extra={"to_email": to_email, "kind": kind, "error": str(exc)},
        )
        record_email_delivery(
            to_email=to_email, kind=kind, subject=subject, user_id=user_id, status="failed", error=str(exc)
        )
        return False
    record_email_delivery(to_email=to_email, kind=kind, subject=subject, user_id=user_id, status="sent")
    return True


def create_and_send_notification(
    user_id: int,
    title: str,
    message: str,
    link: str | None = None,
    *,
    email_kind: str | None = None,
    payload: Optional[Dict] = None,
    type: str = "general",
    profile: Optional[Dict] = None,
) -> bool:
    """
    Save an in-app notification and email the user if they opted in.

    `email_kind` picks a specific template; without it the generic
    "notification" template is used. Returns False for an unknown user.
    """
    profile = profile or get_profile(user_id)
    if not profile:
        return False

    create_notification(user_id, title, message, type=type, link=link)

    if not profile.get("email_notifications", 1) or not profile.get("email"):
        return True

    if email_kind:
        kind, data = email_kind, dict(payload or {})
    else:
        kind = "notification"
        data = {"name": profile.get("full_name"), "title": title, "message": message, "link": link}
    send_kind_email(profile["email"], kind, data, user_id=user_id)
    return True


def create_and_send_notification_to_group(
    role_group: str,
    title: str,
    message: str,
    link: str | None = None,
    *,
    email_kind: str | None = None,
    payload: Optional[Dict] = None,
    type: str = "general",
    only_roles: Optional[Iterable[str]] = None,
) -> int:
    """
    Notify every active member of `role_group` ("employee" or "employer").

    `only_roles` narrows the group further (e.g. to the roles allowed to
    apply for a posting). Returns the number of users notified; an empty
    group is not an error.
    """
    roles = ROLE_GROUPS.get(role_group)
    if roles is None:
        raise ValueError(f"unknown role group: {role_group}")
    if only_roles is not None:
        allowed = set(only_roles)
        roles = tuple(r for r in roles if r in allowed)

    recipients = list_group_recipients(roles)
    for r in recipients:
        create_notification(r["id"], title, message, type=type, link=link)
        if not r.get("email_notifications", 1):
            continue
        if email_kind:
            kind, data = email_kind, dict(payload or {})
        else:
            kind = "notification"
            data = {"name": r.get("full_name"), "title": title, "message": message, "link": link}
        send_kind_email(r["email"], kind, data, user_id=r["id"])

    log.info("Group notification sent", extra={"group": role_group, "recipients": len(recipients)})
    return len(recipients)


__all__ = [
    "ROLE_GROUPS",
    "send_kind_email",
    "create_and_send_notification",
    "create_and_send_notification_to_group",
]
