"""
Profile editing, admin verification and the employee directory.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from app.notify import create_and_send_notification
from core import database as db
from core.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from core.roles import ADMIN, EMPLOYEE_ROLES, EMPLOYER, RELATIONSHIP_TYPES, is_employee_role

log = logging.getLogger("profiles")

EMPLOYEE_FIELDS = (
    "full_name",
    "phone",
    "city",
    "description",
    "experience",
    "systems",
    "hourly_rate",
    "notification_cities",
    "email_notifications",
)
EMPLOYER_FIELDS = (
    "full_name",
    "pharmacy_name",
    "phone",
    "street_address",
    "postal_code",
    "city",
    "description",
    "email_notifications",
)


def editable_fields_for(role: str | None) -> tuple:
    if role == EMPLOYER:
        return EMPLOYER_FIELDS
    if is_employee_role(role):
        return EMPLOYEE_FIELDS
    return ("full_name", "phone", "email_notifications")


def update_own_profile(user: Dict, fields: Dict) -> Dict:
    allowed = editable_fields_for(user.get("role"))
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "full_name" in updates and not (updates["full_name"] or "").strip():
        raise BusinessRuleError("Namn krävs.")
    rate = updates.get("hourly_rate")
    if rate is not None and rate < 0:
        raise BusinessRuleError("Timlönen kan inte vara negativ.")
    db.update_profile(user["id"], updates)
    return db.get_profile(user["id"])


def set_verification_status(admin: Dict, target_user_id: int, verified: bool, active: bool | None = None) -> Dict:
    """
    Admin toggle for an account's verified flag and, optionally, its active flag.
    A user who becomes verified is told by notification and email.
    """
    if admin.get("role") != ADMIN:
        raise PermissionDeniedError("Endast administratörer kan verifiera konton.")
    target = db.get_profile(target_user_id)
    if not target:
        raise NotFoundError("Användaren hittades inte.")

    newly_verified = db.set_license_verified(target_user_id, verified)
    if active is not None:
        if active:
            db.reactivate_user(target_user_id)
        else:
            db.deactivate_user(target_user_id)

    if newly_verified:
        create_and_send_notification(
            target_user_id,
            "Konto verifierat",
            "Ditt konto har verifierats. Du kan nu söka pass och uppdrag.",
            "/shifts",
            email_kind="userVerified",
            payload={"name": target.get("full_name")},
            type="verification",
            profile=target,
        )
    log.info(
        "Verification status changed",
        extra={"admin_id": admin["id"], "user_id": target_user_id, "verified": verified, "active": active},
    )
    return db.get_profile(target_user_id)


def employee_directory(
    user: Dict,
    *,
    search: str | None = None,
    role: str | None = None,
    worked_for_me: bool = False,
    relationship_type: str | None = None,
) -> List[Dict]:
    if user.get("role") not in (ADMIN, EMPLOYER):
        raise PermissionDeniedError("Endast arbetsgivare och administratörer.")
    if role and not is_employee_role(role):
        raise BusinessRuleError("Ogiltig roll.")
    if relationship_type and relationship_type not in RELATIONSHIP_TYPES:
        raise BusinessRuleError("Ogiltig anställningsform.")
    employer_id = user["id"] if user.get("role") == EMPLOYER else None
    return db.list_employee_profiles(
        EMPLOYEE_ROLES,
        search=search,
        role=role,
        employer_id=employer_id,
        worked_for_me=worked_for_me,
        relationship_type=relationship_type,
    )
