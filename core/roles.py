"""
User roles and the hierarchy deciding which shifts an employee may take.
"""
from __future__ import annotations

from typing import List

ADMIN = "admin"
EMPLOYER = "employer"
PHARMACIST = "pharmacist"
SALES = "säljare"
SELF_CARE_ADVISOR = "egenvårdsrådgivare"

EMPLOYEE_ROLES = (PHARMACIST, SALES, SELF_CARE_ADVISOR)
SIGNUP_ROLES = (EMPLOYER,) + EMPLOYEE_ROLES

ROLE_LABELS = {
    ADMIN: "Admin",
    EMPLOYER: "Arbetsgivare",
    PHARMACIST: "Farmaceut",
    SALES: "Säljare",
    SELF_CARE_ADVISOR: "Egenvårdsrådgivare",
}

RELATIONSHIP_TYPES = ("heltidsanställd", "deltidsanställd", "timanställd")

# A role may cover shifts that need the same or a "lower" qualification.
_ALLOWED_REQUIRED_ROLES = {
    PHARMACIST: [PHARMACIST, SELF_CARE_ADVISOR, SALES],
    SELF_CARE_ADVISOR: [SELF_CARE_ADVISOR, SALES],
    SALES: [SALES],
    ADMIN: [PHARMACIST, SALES, SELF_CARE_ADVISOR],
}


def allowed_required_roles(role: str | None) -> List[str]:
    return list(_ALLOWED_REQUIRED_ROLES.get(role or "", []))


def roles_that_can_take(required_role: str | None) -> List[str]:
    """Inverse of allowed_required_roles: employee roles that may work a shift needing `required_role`."""
    return [r for r in EMPLOYEE_ROLES if required_role in _ALLOWED_REQUIRED_ROLES[r]]


def is_employee_role(role: str | None) -> bool:
    return role in EMPLOYEE_ROLES


def role_label(role: str | None) -> str:
    return ROLE_LABELS.get(role or "", role or "")


__all__ = [
    "ADMIN",
    "EMPLOYER",
    "PHARMACIST",
    "SALES",
    "SELF_CARE_ADVISOR",
    "EMPLOYEE_ROLES",
    "SIGNUP_ROLES",
    "RELATIONSHIP_TYPES",
    "allowed_required_roles",
    "roles_that_can_take",
    "is_employee_role",
    "role_label",
]
