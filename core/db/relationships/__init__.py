"""
Employer-employee relationship storage re-exports.
"""
from core.db.relationships.relationship_store import (
    RELATIONSHIP_STATUSES,
    find_live_relationship,
    create_relationship,
    link_pending_invitations,
    get_relationship,
    set_relationship_status,
    list_pending_invitations,
    list_my_employees,
)

__all__ = [
    "RELATIONSHIP_STATUSES",
    "find_live_relationship",
    "create_relationship",
    "link_pending_invitations",
    "get_relationship",
    "set_relationship_status",
    "list_pending_invitations",
    "list_my_employees",
]
