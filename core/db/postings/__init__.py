"""
Job posting storage re-exports.
"""
from core.db.postings.posting_store import (
    POSTING_STATUSES,
    UNKNOWN_POSTING_EMPLOYER,
    POSTING_FIELDS,
    create_posting,
    get_posting,
    update_posting,
    delete_posting,
    update_posting_status,
    list_available_postings,
    list_employer_postings,
    list_all_postings_admin,
    get_posting_application,
    find_active_posting_application,
    create_posting_application,
    set_posting_application_status,
    accept_posting_application_tx,
    list_posting_applications,
    list_my_posting_applications,
    list_my_applied_posting_ids,
    list_my_accepted_postings,
    count_pending_posting_applications,
)

__all__ = [
    "POSTING_STATUSES",
    "UNKNOWN_POSTING_EMPLOYER",
    "POSTING_FIELDS",
    "create_posting",
    "get_posting",
    "update_posting",
    "delete_posting",
    "update_posting_status",
    "list_available_postings",
    "list_employer_postings",
    "list_all_postings_admin",
    "get_posting_application",
    "find_active_posting_application",
    "create_posting_application",
    "set_posting_application_status",
    "accept_posting_application_tx",
    "list_posting_applications",
    "list_my_posting_applications",
    "list_my_applied_posting_ids",
    "list_my_accepted_postings",
    "count_pending_posting_applications",
]
