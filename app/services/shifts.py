"""
Shift business rules: posting, editing, applying, accepting and sick reports.

Store helpers only read and write rows; every permission and state check a
user can trip over lives here and raises a `core.errors` exception with a
message the routes show as-is.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.notify import create_and_send_notification
from core import database as db
from core.errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDeniedError
from core.roles import ADMIN, EMPLOYER, allowed_required_roles, is_employee_role

log = logging.getLogger("shifts")

SHIFT_CLOSED_MESSAGE = "Detta pass är inte längre öppet för ansökningar."
ALREADY_APPLIED_MESSAGE = "Du har redan ansökt till detta pass."


def today() -> str:
    return date.today().isoformat()


def _display_name(user_id: int) -> str:
    profile = db.get_profile(user_id) or {}
    return profile.get("full_name") or profile.get("email") or "Okänd"


def _get_shift_or_404(shift_id: int) -> Dict:
    shift = db.get_shift(shift_id)
    if not shift:
        raise NotFoundError("Passet hittades inte.")
    return shift


def _require_owner_or_admin(user: Dict, shift: Dict) -> None:
    if user.get("role") == ADMIN:
        return
    if user.get("role") != EMPLOYER or shift["employer_id"] != user["id"]:
        raise PermissionDeniedError("Du har inte behörighet att ändra detta pass.")


def _validate_shift_fields(data: Dict, slots: Sequence[Tuple[str, str, str]] = ()) -> None:
    if "title" in data and not (data.get("title") or "").strip():
        raise BusinessRuleError("Titel krävs.")
    role = data.get("required_role")
    if role is not None and not is_employee_role(role):
        raise BusinessRuleError("Ogiltig roll för passet.")
    if data.get("urgent_pay_adjustment") and not data.get("is_urgent"):
        raise BusinessRuleError("Akut-tillägg kan bara anges för brådskande pass.")
    for day, start, end in slots:
        if end <= start:
            raise BusinessRuleError("Sluttiden måste vara efter starttiden.")
        if day < today():
            raise BusinessRuleError("Datumet har redan passerat.")


# --- employer side --------------------------------------------------------


def create_shift(employer: Dict, data: Dict, dates: Iterable[str]) -> List[int]:
    """
    Post one open shift per date using the same times. Alert emails go out
    from the shift alert worker on its next cycle.
    """
    if employer.get("role") not in (EMPLOYER, ADMIN):
        raise PermissionDeniedError("Endast arbetsgivare kan skapa pass.")
    dates = sorted({d for d in dates if d})
    if not dates:
        raise BusinessRuleError("Välj minst ett datum.")
    if not data.get("required_role"):
        raise BusinessRuleError("Roll krävs.")
    slots = [(d, data["start_time"], data["end_time"]) for d in dates]
    _validate_shift_fields(data, slots)

    ids = db.create_shift_needs(employer["id"], data, slots)
    log.info("Shifts created", extra={"employer_id": employer["id"], "count": len(ids)})
    return ids


def update_shift(actor: Dict, shift_id: int, fields: Dict) -> Dict:
    shift = _get_shift_or_404(shift_id)
    _require_owner_or_admin(actor, shift)

    fields = dict(fields)
    merged = {**shift, **{k: v for k, v in fields.items() if v is not None}}
    if fields.get("is_urgent") is not None and not fields["is_urgent"]:
        # No longer urgent: the stored adjustment goes too.
        fields["urgent_pay_adjustment"] = None
        merged["urgent_pay_adjustment"] = None
    times_changed = any(fields.get(k) for k in ("date", "start_time", "end_time"))
    _validate_shift_fields(
        {k: merged.get(k) for k in ("title", "required_role", "is_urgent", "urgent_pay_adjustment")},
        [(merged["date"], merged["start_time"], merged["end_time"])] if times_changed else [],
    )
    db.update_shift(shift_id, fields)
    return db.get_shift(shift_id)


def delete_shift(actor: Dict, shift_id: int) -> None:
    shift = _get_shift_or_404(shift_id)
    if is_employee_role(actor.get("role")):
        raise PermissionDeniedError("Anställda kan inte ta bort pass.")
    _require_owner_or_admin(actor, shift)
    db.delete_shift(shift_id)


def duplicate_shift(employer: Dict, shift_id: int) -> int:
    shift = _get_shift_or_404(shift_id)
    _require_owner_or_admin(employer, shift)
    new_id = db.duplicate_shift(shift_id)
    if new_id is None:
        raise NotFoundError("Passet hittades inte.")
    return new_id


def update_shift_status(actor: Dict, shift_id: int, status: str) -> None:
    shift = _get_shift_or_404(shift_id)
    _require_owner_or_admin(actor, shift)
    if status not in db.SHIFT_STATUSES:
        raise BusinessRuleError("Ogiltig status.")
    db.update_shift_status(shift_id, status)


def mark_shift_completed(employer: Dict, shift_id: int) -> None:
    shift = _get_shift_or_404(shift_id)
    _require_owner_or_admin(employer, shift)
    if shift["status"] != "filled":
        raise BusinessRuleError("Endast tillsatta pass kan markeras som genomförda.")
    if shift["date"] > today():
        raise BusinessRuleError("Passet har inte ägt rum ännu.")
    db.update_shift_status(shift_id, "completed")


# --- employee side --------------------------------------------------------


def list_available_shifts(user: Dict, **filters) -> List[Dict]:
    return db.list_available_shifts(allowed_required_roles(user.get("role")), today(), **filters)


def can_view_shift(user: Optional[Dict], shift_id: int) -> bool:
    shift = db.get_shift(shift_id)
    if not shift or not user:
        return False
    if user.get("role") == ADMIN or shift["employer_id"] == user["id"]:
        return True
    if shift.get("assigned_to") == user["id"] or db.has_applied(shift_id, user["id"]):
        return True
    return shift["status"] == "open" and shift["required_role"] in allowed_required_roles(user.get("role"))


def apply_for_shift(employee: Dict, shift_id: int, notes: str | None = None) -> int:
    shift = _get_shift_or_404(shift_id)
    if not is_employee_role(employee.get("role")):
        raise PermissionDeniedError("Endast anställda kan söka pass.")
    if not employee.get("active", 1):
        raise PermissionDeniedError("Ditt konto är inaktiverat.")
    if shift["status"] != "open":
        raise BusinessRuleError(SHIFT_CLOSED_MESSAGE)
    if shift["required_role"] not in allowed_required_roles(employee.get("role")):
        raise PermissionDeniedError("Din roll matchar inte passets krav.")
    profile = db.get_profile(employee["id"]) or {}
    if not profile.get("license_verified"):
        raise PermissionDeniedError("Ditt konto måste verifieras innan du kan söka pass.")
    if db.find_active_application(shift_id, employee["id"]):
        raise ConflictError(ALREADY_APPLIED_MESSAGE)

    application_id = db.create_application(shift_id, employee["id"], (notes or "").strip() or None)

    applicant_name = profile.get("full_name") or employee.get("email")
    create_and_send_notification(
        shift["employer_id"],
        "Ny ansökan",
        f"{applicant_name} har sökt passet {shift['title']} ({shift['date']}).",
        "/employer/shifts",
        email_kind="newShiftApplication",
        payload={"applicant_name": applicant_name, "shift_title": shift["title"]},
        type="application",
    )
    return application_id


def withdraw_application(employee: Dict, application_id: int) -> None:
    application = db.get_application(application_id)
    if not application or application["applicant_id"] != employee["id"]:
        raise NotFoundError("Ansökan hittades inte.")
    if application["status"] != "pending":
        raise BusinessRuleError("Endast väntande ansökningar kan återtas.")
    db.set_application_status(application_id, "withdrawn", only_if="pending")


def accept_application(employer: Dict, application_id: int) -> List[int]:
    """Accept one applicant; the shift is filled and the other applicants rejected."""
    application = db.get_application(application_id)
    if not application:
        raise NotFoundError("Ansökan hittades inte.")
    if employer.get("role") != ADMIN and application["employer_id"] != employer["id"]:
        raise PermissionDeniedError("Du har inte behörighet att hantera denna ansökan.")
    if application["shift_status"] != "open":
        raise BusinessRuleError("Passet är inte längre öppet.")
    if application["status"] != "pending":
        raise BusinessRuleError("Ansökan är inte längre väntande.")

    rejected = db.accept_application_tx(application_id)
    if rejected is None:
        raise ConflictError("Passet eller ansökan har ändrats. Ladda om sidan.")

    title = application["shift_title"]
    create_and_send_notification(
        application["applicant_id"],
        "Ansökan accepterad",
        f"Din ansökan för passet {title} ({application['shift_date']}) har accepterats.",
        "/my-schedule",
        email_kind="shiftApplicationAccepted",
        payload={"shift_title": title},
        type="application",
    )
    for applicant_id in rejected:
        create_and_send_notification(
            applicant_id,
            "Ansökan avböjd",
            f"Passet {title} har tillsatts av en annan sökande.",
            "/my-applications",
            email_kind="shiftApplicationRejected",
            payload={"shift_title": title},
            type="application",
        )
    return rejected


def reject_application(employer: Dict, application_id: int) -> None:
    application = db.get_application(application_id)
    if not application:
        raise NotFoundError("Ansökan hittades inte.")
    if employer.get("role") != ADMIN and application["employer_id"] != employer["id"]:
        raise PermissionDeniedError("Du har inte behörighet att hantera denna ansökan.")
    if not db.set_application_status(application_id, "rejected", only_if="pending"):
        raise BusinessRuleError("Ansökan är inte längre väntande.")
    create_and_send_notification(
        application["applicant_id"],
        "Ansökan avböjd",
        f"Din ansökan för passet {application['shift_title']} har avböjts.",
        "/my-applications",
        email_kind="shiftApplicationRejected",
        payload={"shift_title": application["shift_title"]},
        type="application",
    )


def report_sick(employee: Dict, shift_id: int) -> Dict:
    """Give up an accepted shift; it is reposted as urgent and the employer told."""
    shift = _get_shift_or_404(shift_id)
    if shift.get("assigned_to") != employee["id"] or shift["status"] != "filled":
        raise PermissionDeniedError("Du kan bara sjukanmäla dig från pass du är tilldelad.")
    if not db.release_assignment_tx(shift_id, employee["id"]):
        raise ConflictError("Passet har ändrats. Ladda om sidan.")

    employee_name = _display_name(employee["id"])
    create_and_send_notification(
        shift["employer_id"],
        "Sjukanmälan",
        f"{employee_name} har sjukanmält sig för passet {shift['title']} ({shift['date']}). Passet är publicerat igen som brådskande.",
        "/employer/shifts",
        email_kind="sickReport",
        payload={
            "employee_name": employee_name,
            "shift_title": shift["title"],
            "shift_date": shift["date"],
            "shift_time": f"{shift['start_time']} - {shift['end_time']}",
        },
        type="sick_report",
    )
    log.info("Sick report", extra={"shift_id": shift_id, "user_id": employee["id"]})
    return {"reposted_as_urgent": True}


# --- dashboards -----------------------------------------------------------


def get_shift_stats(user: Dict) -> Dict[str, int]:
    if user.get("role") == EMPLOYER:
        return db.get_employer_shift_stats(user["id"])
    return db.get_employee_shift_stats(user["id"])


def get_my_full_schedule(user: Dict) -> List[Dict]:
    """Accepted shifts and postings as one list of calendar events ordered by start."""
    events: List[Dict] = []
    for s in db.list_accepted_shift_events(user["id"]):
        events.append(
            {
                "event_id": f"shift-{s['id']}",
                "title": s["title"],
                "start_time": f"{s['date']}T{s['start_time']}",
                "end_time": f"{s['date']}T{s['end_time']}",
                "event_type": "shift",
                "location": s.get("location"),
                "status": s.get("status"),
            }
        )
    for p in db.list_my_accepted_postings(user["id"]):
        events.append(
            {
                "event_id": f"posting-{p['id']}",
                "title": p["title"],
                "start_time": p["period_start_date"],
                "end_time": p["period_end_date"],
                "event_type": "posting",
                "location": p.get("location"),
                "status": p.get("status"),
            }
        )
    events.sort(key=lambda e: e["start_time"])
    return events
