"""
Schedule planning for employers: generate, save, adjust, publish gaps, export.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.services.shifts import today
from app.validation import is_valid_time, parse_date
from core import database as db
from core.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from core.roles import EMPLOYER, is_employee_role, role_label
from core.scheduling import (
    GenerationResult,
    MinStaffing,
    PharmacyHours,
    Requirement,
    Rules,
    StaffMember,
    export_csv,
    generate_schedule,
)

log = logging.getLogger("schedules")

REASSIGNED_NOTE = "(Manually reassigned)"
SLOT_DATA_UNREADABLE = "Schemadata kunde inte läsas."


def _require_employer(user: Dict) -> None:
    if user.get("role") != EMPLOYER:
        raise PermissionDeniedError("Endast arbetsgivare kan hantera scheman.")


def _is_valid_slot(slot) -> bool:
    if not isinstance(slot, dict):
        return False
    times = (slot.get("start_time"), slot.get("end_time"))
    if not all(isinstance(t, str) and is_valid_time(t) for t in times):
        return False
    lunch = slot.get("lunch_minutes")
    return (
        isinstance(slot.get("date"), str)
        and parse_date(slot["date"]) is not None
        and is_employee_role(slot.get("required_role"))
        and (lunch is None or (isinstance(lunch, int) and not isinstance(lunch, bool) and lunch >= 0))
    )


def _get_owned_schedule(employer: Dict, schedule_id: int) -> Dict:
    _require_employer(employer)
    schedule = db.get_schedule(schedule_id)
    if not schedule or schedule["employer_id"] != employer["id"]:
        raise NotFoundError("Schemat hittades inte.")
    return schedule


def schedule_staff(employer: Dict) -> List[StaffMember]:
    _require_employer(employer)
    return [
        StaffMember(
            key=s["key"],
            name=s["name"],
            role=s["role"],
            max_consecutive_days=s["max_consecutive_days"],
            employment_type=s.get("employment_type"),
        )
        for s in db.list_schedule_staff(employer["id"])
    ]


def generate_for_employer(
    employer: Dict,
    start_date: str,
    end_date: str,
    requirements: Sequence[Requirement],
    rules: Optional[Rules] = None,
    pharmacy_hours: Optional[Iterable[PharmacyHours]] = None,
) -> GenerationResult:
    """Run the generator over the employer's current staff list."""
    staff = schedule_staff(employer)
    try:
        result = generate_schedule(start_date, end_date, requirements, staff, rules, pharmacy_hours)
    except ValueError as e:
        raise BusinessRuleError(str(e))
    log.info(
        "Schedule generated",
        extra={"employer_id": employer["id"], "slots": len(result.schedule), "warnings": len(result.warnings)},
    )
    return result


def save(
    employer: Dict,
    name: str,
    period_start: str,
    period_end: str,
    slots: Sequence[Dict],
    schedule_id: int | None = None,
) -> int:
    _require_employer(employer)
    name = (name or "").strip()
    if not name:
        raise BusinessRuleError("Schemat behöver ett namn.")
    if not period_start or not period_end or period_end < period_start:
        raise BusinessRuleError("Ogiltig period.")
    if not all(_is_valid_slot(s) for s in slots):
        raise BusinessRuleError(SLOT_DATA_UNREADABLE)
    saved_id = db.save_schedule(employer["id"], name, period_start, period_end, slots, schedule_id)
    if saved_id is None:
        raise NotFoundError("Schemat hittades inte.")
    return saved_id


def list_schedules(employer: Dict) -> List[Dict]:
    _require_employer(employer)
    return db.list_schedules(employer["id"])


def get_schedule(employer: Dict, schedule_id: int) -> Tuple[Dict, List[Dict]]:
    schedule = _get_owned_schedule(employer, schedule_id)
    return schedule, db.list_schedule_shifts(schedule_id)


def delete(employer: Dict, schedule_id: int) -> None:
    _require_employer(employer)
    if not db.delete_schedule(employer["id"], schedule_id):
        raise NotFoundError("Schemat hittades inte.")


def reassign(employer: Dict, schedule_shift_id: int, staff_key: str | None) -> Dict:
    """
    Put another staff member on a slot, or mark it unfilled with None.
    The new person must hold exactly the slot's role.
    """
    _require_employer(employer)
    slot = db.get_schedule_shift(schedule_shift_id)
    if not slot or slot["employer_id"] != employer["id"]:
        raise NotFoundError("Passet hittades inte i schemat.")

    notes = (slot.get("notes") or "").replace(REASSIGNED_NOTE, "").strip()
    notes = f"{notes} {REASSIGNED_NOTE}".strip()

    if not staff_key:
        db.update_schedule_shift_assignment(schedule_shift_id, None, None, notes)
        return db.get_schedule_shift(schedule_shift_id)

    member = next((s for s in db.list_schedule_staff(employer["id"]) if s["key"] == staff_key), None)
    if not member:
        raise BusinessRuleError("Personen finns inte i din personallista.")
    if member["role"] != slot["required_role"]:
        raise BusinessRuleError(
            f"{member['name']} har rollen {role_label(member['role'])}, passet kräver {role_label(slot['required_role'])}."
        )
    db.update_schedule_shift_assignment(schedule_shift_id, staff_key, member["name"], notes)
    return db.get_schedule_shift(schedule_shift_id)


def publish_unfilled(
    employer: Dict,
    schedule_id: int,
    hourly_rate: float | None = None,
    lunch_minutes: int | None = None,
) -> Tuple[int, List[str]]:
    """
    Post every unfilled, not yet published slot as an open shift.
    Returns (published count, per-slot error messages).
    """
    schedule = _get_owned_schedule(employer, schedule_id)
    profile = db.get_profile(employer["id"]) or {}
    published = 0
    errors: List[str] = []

    for slot in db.list_schedule_shifts(schedule_id):
        if not slot["is_unfilled"] or slot.get("published_shift_need_id"):
            continue
        label = f"{slot['date']} {slot['start_time']}-{slot['end_time']}"
        if slot["date"] < today():
            errors.append(f"{label}: datumet har passerat")
            continue
        if not is_employee_role(slot["required_role"]):
            errors.append(f"{label}: ogiltig roll")
            continue
        data = {
            "title": f"{slot['required_role']} Behövs",
            "description": f"From schedule: {schedule['schedule_name'] or 'Unnamed'}",
            "required_role": slot["required_role"],
            "lunch_minutes": lunch_minutes if lunch_minutes is not None else slot.get("lunch_minutes"),
            "hourly_rate": hourly_rate,
            "location": profile.get("city"),
        }
        try:
            ids = db.create_shift_needs(employer["id"], data, [(slot["date"], slot["start_time"], slot["end_time"])])
        except Exception as e:
            log.error("Failed to publish schedule slot", extra={"schedule_shift_id": slot["id"], "error": str(e)})
            errors.append(f"{label}: {e}")
            continue
        db.link_published_shift(slot["id"], ids[0])
        published += 1

    if published:
        db.set_schedule_status(schedule_id, "published")
    log.info("Schedule published", extra={"schedule_id": schedule_id, "published": published, "errors": len(errors)})
    return published, errors


def csv_for_schedule(employer: Dict, schedule_id: int) -> Tuple[str, str]:
    schedule, slots = get_schedule(employer, schedule_id)
    return export_csv(slots, schedule["schedule_name"], schedule["period_start_date"], schedule["period_end_date"])


def add_manual_staff(employer: Dict, full_name: str, role: str, max_consecutive_days: int | None = None) -> int:
    _require_employer(employer)
    if not (full_name or "").strip():
        raise BusinessRuleError("Namn krävs.")
    if not is_employee_role(role):
        raise BusinessRuleError("Ogiltig roll.")
    if max_consecutive_days is not None and max_consecutive_days < 1:
        raise BusinessRuleError("Max antal dagar i följd måste vara minst 1.")
    return db.add_manual_staff(
        employer["id"], full_name, role, max_consecutive_days or db.DEFAULT_MAX_CONSECUTIVE_DAYS
    )


def remove_manual_staff(employer: Dict, staff_id: int) -> None:
    _require_employer(employer)
    if not db.remove_manual_staff(employer["id"], staff_id):
        raise NotFoundError("Personen hittades inte.")


# --- form parsing ---------------------------------------------------------


def _parse_days(raw: str) -> List[int]:
    days = []
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit() or not 0 <= int(part) <= 6:
            raise BusinessRuleError(f"Ogiltig veckodag: {part} (0 = söndag ... 6 = lördag)")
        days.append(int(part))
    return sorted(set(days))


def parse_requirement_lines(text: str) -> List[Requirement]:
    """
    One requirement per line: `days;start;end;role;count[;lunch]`, e.g.
    `1,2,3,4,5;08:00;17:00;pharmacist;2;ja`.
    """
    requirements = []
    for lineno, line in enumerate((text or "").splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = [p.strip() for p in line.split(";")]
        if len(parts) < 5:
            raise BusinessRuleError(f"Rad {lineno}: förväntade dagar;start;slut;roll;antal")
        if not parts[4].isdigit():
            raise BusinessRuleError(f"Rad {lineno}: antal måste vara ett heltal")
        if not (is_valid_time(parts[1]) and is_valid_time(parts[2])):
            raise BusinessRuleError(f"Rad {lineno}: tider skrivs HH:MM")
        if not is_employee_role(parts[3]):
            raise BusinessRuleError(f"Rad {lineno}: okänd roll {parts[3]}")
        requirements.append(
            Requirement(
                days_of_week=_parse_days(parts[0]),
                start_time=parts[1],
                end_time=parts[2],
                required_role=parts[3],
                required_count=int(parts[4]),
                include_lunch=len(parts) > 5 and parts[5].lower() in ("1", "ja", "yes", "true"),
            )
        )
    return requirements


def parse_min_staffing(text: str) -> List[MinStaffing]:
    """`role:count` pairs separated by commas or new lines."""
    result = []
    for chunk in (text or "").replace("\n", ",").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        role, _, count = chunk.partition(":")
        if not count.strip().isdigit():
            raise BusinessRuleError(f"Ogiltig minimibemanning: {chunk}")
        result.append(MinStaffing(role=role.strip(), count=int(count)))
    return result


def parse_pharmacy_hours(text: str) -> Optional[List[PharmacyHours]]:
    """
    `day;open;close` per line; a day with no times is closed. Days left out
    are closed too. Blank input means opening hours are unknown.
    """
    lines = [l.strip() for l in (text or "").splitlines() if l.strip()]
    if not lines:
        return None
    hours = []
    for line in lines:
        parts = [p.strip() for p in line.split(";")] + ["", ""]
        days = _parse_days(parts[0])
        for d in days:
            hours.append(PharmacyHours(day_of_week=d, open_time=parts[1] or None, close_time=parts[2] or None))
    return hours
