"""
Greedy staff schedule generator.

Builds the slots a pharmacy needs between two dates from weekly requirements
and minimum-staffing rules, then assigns each slot to the eligible staff
member with the fewest hours so far. No I/O happens here; callers load the
staff list and persist the result.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from core.roles import EMPLOYEE_ROLES

DEFAULT_MAX_CONSECUTIVE_DAYS = 5
DEFAULT_DAY_START = "09:00"
DEFAULT_DAY_END = "17:00"
MIN_STAFFING_NOTE = "Minimum staffing"


@dataclass
class Requirement:
    days_of_week: List[int]  # 0 = Sunday ... 6 = Saturday
    start_time: str
    end_time: str
    required_role: str
    required_count: int = 1
    include_lunch: bool = False


@dataclass
class StaffMember:
    key: str
    name: str
    role: str
    max_consecutive_days: int = DEFAULT_MAX_CONSECUTIVE_DAYS
    min_hours: float = 0
    employment_type: Optional[str] = None


@dataclass
class MinStaffing:
    role: str
    count: int


@dataclass
class Rules:
    default_lunch_minutes: int = 30
    min_staffing: List[MinStaffing] = field(default_factory=list)


@dataclass
class PharmacyHours:
    day_of_week: int
    open_time: Optional[str]
    close_time: Optional[str]


@dataclass
class GeneratedShift:
    date: str
    start_time: str
    end_time: str
    required_role: str
    lunch_minutes: Optional[int] = None
    assigned_staff_key: Optional[str] = None
    assigned_staff_name: Optional[str] = None
    is_unfilled: bool = True
    notes: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class GenerationResult:
    schedule: List[GeneratedShift]
    warnings: List[str]
    hours_by_staff: Dict[str, float] = field(default_factory=dict)


def _minutes(hhmm: str) -> int:
    try:
        hours, minutes = hhmm.strip().split(":")[:2]
        return int(hours) * 60 + int(minutes)
    except (AttributeError, ValueError):
        raise ValueError(f"invalid time: {hhmm!r}") from None


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"invalid date: {value!r}") from None


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


def _slot_hours(slot: GeneratedShift) -> float:
    worked = _minutes(slot.end_time) - _minutes(slot.start_time) - (slot.lunch_minutes or 0)
    return max(worked, 0) / 60.0


def _validate(start: date, end: date, requirements, staff, rules) -> None:
    if end < start:
        raise ValueError("end date is before start date")
    if not staff:
        raise ValueError("no staff to schedule")
    has_min_staffing = any(r.count > 0 for r in rules.min_staffing)
    if not requirements and not has_min_staffing:
        raise ValueError("define staffing requirements or minimum staffing rules")
    for req in requirements:
        if req.required_role not in EMPLOYEE_ROLES:
            raise ValueError(f"unknown role: {req.required_role}")
        if _minutes(req.end_time) <= _minutes(req.start_time):
            raise ValueError(f"end time {req.end_time} is not after start time {req.start_time}")
        if req.required_count < 0:
            raise ValueError("required count must not be negative")
        if any(d not in range(7) for d in req.days_of_week):
            raise ValueError("days of week must be between 0 (Sunday) and 6 (Saturday)")
    for rule in rules.min_staffing:
        if rule.role not in EMPLOYEE_ROLES:
            raise ValueError(f"unknown role: {rule.role}")
    for member in staff:
        if member.role not in EMPLOYEE_ROLES:
            raise ValueError(f"unknown role for {member.name}: {member.role}")


def _slots_for_day(
    d: date,
    requirements: Sequence[Requirement],
    rules: Rules,
    hours: Optional[PharmacyHours],
) -> List[GeneratedShift]:
    dow = day_of_week(d)
    iso = d.isoformat()
    slots: List[GeneratedShift] = []

    for req in requirements:
        if dow not in req.days_of_week:
            continue
        lunch = rules.default_lunch_minutes if req.include_lunch else None
        for _ in range(req.required_count):
            slots.append(GeneratedShift(iso, req.start_time, req.end_time, req.required_role, lunch))

    day_start = (hours.open_time if hours else None) or DEFAULT_DAY_START
    day_end = (hours.close_time if hours else None) or DEFAULT_DAY_END
    for rule in rules.min_staffing:
        missing = rule.count - sum(1 for s in slots if s.required_role == rule.role)
        for _ in range(max(missing, 0)):
            slots.append(
                GeneratedShift(
                    iso,
                    day_start,
                    day_end,
                    rule.role,
                    rules.default_lunch_minutes or None,
                    notes=MIN_STAFFING_NOTE,
                )
            )

    slots.sort(key=lambda s: (s.start_time, s.end_time))
    return slots


def _streak_before(worked_days: set, d: date) -> int:
    """Consecutive worked days immediately before `d`."""
    streak = 0
    cursor = d - timedelta(days=1)
    while cursor in worked_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def generate_schedule(
    start_date,
    end_date,
    requirements: Iterable[Requirement],
    staff: Iterable[StaffMember],
    rules: Optional[Rules] = None,
    pharmacy_hours: Optional[Iterable[PharmacyHours]] = None,
) -> GenerationResult:
    start = _as_date(start_date)
    end = _as_date(end_date)
    requirements = [r for r in requirements if r.required_count > 0 and r.days_of_week]
    staff = list(staff)
    rules = rules or Rules()
    _validate(start, end, requirements, staff, rules)

    hours_by_dow: Optional[Dict[int, PharmacyHours]] = None
    if pharmacy_hours is not None:
        hours_by_dow = {h.day_of_week: h for h in pharmacy_hours}

    assigned_hours: Dict[str, float] = {m.key: 0.0 for m in staff}
    worked_days: Dict[str, set] = {m.key: set() for m in staff}
    schedule: List[GeneratedShift] = []
    warnings: List[str] = []

    d = start
    while d <= end:
        day_hours = None
        if hours_by_dow is not None:
            day_hours = hours_by_dow.get(day_of_week(d))
            if day_hours is None or not day_hours.open_time:
                d += timedelta(days=1)
                continue

        for slot in _slots_for_day(d, requirements, rules, day_hours):
            candidates = [
                m
                for m in staff
                if m.role == slot.required_role
                and d not in worked_days[m.key]
                and _streak_before(worked_days[m.key], d) + 1 <= (m.max_consecutive_days or DEFAULT_MAX_CONSECUTIVE_DAYS)
            ]
            if candidates:
                chosen = min(candidates, key=lambda m: (assigned_hours[m.key], m.name, m.key))
                slot.assigned_staff_key = chosen.key
                slot.assigned_staff_name = chosen.name
                slot.is_unfilled = False
                assigned_hours[chosen.key] += _slot_hours(slot)
                worked_days[chosen.key].add(d)
            else:
                warnings.append(f"{slot.date}: no available {slot.required_role} for {slot.start_time}-{slot.end_time}")
            schedule.append(slot)

        d += timedelta(days=1)

    return GenerationResult(schedule=schedule, warnings=warnings, hours_by_staff=assigned_hours)


__all__ = [
    "DEFAULT_MAX_CONSECUTIVE_DAYS",
    "Requirement",
    "StaffMember",
    "MinStaffing",
    "Rules",
    "PharmacyHours",
    "GeneratedShift",
    "GenerationResult",
    "day_of_week",
    "generate_schedule",
]
