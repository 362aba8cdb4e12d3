from datetime import date

import pytest

from core.scheduling import (
    MinStaffing,
    PharmacyHours,
    Requirement,
    Rules,
    StaffMember,
    day_of_week,
    generate_schedule,
)
from core.scheduling.generator import MIN_STAFFING_NOTE

# 2030-01-07 is a Monday, 2030-01-13 the following Sunday.
MONDAY = "2030-01-07"
SUNDAY = "2030-01-13"
WEEKDAYS = [1, 2, 3, 4, 5]


def _pharmacists(*names, max_days=5):
    return [StaffMember(key=f"manual:{i}", name=n, role="pharmacist", max_consecutive_days=max_days) for i, n in enumerate(names)]


def test_day_of_week_counts_from_sunday():
    assert day_of_week(date(2030, 1, 6)) == 0
    assert day_of_week(date(2030, 1, 7)) == 1
    assert day_of_week(date(2030, 1, 12)) == 6


def test_weekday_requirement_creates_one_slot_per_day_and_balances_hours():
    req = Requirement(days_of_week=WEEKDAYS, start_time="08:00", end_time="16:00", required_role="pharmacist")

    result = generate_schedule(MONDAY, SUNDAY, [req], _pharmacists("Anna", "Bo"))

    assert len(result.schedule) == 5
    assert result.warnings == []
    assert [s.assigned_staff_name for s in result.schedule] == ["Anna", "Bo", "Anna", "Bo", "Anna"]
    assert result.hours_by_staff == {"manual:0": 24.0, "manual:1": 16.0}


def test_max_consecutive_days_leaves_slot_unfilled():
    req = Requirement(days_of_week=WEEKDAYS, start_time="08:00", end_time="16:00", required_role="pharmacist")

    result = generate_schedule(MONDAY, SUNDAY, [req], _pharmacists("Anna", max_days=2))

    unfilled = [s for s in result.schedule if s.is_unfilled]
    assert [s.date for s in unfilled] == ["2030-01-09"]
    assert len(result.warnings) == 1
    assert "2030-01-09" in result.warnings[0]


def test_role_must_match_exactly():
    req = Requirement(days_of_week=[1], start_time="08:00", end_time="16:00", required_role="säljare")

    result = generate_schedule(MONDAY, SUNDAY, [req], _pharmacists("Anna"))

    assert len(result.schedule) == 1
    assert result.schedule[0].is_unfilled is True
    assert result.schedule[0].assigned_staff_key is None


def test_lunch_is_deducted_from_hours():
    req = Requirement(
        days_of_week=[1], start_time="08:00", end_time="16:00", required_role="pharmacist", include_lunch=True
    )

    result = generate_schedule(MONDAY, SUNDAY, [req], _pharmacists("Anna"), Rules(default_lunch_minutes=30))

    assert result.schedule[0].lunch_minutes == 30
    assert result.hours_by_staff["manual:0"] == 7.5


def test_min_staffing_uses_opening_hours_and_skips_closed_days():
    rules = Rules(min_staffing=[MinStaffing(role="pharmacist", count=1)])
    hours = [PharmacyHours(day_of_week=6, open_time="10:00", close_time="15:00")]

    result = generate_schedule(MONDAY, SUNDAY, [], _pharmacists("Anna"), rules, hours)

    assert len(result.schedule) == 1
    slot = result.schedule[0]
    assert slot.date == "2030-01-12"
    assert (slot.start_time, slot.end_time) == ("10:00", "15:00")
    assert slot.notes == MIN_STAFFING_NOTE


def test_min_staffing_counts_existing_requirement_slots():
    req = Requirement(days_of_week=[1], start_time="08:00", end_time="16:00", required_role="pharmacist")
    rules = Rules(min_staffing=[MinStaffing(role="pharmacist", count=2)])

    result = generate_schedule(MONDAY, MONDAY, [req], _pharmacists("Anna", "Bo"), rules)

    assert len(result.schedule) == 2
    assert sum(1 for s in result.schedule if s.notes == MIN_STAFFING_NOTE) == 1


@pytest.mark.parametrize(
    "start,end,reqs,staff",
    [
        (SUNDAY, MONDAY, None, None),
        (MONDAY, SUNDAY, None, []),
        (MONDAY, SUNDAY, [], None),
    ],
)
def test_invalid_input_raises(start, end, reqs, staff):
    default_req = [Requirement(days_of_week=[1], start_time="08:00", end_time="16:00", required_role="pharmacist")]
    with pytest.raises(ValueError):
        generate_schedule(
            start,
            end,
            default_req if reqs is None else reqs,
            _pharmacists("Anna") if staff is None else staff,
        )


def test_unknown_role_and_bad_times_raise():
    staff = _pharmacists("Anna")
    with pytest.raises(ValueError):
        generate_schedule(MONDAY, SUNDAY, [Requirement([1], "08:00", "16:00", "kassör")], staff)
    with pytest.raises(ValueError):
        generate_schedule(MONDAY, SUNDAY, [Requirement([1], "16:00", "08:00", "pharmacist")], staff)
