"""
CSV export of a saved or generated schedule.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import date
from typing import Dict, Iterable, Tuple

WEEKDAY_NAMES_SV = ["Söndag", "Måndag", "Tisdag", "Onsdag", "Torsdag", "Fredag", "Lördag"]

CSV_HEADERS = ["Date", "Day of Week", "Start Time", "End Time", "Role", "Assigned To", "Status", "Notes", "Published ID"]

BOM = "\ufeff"


def _weekday_sv(iso_date: str) -> str:
    try:
        d = date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        return "Invalid Date"
    return WEEKDAY_NAMES_SV[(d.weekday() + 1) % 7]


def _status(slot: Dict) -> str:
    published = slot.get("published_shift_need_id")
    if published:
        return f"Posted ({str(published)[:8]})"
    return "Open" if slot.get("is_unfilled") else "Filled"


def _assigned_to(slot: Dict) -> str:
    if slot.get("assigned_staff_name"):
        return slot["assigned_staff_name"]
    return "UNFILLED" if slot.get("is_unfilled") else "N/A"


def safe_file_name(name: str | None) -> str:
    return re.sub(r"[^a-z0-9_ .-]", "_", name, flags=re.IGNORECASE) if name else "schedule"


def export_csv(slots: Iterable[Dict], name: str | None, period_start: str, period_end: str) -> Tuple[str, str]:
    """
    Render schedule slots as CSV. Returns (file_name, content).

    Content starts with a UTF-8 BOM so spreadsheet tools detect the
    encoding; every field is quoted.
    """
    rows = sorted(slots, key=lambda s: (s.get("date") or "", s.get("start_time") or ""))

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for slot in rows:
        writer.writerow(
            [
                slot.get("date") or "",
                _weekday_sv(slot.get("date")),
                (slot.get("start_time") or "")[:5],
                (slot.get("end_time") or "")[:5],
                slot.get("required_role") or "",
                _assigned_to(slot),
                _status(slot),
                slot.get("notes") or "",
                slot.get("published_shift_need_id") or "",
            ]
        )

    file_name = f"{safe_file_name(name)}_{period_start}_to_{period_end}.csv"
    return file_name, BOM + buf.getvalue().rstrip("\n")


__all__ = ["CSV_HEADERS", "WEEKDAY_NAMES_SV", "export_csv", "safe_file_name"]
