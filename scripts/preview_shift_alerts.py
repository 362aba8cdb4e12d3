"""
Dry run of the shift alert worker: print which employee would get which
open shifts, without sending email or writing delivery rows.

Usage:
  python -m scripts.preview_shift_alerts
  python -m scripts.preview_shift_alerts --email anna@example.com
"""
from __future__ import annotations

import argparse
from typing import Dict, List

from core.database import list_alert_recipients, list_unalerted_open_shifts, utcnow_iso
from core.roles import EMPLOYEE_ROLES, role_label
from worker.main import shift_matches_recipient


def collect(email: str | None = None, limit: int = 500) -> Dict[str, List[Dict]]:
    shifts = list_unalerted_open_shifts(utcnow_iso()[:10], limit=limit)
    recipients = list_alert_recipients(EMPLOYEE_ROLES)
    if email:
        recipients = [r for r in recipients if (r.get("email") or "").lower() == email.lower()]

    digest: Dict[str, List[Dict]] = {}
    for recipient in recipients:
        matched = [s for s in shifts if shift_matches_recipient(s, recipient)]
        if matched:
            digest[recipient["email"]] = matched
    return digest


def main() -> None:
    parser = argparse.ArgumentParser(description="Preview the next shift alert digest.")
    parser.add_argument("--email", default=None, help="Only show this recipient")
    parser.add_argument("--limit", type=int, default=500, help="Max shifts to consider")
    args = parser.parse_args()

    digest = collect(args.email, args.limit)
    if not digest:
        print("Nothing would be sent.")
        return

    for email, shifts in digest.items():
        print(f"\n{email}: {len(shifts)} pass")
        for s in shifts:
            where = s.get("location") or s.get("employer_city") or "-"
            print(f"  #{s['id']} {s['date']} {s['start_time']}-{s['end_time']} {s['title']} ({role_label(s['required_role'])}, {where})")


if __name__ == "__main__":
    main()
