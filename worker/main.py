import asyncio
import logging
import os
import re
from typing import Dict, List

from dotenv import load_dotenv

from app.email_templates import shift_payload
from app.notify import send_kind_email
from core.database import (
    create_shift_alert_deliveries,
    init_db,
    list_alert_recipients,
    list_unalerted_open_shifts,
    mark_shift_alerts_failed,
    mark_shift_alerts_sent,
    split_list,
    utcnow_iso,
)
from core.roles import EMPLOYEE_ROLES, roles_that_can_take

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

# -------- CONFIG --------
CHECK_INTERVAL = int(os.getenv("CHECK_INTERVAL", "60"))  # seconds between checks
# TEST_MODE=true runs a single cycle and exits.
TEST_MODE = os.getenv("TEST_MODE", "false").lower() == "true"
# ------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")


def city_matches(cities: List[str], *locations: str | None) -> bool:
    """
    Whole-word, case-insensitive match of any preferred city against the
    given location strings. No cities, or "Any", matches everything.
    """
    wanted = [c.strip().lower() for c in cities if c and c.strip()]
    if not wanted or "any" in wanted:
        return True

    for location in locations:
        text = (location or "").lower()
        if not text:
            continue
        for city in wanted:
            if re.search(rf"\b{re.escape(city)}\b", text):
                return True
    return False


def shift_matches_recipient(shift: Dict, recipient: Dict) -> bool:
    """Role hierarchy plus notification cities."""
    if recipient.get("role") not in roles_that_can_take(shift.get("required_role")):
        return False
    cities = split_list(recipient.get("notification_cities"))
    return city_matches(cities, shift.get("location"), shift.get("employer_city"))


async def run_once(since: str | None = None) -> int:
    """
    Do one full check:
    - load open shifts nobody has been alerted about
    - match them to eligible employees
    - send one digest email per employee
    Returns number of emails sent.
    """
    log.info("Checking for new shifts...")

    shifts = list_unalerted_open_shifts(utcnow_iso()[:10], since=since)
    if not shifts:
        log.info("No new shifts this cycle.")
        return 0

    recipients = list_alert_recipients(EMPLOYEE_ROLES)
    if not recipients:
        log.info("No eligible recipients. Nothing to send.")
        return 0

    # user_id -> (recipient, shifts)
    matches: Dict[int, tuple[Dict, List[Dict]]] = {}
    for shift in shifts:
        for recipient in recipients:
            email = (recipient.get("email") or "").strip().lower()
            if not email or "@" not in email:
                continue
            if shift_matches_recipient(shift, recipient):
                matches.setdefault(int(recipient["id"]), (recipient, []))[1].append(shift)

    sent_count = 0
    for user_id, (recipient, matched) in matches.items():
        shift_ids = [int(s["id"]) for s in matched]
        create_shift_alert_deliveries(user_id=user_id, shift_ids=shift_ids)

        payload = {"shifts": [shift_payload(s) for s in matched]}
        if send_kind_email(recipient["email"], "newShiftDigest", payload, user_id=user_id):
            sent_count += 1
            mark_shift_alerts_sent(user_id=user_id, shift_ids=shift_ids)
        else:
            mark_shift_alerts_failed(user_id=user_id, shift_ids=shift_ids, error="smtp send failed")

    log.info("Cycle complete", extra={"shifts": len(shifts), "sent_emails": sent_count})
    return sent_count


async def main():
    init_db()

    since = None
    while True:
        started = utcnow_iso()
        try:
            await run_once(since)
            since = started
        except Exception as e:
            log.exception("Error during run", extra={"error": str(e)})

        if TEST_MODE:
            break

        log.info("Sleeping", extra={"seconds": CHECK_INTERVAL})
        await asyncio.sleep(CHECK_INTERVAL)


if __name__ == "__main__":
    asyncio.run(main())
