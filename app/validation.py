"""
Input validation shared by the signup, invitation and profile forms.
"""
from __future__ import annotations

import re
from datetime import date, datetime

from email_validator import EmailNotValidError, validate_email
from password_strength import PasswordPolicy

# password_strength only knows specific test names; letters are checked by hand below.
password_policy = PasswordPolicy.from_names(length=8, numbers=1)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def is_valid_email(email: str) -> bool:
    email = (email or "").strip()
    if not email:
        return False
    # Reject punycode/IDNA domains for now
    domain = email.rsplit("@", 1)[-1].lower() if "@" in email else ""
    if not domain or domain.startswith("xn--") or ".xn--" in domain:
        return False
    if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", email):
        return False
    try:
        # Skip MX/deliverability checks; only validate syntax
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_password(pw: str) -> bool:
    """8-25 characters, at least one letter and one digit, no whitespace."""
    raw_pw = pw or ""
    if re.search(r"\s", raw_pw):
        return False
    if len(raw_pw) < 8 or len(raw_pw) > 25:
        return False
    if not (re.search(r"[A-Za-zÅÄÖåäö]", raw_pw) and re.search(r"\d", raw_pw)):
        return False
    return not password_policy.test(raw_pw)


def parse_date(value: str | None) -> date | None:
    """`YYYY-MM-DD` -> date, or None for blank/invalid input."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def is_valid_time(value: str | None) -> bool:
    return bool(_TIME_RE.match((value or "").strip()))


def parse_optional_float(value: str | None) -> float | None:
    value = (value or "").strip().replace(",", ".")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_optional_int(value: str | None) -> int | None:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


__all__ = [
    "is_valid_email",
    "is_valid_password",
    "parse_date",
    "is_valid_time",
    "parse_optional_float",
    "parse_optional_int",
]
