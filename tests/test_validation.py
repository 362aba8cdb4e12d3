from datetime import date

import pytest

from app.validation import (
    is_valid_email,
    is_valid_password,
    is_valid_time,
    parse_date,
    parse_optional_float,
    parse_optional_int,
)


@pytest.mark.parametrize(
    "email,expected",
    [
        ("user@example.com", True),
        ("User.Name+tag@example.co.uk", True),
        ("  user@example.se  ", True),  # trims spaces
        ("bademail", False),
        ("", False),
        ("user@no-tld", False),
        ("user @example.com", False),
        ("@gmail.com", False),
        ("user@xn--exmple-cua.com", False),
        ("user..name@example.com", False),
        ("user@.example.com", False),
    ],
)
def test_is_valid_email(email: str, expected: bool):
    assert is_valid_email(email) is expected


@pytest.mark.parametrize(
    "pw,expected",
    [
        ("Passw0rd", True),
        ("abc12345", True),
        ("Abcdef1!", True),
        ("A" * 23 + "1a", True),  # 25 chars
        ("short1", False),
        ("  Passw0rd  ", False),
        ("Passw0rd\n", False),
        ("lettersOnly", False),
        ("12345678", False),
        ("", False),
        ("pass word1", False),
        ("a" * 26 + "1", False),  # too long
    ],
)
def test_is_valid_password(pw: str, expected: bool):
    assert is_valid_password(pw) is expected


def test_parse_date():
    assert parse_date("2030-01-07") == date(2030, 1, 7)
    assert parse_date("07/01/2030") is None
    assert parse_date("") is None


@pytest.mark.parametrize("value,expected", [("08:30", True), ("23:59", True), ("24:00", False), ("8:30", False), ("", False)])
def test_is_valid_time(value, expected):
    assert is_valid_time(value) is expected


def test_optional_numbers_accept_swedish_decimal_comma():
    assert parse_optional_float("245,50") == 245.5
    assert parse_optional_float(" ") is None
    assert parse_optional_float("abc") is None
    assert parse_optional_int("30") == 30
    assert parse_optional_int("3.5") is None
