import pytest

from app.email_templates import EMAIL_KINDS, build_email, shift_payload


def _shift(**kw):
    shift = {
        "title": "Kvällspass",
        "description": "Receptexpedition",
        "date": "2030-01-07",
        "start_time": "16:00",
        "end_time": "21:00",
        "location": "Umeå",
        "hourly_rate": 320,
        "is_urgent": 0,
        "urgent_pay_adjustment": None,
        "employer_name": "Apotek Norr",
        "employer_city": "Umeå",
    }
    shift.update(kw)
    return shift


def test_unknown_kind_raises():
    with pytest.raises(ValueError):
        build_email("nope", {})


def test_missing_required_field_raises():
    with pytest.raises(ValueError):
        build_email("shiftApplicationAccepted", {})


def test_payload_values_are_escaped():
    subject, html = build_email("notification", {"title": "Hej", "message": "<script>alert(1)</script>"})
    assert subject == "Hej"
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_new_shift_subject_mentions_city_or_urgency():
    subject, html = build_email("newShiftNotification", shift_payload(_shift()))
    assert subject == "Nytt pass i Umeå: Kvällspass"
    assert "320 kr/tim" in html

    subject, html = build_email(
        "newShiftNotification", shift_payload(_shift(is_urgent=1, urgent_pay_adjustment=50))
    )
    assert subject.startswith("BRÅDSKANDE")
    assert "+50 kr/tim" in html


def test_digest_with_several_shifts():
    payload = {"shifts": [shift_payload(_shift()), shift_payload(_shift(title="Dagpass"))]}
    subject, html = build_email("newShiftDigest", payload)
    assert subject == "2 nya arbetspass som matchar dig"
    assert "Kvällspass" in html and "Dagpass" in html


def test_digest_with_one_shift_uses_single_template():
    subject, _ = build_email("newShiftDigest", {"shifts": [shift_payload(_shift(employer_city=None))]})
    assert subject == "Nytt arbetspass: Kvällspass"


def test_invitation_with_activation_link():
    _, html = build_email(
        "employeeInvitation",
        {"company_name": "Apotek Norr", "activation_link": "https://x.se/password-reset/confirm?token=t"},
    )
    assert "Aktivera konto" in html
    assert "https://x.se/password-reset/confirm?token=t" in html


def test_every_kind_is_registered():
    assert {"emailVerification", "passwordReset", "sickReport", "contactForm"} <= set(EMAIL_KINDS)
