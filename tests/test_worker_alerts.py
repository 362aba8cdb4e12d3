import asyncio

import pytest

import app.notify as notify
import worker.main as worker


def _shift(shift_id=1, role="säljare", location="Stockholm City", employer_city="Stockholm"):
    return {
        "id": shift_id,
        "title": f"Pass {shift_id}",
        "description": None,
        "date": "2030-01-07",
        "start_time": "09:00",
        "end_time": "17:00",
        "location": location,
        "required_role": role,
        "hourly_rate": 250,
        "is_urgent": 0,
        "urgent_pay_adjustment": None,
        "employer_name": "Apotek City",
        "employer_city": employer_city,
    }


def _recipient(user_id, role="pharmacist", cities=None, email=None):
    return {
        "id": user_id,
        "email": email or f"user{user_id}@example.com",
        "role": role,
        "full_name": f"User {user_id}",
        "notification_cities": cities,
        "city": None,
    }


@pytest.fixture
def deliveries(monkeypatch):
    log = []
    monkeypatch.setattr(worker, "create_shift_alert_deliveries", lambda **kw: log.append(("create", kw)))
    monkeypatch.setattr(worker, "mark_shift_alerts_sent", lambda **kw: log.append(("sent", kw)))
    monkeypatch.setattr(worker, "mark_shift_alerts_failed", lambda **kw: log.append(("failed", kw)))
    return log


@pytest.mark.parametrize(
    "cities,location,expected",
    [
        ([], "Göteborg", True),
        (["Any"], "Göteborg", True),
        (["göteborg"], "Apotek Göteborg Centrum", True),
        (["Lund"], "Lunds universitet", False),
        (["Uppsala"], "", False),
    ],
)
def test_city_matches(cities, location, expected):
    assert worker.city_matches(cities, location) is expected


def test_city_matches_falls_back_to_employer_city():
    assert worker.city_matches(["Malmö"], "Centrum", "Malmö") is True


def test_run_once_groups_matches_into_one_email(monkeypatch, deliveries):
    shifts = [_shift(1), _shift(2, role="pharmacist")]
    recipients = [
        _recipient(10, role="pharmacist", cities="Stockholm"),
        _recipient(11, role="säljare", cities="Göteborg"),
        _recipient(12, role="säljare"),
    ]
    sent = []
    monkeypatch.setattr(worker, "list_unalerted_open_shifts", lambda today, since=None: shifts)
    monkeypatch.setattr(worker, "list_alert_recipients", lambda roles: recipients)
    monkeypatch.setattr(
        worker, "send_kind_email", lambda to, kind, payload, user_id=None: sent.append((to, kind, payload)) or True
    )

    sent_count = asyncio.run(worker.run_once())

    assert sent_count == 2
    by_email = {to: payload for to, _, payload in sent}
    # Pharmacists may take both shifts; the sales clerk only the sales shift.
    assert [s["shift_title"] for s in by_email["user10@example.com"]["shifts"]] == ["Pass 1", "Pass 2"]
    assert [s["shift_title"] for s in by_email["user12@example.com"]["shifts"]] == ["Pass 1"]
    assert "user11@example.com" not in by_email
    assert {kind for _, kind, _ in sent} == {"newShiftDigest"}
    assert ("create", {"user_id": 10, "shift_ids": [1, 2]}) in deliveries
    assert sum(1 for kind, _ in deliveries if kind == "sent") == 2


def test_run_once_without_shifts_sends_nothing(monkeypatch, deliveries):
    monkeypatch.setattr(worker, "list_unalerted_open_shifts", lambda today, since=None: [])
    monkeypatch.setattr(worker, "list_alert_recipients", lambda roles: pytest.fail("should not load recipients"))

    assert asyncio.run(worker.run_once()) == 0
    assert deliveries == []


def test_run_once_logs_and_marks_failed_on_smtp_failure(monkeypatch, deliveries, caplog):
    monkeypatch.setattr(worker, "list_unalerted_open_shifts", lambda today, since=None: [_shift(1)])
    monkeypatch.setattr(worker, "list_alert_recipients", lambda roles: [_recipient(10)])
    monkeypatch.setattr(notify, "record_email_delivery", lambda **kw: None)

    def _fail(*args, **kwargs):
        raise RuntimeError("SMTP down")

    monkeypatch.setattr(notify, "send_html_email", _fail)

    with caplog.at_level("ERROR"):
        sent_count = asyncio.run(worker.run_once())
        assert any("Failed to send email" in rec.message for rec in caplog.records)

    assert sent_count == 0
    assert any(kind == "failed" for kind, _ in deliveries)


def test_preview_groups_without_writing(monkeypatch, deliveries):
    from scripts import preview_shift_alerts as preview

    monkeypatch.setattr(preview, "list_unalerted_open_shifts", lambda today, limit=500: [_shift(1), _shift(2, role="pharmacist")])
    monkeypatch.setattr(
        preview,
        "list_alert_recipients",
        lambda roles: [_recipient(1, "säljare", "Stockholm"), _recipient(2, "pharmacist", "Malmö")],
    )

    digest = preview.collect()

    assert list(digest) == ["user1@example.com"]
    assert [s["id"] for s in digest["user1@example.com"]] == [1]
    assert deliveries == []
