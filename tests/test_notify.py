import pytest

import app.notify as notify


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    deliveries = []
    monkeypatch.setattr(notify, "send_html_email", lambda to, subject, html: sent.append((to, subject, html)))
    monkeypatch.setattr(notify, "record_email_delivery", lambda **kw: deliveries.append(kw))
    return sent, deliveries


def test_send_kind_email_records_sent(outbox):
    sent, deliveries = outbox
    ok = notify.send_kind_email("a@example.com", "passwordReset", {"reset_link": "https://x/reset"}, user_id=3)

    assert ok is True
    assert sent[0][0] == "a@example.com"
    assert deliveries == [
        {"to_email": "a@example.com", "kind": "passwordReset", "subject": sent[0][1], "user_id": 3, "status": "sent"}
    ]


def test_send_kind_email_logs_and_records_failure(monkeypatch, caplog):
    deliveries = []

    def boom(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(notify, "send_html_email", boom)
    monkeypatch.setattr(notify, "record_email_delivery", lambda **kw: deliveries.append(kw))

    with caplog.at_level("ERROR"):
        ok = notify.send_kind_email("a@example.com", "passwordReset", {"reset_link": "https://x/reset"})

    assert ok is False
    assert any("Failed to send email" in rec.message for rec in caplog.records)
    assert deliveries[0]["status"] == "failed"
    assert deliveries[0]["error"] == "connection refused"


def test_notification_respects_email_opt_out(monkeypatch, outbox):
    sent, _ = outbox
    saved = []
    monkeypatch.setattr(notify, "create_notification", lambda uid, title, message, **kw: saved.append((uid, title)))
    profile = {"user_id": 4, "email": "b@example.com", "full_name": "Bo", "email_notifications": 0}

    assert notify.create_and_send_notification(4, "Hej", "Meddelande", profile=profile) is True
    assert saved == [(4, "Hej")]
    assert sent == []


def test_notification_unknown_user(monkeypatch, outbox):
    monkeypatch.setattr(notify, "get_profile", lambda uid: None)
    monkeypatch.setattr(notify, "create_notification", lambda *a, **k: pytest.fail("no notification"))

    assert notify.create_and_send_notification(99, "Hej", "Meddelande") is False


def test_notification_uses_generic_template(monkeypatch, outbox):
    sent, _ = outbox
    monkeypatch.setattr(notify, "create_notification", lambda *a, **k: None)
    profile = {"user_id": 4, "email": "b@example.com", "full_name": "Bo", "email_notifications": 1}

    notify.create_and_send_notification(4, "Nytt schema", "Schemat är publicerat.", "/my-schedule", profile=profile)

    assert len(sent) == 1
    assert "Schemat är publicerat." in sent[0][2]


def test_group_notification_narrows_roles(monkeypatch, outbox):
    seen_roles = []

    def fake_recipients(roles):
        seen_roles.append(tuple(roles))
        return [
            {"id": 1, "email": "p@example.com", "full_name": "P", "email_notifications": 1},
            {"id": 2, "email": "q@example.com", "full_name": "Q", "email_notifications": 0},
        ]

    monkeypatch.setattr(notify, "list_group_recipients", fake_recipients)
    monkeypatch.setattr(notify, "create_notification", lambda *a, **k: None)
    sent, _ = outbox

    count = notify.create_and_send_notification_to_group(
        "employee", "Nytt uppdrag", "Ett uppdrag har publicerats.", only_roles=["pharmacist"]
    )

    assert count == 2
    assert seen_roles == [("pharmacist",)]
    assert [to for to, _, _ in sent] == ["p@example.com"]


def test_group_notification_unknown_group():
    with pytest.raises(ValueError):
        notify.create_and_send_notification_to_group("admins", "x", "y")
