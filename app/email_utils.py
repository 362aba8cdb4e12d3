"""
Outgoing mail over SMTP (STARTTLS). Settings come from the environment:
SMTP_SERVER, SMTP_PORT, EMAIL_USER, EMAIL_PASSWORD and EMAIL_FROM.
"""
from __future__ import annotations

import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

DEFAULT_SENDER = "noreply@farmispoolen.se"


def sender_address() -> str:
    user = os.getenv("EMAIL_USER")
    server = os.getenv("SMTP_SERVER", "smtp.gmail.com").lower()
    # Gmail only relays mail sent as the logged-in account
    if user and "gmail" in server:
        return user
    return os.getenv("EMAIL_FROM") or user or DEFAULT_SENDER


def send_html_email(to_email: str, subject: str, html: str, text: str | None = None) -> None:
    """
    Send one multipart/alternative message. Raises when SMTP is not
    configured or the server refuses the message.
    """
    user = os.getenv("EMAIL_USER")
    password = os.getenv("EMAIL_PASSWORD")
    if not (user and password):
        raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender_address()
    msg["To"] = to_email
    if text:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    with smtplib.SMTP(os.getenv("SMTP_SERVER", "smtp.gmail.com"), int(os.getenv("SMTP_PORT", "587"))) as smtp:
        smtp.starttls()
        smtp.login(user, password)
        smtp.sendmail(msg["From"], [to_email], msg.as_string())
