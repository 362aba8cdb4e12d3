"""
Styled HTML emails (Swedish copy).

`build_email(kind, payload)` returns `(subject, html)`. Every value taken from
`payload` is HTML-escaped before it is placed in the markup.
"""
from __future__ import annotations

import html
import os
from datetime import datetime
from typing import Callable, Dict, Iterable, Tuple

PRIMARY_COLOR = "#059669"
LIGHT_BG_COLOR = "#F5F5F4"
DEFAULT_FOOTER = "Detta är ett automatiskt meddelande. Vänligen svara inte på detta email."
NOT_SPECIFIED = "Ej specificerat"


def _base_url() -> str:
    return (os.getenv("PUBLIC_BASE_URL") or "https://www.farmispoolen.se").rstrip("/")


def _e(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def _require(kind: str, payload: Dict, *fields: str) -> None:
    missing = [f for f in fields if not payload.get(f)]
    if missing:
        raise ValueError(f"Missing data for {kind} email: {', '.join(missing)}")


def _button(label: str, href: str) -> str:
    return (
        f'<a href="{_e(href)}" style="display: inline-block; background-color: {PRIMARY_COLOR}; '
        "color: white; padding: 12px 24px; margin-top: 20px; text-decoration: none; "
        f'border-radius: 8px; font-weight: bold;">{_e(label)}</a>'
    )


def styled_email(title: str, body_html: str, footer_text: str = DEFAULT_FOOTER) -> str:
    """Wrap already-escaped body markup in the branded green layout."""
    year = datetime.utcnow().year
    return f"""
    <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #374151; max-width: 600px; margin: 20px auto; border: 1px solid #E5E7EB; border-radius: 8px; overflow: hidden;">
      <div style="background-color: {PRIMARY_COLOR}; color: white; padding: 20px; text-align: center;">
        <strong style="font-size: 20px;">Farmispoolen</strong>
      </div>
      <div style="padding: 25px;">
        <h2 style="font-size: 22px; color: {PRIMARY_COLOR}; margin-top: 0;">{_e(title)}</h2>
        {body_html}
        <p style="margin-top: 30px; font-size: 12px; color: #6B7280;">{_e(footer_text)}</p>
      </div>
      <div style="background-color: {LIGHT_BG_COLOR}; color: #6B7280; padding: 15px; text-align: center; font-size: 12px; border-top: 1px solid #E5E7EB;">
        <p>&copy; {year} Farmispoolen. Alla rättigheter förbehållna.</p>
      </div>
    </div>
    """


def _shift_box(p: Dict) -> str:
    rate = f"{_e(p['hourly_rate'])} kr/tim" if p.get("hourly_rate") else NOT_SPECIFIED
    urgent_html = ""
    if p.get("is_urgent") and p.get("urgent_pay_adjustment"):
        urgent_html = f"""
        <div style="background-color:#fffbe6; border:1px solid #fde68a; padding:12px; border-radius:5px; margin-top:10px; text-align:center;">
          <p style="margin:0; font-weight:bold; color:#ca8a04;">Akut-tillägg: +{_e(p['urgent_pay_adjustment'])} kr/tim</p>
        </div>
        """
    return f"""
    <div style="background-color:#f9f9f9;padding:15px;border-radius:5px;margin-bottom:10px;">
      <h3 style="margin-top:0;"><strong>{_e(p.get('shift_title'))}</strong></h3>
      <p><strong>Företag:</strong> {_e(p.get('company_name') or NOT_SPECIFIED)}</p>
      <p><strong>Beskrivning:</strong> {_e(p.get('shift_description') or 'Ingen beskrivning.')}</p>
      <p><strong>Datum:</strong> {_e(p.get('shift_date') or NOT_SPECIFIED)}</p>
      <p><strong>Tid:</strong> {_e(p.get('shift_time') or NOT_SPECIFIED)}</p>
      <p><strong>Plats:</strong> {_e(p.get('shift_location') or NOT_SPECIFIED)}</p>
      <p><strong>Grundlön:</strong> {rate}</p>
      {urgent_html}
    </div>
    """


def _employee_invitation(p: Dict) -> Tuple[str, str]:
    company = p.get("company_name") or "ditt företag"
    body = (
        f"<p>Du har fått en inbjudan att arbeta för <strong>{_e(company)}</strong>. "
        "Vänligen logga in på ditt Farmis-konto för att se och acceptera din inbjudan.</p>"
    )
    if p.get("activation_link"):
        body += (
            "<p>Ett konto har skapats åt dig. Bekräfta din e-postadress och välj ett nytt lösenord "
            "via länken nedan.</p>" + _button("Aktivera konto", p["activation_link"])
        )
    else:
        body += _button("Visa inbjudan", f"{_base_url()}/invitations")
    return f"Inbjudan från {company}", styled_email("Du har en ny inbjudan", body)


def _application_accepted(p: Dict) -> Tuple[str, str]:
    _require("shiftApplicationAccepted", p, "shift_title")
    body = f'<p>Grattis! Din ansökan för passet "<strong>{_e(p["shift_title"])}</strong>" har blivit accepterad.</p>'
    return "Din ansökan har accepterats!", styled_email("Ansökan Accepterad", body)


def _application_rejected(p: Dict) -> Tuple[str, str]:
    _require("shiftApplicationRejected", p, "shift_title")
    body = (
        f'<p>Tack för ditt intresse för passet "<strong>{_e(p["shift_title"])}</strong>". '
        "Tjänsten har tillsatts av en annan sökande.</p>"
    )
    return "Uppdatering om din ansökan", styled_email("Angående din ansökan", body)


def _new_shift_application(p: Dict) -> Tuple[str, str]:
    _require("newShiftApplication", p, "applicant_name", "shift_title")
    body = f"""
    <p>Du har fått en ny ansökan för passet "<strong>{_e(p['shift_title'])}</strong>" från <strong>{_e(p['applicant_name'])}</strong>.</p>
    <p>Logga in på din instrumentpanel för att granska ansökan.</p>
    {_button('Granska ansökan', f'{_base_url()}/dashboard')}
    """
    return f"Ny ansökan till ditt pass: {p['shift_title']}", styled_email("Ny Ansökan Mottagen", body)


def _new_posting_application(p: Dict) -> Tuple[str, str]:
    _require("newPostingApplication", p, "applicant_name", "posting_title")
    body = f"""
    <p>Du har fått en ny ansökan för uppdraget "<strong>{_e(p['posting_title'])}</strong>" från <strong>{_e(p['applicant_name'])}</strong>.</p>
    <p>Logga in på din instrumentpanel för att granska ansökan.</p>
    {_button('Granska ansökan', f'{_base_url()}/employer/postings')}
    """
    return f"Ny ansökan till ditt uppdrag: {p['posting_title']}", styled_email("Ny Ansökan Mottagen", body)


def _new_shift_notification(p: Dict) -> Tuple[str, str]:
    _require("newShiftNotification", p, "shift_title")
    city = p.get("employer_city")
    if p.get("is_urgent"):
        subject = f"BRÅDSKANDE: Nytt arbetspass: {p['shift_title']}"
        title = "Brådskande Arbetspass Tillgängligt"
    elif city:
        subject = f"Nytt pass i {city}: {p['shift_title']}"
        title = f"Nytt Arbetspass i {city}"
    else:
        subject = f"Nytt arbetspass: {p['shift_title']}"
        title = "Nytt Arbetspass Tillgängligt"
    body = (
        "<p>Ett nytt arbetspass har publicerats:</p>"
        + _shift_box(p)
        + _button("Logga in för att ansöka", f"{_base_url()}/shifts")
    )
    return subject, styled_email(title, body)


def _new_shift_digest(p: Dict) -> Tuple[str, str]:
    shifts = list(p.get("shifts") or [])
    if not shifts:
        raise ValueError("Missing data for newShiftDigest email: shifts")
    if len(shifts) == 1:
        return _new_shift_notification(shifts[0])
    urgent = any(s.get("is_urgent") for s in shifts)
    subject = f"{'BRÅDSKANDE: ' if urgent else ''}{len(shifts)} nya arbetspass som matchar dig"
    body = (
        "<p>Följande arbetspass har publicerats:</p>"
        + "".join(_shift_box(s) for s in shifts)
        + _button("Logga in för att ansöka", f"{_base_url()}/shifts")
    )
    return subject, styled_email("Nya Arbetspass Tillgängliga", body)


def _new_posting_notification(p: Dict) -> Tuple[str, str]:
    _require("newPostingNotification", p, "posting_title")
    rate = f"{_e(p['hourly_rate'])} kr/tim" if p.get("hourly_rate") else "Enligt överenskommelse"
    body = f"""
    <p>Ett nytt uppdrag har publicerats:</p>
    <div style="background-color:#f9f9f9;padding:15px;border-radius:5px;">
      <h3 style="margin-top:0;"><strong>{_e(p['posting_title'])}</strong></h3>
      <p><strong>Företag:</strong> {_e(p.get('company_name') or NOT_SPECIFIED)}</p>
      <p><strong>Beskrivning:</strong> {_e(p.get('posting_description') or 'Ingen beskrivning.')}</p>
      <p><strong>Plats:</strong> {_e(p.get('posting_location') or NOT_SPECIFIED)}</p>
      <p><strong>Ersättning:</strong> {rate}</p>
    </div>
    {_button('Logga in för att ansöka', f'{_base_url()}/postings')}
    """
    return f"Nytt uppdrag: {p['posting_title']}", styled_email("Nytt Uppdrag Tillgängligt", body)


def _user_verified(p: Dict) -> Tuple[str, str]:
    body = f"""
    <p>Hej {_e(p.get('name') or '')},</p>
    <p>Goda nyheter! Vi har granskat och verifierat ditt konto. Du har nu full tillgång till plattformen och kan börja söka arbetspass och uppdrag direkt.</p>
    {_button('Logga in för att se passen', f'{_base_url()}/shifts')}
    """
    return (
        "Ditt konto hos Farmispoolen är nu verifierat!",
        styled_email("Grattis, du är verifierad!", body, "Du kan nu börja din resa med Farmispoolen."),
    )


def _contact_form(p: Dict) -> Tuple[str, str]:
    _require("contactForm", p, "name", "email", "message")
    message = _e(p["message"]).replace("\n", "<br/>")
    body = (
        f"<p><strong>Avsändare:</strong> {_e(p['name'])} ({_e(p['email'])})</p>"
        f"<p><strong>Meddelande:</strong></p><p>{message}</p>"
    )
    return f"Kontaktformulär: {p['name']}", body


def _sick_report(p: Dict) -> Tuple[str, str]:
    _require("sickReport", p, "shift_title", "shift_date", "employee_name")
    body = f"""
    <p>En anställd, <strong>{_e(p['employee_name'])}</strong>, har anmält sig sjuk för passet:</p>
    <ul>
      <li><strong>Pass:</strong> {_e(p['shift_title'])}</li>
      <li><strong>Datum:</strong> {_e(p['shift_date'])}</li>
      <li><strong>Tid:</strong> {_e(p.get('shift_time') or NOT_SPECIFIED)}</li>
    </ul>
    <p>Passet har publicerats på nytt som brådskande.</p>
    """
    return (
        f"Sjukanmälan: {p['employee_name']}",
        styled_email(f"Sjukanmälan från {p['employee_name']}", body, "Detta är ett meddelande till arbetsgivaren."),
    )


def _generic_notification(p: Dict) -> Tuple[str, str]:
    _require("notification", p, "title", "message")
    body = f"<p>Hej {_e(p.get('name') or '')},</p><p>{_e(p['message'])}</p>"
    if p.get("link"):
        link = p["link"]
        if link.startswith("/"):
            link = f"{_base_url()}{link}"
        body += _button("Öppna Farmispoolen", link)
    return p["title"], styled_email(p["title"], body)


def _email_verification(p: Dict) -> Tuple[str, str]:
    _require("emailVerification", p, "verify_link")
    body = f"""
    <p>Välkommen till Farmispoolen! Bekräfta din e-postadress genom att klicka på knappen nedan.</p>
    {_button('Bekräfta e-postadress', p['verify_link'])}
    <p>Länken är giltig i 24 timmar.</p>
    """
    return "Bekräfta din e-postadress - Farmispoolen", styled_email("Bekräfta din e-postadress", body)


def _password_reset(p: Dict) -> Tuple[str, str]:
    _require("passwordReset", p, "reset_link")
    body = f"""
    <p>Använd knappen nedan för att välja ett nytt lösenord.</p>
    {_button('Återställ lösenord', p['reset_link'])}
    <p>Om du inte har begärt detta kan du ignorera meddelandet.</p>
    """
    return "Återställ ditt lösenord", styled_email("Återställ lösenord", body)


_BUILDERS: Dict[str, Callable[[Dict], Tuple[str, str]]] = {
    "employeeInvitation": _employee_invitation,
    "shiftApplicationAccepted": _application_accepted,
    "shiftApplicationRejected": _application_rejected,
    "newShiftApplication": _new_shift_application,
    "newPostingApplication": _new_posting_application,
    "newShiftNotification": _new_shift_notification,
    "newShiftDigest": _new_shift_digest,
    "newPostingNotification": _new_posting_notification,
    "userVerified": _user_verified,
    "contactForm": _contact_form,
    "sickReport": _sick_report,
    "notification": _generic_notification,
    "emailVerification": _email_verification,
    "passwordReset": _password_reset,
}

EMAIL_KINDS: Iterable[str] = tuple(_BUILDERS)


def build_email(kind: str, payload: Dict) -> Tuple[str, str]:
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise ValueError(f'The email type "{kind}" is unknown.')
    return builder(payload or {})


def shift_payload(shift: Dict) -> Dict:
    """Template payload for a shift_needs row (as returned by get_shift)."""
    return {
        "shift_title": shift.get("title"),
        "shift_description": shift.get("description"),
        "shift_date": shift.get("date"),
        "shift_time": f"{shift.get('start_time')} - {shift.get('end_time')}" if shift.get("start_time") else None,
        "shift_location": shift.get("location"),
        "hourly_rate": shift.get("hourly_rate"),
        "is_urgent": bool(shift.get("is_urgent")),
        "urgent_pay_adjustment": shift.get("urgent_pay_adjustment"),
        "company_name": shift.get("employer_name"),
        "employer_city": shift.get("employer_city"),
    }


__all__ = ["EMAIL_KINDS", "build_email", "shift_payload", "styled_email"]
