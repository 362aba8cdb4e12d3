from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from app.auth_utils import require_user
from app.layout import action_button, esc, render_with_csrf
from app.services.invitations import list_pending_invitations
from app.services.shifts import get_my_full_schedule, get_shift_stats, today
from core.database import (
    count_pending_posting_applications,
    count_unread_notifications,
    get_profile,
    get_stats,
    list_pending_application_details,
)
from core.roles import ADMIN, EMPLOYER, role_label

router = APIRouter()


def _stat(label: str, value) -> str:
    return f"""
    <div class="stat">
      <div class="label">{esc(label)}</div>
      <div class="value">{esc(value)}</div>
    </div>
    """


def _employer_body(user: dict, csrf_token: str) -> str:
    stats = get_shift_stats(user)
    pending = list_pending_application_details(user["id"])
    posting_pending = count_pending_posting_applications(user["id"])

    rows = ""
    for a in pending:
        buttons = action_button(f"/applications/{a['id']}/accept", "Acceptera", csrf_token) + action_button(
            f"/applications/{a['id']}/reject", "Avslå", csrf_token, "secondary"
        )
        rows += f"""
        <tr>
          <td><a href="/shifts/{a['shift_id']}">{esc(a['shift_title'])}</a></td>
          <td>{esc(a['shift_date'])} {esc(a['start_time'])}-{esc(a['end_time'])}</td>
          <td>{esc(a.get('applicant_name') or a['applicant_email'])}</td>
          <td>{esc(role_label(a['applicant_role']))}</td>
          <td class="actions">{buttons}</td>
        </tr>
        """
    return f"""
    <div class="stats">
      {_stat("Öppna pass", stats["open_shifts"])}
      {_stat("Tillsatta pass", stats["filled_shifts"])}
      {_stat("Genomförda pass", stats["completed_shifts"])}
      {_stat("Väntande ansökningar", stats["pending_applications"])}
      {_stat("Väntande uppdragsansökningar", posting_pending)}
    </div>
    <div class="card">
      <div class="actions">
        <a href="/shifts/new"><button type="button">Nytt pass</button></a>
        <a href="/postings/new"><button type="button" class="secondary">Nytt uppdrag</button></a>
        <a href="/employer/schedules"><button type="button" class="secondary">Schema</button></a>
        <a href="/employer/staff"><button type="button" class="secondary">Personal</button></a>
      </div>
    </div>
    <div class="card">
      <h3>Ansökningar att hantera</h3>
      <table>
        <thead><tr><th>Pass</th><th>När</th><th>Sökande</th><th>Roll</th><th></th></tr></thead>
        <tbody>{rows or '<tr><td colspan="5">Inga väntande ansökningar.</td></tr>'}</tbody>
      </table>
    </div>
    """


def _employee_body(user: dict) -> str:
    stats = get_shift_stats(user)
    now = today()
    upcoming = [e for e in get_my_full_schedule(user) if e["end_time"][:10] >= now][:5]
    invitations = list_pending_invitations(user)

    rows = "".join(
        f"""
        <tr>
          <td>{esc(e['start_time'][:16].replace('T', ' '))}</td>
          <td>{esc(e['title'])}</td>
          <td>{'Pass' if e['event_type'] == 'shift' else 'Uppdrag'}</td>
          <td>{esc(e.get('location') or '')}</td>
        </tr>
        """
        for e in upcoming
    )
    invite_note = ""
    if invitations:
        invite_note = f"""
        <div class="card">
          <p>Du har {len(invitations)} väntande inbjudan(ar). <a href="/invitations">Visa inbjudningar</a></p>
        </div>
        """
    verify_note = ""
    profile = get_profile(user["id"]) or {}
    if not profile.get("license_verified"):
        verify_note = '<div class="card"><p class="muted">Ditt konto väntar på verifiering. Du kan söka pass när en administratör har verifierat dig.</p></div>'
    return f"""
    {verify_note}
    {invite_note}
    <div class="stats">
      {_stat("Väntande ansökningar", stats["pending_applications"])}
      {_stat("Accepterade ansökningar", stats["accepted_applications"])}
      {_stat("Genomförda pass", stats["completed_shifts"])}
    </div>
    <div class="card">
      <h3>Kommande</h3>
      <table>
        <thead><tr><th>Start</th><th>Titel</th><th>Typ</th><th>Plats</th></tr></thead>
        <tbody>{rows or '<tr><td colspan="4">Inget inbokat.</td></tr>'}</tbody>
      </table>
      <p><a href="/my-schedule">Hela schemat</a> &middot; <a href="/shifts">Lediga pass</a> &middot; <a href="/postings">Uppdrag</a></p>
    </div>
    """


def _admin_body() -> str:
    stats = get_stats()
    return f"""
    <div class="stats">
      {_stat("Användare", stats.get("users", 0))}
      {_stat("Öppna pass", stats.get("open_shifts", 0))}
      {_stat("Öppna uppdrag", stats.get("open_postings", 0))}
    </div>
    <div class="card">
      <div class="actions">
        <a href="/admin/users"><button type="button">Användare</button></a>
        <a href="/admin/shifts"><button type="button" class="secondary">Pass</button></a>
        <a href="/admin/postings"><button type="button" class="secondary">Uppdrag</button></a>
      </div>
    </div>
    """


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    user, denied = require_user(request)
    if denied:
        return denied

    unread = count_unread_notifications(user["id"])

    def body(csrf_token: str) -> str:
        header = f"""
        <div class="card">
          <div class="muted">Inloggad som {esc(user.get('email'))} ({esc(role_label(user.get('role')))})</div>
          {f'<p><a href="/notifications">{unread} olästa notiser</a></p>' if unread else ''}
        </div>
        """
        if user.get("role") == ADMIN:
            return header + _admin_body()
        if user.get("role") == EMPLOYER:
            return header + _employer_body(user, csrf_token)
        return header + _employee_body(user)

    return render_with_csrf(request, "Översikt", body, user=user)
