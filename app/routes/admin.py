from datetime import datetime, timezone

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import action_button, error_page, esc, render_with_csrf, status_badge
from app.routes.postings import parse_posting_form, posting_form
from app.security import validate_csrf
from app.services.postings import admin_create_posting, admin_delete_posting, admin_update_posting
from app.services.profiles import set_verification_status
from app.validation import parse_optional_int
from core.database import (
    POSTING_STATUSES,
    SHIFT_STATUSES,
    get_posting,
    get_profile,
    list_all_postings_admin,
    list_all_shifts_admin,
    list_employers,
    list_users,
)
from core.errors import BusinessRuleError
from core.roles import ADMIN, EMPLOYEE_ROLES, EMPLOYER, role_label

router = APIRouter()

CSRF_FAILED = "Ogiltig eller saknad CSRF-token."
ALL_ROLES = (ADMIN, EMPLOYER) + tuple(EMPLOYEE_ROLES)


def _format_dt(dt_str: str | None) -> str:
    """Render ISO timestamp as local human-readable string."""
    if not dt_str:
        return ""
    try:
        dt = datetime.fromisoformat(str(dt_str))
    except ValueError:
        return str(dt_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _select(name: str, values, selected: str, blank: str, labels=None) -> str:
    options = f'<option value="">{esc(blank)}</option>'
    for v in values:
        label = labels(v) if labels else v
        options += f'<option value="{esc(v)}"{" selected" if v == selected else ""}>{esc(label)}</option>'
    return f'<select name="{name}">{options}</select>'


def _employer_select(selected=None) -> str:
    options = "".join(
        f'<option value="{e["user_id"]}"{" selected" if e["user_id"] == selected else ""}>'
        f'{esc(e.get("pharmacy_name") or e.get("full_name") or e["email"])}</option>'
        for e in list_employers()
    )
    return f'<label>Arbetsgivare</label><select name="employer_id" required>{options}</select>'


# --- users ----------------------------------------------------------------


@router.get("/admin/users", response_class=HTMLResponse)
def admin_users(request: Request, role: str = "", search: str = ""):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    users = list_users(role=role or None, search=search.strip() or None)

    def body(csrf_token: str) -> str:
        rows = ""
        for u in users:
            if u["role"] == ADMIN:
                actions = ""
            else:
                verify_label = "Ta bort verifiering" if u.get("license_verified") else "Verifiera"
                active_label = "Inaktivera" if u.get("active") else "Aktivera"
                actions = action_button(
                    f"/admin/users/{u['id']}/verify", verify_label, csrf_token
                ) + action_button(f"/admin/users/{u['id']}/activate", active_label, csrf_token, "secondary")
            rows += f"""
            <tr>
              <td>{u['id']}</td>
              <td>{esc(u['email'])}</td>
              <td>{esc(u.get('pharmacy_name') or u.get('full_name') or '')}</td>
              <td>{esc(role_label(u['role']))}</td>
              <td>{esc(u.get('city') or '')}</td>
              <td>{'Ja' if u.get('email_verified_at') else 'Nej'}</td>
              <td>{'Ja' if u.get('license_verified') else 'Nej'}</td>
              <td>{'Ja' if u.get('active') else 'Nej'}</td>
              <td>{_format_dt(u.get('created_at'))}</td>
              <td class="actions">{actions}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <form method="get" action="/admin/users" class="actions">
            <input type="text" name="search" placeholder="E-post eller namn" value="{esc(search)}" />
            {_select("role", ALL_ROLES, role, "Alla roller", role_label)}
            <button type="submit" class="secondary">Filtrera</button>
          </form>
          <table>
            <thead><tr><th>ID</th><th>E-post</th><th>Namn</th><th>Roll</th><th>Ort</th><th>E-post bekräftad</th><th>Verifierad</th><th>Aktiv</th><th>Skapad</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="10">Inga användare.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Användare", body, user=user)


def _user_toggle(request: Request, target_id: int, csrf_token: str, field: str):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    target = get_profile(target_id)
    if not target:
        return error_page("Användaren hittades inte.", 404, user=user, back="/admin/users")
    try:
        if field == "verified":
            set_verification_status(user, target_id, not target.get("license_verified"))
        else:
            set_verification_status(
                user, target_id, bool(target.get("license_verified")), active=not target.get("active")
            )
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/admin/users")
    return RedirectResponse(url="/admin/users", status_code=303)


@router.post("/admin/users/{user_id}/verify")
def admin_user_verify(request: Request, user_id: int, csrf_token: str = Form("")):
    return _user_toggle(request, user_id, csrf_token, "verified")


@router.post("/admin/users/{user_id}/activate")
def admin_user_activate(request: Request, user_id: int, csrf_token: str = Form("")):
    return _user_toggle(request, user_id, csrf_token, "active")


# --- shifts ---------------------------------------------------------------


@router.get("/admin/shifts", response_class=HTMLResponse)
def admin_shifts(
    request: Request,
    status: str = "",
    role: str = "",
    employer_id: str = "",
    date_from: str = "",
    date_to: str = "",
    search: str = "",
    urgent_only: str = "",
):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    shifts = list_all_shifts_admin(
        status=status or None,
        date_from=date_from or None,
        date_to=date_to or None,
        role=role or None,
        employer_id=parse_optional_int(employer_id),
        urgent_only=bool(urgent_only),
        search=search.strip() or None,
    )

    def body(csrf_token: str) -> str:
        rows = ""
        for s in shifts:
            rows += f"""
            <tr>
              <td><a href="/shifts/{s['id']}">{esc(s['title'])}</a>{' <strong>AKUT</strong>' if s.get('is_urgent') else ''}</td>
              <td>{esc(s['employer_name'])}</td>
              <td>{esc(s['date'])} {esc(s['start_time'])}-{esc(s['end_time'])}</td>
              <td>{esc(role_label(s['required_role']))}</td>
              <td>{status_badge(s['status'])}</td>
              <td class="actions">{action_button(f"/shifts/{s['id']}/delete", "Ta bort", csrf_token, "danger", confirm="Ta bort passet?")}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <form method="get" action="/admin/shifts" class="actions">
            <input type="text" name="search" placeholder="Sök" value="{esc(search)}" />
            {_select("status", SHIFT_STATUSES, status, "Alla statusar")}
            {_select("role", EMPLOYEE_ROLES, role, "Alla roller", role_label)}
            <input type="date" name="date_from" value="{esc(date_from)}" />
            <input type="date" name="date_to" value="{esc(date_to)}" />
            <label><input type="checkbox" name="urgent_only" value="1"{" checked" if urgent_only else ""} /> Endast akuta</label>
            <button type="submit" class="secondary">Filtrera</button>
          </form>
          <table>
            <thead><tr><th>Titel</th><th>Arbetsgivare</th><th>När</th><th>Roll</th><th>Status</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Inga pass.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Alla pass", body, user=user)


# --- postings -------------------------------------------------------------


@router.get("/admin/postings", response_class=HTMLResponse)
def admin_postings(request: Request, status: str = "", role: str = "", search: str = ""):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    postings = list_all_postings_admin(status=status or None, role=role or None, search=search.strip() or None)

    def body(csrf_token: str) -> str:
        rows = ""
        for p in postings:
            buttons = f'<a href="/admin/postings/{p["id"]}/edit">Ändra</a>' + action_button(
                f"/admin/postings/{p['id']}/delete", "Ta bort", csrf_token, "danger", confirm="Ta bort uppdraget?"
            )
            rows += f"""
            <tr>
              <td><a href="/postings/{p['id']}">{esc(p['title'])}</a></td>
              <td>{esc(p['employer_name'])}</td>
              <td>{esc(p['period_start_date'])} - {esc(p['period_end_date'])}</td>
              <td>{esc(role_label(p['required_role']))}</td>
              <td>{status_badge(p['status'])}</td>
              <td class="actions">{buttons}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <div class="actions"><a href="/admin/postings/new"><button type="button">Nytt uppdrag</button></a></div>
          <form method="get" action="/admin/postings" class="actions">
            <input type="text" name="search" placeholder="Sök" value="{esc(search)}" />
            {_select("status", POSTING_STATUSES, status, "Alla statusar")}
            {_select("role", EMPLOYEE_ROLES, role, "Alla roller", role_label)}
            <button type="submit" class="secondary">Filtrera</button>
          </form>
          <table>
            <thead><tr><th>Titel</th><th>Arbetsgivare</th><th>Period</th><th>Roll</th><th>Status</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Inga uppdrag.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Alla uppdrag", body, user=user)


@router.get("/admin/postings/new", response_class=HTMLResponse)
def admin_new_posting_form(request: Request):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    return render_with_csrf(
        request,
        "Nytt uppdrag",
        lambda t: posting_form("/admin/postings/new", t, employer_select=_employer_select()),
        user=user,
    )


@router.post("/admin/postings/new", response_class=HTMLResponse)
async def admin_new_posting(request: Request):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    employer_id = parse_optional_int(form.get("employer_id"))
    if employer_id is None:
        return error_page("Välj en arbetsgivare.", user=user, back="/admin/postings/new")
    data, error = parse_posting_form(form)
    if error:
        return error_page(error, user=user, back="/admin/postings/new")
    try:
        admin_create_posting(user, employer_id, data)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/admin/postings/new")
    return RedirectResponse(url="/admin/postings", status_code=303)


@router.get("/admin/postings/{posting_id}/edit", response_class=HTMLResponse)
def admin_edit_posting_form(request: Request, posting_id: int):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    posting = get_posting(posting_id)
    if not posting:
        return error_page("Uppdraget hittades inte.", 404, user=user, back="/admin/postings")
    return render_with_csrf(
        request,
        "Ändra uppdrag",
        lambda t: posting_form(f"/admin/postings/{posting_id}/edit", t, posting),
        user=user,
    )


@router.post("/admin/postings/{posting_id}/edit", response_class=HTMLResponse)
async def admin_edit_posting(request: Request, posting_id: int):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    data, error = parse_posting_form(form)
    if error:
        return error_page(error, user=user, back=f"/admin/postings/{posting_id}/edit")
    try:
        admin_update_posting(user, posting_id, data)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=f"/admin/postings/{posting_id}/edit")
    return RedirectResponse(url="/admin/postings", status_code=303)


@router.post("/admin/postings/{posting_id}/delete")
def admin_delete_posting_route(request: Request, posting_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, ADMIN)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        admin_delete_posting(user, posting_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/admin/postings")
    return RedirectResponse(url="/admin/postings", status_code=303)
