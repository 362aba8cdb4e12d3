import re
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import action_button, error_page, esc, render_with_csrf, status_badge
from app.security import csrf_input, validate_csrf
from app.services.shifts import (
    accept_application,
    apply_for_shift,
    can_view_shift,
    create_shift,
    delete_shift,
    duplicate_shift,
    get_my_full_schedule,
    list_available_shifts,
    mark_shift_completed,
    reject_application,
    report_sick,
    update_shift,
    withdraw_application,
)
from app.validation import is_valid_time, parse_date, parse_optional_float, parse_optional_int
from core.database import (
    find_active_application,
    get_shift,
    list_employer_shifts,
    list_my_applications,
    list_my_posting_applications,
    list_shift_applications,
)
from core.errors import BusinessRuleError
from core.roles import ADMIN, EMPLOYEE_ROLES, EMPLOYER, is_employee_role, role_label

router = APIRouter()

CSRF_FAILED = "Ogiltig eller saknad CSRF-token."


def _role_options(selected: str | None) -> str:
    return "".join(
        f'<option value="{r}"{" selected" if r == selected else ""}>{esc(role_label(r))}</option>'
        for r in EMPLOYEE_ROLES
    )


def _time_range(s: Dict) -> str:
    return f"{esc(s.get('start_time'))}-{esc(s.get('end_time'))}"


def _urgent_html(s: Dict) -> str:
    if not s.get("is_urgent"):
        return ""
    extra = f" (+{esc(s['urgent_pay_adjustment'])} kr/tim)" if s.get("urgent_pay_adjustment") else ""
    return f'<span class="urgent">Brådskande{extra}</span>'


def _shift_form(action: str, csrf_token: str, values: Optional[Dict] = None, allow_multiple_dates: bool = True) -> str:
    v = values or {}
    dates_html = ""
    if allow_multiple_dates:
        dates_html = f"""
        <label>Fler datum (valfritt, ÅÅÅÅ-MM-DD separerade med komma)</label>
        <input type="text" name="extra_dates" maxlength="500" value="{esc(v.get('extra_dates'))}" />
        """
    return f"""
    <div class="card form-card">
      <form method="post" action="{esc(action)}">
        <label>Titel</label>
        <input type="text" name="title" required maxlength="120" value="{esc(v.get('title'))}" />

        <label>Beskrivning</label>
        <textarea name="description" rows="3" maxlength="2000">{esc(v.get('description'))}</textarea>

        <label>Datum</label>
        <input type="date" name="date" required value="{esc(v.get('date'))}" />
        {dates_html}

        <label>Starttid</label>
        <input type="time" name="start_time" required value="{esc(v.get('start_time'))}" />
        <label>Sluttid</label>
        <input type="time" name="end_time" required value="{esc(v.get('end_time'))}" />
        <label>Lunch (minuter)</label>
        <input type="number" name="lunch_minutes" min="0" max="120" value="{esc(v.get('lunch_minutes'))}" />

        <label>Plats</label>
        <input type="text" name="location" maxlength="120" value="{esc(v.get('location'))}" />

        <label>Roll som krävs</label>
        <select name="required_role">{_role_options(v.get('required_role'))}</select>

        <label>Erfarenhet som krävs</label>
        <input type="text" name="required_experience" maxlength="200" value="{esc(v.get('required_experience'))}" />

        <label>Timlön (kr)</label>
        <input type="text" name="hourly_rate" maxlength="10" value="{esc(v.get('hourly_rate'))}" />

        <label><input type="checkbox" name="is_urgent" value="1"{" checked" if v.get("is_urgent") else ""} /> Brådskande</label>
        <label>Akut-tillägg (kr/tim)</label>
        <input type="text" name="urgent_pay_adjustment" maxlength="10" value="{esc(v.get('urgent_pay_adjustment'))}" />

        {csrf_input(csrf_token)}
        <button type="submit">Spara</button>
      </form>
    </div>
    """


def _parse_shift_form(form: Dict[str, str]) -> Tuple[Dict, List[str], Optional[str]]:
    """Form strings -> (shift data, dates, error message)."""
    start, end = form.get("start_time", "").strip(), form.get("end_time", "").strip()
    if not is_valid_time(start) or not is_valid_time(end):
        return {}, [], "Ange tider som TT:MM."
    raw_dates = [form.get("date", "")] + re.split(r"[,\s]+", form.get("extra_dates", ""))
    dates: List[str] = []
    for raw in raw_dates:
        if not raw.strip():
            continue
        parsed = parse_date(raw)
        if not parsed:
            return {}, [], f"Ogiltigt datum: {raw.strip()}"
        dates.append(parsed.isoformat())

    data = {
        "title": form.get("title", "").strip(),
        "description": form.get("description", "").strip() or None,
        "start_time": start,
        "end_time": end,
        "lunch_minutes": parse_optional_int(form.get("lunch_minutes")),
        "location": form.get("location", "").strip() or None,
        "required_role": form.get("required_role"),
        "required_experience": form.get("required_experience", "").strip() or None,
        "hourly_rate": parse_optional_float(form.get("hourly_rate")),
        "is_urgent": bool(form.get("is_urgent")),
        "urgent_pay_adjustment": parse_optional_float(form.get("urgent_pay_adjustment")),
    }
    return data, dates, None


def _shift_rows(shifts: List[Dict], csrf_token: str, user: Dict) -> str:
    rows = ""
    for s in shifts:
        apply_html = ""
        if is_employee_role(user.get("role")):
            if s.get("already_applied"):
                apply_html = '<span class="muted">Ansökt</span>'
            else:
                apply_html = action_button(f"/shifts/{s['id']}/apply", "Ansök", csrf_token)
        rows += f"""
        <tr>
          <td><a href="/shifts/{s['id']}">{esc(s['title'])}</a> {_urgent_html(s)}</td>
          <td>{esc(s.get('employer_name'))}</td>
          <td>{esc(s['date'])}</td>
          <td>{_time_range(s)}</td>
          <td>{esc(s.get('location') or s.get('employer_city') or '')}</td>
          <td>{esc(role_label(s['required_role']))}</td>
          <td>{esc(s.get('hourly_rate') or '')}</td>
          <td class="actions">{apply_html}</td>
        </tr>
        """
    if not shifts:
        rows = '<tr><td colspan="8">Inga lediga pass just nu.</td></tr>'
    return rows


@router.get("/shifts", response_class=HTMLResponse)
def shifts_list(
    request: Request,
    date_from: str = "",
    date_to: str = "",
    location: str = "",
    urgent: str = "",
):
    user, denied = require_user(request)
    if denied:
        return denied
    if user["role"] == EMPLOYER:
        return RedirectResponse(url="/employer/shifts", status_code=303)
    if user["role"] == ADMIN:
        return RedirectResponse(url="/admin/shifts", status_code=303)

    shifts = list_available_shifts(
        user,
        date_from=date_from or None,
        date_to=date_to or None,
        location=location or None,
        urgent_only=bool(urgent),
    )
    for s in shifts:
        s["already_applied"] = find_active_application(s["id"], user["id"]) is not None

    def body(csrf_token: str) -> str:
        return f"""
        <div class="card">
          <form method="get" action="/shifts" class="actions">
            <input type="date" name="date_from" value="{esc(date_from)}" />
            <input type="date" name="date_to" value="{esc(date_to)}" />
            <input type="text" name="location" placeholder="Ort" value="{esc(location)}" />
            <label><input type="checkbox" name="urgent" value="1"{" checked" if urgent else ""} /> Endast brådskande</label>
            <button type="submit" class="secondary">Filtrera</button>
          </form>
          <table>
            <thead>
              <tr><th>Pass</th><th>Apotek</th><th>Datum</th><th>Tid</th><th>Plats</th><th>Roll</th><th>Timlön</th><th></th></tr>
            </thead>
            <tbody>{_shift_rows(shifts, csrf_token, user)}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Lediga pass", body, user=user)


@router.get("/shifts/new", response_class=HTMLResponse)
def new_shift_form(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    return render_with_csrf(request, "Nytt pass", lambda t: _shift_form("/shifts/new", t), user=user)


@router.post("/shifts/new", response_class=HTMLResponse)
async def new_shift(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)

    data, dates, error = _parse_shift_form(form)
    if error:
        return error_page(error, user=user, back="/shifts/new")
    try:
        create_shift(user, data, dates)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/shifts/new")
    return RedirectResponse(url="/employer/shifts", status_code=303)


@router.get("/employer/shifts", response_class=HTMLResponse)
def employer_shifts(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    shifts = list_employer_shifts(user["id"])

    def body(csrf_token: str) -> str:
        rows = ""
        for s in shifts:
            actions = [
                f'<a href="/shifts/{s["id"]}">Visa</a>',
                f'<a href="/shifts/{s["id"]}/edit">Ändra</a>',
                action_button(f"/shifts/{s['id']}/duplicate", "Kopiera", csrf_token, "secondary"),
            ]
            if s["status"] == "filled":
                actions.append(action_button(f"/shifts/{s['id']}/complete", "Genomfört", csrf_token))
            actions.append(
                action_button(f"/shifts/{s['id']}/delete", "Ta bort", csrf_token, "danger", confirm="Ta bort passet?")
            )
            rows += f"""
            <tr>
              <td>{esc(s['title'])} {_urgent_html(s)}</td>
              <td>{esc(s['date'])}</td>
              <td>{_time_range(s)}</td>
              <td>{esc(role_label(s['required_role']))}</td>
              <td>{status_badge(s['status'])}</td>
              <td>{esc(s.get('assigned_name') or '')}</td>
              <td>{s.get('pending_count') or 0}</td>
              <td class="actions">{''.join(actions)}</td>
            </tr>
            """
        if not shifts:
            rows = '<tr><td colspan="8">Du har inte publicerat några pass ännu.</td></tr>'
        return f"""
        <div class="card">
          <p><a href="/shifts/new"><button type="button">Nytt pass</button></a></p>
          <table>
            <thead>
              <tr><th>Pass</th><th>Datum</th><th>Tid</th><th>Roll</th><th>Status</th><th>Tilldelad</th><th>Ansökningar</th><th></th></tr>
            </thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Mina pass", body, user=user)


@router.get("/shifts/{shift_id}", response_class=HTMLResponse)
def shift_detail(request: Request, shift_id: int):
    user, denied = require_user(request)
    if denied:
        return denied
    shift = get_shift(shift_id)
    if not shift or not can_view_shift(user, shift_id):
        return error_page("Passet hittades inte.", 404, user=user, back="/shifts")

    is_owner = user["role"] == ADMIN or shift["employer_id"] == user["id"]
    applications = list_shift_applications(shift_id) if is_owner else []

    def body(csrf_token: str) -> str:
        actions = ""
        if is_employee_role(user["role"]):
            if shift["status"] == "open" and find_active_application(shift_id, user["id"]) is None:
                actions = action_button(f"/shifts/{shift_id}/apply", "Ansök", csrf_token)
            elif shift["status"] == "filled" and shift.get("assigned_to") == user["id"]:
                actions = action_button(
                    f"/shifts/{shift_id}/report-sick", "Sjukanmäl", csrf_token, "danger", confirm="Sjukanmäla dig?"
                )

        app_rows = ""
        for a in applications:
            buttons = ""
            if a["status"] == "pending" and shift["status"] == "open":
                buttons = action_button(f"/applications/{a['id']}/accept", "Acceptera", csrf_token) + action_button(
                    f"/applications/{a['id']}/reject", "Avböj", csrf_token, "secondary"
                )
            app_rows += f"""
            <tr>
              <td>{esc(a.get('applicant_name') or a['applicant_email'])}</td>
              <td>{esc(role_label(a['applicant_role']))}</td>
              <td>{esc(a.get('experience') or '')}</td>
              <td>{esc(a.get('notes') or '')}</td>
              <td>{status_badge(a['status'])}</td>
              <td class="actions">{buttons}</td>
            </tr>
            """
        apps_html = ""
        if is_owner:
            apps_html = f"""
            <div class="card">
              <h3>Ansökningar</h3>
              <table>
                <thead><tr><th>Namn</th><th>Roll</th><th>Erfarenhet</th><th>Meddelande</th><th>Status</th><th></th></tr></thead>
                <tbody>{app_rows or '<tr><td colspan="6">Inga ansökningar ännu.</td></tr>'}</tbody>
              </table>
            </div>
            """
        return f"""
        <div class="card">
          <h2>{esc(shift['title'])} {_urgent_html(shift)}</h2>
          <p>{status_badge(shift['status'])}</p>
          <p><strong>Apotek:</strong> {esc(shift['employer_name'])}</p>
          <p><strong>Datum:</strong> {esc(shift['date'])} {_time_range(shift)}</p>
          <p><strong>Lunch:</strong> {esc(shift.get('lunch_minutes') or 0)} min</p>
          <p><strong>Plats:</strong> {esc(shift.get('location') or shift.get('employer_city') or 'Ej angivet')}</p>
          <p><strong>Roll:</strong> {esc(role_label(shift['required_role']))}</p>
          <p><strong>Timlön:</strong> {esc(shift.get('hourly_rate') or 'Ej angivet')}</p>
          <p>{esc(shift.get('description') or '')}</p>
          <div class="actions">{actions}</div>
        </div>
        {apps_html}
        """

    return render_with_csrf(request, shift["title"], body, user=user)


@router.post("/shifts/{shift_id}/apply")
def shift_apply(request: Request, shift_id: int, notes: str = Form("", max_length=1000), csrf_token: str = Form("")):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        apply_for_shift(user, shift_id, notes)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/shifts")
    return RedirectResponse(url="/my-applications", status_code=303)


@router.get("/shifts/{shift_id}/edit", response_class=HTMLResponse)
def edit_shift_form(request: Request, shift_id: int):
    user, denied = require_user(request, EMPLOYER, ADMIN)
    if denied:
        return denied
    shift = get_shift(shift_id)
    if not shift or (user["role"] != ADMIN and shift["employer_id"] != user["id"]):
        return error_page("Passet hittades inte.", 404, user=user)
    return render_with_csrf(
        request,
        "Ändra pass",
        lambda t: _shift_form(f"/shifts/{shift_id}/edit", t, shift, allow_multiple_dates=False),
        user=user,
    )


@router.post("/shifts/{shift_id}/edit", response_class=HTMLResponse)
async def edit_shift(request: Request, shift_id: int):
    user, denied = require_user(request, EMPLOYER, ADMIN)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)

    data, dates, error = _parse_shift_form(form)
    if error or len(dates) != 1:
        return error_page(error or "Ange ett datum.", user=user, back=f"/shifts/{shift_id}/edit")
    data["date"] = dates[0]
    try:
        update_shift(user, shift_id, data)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=f"/shifts/{shift_id}/edit")
    return RedirectResponse(url=f"/shifts/{shift_id}", status_code=303)


def _owner_action(request: Request, csrf_token: str, action, shift_id: int, redirect: str):
    user, denied = require_user(request, EMPLOYER, ADMIN)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        action(user, shift_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/shifts")
    if user.get("role") == ADMIN and redirect == "/employer/shifts":
        redirect = "/admin/shifts"
    return RedirectResponse(url=redirect, status_code=303)


@router.post("/shifts/{shift_id}/delete")
def shift_delete(request: Request, shift_id: int, csrf_token: str = Form("")):
    return _owner_action(request, csrf_token, delete_shift, shift_id, "/employer/shifts")


@router.post("/shifts/{shift_id}/duplicate")
def shift_duplicate(request: Request, shift_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER, ADMIN)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        new_id = duplicate_shift(user, shift_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/shifts")
    return RedirectResponse(url=f"/shifts/{new_id}/edit", status_code=303)


@router.post("/shifts/{shift_id}/complete")
def shift_complete(request: Request, shift_id: int, csrf_token: str = Form("")):
    return _owner_action(request, csrf_token, mark_shift_completed, shift_id, "/employer/shifts")


@router.post("/shifts/{shift_id}/report-sick")
def shift_report_sick(request: Request, shift_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        report_sick(user, shift_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/my-schedule")
    return RedirectResponse(url="/my-schedule", status_code=303)


def _application_action(request: Request, csrf_token: str, action, application_id: int, roles, redirect: str):
    user, denied = require_user(request, *roles)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        action(user, application_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=redirect)
    return RedirectResponse(url=redirect, status_code=303)


@router.post("/applications/{application_id}/accept")
def application_accept(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, accept_application, application_id, (EMPLOYER, ADMIN), "/employer/shifts"
    )


@router.post("/applications/{application_id}/reject")
def application_reject(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, reject_application, application_id, (EMPLOYER, ADMIN), "/employer/shifts"
    )


@router.post("/applications/{application_id}/withdraw")
def application_withdraw(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, withdraw_application, application_id, EMPLOYEE_ROLES, "/my-applications"
    )


@router.get("/my-applications", response_class=HTMLResponse)
def my_applications(request: Request):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    shift_apps = list_my_applications(user["id"])
    posting_apps = list_my_posting_applications(user["id"])

    def body(csrf_token: str) -> str:
        shift_rows = ""
        for a in shift_apps:
            withdraw = (
                action_button(f"/applications/{a['id']}/withdraw", "Återta", csrf_token, "secondary")
                if a["status"] == "pending"
                else ""
            )
            shift_rows += f"""
            <tr>
              <td><a href="/shifts/{a['shift_id']}">{esc(a['shift_title'])}</a></td>
              <td>{esc(a['employer_name'])}</td>
              <td>{esc(a['shift_date'])} {_time_range(a)}</td>
              <td>{status_badge(a['status'])}</td>
              <td class="actions">{withdraw}</td>
            </tr>
            """
        posting_rows = ""
        for a in posting_apps:
            withdraw = (
                action_button(f"/posting-applications/{a['id']}/withdraw", "Återta", csrf_token, "secondary")
                if a["status"] == "pending"
                else ""
            )
            posting_rows += f"""
            <tr>
              <td><a href="/postings/{a['job_posting_id']}">{esc(a['posting_title'])}</a></td>
              <td>{esc(a['employer_name'])}</td>
              <td>{esc(a['period_start_date'])} - {esc(a['period_end_date'])}</td>
              <td>{status_badge(a['status'])}</td>
              <td class="actions">{withdraw}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <h3>Pass</h3>
          <table>
            <thead><tr><th>Pass</th><th>Apotek</th><th>När</th><th>Status</th><th></th></tr></thead>
            <tbody>{shift_rows or '<tr><td colspan="5">Inga ansökningar.</td></tr>'}</tbody>
          </table>
        </div>
        <div class="card">
          <h3>Uppdrag</h3>
          <table>
            <thead><tr><th>Uppdrag</th><th>Apotek</th><th>Period</th><th>Status</th><th></th></tr></thead>
            <tbody>{posting_rows or '<tr><td colspan="5">Inga ansökningar.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Mina ansökningar", body, user=user)


@router.get("/my-schedule", response_class=HTMLResponse)
def my_schedule(request: Request):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    events = get_my_full_schedule(user)

    def body(csrf_token: str) -> str:
        rows = ""
        for e in events:
            kind = "Pass" if e["event_type"] == "shift" else "Uppdrag"
            _, _, raw_id = e["event_id"].partition("-")
            link = f"/shifts/{raw_id}" if e["event_type"] == "shift" else f"/postings/{raw_id}"
            sick = ""
            if e["event_type"] == "shift" and e.get("status") == "filled":
                sick = action_button(
                    f"/shifts/{raw_id}/report-sick", "Sjukanmäl", csrf_token, "danger", confirm="Sjukanmäla dig?"
                )
            rows += f"""
            <tr>
              <td>{kind}</td>
              <td><a href="{link}">{esc(e['title'])}</a></td>
              <td>{esc(e['start_time'].replace('T', ' '))}</td>
              <td>{esc(e['end_time'].replace('T', ' '))}</td>
              <td>{esc(e.get('location') or '')}</td>
              <td class="actions">{sick}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>Typ</th><th>Titel</th><th>Start</th><th>Slut</th><th>Plats</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Inga bokade pass eller uppdrag.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Mitt schema", body, user=user)
