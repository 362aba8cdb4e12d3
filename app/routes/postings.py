from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import action_button, error_page, esc, render_with_csrf, status_badge
from app.security import csrf_input, validate_csrf
from app.services.postings import (
    accept_posting_application,
    apply_for_posting,
    create_posting,
    delete_posting,
    list_available_postings,
    list_posting_applications,
    mark_posting_completed,
    reject_posting_application,
    update_posting,
    withdraw_posting_application,
)
from app.validation import parse_date, parse_optional_float
from core.database import get_posting, list_employer_postings, list_my_applied_posting_ids
from core.errors import BusinessRuleError
from core.roles import ADMIN, EMPLOYEE_ROLES, EMPLOYER, allowed_required_roles, is_employee_role, role_label

router = APIRouter()

CSRF_FAILED = "Ogiltig eller saknad CSRF-token."


def posting_form(action: str, csrf_token: str, values: Optional[Dict] = None, employer_select: str = "") -> str:
    v = values or {}
    role_options = "".join(
        f'<option value="{r}"{" selected" if r == v.get("required_role") else ""}>{esc(role_label(r))}</option>'
        for r in EMPLOYEE_ROLES
    )
    return f"""
    <div class="card form-card">
      <form method="post" action="{esc(action)}">
        {employer_select}
        <label>Titel</label>
        <input type="text" name="title" required maxlength="120" value="{esc(v.get('title'))}" />
        <label>Beskrivning</label>
        <textarea name="description" rows="4" required maxlength="4000">{esc(v.get('description'))}</textarea>
        <label>Roll som krävs</label>
        <select name="required_role">{role_options}</select>
        <label>Erfarenhet som krävs</label>
        <input type="text" name="required_experience" maxlength="200" value="{esc(v.get('required_experience'))}" />
        <label>Plats</label>
        <input type="text" name="location" maxlength="120" value="{esc(v.get('location'))}" />
        <label>Startdatum</label>
        <input type="date" name="period_start_date" required value="{esc(v.get('period_start_date'))}" />
        <label>Slutdatum</label>
        <input type="date" name="period_end_date" required value="{esc(v.get('period_end_date'))}" />
        <label>Uppskattade timmar</label>
        <input type="text" name="estimated_hours" maxlength="10" value="{esc(v.get('estimated_hours'))}" />
        <label>Lön (beskrivning)</label>
        <input type="text" name="salary_description" maxlength="200" value="{esc(v.get('salary_description'))}" />
        <label>Timlön (kr)</label>
        <input type="text" name="hourly_rate" maxlength="10" value="{esc(v.get('hourly_rate'))}" />
        {csrf_input(csrf_token)}
        <button type="submit">Spara</button>
      </form>
    </div>
    """


def parse_posting_form(form: Dict[str, str]) -> Tuple[Dict, Optional[str]]:
    start = parse_date(form.get("period_start_date"))
    end = parse_date(form.get("period_end_date"))
    if not start or not end:
        return {}, "Ange giltiga start- och slutdatum."
    data = {
        "title": form.get("title", "").strip(),
        "description": form.get("description", "").strip(),
        "required_role": form.get("required_role"),
        "required_experience": form.get("required_experience", "").strip() or None,
        "location": form.get("location", "").strip() or None,
        "period_start_date": start.isoformat(),
        "period_end_date": end.isoformat(),
        "estimated_hours": parse_optional_float(form.get("estimated_hours")),
        "salary_description": form.get("salary_description", "").strip() or None,
        "hourly_rate": parse_optional_float(form.get("hourly_rate")),
    }
    return data, None


@router.get("/postings", response_class=HTMLResponse)
def postings_list(request: Request, location: str = "", date_from: str = "", date_to: str = ""):
    user, denied = require_user(request)
    if denied:
        return denied
    if user["role"] == EMPLOYER:
        return RedirectResponse(url="/employer/postings", status_code=303)
    if user["role"] == ADMIN:
        return RedirectResponse(url="/admin/postings", status_code=303)

    postings = list_available_postings(
        user, location=location or None, date_from=date_from or None, date_to=date_to or None
    )
    applied = set(list_my_applied_posting_ids(user["id"]))

    def body(csrf_token: str) -> str:
        rows = ""
        for p in postings:
            if p["id"] in applied:
                apply_html = '<span class="muted">Ansökt</span>'
            else:
                apply_html = action_button(f"/postings/{p['id']}/apply", "Ansök", csrf_token)
            rows += f"""
            <tr>
              <td><a href="/postings/{p['id']}">{esc(p['title'])}</a></td>
              <td>{esc(p['employer_name'])}</td>
              <td>{esc(p['period_start_date'])} - {esc(p['period_end_date'])}</td>
              <td>{esc(p.get('location') or p.get('employer_city') or '')}</td>
              <td>{esc(role_label(p['required_role']))}</td>
              <td class="actions">{apply_html}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <form method="get" action="/postings" class="actions">
            <input type="text" name="location" placeholder="Ort" value="{esc(location)}" />
            <input type="date" name="date_from" value="{esc(date_from)}" />
            <input type="date" name="date_to" value="{esc(date_to)}" />
            <button type="submit" class="secondary">Filtrera</button>
          </form>
          <table>
            <thead><tr><th>Uppdrag</th><th>Apotek</th><th>Period</th><th>Plats</th><th>Roll</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Inga lediga uppdrag just nu.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Uppdrag", body, user=user)


@router.get("/postings/new", response_class=HTMLResponse)
def new_posting_form(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    return render_with_csrf(request, "Nytt uppdrag", lambda t: posting_form("/postings/new", t), user=user)


@router.post("/postings/new", response_class=HTMLResponse)
async def new_posting(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    data, error = parse_posting_form(form)
    if error:
        return error_page(error, user=user, back="/postings/new")
    try:
        create_posting(user, data)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/postings/new")
    return RedirectResponse(url="/employer/postings", status_code=303)


@router.get("/employer/postings", response_class=HTMLResponse)
def employer_postings(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    postings = list_employer_postings(user["id"])

    def body(csrf_token: str) -> str:
        rows = ""
        for p in postings:
            actions = [
                f'<a href="/postings/{p["id"]}">Visa</a>',
                f'<a href="/postings/{p["id"]}/edit">Ändra</a>',
            ]
            if p["status"] == "filled":
                actions.append(action_button(f"/postings/{p['id']}/complete", "Genomfört", csrf_token))
            actions.append(
                action_button(f"/postings/{p['id']}/delete", "Ta bort", csrf_token, "danger", confirm="Ta bort uppdraget?")
            )
            rows += f"""
            <tr>
              <td>{esc(p['title'])}</td>
              <td>{esc(p['period_start_date'])} - {esc(p['period_end_date'])}</td>
              <td>{esc(role_label(p['required_role']))}</td>
              <td>{status_badge(p['status'])}</td>
              <td>{p.get('pending_count') or 0}</td>
              <td class="actions">{''.join(actions)}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <p><a href="/postings/new"><button type="button">Nytt uppdrag</button></a></p>
          <table>
            <thead><tr><th>Uppdrag</th><th>Period</th><th>Roll</th><th>Status</th><th>Ansökningar</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Du har inga uppdrag ännu.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Mina uppdrag", body, user=user)


@router.get("/postings/{posting_id}", response_class=HTMLResponse)
def posting_detail(request: Request, posting_id: int):
    user, denied = require_user(request)
    if denied:
        return denied
    posting = get_posting(posting_id)
    if not posting:
        return error_page("Uppdraget hittades inte.", 404, user=user, back="/postings")

    is_owner = user["role"] == ADMIN or posting["employer_id"] == user["id"]
    applied = is_employee_role(user["role"]) and posting_id in list_my_applied_posting_ids(user["id"])
    visible = (
        is_owner
        or applied
        or (posting["status"] == "open" and posting["required_role"] in allowed_required_roles(user["role"]))
    )
    if not visible:
        return error_page("Uppdraget hittades inte.", 404, user=user, back="/postings")
    applications = list_posting_applications(user, posting_id) if is_owner else []

    def body(csrf_token: str) -> str:
        apply_html = ""
        if is_employee_role(user["role"]) and posting["status"] == "open" and not applied:
            apply_html = action_button(f"/postings/{posting_id}/apply", "Ansök", csrf_token)
        app_rows = ""
        for a in applications:
            buttons = ""
            if a["status"] == "pending" and posting["status"] == "open":
                buttons = action_button(
                    f"/posting-applications/{a['id']}/accept", "Acceptera", csrf_token
                ) + action_button(f"/posting-applications/{a['id']}/reject", "Avböj", csrf_token, "secondary")
            app_rows += f"""
            <tr>
              <td>{esc(a.get('applicant_name') or a['applicant_email'])}</td>
              <td>{esc(role_label(a['applicant_role']))}</td>
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
                <thead><tr><th>Namn</th><th>Roll</th><th>Meddelande</th><th>Status</th><th></th></tr></thead>
                <tbody>{app_rows or '<tr><td colspan="5">Inga ansökningar ännu.</td></tr>'}</tbody>
              </table>
            </div>
            """
        return f"""
        <div class="card">
          <h2>{esc(posting['title'])}</h2>
          <p>{status_badge(posting['status'])}</p>
          <p><strong>Apotek:</strong> {esc(posting['employer_name'])}</p>
          <p><strong>Period:</strong> {esc(posting['period_start_date'])} - {esc(posting['period_end_date'])}</p>
          <p><strong>Plats:</strong> {esc(posting.get('location') or posting.get('employer_city') or 'Ej angivet')}</p>
          <p><strong>Roll:</strong> {esc(role_label(posting['required_role']))}</p>
          <p><strong>Ersättning:</strong> {esc(posting.get('salary_description') or posting.get('hourly_rate') or 'Enligt överenskommelse')}</p>
          <p>{esc(posting['description'])}</p>
          <div class="actions">{apply_html}</div>
        </div>
        {apps_html}
        """

    return render_with_csrf(request, posting["title"], body, user=user)


@router.post("/postings/{posting_id}/apply")
def posting_apply(request: Request, posting_id: int, notes: str = Form("", max_length=1000), csrf_token: str = Form("")):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        apply_for_posting(user, posting_id, notes)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/postings")
    return RedirectResponse(url="/my-applications", status_code=303)


@router.get("/postings/{posting_id}/edit", response_class=HTMLResponse)
def edit_posting_form(request: Request, posting_id: int):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    posting = get_posting(posting_id)
    if not posting or posting["employer_id"] != user["id"]:
        return error_page("Uppdraget hittades inte.", 404, user=user)
    return render_with_csrf(
        request, "Ändra uppdrag", lambda t: posting_form(f"/postings/{posting_id}/edit", t, posting), user=user
    )


@router.post("/postings/{posting_id}/edit", response_class=HTMLResponse)
async def edit_posting(request: Request, posting_id: int):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    form = {k: str(v) for k, v in (await request.form()).items()}
    if not validate_csrf(request, form.get("csrf_token")):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    data, error = parse_posting_form(form)
    if error:
        return error_page(error, user=user, back=f"/postings/{posting_id}/edit")
    try:
        update_posting(user, posting_id, data)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=f"/postings/{posting_id}/edit")
    return RedirectResponse(url=f"/postings/{posting_id}", status_code=303)


@router.post("/postings/{posting_id}/delete")
def posting_delete(request: Request, posting_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        delete_posting(user, posting_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/postings")
    return RedirectResponse(url="/employer/postings", status_code=303)


@router.post("/postings/{posting_id}/complete")
def posting_complete(request: Request, posting_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        mark_posting_completed(user, posting_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/postings")
    return RedirectResponse(url="/employer/postings", status_code=303)


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


@router.post("/posting-applications/{application_id}/accept")
def posting_application_accept(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, accept_posting_application, application_id, (EMPLOYER, ADMIN), "/employer/postings"
    )


@router.post("/posting-applications/{application_id}/reject")
def posting_application_reject(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, reject_posting_application, application_id, (EMPLOYER, ADMIN), "/employer/postings"
    )


@router.post("/posting-applications/{application_id}/withdraw")
def posting_application_withdraw(request: Request, application_id: int, csrf_token: str = Form("")):
    return _application_action(
        request, csrf_token, withdraw_posting_application, application_id, EMPLOYEE_ROLES, "/my-applications"
    )
