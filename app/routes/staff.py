from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import action_button, error_page, esc, render_page, render_with_csrf, status_badge
from app.routes.auth import build_public_url
from app.security import csrf_input, validate_csrf
from app.services.invitations import (
    create_and_link_employee,
    end_relationship,
    invite_employee,
    list_my_employees,
    list_pending_invitations,
    respond_to_invitation,
)
from app.services.profiles import employee_directory
from app.validation import parse_optional_float
from core.errors import BusinessRuleError
from core.roles import EMPLOYEE_ROLES, EMPLOYER, RELATIONSHIP_TYPES, role_label

router = APIRouter()

CSRF_FAILED = "Ogiltig eller saknad CSRF-token."


def _options(values, selected: str | None = None, labels=None, blank: str | None = None) -> str:
    html = f'<option value="">{esc(blank)}</option>' if blank is not None else ""
    for v in values:
        label = labels(v) if labels else v
        html += f'<option value="{esc(v)}"{" selected" if v == selected else ""}>{esc(label)}</option>'
    return html


@router.get("/employer/staff", response_class=HTMLResponse)
def staff_page(
    request: Request,
    search: str = "",
    role: str = "",
    worked_for_me: str = "",
    relationship_type: str = "",
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    employees = list_my_employees(user)
    try:
        directory = employee_directory(
            user,
            search=search or None,
            role=role or None,
            worked_for_me=bool(worked_for_me),
            relationship_type=relationship_type or None,
        )
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/staff")

    def body(csrf_token: str) -> str:
        rows = ""
        for e in employees:
            end_html = action_button(
                f"/employer/staff/{e['id']}/end", "Avsluta", csrf_token, "danger", confirm="Avsluta anställningen?"
            )
            rows += f"""
            <tr>
              <td>{esc(e.get('full_name') or e['invitee_email'])}</td>
              <td>{esc(role_label(e.get('role')))}</td>
              <td>{esc(e['relationship_type'])}</td>
              <td>{status_badge(e['status'])}</td>
              <td>{esc(e.get('city') or '')}</td>
              <td class="actions">{end_html}</td>
            </tr>
            """
        dir_rows = ""
        for p in directory:
            dir_rows += f"""
            <tr>
              <td>{esc(p.get('full_name') or p['email'])}</td>
              <td>{esc(role_label(p['role']))}</td>
              <td>{esc(p.get('city') or '')}</td>
              <td>{esc(', '.join(p['experience_list']))}</td>
              <td>{'Ja' if p['license_verified'] else 'Nej'}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <h3>Min personal</h3>
          <table>
            <thead><tr><th>Namn</th><th>Roll</th><th>Anställning</th><th>Status</th><th>Ort</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Ingen personal ännu.</td></tr>'}</tbody>
          </table>
        </div>
        <div class="card form-card">
          <h3>Bjud in befintlig användare</h3>
          <form method="post" action="/employer/staff/invite">
            <label>E-post</label>
            <input type="email" name="email" required maxlength="100" />
            <label>Anställningsform</label>
            <select name="relationship_type">{_options(RELATIONSHIP_TYPES)}</select>
            {csrf_input(csrf_token)}
            <button type="submit">Skicka inbjudan</button>
          </form>
        </div>
        <div class="card form-card">
          <h3>Lägg till ny anställd</h3>
          <p class="muted">Ett konto skapas och personen får en länk för att aktivera det.</p>
          <form method="post" action="/employer/staff/add">
            <label>Namn</label>
            <input type="text" name="full_name" required maxlength="100" />
            <label>E-post</label>
            <input type="email" name="email" required maxlength="100" />
            <label>Roll</label>
            <select name="role">{_options(EMPLOYEE_ROLES, labels=role_label)}</select>
            <label>Anställningsform</label>
            <select name="relationship_type">{_options(RELATIONSHIP_TYPES)}</select>
            <label>Telefon</label>
            <input type="text" name="phone" maxlength="30" />
            <label>Ort</label>
            <input type="text" name="city" maxlength="80" />
            <label>Timlön (kr)</label>
            <input type="text" name="hourly_rate" maxlength="10" />
            {csrf_input(csrf_token)}
            <button type="submit">Lägg till</button>
          </form>
        </div>
        <div class="card">
          <h3>Hitta personal</h3>
          <form method="get" action="/employer/staff" class="actions">
            <input type="text" name="search" placeholder="Namn, e-post eller ort" value="{esc(search)}" />
            <select name="role">{_options(EMPLOYEE_ROLES, role, role_label, blank="Alla roller")}</select>
            <select name="relationship_type">{_options(RELATIONSHIP_TYPES, relationship_type, blank="Alla anställningsformer")}</select>
            <label><input type="checkbox" name="worked_for_me" value="1"{" checked" if worked_for_me else ""} /> Har arbetat hos mig</label>
            <button type="submit" class="secondary">Sök</button>
          </form>
          <table>
            <thead><tr><th>Namn</th><th>Roll</th><th>Ort</th><th>Erfarenhet</th><th>Verifierad</th></tr></thead>
            <tbody>{dir_rows or '<tr><td colspan="5">Inga träffar.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Personal", body, user=user)


@router.post("/employer/staff/invite", response_class=HTMLResponse)
def staff_invite(
    request: Request,
    email: str = Form(..., max_length=100),
    relationship_type: str = Form(...),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        result = invite_employee(user, email, relationship_type)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/staff")

    note = "Personen har ett konto och ser inbjudan direkt." if result["user_exists"] else (
        "Personen har inget konto ännu. Inbjudan kopplas när hen registrerar sig med samma e-post."
    )
    body = f"""
    <div class="card form-card">
      <p class="success">Inbjudan skickad till {esc(email)}.</p>
      <p class="muted">{note}</p>
      <p><a href="/employer/staff">Tillbaka till personal</a></p>
    </div>
    """
    return render_page("Inbjudan skickad", body, user=user)


@router.post("/employer/staff/add")
def staff_add(
    request: Request,
    full_name: str = Form(..., max_length=100),
    email: str = Form(..., max_length=100),
    role: str = Form(...),
    relationship_type: str = Form(...),
    phone: str = Form("", max_length=30),
    city: str = Form("", max_length=80),
    hourly_rate: str = Form("", max_length=10),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        create_and_link_employee(
            user,
            full_name=full_name,
            email=email,
            role=role,
            relationship_type=relationship_type,
            base_url=build_public_url(request, ""),
            phone=phone.strip() or None,
            city=city.strip() or None,
            hourly_rate=parse_optional_float(hourly_rate),
        )
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/staff")
    return RedirectResponse(url="/employer/staff", status_code=303)


@router.post("/employer/staff/{relationship_id}/end")
def staff_end(request: Request, relationship_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        end_relationship(user, relationship_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/staff")
    return RedirectResponse(url="/employer/staff", status_code=303)


@router.get("/invitations", response_class=HTMLResponse)
def invitations_page(request: Request):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    invitations = list_pending_invitations(user)

    def body(csrf_token: str) -> str:
        rows = ""
        for inv in invitations:
            buttons = action_button(f"/invitations/{inv['id']}/accept", "Acceptera", csrf_token) + action_button(
                f"/invitations/{inv['id']}/decline", "Avböj", csrf_token, "secondary"
            )
            rows += f"""
            <tr>
              <td>{esc(inv['employer_name'])}</td>
              <td>{esc(inv.get('employer_city') or '')}</td>
              <td>{esc(inv['relationship_type'])}</td>
              <td>{esc(inv['created_at'][:10])}</td>
              <td class="actions">{buttons}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>Arbetsgivare</th><th>Ort</th><th>Anställningsform</th><th>Skickad</th><th></th></tr></thead>
            <tbody>{rows or '<tr><td colspan="5">Inga väntande inbjudningar.</td></tr>'}</tbody>
          </table>
        </div>
        """

    return render_with_csrf(request, "Inbjudningar", body, user=user)


def _respond(request: Request, relationship_id: int, csrf_token: str, accept: bool):
    user, denied = require_user(request, *EMPLOYEE_ROLES)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        respond_to_invitation(user, relationship_id, accept)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/invitations")
    return RedirectResponse(url="/invitations", status_code=303)


@router.post("/invitations/{relationship_id}/accept")
def invitation_accept(request: Request, relationship_id: int, csrf_token: str = Form("")):
    return _respond(request, relationship_id, csrf_token, True)


@router.post("/invitations/{relationship_id}/decline")
def invitation_decline(request: Request, relationship_id: int, csrf_token: str = Form("")):
    return _respond(request, relationship_id, csrf_token, False)
