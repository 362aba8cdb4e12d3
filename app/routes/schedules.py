import json
from datetime import date, timedelta

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.auth_utils import require_user
from app.layout import action_button, error_page, esc, render_with_csrf, status_badge
from app.security import csrf_input, validate_csrf
from app.services.schedules import (
    add_manual_staff,
    csv_for_schedule,
    delete,
    generate_for_employer,
    get_schedule,
    list_schedules,
    parse_min_staffing,
    parse_pharmacy_hours,
    parse_requirement_lines,
    publish_unfilled,
    reassign,
    remove_manual_staff,
    save,
)
from app.validation import parse_optional_float, parse_optional_int
from core.database import list_manual_staff, list_schedule_staff
from core.errors import BusinessRuleError
from core.roles import EMPLOYEE_ROLES, EMPLOYER, role_label
from core.scheduling import WEEKDAY_NAMES_SV, Rules, day_of_week

router = APIRouter()

CSRF_FAILED = "Ogiltig eller saknad CSRF-token."

EXAMPLE_REQUIREMENTS = "1,2,3,4,5;08:30;17:00;pharmacist;1;ja\n1,2,3,4,5;10:00;19:00;säljare;2;ja\n6;10:00;15:00;pharmacist;1"


def _role_options(selected: str | None = None) -> str:
    return "".join(
        f'<option value="{r}"{" selected" if r == selected else ""}>{esc(role_label(r))}</option>'
        for r in EMPLOYEE_ROLES
    )


@router.get("/employer/schedules", response_class=HTMLResponse)
def schedules_page(request: Request):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    schedules = list_schedules(user)
    manual = list_manual_staff(user["id"])
    staff_count = len(list_schedule_staff(user["id"]))
    start = date.today() + timedelta(days=7 - date.today().weekday())
    end = start + timedelta(days=13)

    def body(csrf_token: str) -> str:
        rows = ""
        for s in schedules:
            rows += f"""
            <tr>
              <td><a href="/employer/schedules/{s['id']}">{esc(s['schedule_name'])}</a></td>
              <td>{esc(s['period_start_date'])} - {esc(s['period_end_date'])}</td>
              <td>{status_badge(s['status'])}</td>
              <td>{s['slot_count']}</td>
              <td>{s['unfilled_count']}</td>
            </tr>
            """
        manual_rows = ""
        for m in manual:
            manual_rows += f"""
            <tr>
              <td>{esc(m['full_name'])}</td>
              <td>{esc(role_label(m['role']))}</td>
              <td>{m['max_consecutive_days']}</td>
              <td class="actions">{action_button(f"/employer/manual-staff/{m['id']}/remove", "Ta bort", csrf_token, "danger")}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <h3>Sparade scheman</h3>
          <table>
            <thead><tr><th>Namn</th><th>Period</th><th>Status</th><th>Pass</th><th>Otillsatta</th></tr></thead>
            <tbody>{rows or '<tr><td colspan="5">Inga scheman ännu.</td></tr>'}</tbody>
          </table>
        </div>
        <div class="card form-card">
          <h3>Generera schema</h3>
          <p class="muted">{staff_count} personer i personallistan (aktiv personal och manuellt tillagda).</p>
          <form method="post" action="/employer/schedules/generate">
            <label>Namn</label>
            <input type="text" name="schedule_name" required maxlength="100" value="Schema {esc(start.isoformat())}" />
            <label>Från</label>
            <input type="date" name="start_date" required value="{esc(start.isoformat())}" />
            <label>Till</label>
            <input type="date" name="end_date" required value="{esc(end.isoformat())}" />
            <label>Behov (dagar;start;slut;roll;antal;lunch). 0 = söndag, 6 = lördag.</label>
            <textarea name="requirements" rows="5">{esc(EXAMPLE_REQUIREMENTS)}</textarea>
            <label>Minimibemanning per öppen dag (roll:antal, valfritt)</label>
            <input type="text" name="min_staffing" maxlength="200" placeholder="pharmacist:1" />
            <label>Öppettider (dag;öppnar;stänger per rad, valfritt)</label>
            <textarea name="pharmacy_hours" rows="3" placeholder="1,2,3,4,5;09:00;18:00&#10;6;10:00;15:00"></textarea>
            <label>Lunch (minuter)</label>
            <input type="number" name="lunch_minutes" min="0" max="120" value="30" />
            {csrf_input(csrf_token)}
            <button type="submit">Generera</button>
          </form>
        </div>
        <div class="card form-card">
          <h3>Manuellt tillagd personal</h3>
          <table>
            <thead><tr><th>Namn</th><th>Roll</th><th>Max dagar i följd</th><th></th></tr></thead>
            <tbody>{manual_rows or '<tr><td colspan="4">Ingen manuellt tillagd personal.</td></tr>'}</tbody>
          </table>
          <form method="post" action="/employer/manual-staff/add">
            <label>Namn</label>
            <input type="text" name="full_name" required maxlength="100" />
            <label>Roll</label>
            <select name="role">{_role_options()}</select>
            <label>Max dagar i följd</label>
            <input type="number" name="max_consecutive_days" min="1" max="14" value="5" />
            {csrf_input(csrf_token)}
            <button type="submit">Lägg till</button>
          </form>
        </div>
        """

    return render_with_csrf(request, "Schema", body, user=user)


@router.post("/employer/schedules/generate", response_class=HTMLResponse)
def schedules_generate(
    request: Request,
    schedule_name: str = Form(..., max_length=100),
    start_date: str = Form(...),
    end_date: str = Form(...),
    requirements: str = Form("", max_length=5000),
    min_staffing: str = Form("", max_length=500),
    pharmacy_hours: str = Form("", max_length=2000),
    lunch_minutes: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    lunch = parse_optional_int(lunch_minutes)
    if lunch is None:
        lunch = 30
    try:
        rules = Rules(
            default_lunch_minutes=lunch,
            min_staffing=parse_min_staffing(min_staffing),
        )
        result = generate_for_employer(
            user,
            start_date,
            end_date,
            parse_requirement_lines(requirements),
            rules,
            parse_pharmacy_hours(pharmacy_hours),
        )
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")

    slots = [s.to_dict() for s in result.schedule]

    def body(csrf_token: str) -> str:
        warnings = "".join(f"<li>{esc(w)}</li>" for w in result.warnings)
        hours = "".join(
            f"<li>{esc(key)}: {h:.1f} h</li>" for key, h in sorted(result.hours_by_staff.items())
        )
        rows = "".join(
            f"""
            <tr>
              <td>{esc(s['date'])}</td>
              <td>{esc(s['start_time'])}-{esc(s['end_time'])}</td>
              <td>{esc(role_label(s['required_role']))}</td>
              <td>{esc(s['assigned_staff_name'] or 'OTILLSATT')}</td>
              <td>{esc(s['notes'])}</td>
            </tr>
            """
            for s in slots
        )
        return f"""
        <div class="card">
          <h3>{esc(schedule_name)} ({esc(start_date)} - {esc(end_date)})</h3>
          {f'<div class="error"><ul>{warnings}</ul></div>' if warnings else ''}
          <details><summary>Timmar per person</summary><ul>{hours}</ul></details>
          <table>
            <thead><tr><th>Datum</th><th>Tid</th><th>Roll</th><th>Tilldelad</th><th>Notering</th></tr></thead>
            <tbody>{rows or '<tr><td colspan="5">Inga pass genererades.</td></tr>'}</tbody>
          </table>
          <form method="post" action="/employer/schedules/save">
            <input type="hidden" name="schedule_name" value="{esc(schedule_name)}" />
            <input type="hidden" name="start_date" value="{esc(start_date)}" />
            <input type="hidden" name="end_date" value="{esc(end_date)}" />
            <input type="hidden" name="slots" value="{esc(json.dumps(slots))}" />
            {csrf_input(csrf_token)}
            <button type="submit">Spara schema</button>
          </form>
        </div>
        """

    return render_with_csrf(request, "Förhandsgranska schema", body, user=user)


@router.post("/employer/schedules/save")
def schedules_save(
    request: Request,
    schedule_name: str = Form(..., max_length=100),
    start_date: str = Form(...),
    end_date: str = Form(...),
    slots: str = Form("[]"),
    schedule_id: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        parsed = json.loads(slots)
    except ValueError:
        return error_page("Schemadata kunde inte läsas.", user=user, back="/employer/schedules")
    if not isinstance(parsed, list):
        return error_page("Schemadata kunde inte läsas.", user=user, back="/employer/schedules")
    try:
        saved_id = save(user, schedule_name, start_date, end_date, parsed, parse_optional_int(schedule_id))
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    return RedirectResponse(url=f"/employer/schedules/{saved_id}", status_code=303)


@router.get("/employer/schedules/{schedule_id}", response_class=HTMLResponse)
def schedule_detail(request: Request, schedule_id: int):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    try:
        schedule, slots = get_schedule(user, schedule_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    staff = list_schedule_staff(user["id"])

    def body(csrf_token: str) -> str:
        rows = ""
        for s in slots:
            options = '<option value="">Otillsatt</option>' + "".join(
                f'<option value="{esc(m["key"])}"{" selected" if m["key"] == s.get("assigned_staff_key") else ""}>{esc(m["name"])}</option>'
                for m in staff
                if m["role"] == s["required_role"]
            )
            weekday = WEEKDAY_NAMES_SV[day_of_week(date.fromisoformat(str(s["date"])))]
            published = f"#{s['published_shift_need_id']}" if s.get("published_shift_need_id") else ""
            rows += f"""
            <tr>
              <td>{esc(s['date'])} ({esc(weekday)})</td>
              <td>{esc(s['start_time'])}-{esc(s['end_time'])}</td>
              <td>{esc(role_label(s['required_role']))}</td>
              <td>
                <form method="post" action="/employer/schedules/{schedule_id}/reassign" class="actions">
                  <input type="hidden" name="schedule_shift_id" value="{s['id']}" />
                  <select name="staff_key">{options}</select>
                  {csrf_input(csrf_token)}
                  <button type="submit" class="secondary">Byt</button>
                </form>
              </td>
              <td>{esc(s.get('notes') or '')}</td>
              <td>{published}</td>
            </tr>
            """
        return f"""
        <div class="card">
          <h3>{esc(schedule['schedule_name'])} {status_badge(schedule['status'])}</h3>
          <p class="muted">{esc(schedule['period_start_date'])} - {esc(schedule['period_end_date'])}</p>
          <div class="actions">
            <a href="/employer/schedules/{schedule_id}/csv"><button type="button" class="secondary">Exportera CSV</button></a>
            {action_button(f"/employer/schedules/{schedule_id}/delete", "Ta bort", csrf_token, "danger", confirm="Ta bort schemat?")}
          </div>
          <table>
            <thead><tr><th>Datum</th><th>Tid</th><th>Roll</th><th>Tilldelad</th><th>Notering</th><th>Publicerat</th></tr></thead>
            <tbody>{rows or '<tr><td colspan="6">Schemat är tomt.</td></tr>'}</tbody>
          </table>
        </div>
        <div class="card form-card">
          <h3>Publicera otillsatta pass</h3>
          <p class="muted">Varje otillsatt pass publiceras som ett öppet pass som personal kan söka.</p>
          <form method="post" action="/employer/schedules/{schedule_id}/publish">
            <label>Timlön (kr)</label>
            <input type="text" name="hourly_rate" maxlength="10" />
            <label>Lunch (minuter)</label>
            <input type="number" name="lunch_minutes" min="0" max="120" />
            {csrf_input(csrf_token)}
            <button type="submit">Publicera</button>
          </form>
        </div>
        """

    return render_with_csrf(request, schedule["schedule_name"], body, user=user)


@router.post("/employer/schedules/{schedule_id}/reassign")
def schedule_reassign(
    request: Request,
    schedule_id: int,
    schedule_shift_id: int = Form(...),
    staff_key: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        reassign(user, schedule_shift_id, staff_key or None)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=f"/employer/schedules/{schedule_id}")
    return RedirectResponse(url=f"/employer/schedules/{schedule_id}", status_code=303)


@router.post("/employer/schedules/{schedule_id}/publish", response_class=HTMLResponse)
def schedule_publish(
    request: Request,
    schedule_id: int,
    hourly_rate: str = Form(""),
    lunch_minutes: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        published, errors = publish_unfilled(
            user, schedule_id, parse_optional_float(hourly_rate), parse_optional_int(lunch_minutes)
        )
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back=f"/employer/schedules/{schedule_id}")

    def body(csrf_token: str) -> str:
        errors_html = "".join(f"<li>{esc(e)}</li>" for e in errors)
        return f"""
        <div class="card form-card">
          <p class="success">{published} pass publicerades.</p>
          {f'<ul class="error">{errors_html}</ul>' if errors_html else ''}
          <p><a href="/employer/schedules/{schedule_id}">Tillbaka till schemat</a></p>
        </div>
        """

    return render_with_csrf(request, "Publicerat", body, user=user)


@router.post("/employer/schedules/{schedule_id}/delete")
def schedule_delete(request: Request, schedule_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        delete(user, schedule_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    return RedirectResponse(url="/employer/schedules", status_code=303)


@router.get("/employer/schedules/{schedule_id}/csv")
def schedule_csv(request: Request, schedule_id: int):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    try:
        file_name, content = csv_for_schedule(user, schedule_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.post("/employer/manual-staff/add")
def manual_staff_add(
    request: Request,
    full_name: str = Form(..., max_length=100),
    role: str = Form(...),
    max_consecutive_days: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        add_manual_staff(user, full_name, role, parse_optional_int(max_consecutive_days))
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    return RedirectResponse(url="/employer/schedules", status_code=303)


@router.post("/employer/manual-staff/{staff_id}/remove")
def manual_staff_remove(request: Request, staff_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, EMPLOYER)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse(CSRF_FAILED, status_code=403)
    try:
        remove_manual_staff(user, staff_id)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/employer/schedules")
    return RedirectResponse(url="/employer/schedules", status_code=303)
