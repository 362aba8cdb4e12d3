from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import action_button, esc, render_with_csrf
from app.security import validate_csrf
from core.database import (
    get_shift_alert_deliveries_for_user,
    list_recent_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from core.roles import is_employee_role

router = APIRouter()


@router.get("/notifications", response_class=HTMLResponse)
def notifications_page(request: Request):
    user, denied = require_user(request)
    if denied:
        return denied

    notifications = list_recent_notifications(user["id"], limit=100)
    alerts = get_shift_alert_deliveries_for_user(user_id=int(user["id"]), limit=50) if is_employee_role(user["role"]) else []

    def body(csrf_token: str) -> str:
        rows = ""
        for n in notifications:
            title = esc(n["title"])
            if n.get("link"):
                title = f'<a href="{esc(n["link"])}">{title}</a>'
            read_html = (
                '<span class="muted">Läst</span>'
                if n["is_read"]
                else action_button(f"/notifications/{n['id']}/read", "Markera som läst", csrf_token, "secondary")
            )
            rows += f"""
            <tr>
              <td>{'' if n['is_read'] else '<strong>Ny</strong>'}</td>
              <td>{title}</td>
              <td>{esc(n['message'])}</td>
              <td>{esc(n['created_at'][:16].replace('T', ' '))}</td>
              <td class="actions">{read_html}</td>
            </tr>
            """
        if not rows:
            rows = '<tr><td colspan="5">Inga notiser ännu.</td></tr>'

        alerts_html = ""
        if is_employee_role(user["role"]):
            alert_rows = ""
            for d in alerts:
                alert_rows += f"""
                <tr>
                  <td><a href="/shifts/{d['shift_id']}">{esc(d['title'])}</a></td>
                  <td>{esc(d['date'])} {esc(d['start_time'])}-{esc(d['end_time'])}</td>
                  <td>{esc(d.get('location') or '')}</td>
                  <td>{esc(d['status'])}</td>
                  <td>{esc((d.get('sent_at') or '')[:16].replace('T', ' '))}</td>
                </tr>
                """
            alerts_html = f"""
            <div class="card">
              <h3>Passnotiser via e-post</h3>
              <p class="muted">Pass som matchat din roll och dina orter (senaste först).</p>
              <table>
                <thead><tr><th>Pass</th><th>När</th><th>Plats</th><th>Status</th><th>Skickat</th></tr></thead>
                <tbody>{alert_rows or '<tr><td colspan="5">Inga passnotiser ännu.</td></tr>'}</tbody>
              </table>
            </div>
            """

        return f"""
        <div class="card">
          <div class="actions">{action_button("/notifications/read-all", "Markera alla som lästa", csrf_token)}</div>
          <table>
            <thead><tr><th></th><th>Titel</th><th>Meddelande</th><th>Datum</th><th></th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        {alerts_html}
        """

    return render_with_csrf(request, "Notiser", body, user=user)


@router.post("/notifications/{notification_id}/read")
def notification_read(request: Request, notification_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)
    mark_notification_read(user["id"], notification_id)
    return RedirectResponse(url="/notifications", status_code=303)


@router.post("/notifications/read-all")
def notifications_read_all(request: Request, csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)
    mark_all_notifications_read(user["id"])
    return RedirectResponse(url="/notifications", status_code=303)
