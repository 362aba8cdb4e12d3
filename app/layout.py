"""
Shared HTML layout and small rendering helpers.
"""
import html

from fastapi.responses import HTMLResponse

from app.security import attach_csrf_cookie, csrf_input, issue_csrf_token
from core.roles import ADMIN, EMPLOYER, is_employee_role, role_label

STATUS_LABELS = {
    "open": "Öppet",
    "filled": "Tillsatt",
    "cancelled": "Inställt",
    "completed": "Genomfört",
    "pending": "Väntande",
    "accepted": "Accepterad",
    "rejected": "Avböjd",
    "withdrawn": "Återtagen",
    "active": "Aktiv",
    "declined": "Avböjd",
    "ended": "Avslutad",
    "draft": "Utkast",
    "published": "Publicerat",
}


def esc(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def status_badge(status: str | None) -> str:
    return f'<span class="badge badge-{esc(status)}">{esc(STATUS_LABELS.get(status or "", status))}</span>'


def error_page(message: str, status_code: int = 400, user: dict | None = None, back: str | None = None) -> HTMLResponse:
    back_html = f'<p><a href="{esc(back)}">Tillbaka</a></p>' if back else ""
    body = f"""
    <div class="card form-card">
      <p class="error">{esc(message)}</p>
      {back_html}
    </div>
    """
    resp = render_page("Något gick fel", body, user=user)
    resp.status_code = status_code
    return resp


def _nav_links(user: dict | None) -> str:
    if not user:
        return """
          <a href="/shifts">Lediga pass</a>
          <a href="/signup">Skapa konto</a>
          <a href="/login">Logga in</a>
        """

    role = user.get("role")
    links = ['<a href="/dashboard">Översikt</a>']
    if role == EMPLOYER:
        links += [
            '<a href="/employer/shifts">Mina pass</a>',
            '<a href="/employer/postings">Mina uppdrag</a>',
            '<a href="/employer/staff">Personal</a>',
            '<a href="/employer/schedules">Schema</a>',
        ]
    elif is_employee_role(role):
        links += [
            '<a href="/shifts">Lediga pass</a>',
            '<a href="/postings">Uppdrag</a>',
            '<a href="/my-schedule">Mitt schema</a>',
            '<a href="/invitations">Inbjudningar</a>',
        ]
    elif role == ADMIN:
        links += [
            '<a href="/admin/users">Användare</a>',
            '<a href="/admin/shifts">Alla pass</a>',
            '<a href="/admin/postings">Alla uppdrag</a>',
        ]
    links += [
        '<a href="/notifications">Notiser</a>',
        '<a href="/profile">Profil</a>',
        '<a href="/logout">Logga ut</a>',
    ]
    return "\n".join(links)


STYLESHEET = """
*{box-sizing:border-box}
body{margin:0;font:15px/1.5 system-ui,-apple-system,"Segoe UI",sans-serif;background:#f4f6f5;color:#2f3b36}
a{color:#0f766e}
.topbar{background:#0f766e;color:#fff}
.topbar .inner,.content,.bottom{max-width:1080px;margin:0 auto;padding:0 1rem}
.topbar .inner{display:flex;flex-wrap:wrap;align-items:center;justify-content:space-between;gap:.5rem;padding-top:.6rem;padding-bottom:.6rem}
.brand{font-weight:700;font-size:1.15rem;color:#fff;text-decoration:none}
.who{font-size:.78rem;opacity:.8}
.links{display:flex;flex-wrap:wrap;gap:.25rem}
.links a{color:#fff;text-decoration:none;font-size:.88rem;padding:.3rem .65rem;border-radius:6px}
.links a:hover{background:rgba(255,255,255,.18)}
.content{padding-top:1.25rem;padding-bottom:2.5rem}
.content>h1{font-size:1.4rem;margin:0 0 1rem}
.card{background:#fff;border:1px solid #dde3e0;border-radius:10px;padding:1rem 1.25rem;margin-bottom:1rem}
.form-card{max-width:720px;margin-left:auto;margin-right:auto}
label{display:block;margin-top:.8rem;font-size:.93rem}
input:not([type=checkbox]):not([type=radio]),select,textarea{width:100%;margin-top:.2rem;padding:.45rem .55rem;border:1px solid #cbd5d1;border-radius:6px;background:#fff;color:#1f2924}
input[type=checkbox],input[type=radio]{accent-color:#0f766e}
button{margin-top:.9rem;padding:.55rem 1.1rem;border:0;border-radius:6px;background:#0f766e;color:#fff;font-weight:600;cursor:pointer}
button.secondary{background:#e2e8e5;color:#1f2924}
button.danger{background:#c2410c}
.actions{display:flex;flex-wrap:wrap;align-items:center;gap:.4rem}
.actions form{margin:0}
.actions button{margin-top:0;padding:.3rem .65rem;font-size:.83rem}
table{width:100%;margin-top:.8rem;border-collapse:collapse;background:#fff;font-size:.88rem}
th,td{padding:.4rem .55rem;border-bottom:1px solid #e4e9e6;text-align:left;vertical-align:top}
th{background:#eef6f3}
.muted{color:#6b7772;font-size:.85rem}
.error{color:#b42318}
.success{color:#0f766e}
.urgent{color:#b45309;font-weight:600}
.badge{display:inline-block;padding:1px 8px;border-radius:999px;font-size:.74rem;background:#e2e8e5}
.badge-open,.badge-active,.badge-accepted{background:#ccf1e4;color:#115e4a}
.badge-pending,.badge-draft{background:#fdf0c4;color:#8a4b0f}
.badge-rejected,.badge-cancelled,.badge-declined{background:#fbdcdc;color:#9b1c1c}
.stats{display:grid;grid-template-columns:repeat(auto-fill,minmax(150px,1fr));gap:.6rem;margin-bottom:1rem}
.stat{background:#fff;border:1px solid #dde3e0;border-radius:10px;padding:.55rem .75rem}
.stat .label{font-size:.74rem;color:#6b7772}
.stat .value{font-size:1.3rem;font-weight:600}
.bottom{border-top:1px solid #dde3e0;padding-top:1rem;padding-bottom:1.5rem;font-size:.85rem;color:#6b7772;display:flex;justify-content:space-between;flex-wrap:wrap;gap:.5rem}
"""


def _who(user: dict | None) -> str:
    if not user:
        return "Inte inloggad"
    return f'{esc(user.get("email"))} &middot; {esc(role_label(user.get("role")))}'


def render_page(title: str, body: str, user: dict | None = None) -> HTMLResponse:
    """Wrap `body` in the site chrome: top bar with role-based links, page heading and footer."""
    page = f"""<!DOCTYPE html>
<html lang="sv">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{esc(title)} - Farmispoolen</title>
<style>{STYLESHEET}</style>
</head>
<body>
<nav class="topbar">
  <div class="inner">
    <div>
      <a class="brand" href="/">Farmispoolen</a>
      <div class="who">{_who(user)}</div>
    </div>
    <div class="links">{_nav_links(user)}</div>
  </div>
</nav>
<main class="content">
  <h1>{esc(title)}</h1>
  {body}
</main>
<footer class="bottom">
  <span>&copy; Farmispoolen</span>
  <span><a href="/privacy">Integritet</a> &middot; <a href="/contact">Kontakt</a></span>
</footer>
</body>
</html>"""
    return HTMLResponse(content=page)


def action_button(action: str, label: str, csrf_token: str, css_class: str = "", confirm: str | None = None) -> str:
    """A one-button POST form, used for accept/reject/delete style actions."""
    onsubmit = f' onsubmit="return confirm(\'{esc(confirm)}\');"' if confirm else ""
    class_attr = f' class="{css_class}"' if css_class else ""
    return f"""<form method="post" action="{esc(action)}"{onsubmit}>{csrf_input(csrf_token)}<button type="submit"{class_attr}>{esc(label)}</button></form>"""


def render_with_csrf(request, title: str, build_body, user: dict | None = None) -> HTMLResponse:
    """Render a page whose body holds forms; `build_body(csrf_token)` returns the HTML."""
    token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page(title, build_body(token), user=user)
    attach_csrf_cookie(resp, token)
    return resp
