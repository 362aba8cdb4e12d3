import logging
import os

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.auth_utils import get_current_user
from app.layout import error_page, esc, render_page
from app.notify import send_kind_email
from app.routes.auth import send_verification_email
from app.security import (
    allow_request,
    attach_csrf_cookie,
    client_ip,
    csrf_input,
    issue_csrf_token,
    validate_csrf,
)
from app.validation import is_valid_email, is_valid_password
from core.database import create_user, get_stats, get_user_by_email, get_user_by_id
from core.roles import EMPLOYER, SIGNUP_ROLES, role_label

router = APIRouter()
log = logging.getLogger("public")


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)

    body = """
    <div class="card">
      <h2>Bemanning för apotek, enkelt och snabbt</h2>
      <p>
        Farmispoolen kopplar ihop apotek med farmaceuter, egenvårdsrådgivare och säljare.
        Arbetsgivare publicerar pass och längre uppdrag, personal söker dem direkt.
      </p>
      <div class="actions">
        <a href="/signup"><button type="button">Skapa konto</button></a>
        <a href="/login"><button type="button" class="secondary">Logga in</button></a>
      </div>
    </div>
    <div class="stats">
      <div class="stat"><div class="label">För apotek</div><div class="value">Pass &amp; schema</div></div>
      <div class="stat"><div class="label">För personal</div><div class="value">Lediga pass</div></div>
      <div class="stat"><div class="label">Notiser</div><div class="value">E-post</div></div>
    </div>
    """
    return render_page("Farmispoolen", body, user=None)


def _signup_form(csrf_token: str, values: dict | None = None, message: str = "") -> str:
    values = values or {}
    role_options = "".join(
        f'<option value="{r}"{" selected" if values.get("role") == r else ""}>{esc(role_label(r))}</option>'
        for r in SIGNUP_ROLES
    )
    message_html = f'<p class="error">{esc(message)}</p>' if message else ""
    return f"""
    <div class="card form-card">
      {message_html}
      <form method="post" action="/signup">
        <label>Jag är</label>
        <select name="role" required>{role_options}</select>

        <label>Fullständigt namn</label>
        <input type="text" name="full_name" required maxlength="100" value="{esc(values.get('full_name'))}" />

        <label>Apotekets namn (endast arbetsgivare)</label>
        <input type="text" name="pharmacy_name" maxlength="100" value="{esc(values.get('pharmacy_name'))}" />

        <label>E-post</label>
        <input type="email" name="email" required maxlength="100" value="{esc(values.get('email'))}" />

        <label>Lösenord</label>
        <input type="password" name="password" required maxlength="25" />
        <p class="muted">8-25 tecken, minst en bokstav och en siffra.</p>

        <label>Bekräfta lösenord</label>
        <input type="password" name="password2" required maxlength="25" />

        {csrf_input(csrf_token)}
        <button type="submit">Skapa konto</button>
      </form>
      <p class="muted">Har du redan ett konto? <a href="/login">Logga in</a></p>
    </div>
    """


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Skapa konto", _signup_form(csrf_token), user=None)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/signup", response_class=HTMLResponse)
def signup(
    request: Request,
    email: str = Form(..., max_length=100),
    password: str = Form(..., max_length=25),
    password2: str = Form(..., max_length=25),
    role: str = Form(...),
    full_name: str = Form(..., max_length=100),
    pharmacy_name: str = Form("", max_length=100),
    csrf_token: str = Form(""),
):
    if not allow_request(f"signup:{client_ip(request)}", limit=5, window_seconds=3600):
        return HTMLResponse("För många registreringar. Försök igen senare.", status_code=429)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)

    values = {"email": email, "role": role, "full_name": full_name, "pharmacy_name": pharmacy_name}

    def _fail(message: str) -> HTMLResponse:
        resp = render_page("Skapa konto", _signup_form(csrf_token, values, message), user=None)
        resp.status_code = 400
        return resp

    email = email.strip().lower()
    if role not in SIGNUP_ROLES:
        return _fail("Välj en giltig roll.")
    if not full_name.strip():
        return _fail("Namn krävs.")
    if role == EMPLOYER and not pharmacy_name.strip():
        return _fail("Apotekets namn krävs för arbetsgivare.")
    if not is_valid_email(email):
        return _fail("Ogiltig e-postadress.")
    if password != password2:
        return _fail("Lösenorden matchar inte.")
    if not is_valid_password(password):
        return _fail("Lösenordet måste vara 8-25 tecken med minst en bokstav och en siffra, utan mellanslag.")
    if get_user_by_email(email):
        return _fail("Det finns redan ett konto med denna e-postadress.")

    user_id = create_user(
        email,
        password,
        role=role,
        verified=False,
        full_name=full_name,
        pharmacy_name=pharmacy_name if role == EMPLOYER else None,
    )
    log.info("User signed up", extra={"user_id": user_id, "role": role})
    send_verification_email(request, get_user_by_id(user_id))

    body = f"""
    <div class="card form-card">
      <h2>Kolla din inkorg</h2>
      <p class="muted">
        Vi har skickat en verifieringslänk till <strong>{esc(email)}</strong>.
        Klicka på länken inom 24 timmar för att aktivera ditt konto.
      </p>
      <p class="muted"><a href="/verify-email/resend">Fick du inget mejl?</a></p>
    </div>
    """
    return render_page("Bekräfta e-post", body, user=None)


@router.get("/contact", response_class=HTMLResponse)
def contact_form(request: Request):
    user, _ = get_current_user(request)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = f"""
    <div class="card form-card">
      <p class="muted">Har du frågor? Skriv till oss så svarar vi så snart vi kan.</p>
      <form method="post" action="/contact">
        <label>Namn</label>
        <input type="text" name="name" required maxlength="100" />
        <label>E-post</label>
        <input type="email" name="email" required maxlength="100" value="{esc(user.get('email') if user else '')}" />
        <label>Meddelande</label>
        <textarea name="message" required maxlength="4000" rows="6"></textarea>
        {csrf_input(csrf_token)}
        <button type="submit">Skicka</button>
      </form>
    </div>
    """
    resp = render_page("Kontakt", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/contact", response_class=HTMLResponse)
def contact(
    request: Request,
    name: str = Form(..., max_length=100),
    email: str = Form(..., max_length=100),
    message: str = Form(..., max_length=4000),
    csrf_token: str = Form(""),
):
    user, _ = get_current_user(request)
    if not allow_request(f"contact:{client_ip(request)}", limit=3, window_seconds=3600):
        return HTMLResponse("För många meddelanden. Försök igen senare.", status_code=429)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)
    if not name.strip() or not message.strip():
        return error_page("Namn och meddelande krävs.", user=user, back="/contact")
    if not is_valid_email(email):
        return error_page("Ogiltig e-postadress.", user=user, back="/contact")

    support = os.getenv("SUPPORT_EMAIL") or os.getenv("EMAIL_FROM") or "support@farmispoolen.se"
    sent = send_kind_email(support, "contactForm", {"name": name, "email": email, "message": message})
    if not sent:
        return error_page("Meddelandet kunde inte skickas just nu. Försök igen senare.", 502, user=user, back="/contact")

    body = """
    <div class="card form-card">
      <p class="success">Tack! Vi har tagit emot ditt meddelande.</p>
      <p><a href="/">Till startsidan</a></p>
    </div>
    """
    return render_page("Kontakt", body, user=user)


@router.get("/privacy", response_class=HTMLResponse)
def privacy(request: Request):
    user, _ = get_current_user(request)
    body = """
    <div class="card form-card">
      <h2>Integritetspolicy</h2>
      <p class="muted">
        Vi använder dina uppgifter för att matcha apotek med personal och för att skicka de
        notiser du har valt. Uppgifterna säljs inte och delas inte med tredje part.
      </p>
      <p class="muted">
        Du kan när som helst stänga av e-postnotiser, inaktivera eller radera ditt konto via din profil.
      </p>
    </div>
    """
    return render_page("Integritet", body, user=user)


@router.get("/health")
def health():
    """
    Basic health check for the app.
    """
    try:
        return {"status": "ok", "stats": get_stats()}
    except Exception as e:
        log.error("Health check failed", extra={"error": str(e)})
        return {"status": "error", "detail": str(e)}


@router.get("/favicon.ico")
def favicon():
    return Response(status_code=204)
