"""
Login, logout, password reset and email verification.

Every POST here is rate limited per client IP before the CSRF check, so a
client hammering with bad tokens still runs into the limit.
"""
import logging
import os

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user, set_session_cookie
from app.layout import esc, render_page, render_with_csrf
from app.notify import send_kind_email
from app.security import (
    allow_request,
    allow_request_with_remaining,
    client_ip,
    csrf_input,
    validate_csrf,
)
from app.validation import is_valid_password
from core.database import (
    create_email_verification_token,
    create_password_reset_token,
    create_session,
    delete_session,
    get_email_verification_token,
    get_password_reset_token,
    get_user_by_email,
    get_user_by_id,
    link_pending_invitations,
    mark_email_verification_token_used,
    mark_reset_token_used,
    mark_user_email_verified,
    update_user_password,
    verify_password,
)
from core.roles import ADMIN

router = APIRouter()
log = logging.getLogger("auth")

RESET_TITLE = "Återställ lösenord"
LOGIN_LINK = ("/login", "Tillbaka till inloggning")
ADMIN_RESET_REFUSED = "Lösenordsåterställning är inte tillgänglig för detta konto."


def build_public_url(request: Request, path: str) -> str:
    base = (os.getenv("PUBLIC_BASE_URL") or str(request.base_url)).rstrip("/")
    return f"{base}{path}"


def send_verification_email(request: Request, user: dict) -> bool:
    token = create_email_verification_token(user["id"])
    link = build_public_url(request, f"/verify-email?token={token}")
    return send_kind_email(user["email"], "emailVerification", {"verify_link": link}, user_id=user["id"])


def _notice(*lines: str, heading: str = "", link: tuple[str, str] | None = None, css: str = "") -> str:
    parts = [f"<h2>{esc(heading)}</h2>"] if heading else []
    cls = f' class="{css}"' if css else ""
    parts += [f"<p{cls}>{esc(line)}</p>" for line in lines]
    if link:
        parts.append(f'<p class="muted"><a href="{link[0]}">{esc(link[1])}</a></p>')
    return '<div class="card form-card">' + "".join(parts) + "</div>"


def _csrf_rejected() -> HTMLResponse:
    return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)


def _too_many(text: str = "För många försök. Försök igen senare.") -> HTMLResponse:
    return HTMLResponse(text, status_code=429)


def _email_form(action: str, intro: str, submit: str):
    def build(csrf_token: str) -> str:
        return f"""
        <div class="card form-card">
          <p class="muted">{esc(intro)}</p>
          <form method="post" action="{action}">
            <label>E-post</label>
            <input type="email" name="email" required maxlength="100" />
            {csrf_input(csrf_token)}
            <button type="submit">{esc(submit)}</button>
          </form>
        </div>
        """

    return build


# ---------- login / logout ----------


def _login_body(csrf_token: str, email: str = "", error: str = "") -> str:
    error_html = f'<p class="error">{esc(error)}</p>' if error else ""
    return f"""
    <div class="card form-card">
      {error_html}
      <form method="post" action="/login">
        <label>E-post
          <input type="email" name="email" required maxlength="100" value="{esc(email)}" />
        </label>
        <label>Lösenord
          <input type="password" name="password" required maxlength="25" />
        </label>
        {csrf_input(csrf_token)}
        <button type="submit">Logga in</button>
      </form>
      <p class="muted">
        <a href="/password-reset">Glömt lösenordet?</a> &middot; <a href="/signup">Skapa konto</a>
      </p>
    </div>
    """


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)
    return render_with_csrf(request, "Logga in", _login_body)


@router.post("/login", response_class=HTMLResponse)
def login(
    request: Request,
    email: str = Form(..., max_length=100),
    password: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    allowed, remaining = allow_request_with_remaining(f"login:{client_ip(request)}", limit=10, window_seconds=300)
    if not allowed:
        return _too_many("För många inloggningsförsök. Försök igen senare.")
    if not validate_csrf(request, csrf_token):
        return _csrf_rejected()

    user = get_user_by_email(email)
    if not user or not verify_password(password, user["password_hash"]):
        log.info("Login failed", extra={"email": email})
        error = f"Fel e-post eller lösenord. Försök kvar: {remaining}"
        return render_page("Logga in", _login_body(csrf_token, email, error))

    if not user.get("email_verified_at"):
        send_verification_email(request, user)
        body = _notice(
            "Ditt konto är inte verifierat ännu. Vi har skickat en ny verifieringslänk till din inkorg.",
            heading="Bekräfta din e-post",
            css="muted",
        )
        return render_page("Bekräfta e-post", body)

    response = RedirectResponse(url="/dashboard", status_code=303)
    set_session_cookie(response, create_session(user["id"]))
    return response


@router.get("/logout")
def logout(request: Request):
    _, token = get_current_user(request)
    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


# ---------- password reset ----------


@router.get("/password-reset", response_class=HTMLResponse)
def password_reset_request_form(request: Request):
    user, _ = get_current_user(request)
    build = _email_form(
        "/password-reset", "Ange din e-post så skickar vi en länk för att återställa lösenordet.", "Skicka länk"
    )
    return render_with_csrf(request, RESET_TITLE, build, user=user)


@router.post("/password-reset", response_class=HTMLResponse)
def password_reset_request(request: Request, email: str = Form(..., max_length=100), csrf_token: str = Form("")):
    allowed, remaining = allow_request_with_remaining(
        f"pwdreset:{client_ip(request)}", limit=5, window_seconds=6 * 3600
    )
    if not allowed:
        return HTMLResponse(
            _notice("Du har nått gränsen för lösenordsåterställning (5 per 6 timmar).", link=LOGIN_LINK),
            status_code=429,
        )
    if not validate_csrf(request, csrf_token):
        return _csrf_rejected()

    message = "Om e-postadressen finns har en återställningslänk skickats."
    user = get_user_by_email(email)
    if user and user.get("role") == ADMIN:
        # Admin credentials are rotated by operators, never by email link.
        message = ADMIN_RESET_REFUSED
        log.warning("Blocked password reset for admin", extra={"user_id": user["id"]})
    elif user:
        token = create_password_reset_token(user["id"])
        link = build_public_url(request, f"/password-reset/confirm?token={token}")
        send_kind_email(user["email"], "passwordReset", {"reset_link": link}, user_id=user["id"])
        log.info("Password reset requested", extra={"user_id": user["id"]})

    body = f"""
    <div class="card form-card">
      <p>{esc(message)}</p>
      <p class="muted">Försök kvar de närmaste 6 timmarna: {remaining}</p>
      <p class="muted"><a href="/login">Tillbaka till inloggning</a></p>
    </div>
    """
    return render_page(RESET_TITLE, body)


def _invalid_reset_link() -> HTMLResponse:
    return render_page(
        RESET_TITLE, _notice("Länken är ogiltig eller har gått ut.", link=("/password-reset", "Begär en ny länk"))
    )


def _new_password_body(token: str, csrf_token: str, error: str = "") -> str:
    error_html = f'<p class="error">{esc(error)}</p>' if error else ""
    return f"""
    <div class="card form-card">
      {error_html}
      <p class="muted">8-25 tecken, minst en bokstav och en siffra.</p>
      <form method="post" action="/password-reset/confirm?token={esc(token)}">
        <label>Nytt lösenord
          <input type="password" name="password" required maxlength="25" />
        </label>
        <label>Upprepa lösenordet
          <input type="password" name="password2" required maxlength="25" />
        </label>
        {csrf_input(csrf_token)}
        <button type="submit">Spara lösenord</button>
      </form>
    </div>
    """


@router.get("/password-reset/confirm", response_class=HTMLResponse, name="password_reset_confirm")
def password_reset_confirm_form(request: Request, token: str = ""):
    if not get_password_reset_token(token):
        return _invalid_reset_link()
    return render_with_csrf(request, RESET_TITLE, lambda csrf: _new_password_body(token, csrf))


@router.post("/password-reset/confirm", response_class=HTMLResponse)
def password_reset_confirm(
    request: Request,
    token: str = "",
    password: str = Form(..., max_length=25),
    password2: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    if not allow_request(f"pwdreset_conf:{client_ip(request)}", limit=5, window_seconds=300):
        return _too_many()
    if not validate_csrf(request, csrf_token):
        return _csrf_rejected()

    token_data = get_password_reset_token(token)
    if not token_data:
        return _invalid_reset_link()

    error = ""
    if password != password2:
        error = "Lösenorden matchar inte."
    elif not is_valid_password(password):
        error = "Lösenordet uppfyller inte kraven."
    if error:
        return render_page(RESET_TITLE, _new_password_body(token, csrf_token, error))

    target = get_user_by_id(token_data["user_id"])
    if not target:
        return _invalid_reset_link()
    if target.get("role") == ADMIN:
        return render_page(RESET_TITLE, _notice(ADMIN_RESET_REFUSED, link=LOGIN_LINK))

    update_user_password(target["id"], password)
    mark_reset_token_used(token)
    if not target.get("email_verified_at"):
        # The token went to this address, which confirms it.
        mark_user_email_verified(target["id"])
        link_pending_invitations(target["id"], target["email"])
    log.info("Password reset completed", extra={"user_id": target["id"]})
    body = _notice("Lösenordet är uppdaterat. Du kan nu logga in.", css="success", link=("/login", "Till inloggning"))
    return render_page(RESET_TITLE, body)


# ---------- email verification ----------


@router.get("/verify-email", response_class=HTMLResponse)
def verify_email(request: Request, token: str = ""):
    token_data = get_email_verification_token(token)
    user = get_user_by_id(token_data["user_id"]) if token_data else None
    if not user:
        body = _notice(
            "Länken är ogiltig eller har gått ut.",
            heading="Ogiltig verifieringslänk",
            css="muted",
            link=("/verify-email/resend", "Skicka en ny länk"),
        )
        return render_page("Bekräfta e-post", body)

    mark_user_email_verified(user["id"])
    mark_email_verification_token_used(token)
    linked = link_pending_invitations(user["id"], user["email"])
    log.info("Email verified", extra={"user_id": user["id"], "linked_invitations": linked})

    resp = RedirectResponse(url="/dashboard", status_code=303)
    set_session_cookie(resp, create_session(user["id"]))
    return resp


@router.get("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend_form(request: Request):
    build = _email_form("/verify-email/resend", "Vi skickar en ny verifieringslänk till din e-post.", "Skicka")
    return render_with_csrf(request, "Skicka verifiering", build)


@router.post("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend(request: Request, email: str = Form(..., max_length=100), csrf_token: str = Form("")):
    if not allow_request(f"verify_resend:{client_ip(request)}", limit=3, window_seconds=3600):
        return _too_many()
    if not validate_csrf(request, csrf_token):
        return _csrf_rejected()

    user = get_user_by_email(email)
    if user and not user.get("email_verified_at"):
        send_verification_email(request, user)

    body = _notice("Om e-postadressen finns har en verifieringslänk skickats.", link=LOGIN_LINK)
    return render_page("Skicka verifiering", body)
