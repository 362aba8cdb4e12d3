from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import error_page, esc, render_with_csrf
from app.security import csrf_input, validate_csrf
from app.services.profiles import editable_fields_for, update_own_profile
from app.validation import parse_optional_float
from core.database import get_profile, join_list
from core.errors import BusinessRuleError
from core.roles import ADMIN, role_label

router = APIRouter()

LABELS = {
    "full_name": "Namn",
    "pharmacy_name": "Apotekets namn",
    "phone": "Telefon",
    "street_address": "Gatuadress",
    "postal_code": "Postnummer",
    "city": "Ort",
    "description": "Beskrivning",
    "experience": "Erfarenhet (kommaseparerad)",
    "systems": "System (kommaseparerad)",
    "hourly_rate": "Önskad timlön (kr)",
    "notification_cities": "Orter för passnotiser (kommaseparerad, Any = alla)",
}
LIST_FIELDS = ("experience", "systems", "notification_cities")


def _field_html(name: str, profile: dict) -> str:
    if name == "email_notifications":
        checked = " checked" if profile.get("email_notifications") else ""
        return f'<label><input type="checkbox" name="email_notifications" value="1"{checked} /> Skicka notiser via e-post</label>'
    if name in LIST_FIELDS:
        value = ", ".join(profile.get(f"{name}_list") or [])
    else:
        value = profile.get(name)
    if name == "description":
        return f'<label>{LABELS[name]}</label><textarea name="description" rows="4" maxlength="2000">{esc(value or "")}</textarea>'
    return f'<label>{LABELS[name]}</label><input type="text" name="{name}" maxlength="200" value="{esc(value if value is not None else "")}" />'


def _profile_body(user: dict, profile: dict, csrf_token: str, message: str = "") -> str:
    fields = "".join(_field_html(f, profile) for f in editable_fields_for(user.get("role")))
    verified = "Ja" if profile.get("license_verified") else "Nej"

    account_html = ""
    if user.get("role") != ADMIN:
        if user.get("active"):
            toggle = f"""
            <form method="post" action="/account/deactivate" onsubmit="return confirm('Inaktivera kontot? Du loggas ut.');">
              {csrf_input(csrf_token)}
              <button type="submit" class="secondary">Inaktivera konto</button>
            </form>
            """
        else:
            toggle = f"""
            <form method="post" action="/account/reactivate">
              {csrf_input(csrf_token)}
              <button type="submit">Återaktivera konto</button>
            </form>
            """
        account_html = f"""
        <div class="card form-card">
          <h3>Konto</h3>
          <div class="actions">
            {toggle}
            <form method="post" action="/account/delete" onsubmit="return confirm('Radering kan inte ångras. Fortsätta?');">
              {csrf_input(csrf_token)}
              <button type="submit" class="danger">Radera konto</button>
            </form>
          </div>
        </div>
        """

    return f"""
    <div class="card form-card">
      <p class="muted">{esc(profile['email'])} &middot; {esc(role_label(profile['role']))} &middot; Verifierad: {verified}</p>
      {f'<p class="success">{esc(message)}</p>' if message else ''}
      <form method="post" action="/profile">
        {fields}
        {csrf_input(csrf_token)}
        <button type="submit">Spara</button>
      </form>
    </div>
    {account_html}
    """


@router.get("/profile", response_class=HTMLResponse)
def profile_page(request: Request, saved: str = ""):
    user, denied = require_user(request)
    if denied:
        return denied
    profile = get_profile(user["id"])
    message = "Profilen sparades." if saved else ""
    return render_with_csrf(request, "Min profil", lambda token: _profile_body(user, profile, token, message), user=user)


@router.post("/profile")
async def profile_save(request: Request):
    user, denied = require_user(request)
    if denied:
        return denied
    form = await request.form()
    if not validate_csrf(request, form.get("csrf_token") or ""):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)

    fields = {}
    for name in editable_fields_for(user.get("role")):
        if name == "email_notifications":
            fields[name] = 1 if form.get(name) else 0
        elif name == "hourly_rate":
            fields[name] = parse_optional_float(form.get(name))
        elif name in LIST_FIELDS:
            fields[name] = join_list((form.get(name) or "").split(","))
        else:
            fields[name] = (form.get(name) or "").strip() or None
    if "full_name" in fields and fields["full_name"] is None:
        fields["full_name"] = ""

    try:
        update_own_profile(user, fields)
    except BusinessRuleError as e:
        return error_page(e.message, e.status_code, user=user, back="/profile")
    return RedirectResponse(url="/profile?saved=1", status_code=303)
