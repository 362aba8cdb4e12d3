import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user
from app.notify import create_and_send_notification
from app.security import validate_csrf
from core.database import deactivate_user, delete_session, delete_user_data, reactivate_user
from core.roles import ADMIN

router = APIRouter()
log = logging.getLogger("account")


def _signed_out(token: str | None) -> RedirectResponse:
    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.post("/account/deactivate")
def deactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)

    # Admin accounts are managed out-of-band
    if user.get("role") == ADMIN:
        return RedirectResponse(url="/profile", status_code=303)

    deactivate_user(user["id"])
    log.info("Account deactivated", extra={"user_id": user["id"]})
    return _signed_out(token)


def _tell_employer_reopened(row: dict) -> None:
    what, link = ("Passet", "/employer/shifts") if row["kind"] == "shift" else ("Uppdraget", "/employer/postings")
    create_and_send_notification(
        row["employer_id"],
        f"{what} är öppet igen",
        f"{what} {row['title']} ({row['date']}) är öppet igen eftersom den tilldelade personen har tagit bort sitt konto.",
        link,
        type="assignment_released",
    )


@router.post("/account/delete")
def delete_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)

    if user.get("role") == ADMIN:
        return RedirectResponse(url="/profile", status_code=303)

    reopened = delete_user_data(user["id"])
    log.info(
        "Account deleted",
        extra={"user_id": user["id"], "role": user.get("role"), "reopened": len(reopened)},
    )
    for row in reopened:
        _tell_employer_reopened(row)
    # delete_user_data already removed the session row
    return _signed_out(None)


@router.post("/account/reactivate")
def reactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return HTMLResponse("Ogiltig eller saknad CSRF-token.", status_code=403)

    if user.get("role") == ADMIN:
        return RedirectResponse(url="/profile", status_code=303)

    reactivate_user(user["id"])
    log.info("Account reactivated", extra={"user_id": user["id"]})
    return RedirectResponse(url="/profile", status_code=303)
