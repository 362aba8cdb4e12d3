"""
ASGI entry point: `uvicorn app.api:app`.
"""
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from app.routes import (
    account,
    admin,
    auth,
    dashboard,
    notifications,
    postings,
    profile,
    public,
    schedules,
    shifts,
    staff,
)
from core.database import init_db

load_dotenv(override=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "same-origin",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data:; style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; font-src 'self' data:; connect-src 'self';"
    ),
}

ROUTERS = (public, auth, account, profile, dashboard, shifts, postings, notifications, staff, schedules, admin)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Farmispoolen", lifespan=lifespan)

for module in ROUTERS:
    app.include_router(module.router)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        # Routes may set their own policy; keep it.
        response.headers.setdefault(name, value)
    return response
