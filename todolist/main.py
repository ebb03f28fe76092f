"""
FastAPI application for the single-user and multi-user to-do servers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from . import __version__
from .auth import SessionTable
from .calendar_grid import WEEKDAY_NAMES
from .config import Settings, get_settings
from .operations import Runtime
from .ordering import FILTERS
from .router import handle_call
from .state import TaskStore
from .timeutil import format_timestamp

logger = logging.getLogger(__name__)

TEMPLATES = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
TEMPLATES.env.filters["timestamp"] = format_timestamp


def build_runtime(settings: Settings) -> Runtime:
    """Load the store for the configured variant; a corrupt data file raises PersistenceError."""
    store = TaskStore(settings.data_file, with_users=settings.multi_user)
    store.load()
    sessions = SessionTable() if settings.multi_user else None
    logger.info(
        "Serving %s variant from %s (sort=%s)", settings.variant, settings.data_file, settings.sort_order
    )
    return Runtime(store=store, sessions=sessions, sort_order=settings.sort_order)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def _with_error(url: str, error: Optional[str]) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "error"]
    if error:
        query.append(("error", error))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _back_url(request: Request) -> str:
    """The Referer when it points at this site, else "/"."""
    ref = request.headers.get("referer")
    if not ref:
        return "/"
    netloc = urlsplit(ref).netloc
    if netloc and netloc != request.url.netloc:
        logger.debug("Ignoring off-site referer %s", ref)
        return "/"
    return ref


def _redirect_back(request: Request, result: dict) -> RedirectResponse:
    """303 to the referring page, carrying the failure (or save warning) as ?error=."""
    if result["status"] == 401:
        return _redirect("/login")
    body = result["body"]
    message = None
    if not body["ok"]:
        message = body["error"]["message"]
    elif "warning" in body:
        message = body["warning"]["message"]
    return _redirect(_with_error(_back_url(request), message))


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None, runtime: Optional[Runtime] = None) -> FastAPI:
    settings = settings or get_settings()
    rt = runtime or build_runtime(settings)
    cookie_name = settings.cookie_name

    app = FastAPI(title="todolist", version=__version__)
    app.state.settings = settings
    app.state.runtime = rt

    def _token(request: Request) -> Optional[str]:
        return request.cookies.get(cookie_name)

    def _call(request: Request, op: str, args: Optional[dict] = None) -> dict:
        return handle_call(rt, op, args, _token(request))

    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        return JSONResponse(
            status_code=200,
            content={"ok": True, "variant": settings.variant, **rt.store.snapshot()},
        )

    # -----------------------------------------------------------------------
    # Task list and mutations
    # -----------------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> Response:
        error = request.query_params.get("error")
        args = {"filter": request.query_params.get("filter", "")}
        result = _call(request, "tasks.list", args)
        if result["status"] == 401:
            return _redirect("/login")
        if result["status"] == 400:
            error = result["body"]["error"]["message"]
            result = _call(request, "tasks.list", {"filter": ""})
        listing = result["body"]["result"]
        return TEMPLATES.TemplateResponse(request, "index.html", {
            "multi_user": rt.multi_user,
            "username": rt.sessions.identify(_token(request)) if rt.sessions is not None else None,
            "items": listing["items"],
            "overdue_count": listing["overdue_count"],
            "active_filter": listing["filter"],
            "filters": FILTERS,
            "error": error,
        })

    @app.post("/add")
    async def add(request: Request) -> Response:
        form = await request.form()
        args = {"description": form.get("description"), "due_at": form.get("due_at") or None}
        return _redirect_back(request, _call(request, "tasks.add", args))

    @app.post("/toggle")
    async def toggle(request: Request) -> Response:
        form = await request.form()
        return _redirect_back(request, _call(request, "tasks.toggle", {"id": form.get("id")}))

    @app.get("/delete")
    async def delete(request: Request) -> Response:
        args = {"id": request.query_params.get("id")}
        return _redirect_back(request, _call(request, "tasks.delete", args))

    if not rt.multi_user:
        @app.get("/login")
        async def login_single() -> Response:
            return _redirect("/")

        @app.get("/logout")
        async def logout_single() -> Response:
            return _redirect("/")

        return app

    # -----------------------------------------------------------------------
    # Multi-user: accounts, sessions, calendar
    # -----------------------------------------------------------------------

    def _form_page(request: Request, name: str, error: Optional[str] = None,
                   username: str = "") -> Response:
        return TEMPLATES.TemplateResponse(
            request, name, {"error": error, "form_username": username},
        )

    @app.get("/login", response_class=HTMLResponse)
    async def login_page(request: Request) -> Response:
        if rt.sessions.identify(_token(request)):
            return _redirect("/")
        return _form_page(request, "login.html", request.query_params.get("error"))

    @app.post("/login")
    async def login(request: Request) -> Response:
        form = await request.form()
        args = {"username": form.get("username"), "password": form.get("password")}
        body = _call(request, "users.login", args)["body"]
        if not body["ok"]:
            return _form_page(request, "login.html", body["error"]["message"], args["username"] or "")
        resp = _redirect("/")
        resp.set_cookie(cookie_name, body["result"]["token"], httponly=True, samesite="lax")
        return resp

    @app.get("/register", response_class=HTMLResponse)
    async def register_page(request: Request) -> Response:
        return _form_page(request, "register.html")

    @app.post("/register")
    async def register(request: Request) -> Response:
        form = await request.form()
        args = {"username": form.get("username"), "password": form.get("password")}
        body = _call(request, "users.register", args)["body"]
        if not body["ok"]:
            return _form_page(request, "register.html", body["error"]["message"], args["username"] or "")
        return _redirect("/login")

    @app.get("/logout")
    async def logout(request: Request) -> Response:
        _call(request, "users.logout", {"token": _token(request)})
        resp = _redirect("/login")
        resp.delete_cookie(cookie_name)
        return resp

    @app.get("/calendar", response_class=HTMLResponse)
    async def calendar(request: Request) -> Response:
        args = {
            "year": request.query_params.get("year"),
            "month": request.query_params.get("month"),
        }
        result = _call(request, "calendar.month", args)
        error = None
        if result["status"] == 401:
            return _redirect("/login")
        if result["status"] == 400:
            error = result["body"]["error"]["message"]
            result = _call(request, "calendar.month", {})
        return TEMPLATES.TemplateResponse(request, "calendar.html", {
            "username": rt.sessions.identify(_token(request)),
            "view": result["body"]["result"],
            "weekday_names": WEEKDAY_NAMES,
            "error": error,
        })

    return app
