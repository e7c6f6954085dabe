from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from kvauth.core.modules.session.cookies import build_session_cookie
from kvauth.errors import AuthenticationError, ValidationError
from kvauth.web.deps import AppDep, ClientIpDep, SessionDep
from kvauth.web.pages import render_auth_form
from kvauth.web.ratelimit import enforce_rate_limit

router = APIRouter(tags=["auth"])

SIGNUP_SUCCESS_MESSAGE = "Account created! Please log in."


def signup_form(honeypot_field: str, message: str | None = None) -> str:
    return render_auth_form(
        "Sign up",
        "/signup",
        "Create account",
        honeypot_field=honeypot_field,
        message=message,
        alternate_href="/login",
        alternate_text="Already have an account? Log in",
    )


def login_form(message: str | None = None) -> str:
    return render_auth_form(
        "Log in",
        "/login",
        "Log in",
        message=message,
        alternate_href="/signup",
        alternate_text="Need an account? Sign up",
    )


@router.get("/signup", response_class=HTMLResponse)
async def signup_page(app: AppDep) -> HTMLResponse:
    return HTMLResponse(signup_form(app.config.honeypot_field_name))


@router.post("/signup")
async def signup(request: Request, app: AppDep, ip: ClientIpDep) -> Response:
    """Create an account from the signup form.

    The honeypot field name is configurable, so the form is read directly.
    A rejected submission re-renders the form with the reason.
    """
    if rejection := await enforce_rate_limit(app, request, "signup"):
        return rejection

    form = await request.form()
    email = str(form.get("email", ""))
    password = str(form.get("password", ""))
    honeypot = str(form.get(app.config.honeypot_field_name, ""))

    try:
        await app.signup(email, password, honeypot, ip, request.headers.get("user-agent", ""))
    except ValidationError as e:
        return HTMLResponse(signup_form(app.config.honeypot_field_name, str(e)), status_code=400)

    return RedirectResponse(f"/login?message={quote(SIGNUP_SUCCESS_MESSAGE)}", status_code=302)


@router.get("/login", response_class=HTMLResponse)
async def login_page(message: str | None = None) -> HTMLResponse:
    return HTMLResponse(login_form(message))


@router.post("/login")
async def login(
    request: Request,
    app: AppDep,
    ip: ClientIpDep,
    email: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
) -> Response:
    """Authenticate and set the session cookie."""
    if rejection := await enforce_rate_limit(app, request, "login"):
        return rejection

    try:
        session_id = await app.login(email, password, ip, request.headers.get("user-agent", ""))
    except AuthenticationError as e:
        return HTMLResponse(login_form(str(e)), status_code=401)

    cookie = build_session_cookie(session_id, max_age=app.config.session_max_age, secure=app.config.cookie_secure)
    return RedirectResponse("/dashboard", status_code=302, headers={"Set-Cookie": cookie})


@router.get("/logout")
async def logout(app: AppDep, session: SessionDep) -> Response:
    await app.logout(session)
    cookie = build_session_cookie("", max_age=0, secure=app.config.cookie_secure)
    return RedirectResponse("/", status_code=302, headers={"Set-Cookie": cookie})
