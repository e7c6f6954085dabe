from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from kvauth.web.deps import AppDep, SessionDep
from kvauth.web.pages import render_dashboard, render_home

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def home(session: SessionDep) -> HTMLResponse:
    return HTMLResponse(render_home(session))


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(app: AppDep, session: SessionDep) -> Response:
    """Signed-in landing page. Anonymous visitors are sent to the login form."""
    if session is None:
        return RedirectResponse("/login", status_code=302)
    user = await app.get_current_user(session)
    return HTMLResponse(render_dashboard(session, user))
