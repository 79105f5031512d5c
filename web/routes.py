"""
web/routes.py -- Jinja2 template routes for the newsletter web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores, same signer) but return HTML or redirects instead of JSON.

Routes:
  GET  /        -- home page
  GET  /login   -- login form; shows a signed error message if present
  POST /login   -- handle password login; 303 to / or to a signed /login error

Login errors travel in the redirect URL, not in a session: POST /login signs
the message with the process HMAC key and GET /login renders it only if the
tag verifies. A forged or altered error is dropped, never rendered.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.models import Credentials
from auth.passwords import AuthUnavailable, InvalidCredentials, Password, validate_credentials
from auth.redirect import TamperError

logger = logging.getLogger("newsletter.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Messages POST /login may sign. InvalidCredentials deliberately covers both
# unknown usernames and wrong passwords.
_AUTH_FAILED = "Authentication failed"
_UNEXPECTED = "Something went wrong"


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "home.html", {})


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page, with the error message only if its tag verifies."""
    error_msg = None
    error = request.query_params.get("error")
    if error is not None:
        try:
            error_msg = request.app.state.signer.verify(error, request.query_params.get("tag", ""))
        except TamperError:
            logger.warning("Discarding login error with an invalid signature")
    return templates.TemplateResponse(request, "login.html", {"error_msg": error_msg})


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle username/password login form submission."""
    credentials = Credentials(username=username, password=Password(password))
    try:
        user_id = validate_credentials(request.app.state.user_store, credentials)  # timing equalization
    except InvalidCredentials:
        logger.info("Failed login for %r", credentials.username)
        return RedirectResponse(request.app.state.signer.login_redirect_url(_AUTH_FAILED), status_code=303)
    except AuthUnavailable as exc:
        logger.error("Login for %r could not be checked: %s", credentials.username, exc.__cause__)
        return RedirectResponse(request.app.state.signer.login_redirect_url(_UNEXPECTED), status_code=303)

    logger.info("User %s logged in", user_id)
    resp = RedirectResponse("/", status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    return resp
