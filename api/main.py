"""
api/main.py -- FastAPI application entry point for the newsletter service.

Run with:  uvicorn asgi:app --reload

Lifespan builds every shared object exactly once and stores it on app.state:
  app.state.settings            -- Settings snapshot
  app.state.subscription_store  -- SubscriptionStore (engine + pool)
  app.state.user_store          -- UserStore
  app.state.email_client        -- EmailClient (EmailSender capability)
  app.state.signer              -- RedirectSigner (HMAC key, read-only)

Route handlers read these from request.app.state; nothing in subscriptions/
or auth/ reaches for global configuration.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from api.routes.newsletters import router as newsletters_router
from api.routes.subscriptions import router as subscriptions_router
from auth.redirect import RedirectSigner
from auth.store import UserStore
from core.config import get_settings
from core.email_client import EmailClient
from subscriptions.store import SubscriptionStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("newsletter.api")


# ---------------------------------------------------------------------------
# Lifespan: build shared services on startup, release them on shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores and the email session once per process and close them on exit."""
    settings = get_settings()
    logger.info("Newsletter API starting up")
    app.state.settings = settings
    app.state.subscription_store = SubscriptionStore(settings.database_url, settings.database_timeout_seconds)
    app.state.user_store = UserStore(settings.database_url, settings.database_timeout_seconds)
    app.state.email_client = EmailClient(
        settings.email_base_url,
        settings.sender(),
        settings.email_authorization_token,
        timeout=settings.email_timeout,
    )
    app.state.signer = RedirectSigner(settings.secret_key)
    if not app.state.user_store.has_users():
        logger.warning("No operator accounts exist -- run `python manage.py create-user <name>`")

    yield

    # Shutdown
    app.state.email_client.close()
    app.state.subscription_store.close()
    app.state.user_store.close()
    logger.info("Newsletter API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Newsletter API",
    description="Double opt-in newsletter subscriptions and issue delivery.",
    version="0.1.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Access log: one line per request with status and latency. Only the path is
# logged; query strings can carry confirmation tokens.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(subscriptions_router, tags=["Subscriptions"])
app.include_router(newsletters_router, tags=["Newsletters"])
# Pages (/ and /login) are added in asgi.py.


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is {"error": {"code", "message", "detail"}}. Clients see a
# stable code and a generic message; causes stay in the server log.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when a form field, query param or JSON body is missing or malformed.

    Missing fields are a user-correctable input problem, the same class of
    error as an invalid email, so they share the 400 status.
    """
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap HTTPException detail in the error envelope.

    Routes pass a {"code", "message"} dict as detail, which is used as is.
    Headers such as WWW-Authenticate are forwarded.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and answer with a generic 500."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Liveness probe
# ---------------------------------------------------------------------------


@app.get("/health_check", include_in_schema=True, tags=["Health"])
async def health_check() -> Response:
    """Liveness probe: 200 with an empty body."""
    return Response(status_code=200)
