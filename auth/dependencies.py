"""
auth/dependencies.py -- FastAPI Depends() helpers for operator authentication.

Operator endpoints (POST /newsletters) use HTTP Basic auth: credentials ride
on every request, so the server keeps no session state. The check itself is
validate_credentials(), which carries the timing equalization -- use it,
never inline a store lookup + hash compare.

require_operator() returns the authenticated user id or raises:
  401 + WWW-Authenticate: Basic realm="publish"  -- missing or bad credentials
  500                                            -- credential store unavailable

Layer rule: no imports from web/ or subscriptions/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from auth.models import Credentials
from auth.passwords import AuthUnavailable, InvalidCredentials, Password, validate_credentials

logger = logging.getLogger("newsletter.auth")

# auto_error=False so a missing header gets the same 401 body and challenge
# as a wrong password.
_basic = HTTPBasic(auto_error=False)

_CHALLENGE = {"WWW-Authenticate": 'Basic realm="publish"'}


def require_operator(
    request: Request,
    basic: HTTPBasicCredentials | None = Depends(_basic),
) -> UUID:
    """Require valid Basic credentials. Use as a FastAPI dependency:

        @router.post("/newsletters")
        def route(user_id: UUID = Depends(require_operator)): ...
    """
    if basic is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers=_CHALLENGE,
        )
    credentials = Credentials(username=basic.username, password=Password(basic.password))
    try:
        user_id = validate_credentials(request.app.state.user_store, credentials)
    except InvalidCredentials as exc:
        logger.info("Rejected publish credentials for %r", credentials.username)
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication failed."},
            headers=_CHALLENGE,
        ) from exc
    except AuthUnavailable as exc:
        logger.error("Credential check failed: %s", exc.__cause__)
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "An unexpected error occurred."},
        ) from exc
    return user_id
