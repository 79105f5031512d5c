"""
api/routes/subscriptions.py -- Subscription registration and confirmation.

Routes:
  POST /subscriptions          -- form name/email; store pending subscriber, email link
  GET  /subscriptions/confirm  -- ?subscription_token=...; mark subscriber confirmed

Status mapping (explicit, one place):
  InvalidSubscriberError    -> 400
  RegistrationStorageError  -> 500
  EmailDeliveryFailed       -> 500 (subscriber row is kept, pending)
  UnknownTokenError         -> 400
  ConfirmStorageError       -> 500

Causes are logged by the service layer; clients only ever see the generic
messages below.
"""

from __future__ import annotations

from fastapi import APIRouter, Form, HTTPException, Query, Request

from api.models import MessageResponse
from subscriptions.service import (
    ConfirmStorageError,
    EmailDeliveryFailed,
    InvalidSubscriberError,
    RegistrationStorageError,
    UnknownTokenError,
    confirm,
    parse_new_subscriber,
    register,
)

router = APIRouter()

_INTERNAL_ERROR = {"code": "internal_error", "message": "An unexpected error occurred."}


@router.post("/subscriptions", response_model=MessageResponse)
def subscribe(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
) -> MessageResponse:
    """Register a visitor and send the confirmation email."""
    try:
        new_subscriber = parse_new_subscriber(name, email)
    except InvalidSubscriberError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_subscriber", "message": str(exc)},
        ) from exc

    state = request.app.state
    try:
        register(new_subscriber, state.subscription_store, state.email_client, state.settings.base_url)
    except RegistrationStorageError as exc:
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR) from exc
    except EmailDeliveryFailed as exc:
        raise HTTPException(
            status_code=500,
            detail={"code": "email_delivery_failed", "message": "Could not send the confirmation email."},
        ) from exc
    return MessageResponse(message="Check your inbox to confirm your subscription.")


@router.get("/subscriptions/confirm", response_model=MessageResponse)
def confirm_subscription(
    request: Request,
    subscription_token: str = Query(...),
) -> MessageResponse:
    """Confirm a subscription. Repeating the same link succeeds again."""
    try:
        confirm(subscription_token, request.app.state.subscription_store)
    except UnknownTokenError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "unknown_token", "message": "This confirmation link is not valid."},
        ) from exc
    except ConfirmStorageError as exc:
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR) from exc
    return MessageResponse(message="Your subscription is confirmed.")
