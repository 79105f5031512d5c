"""
api/routes/newsletters.py -- Operator-only newsletter issue delivery.

Routes:
  POST /newsletters  -- JSON {title, content: {html, text}}; HTTP Basic auth

Only confirmed subscribers receive the issue. Delivery is a single pass with
no retries: the first failed send aborts with 500 and the response reports
nothing further.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import NewsletterRequest, PublishResponse
from auth.dependencies import require_operator
from subscriptions.service import PublishError, publish_issue

logger = logging.getLogger("newsletter.api")

# Auth policy:
# - POST /newsletters: requires operator Basic credentials (require_operator)
router = APIRouter()


@router.post("/newsletters", response_model=PublishResponse)
def publish_newsletter(
    request: Request,
    body: NewsletterRequest,
    user_id: UUID = Depends(require_operator),
) -> PublishResponse:
    """Send an issue to every confirmed subscriber."""
    logger.info("Operator %s publishing newsletter %r", user_id, body.title)
    state = request.app.state
    try:
        report = publish_issue(
            state.subscription_store,
            state.email_client,
            body.title,
            body.content.html,
            body.content.text,
        )
    except PublishError as exc:
        logger.error("Newsletter delivery aborted: %s (cause: %s)", exc, exc.__cause__)
        raise HTTPException(
            status_code=500,
            detail={"code": "delivery_failed", "message": "Newsletter delivery failed."},
        ) from exc
    return PublishResponse(sent=report.sent, skipped=report.skipped)
