"""
core/email_client.py -- Outbound email over a Postmark-style HTTP API.

EmailClient is the EmailSender capability the subscription service depends
on: send(recipient, subject, html_body, text_body) either returns None or
raises EmailSendError. Tests substitute any object with the same send()
method.

Delivery is best effort: one attempt, bounded by the configured timeout.
Retries and delivery receipts are deliberately not handled here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from subscriptions.models import SubscriberEmail

logger = logging.getLogger("newsletter.email")


class EmailSendError(Exception):
    """The email API could not be reached or rejected the message."""


class EmailClient:
    """Thin client for POST {base_url}/email.

    Usage:
        client = EmailClient("https://api.postmarkapp.com", sender, token, timeout=10)
        client.send(recipient, "Welcome!", "<p>Hi</p>", "Hi")
        client.close()
    """

    def __init__(
        self,
        base_url: str,
        sender: SubscriberEmail,
        authorization_token: str,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self._authorization_token = authorization_token
        self.timeout = timeout
        # Session shared across sends for connection pooling. A mail API has
        # no reason to redirect more than a couple of times.
        self._session = requests.Session()
        self._session.max_redirects = 3

    def send(self, recipient: SubscriberEmail, subject: str, html_body: str, text_body: str) -> None:
        payload = {
            "From": self.sender.value,
            "To": recipient.value,
            "Subject": subject,
            "HtmlBody": html_body,
            "TextBody": text_body,
        }
        try:
            resp = self._session.post(
                f"{self.base_url}/email",
                json=payload,
                headers={"X-Postmark-Server-Token": self._authorization_token},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Email delivery to %s failed: %s", recipient.value, e)
            raise EmailSendError(f"Failed to send email to {recipient.value}") from e

    def close(self) -> None:
        self._session.close()
