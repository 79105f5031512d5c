"""
subscriptions/service.py -- Registration, confirmation and newsletter delivery.

register() is the subscription transaction manager:

  1. open a transaction                         (store.transaction())
  2. insert the subscriber, status pending      (fresh uuid4 assigned by store)
  3. generate a token and insert it             (same transaction)
  4. commit                                     (leaving the with-block)
  5. send the confirmation email                (after commit, outside the txn)

Steps 2-4 are all-or-nothing: any SQLAlchemyError unwinds the transaction
and surfaces as RegistrationStorageError. Step 5 failing surfaces as
EmailDeliveryFailed and does NOT undo the committed subscription -- the row
stays pending_confirmation.

Every error family here is closed: callers catch RegistrationError /
ConfirmError / PublishError subclasses, never raw SQLAlchemy or requests
exceptions. The original cause stays on __cause__ for server-side logs only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from core.email_client import EmailClient, EmailSendError
from subscriptions.models import NewSubscriber, SubscriberEmail, SubscriberName, ValidationError
from subscriptions.store import SubscriptionStore
from subscriptions.tokens import generate_subscription_token, is_well_formed_token

logger = logging.getLogger("newsletter.subscriptions")

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RegistrationError(Exception):
    """Base class for everything register() and parse_new_subscriber() raise."""


class InvalidSubscriberError(RegistrationError):
    """Name or email failed validation. User-correctable; nothing was stored."""


class RegistrationStorageError(RegistrationError):
    """The transaction failed and was rolled back. Nothing was stored."""


class EmailDeliveryFailed(RegistrationError):
    """The subscription was committed but the confirmation email was not sent."""


class ConfirmError(Exception):
    """Base class for everything confirm() raises."""


class UnknownTokenError(ConfirmError):
    """No subscriber was issued this token."""


class ConfirmStorageError(ConfirmError):
    pass


class PublishError(Exception):
    """Newsletter delivery stopped early."""


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def parse_new_subscriber(name: str, email: str) -> NewSubscriber:
    """Validate raw form fields into a NewSubscriber or raise InvalidSubscriberError."""
    try:
        return NewSubscriber(name=SubscriberName.parse(name), email=SubscriberEmail.parse(email))
    except ValidationError as exc:
        raise InvalidSubscriberError(str(exc)) from exc


def confirmation_link(base_url: str, subscription_token: str) -> str:
    return f"{base_url.rstrip('/')}/subscriptions/confirm?subscription_token={subscription_token}"


def send_confirmation_email(
    email_client: EmailClient,
    new_subscriber: NewSubscriber,
    base_url: str,
    subscription_token: str,
) -> None:
    """Send the welcome email carrying the confirmation link (HTML and plain text)."""
    link = confirmation_link(base_url, subscription_token)
    html_body = (
        "Welcome to our newsletter!<br />" f'Click <a href="{link}">here</a> to confirm your subscription.'
    )
    text_body = f"Welcome to our newsletter!\nVisit {link} to confirm your subscription."
    email_client.send(new_subscriber.email, "Welcome!", html_body, text_body)


def register(
    new_subscriber: NewSubscriber,
    store: SubscriptionStore,
    email_client: EmailClient,
    base_url: str,
) -> None:
    """Persist a pending subscriber plus token atomically, then email the link.

    Raises:
        RegistrationStorageError: any database failure; the transaction was rolled back.
        EmailDeliveryFailed: the rows are committed but the email did not go out.
    """
    logger.info("Adding new subscriber %s", new_subscriber.email.value)
    try:
        with store.transaction() as conn:
            subscriber_id = store.insert_subscriber(conn, new_subscriber)
            subscription_token = generate_subscription_token()
            store.store_token(conn, subscriber_id, subscription_token)
    except SQLAlchemyError as exc:
        logger.error("Failed to store new subscriber %s: %s", new_subscriber.email.value, exc)
        raise RegistrationStorageError("Failed to store the new subscriber.") from exc

    try:
        send_confirmation_email(email_client, new_subscriber, base_url, subscription_token)
    except EmailSendError as exc:
        logger.error("Subscriber %s stored but confirmation email failed: %s", subscriber_id, exc)
        raise EmailDeliveryFailed("Failed to send a confirmation email.") from exc
    logger.info("Subscriber %s pending confirmation", subscriber_id)


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------


def confirm(subscription_token: str, store: SubscriptionStore) -> UUID:
    """Mark the subscriber owning subscription_token as confirmed.

    Idempotent: confirming an already-confirmed subscriber succeeds again.
    Returns the subscriber id.

    Raises:
        UnknownTokenError: malformed token, or no row carries it. Nothing is mutated.
        ConfirmStorageError: lookup or update failed.
    """
    if not is_well_formed_token(subscription_token):
        raise UnknownTokenError("Unknown subscription token.")
    try:
        subscriber_id = store.get_subscriber_id_by_token(subscription_token)
        if subscriber_id is None:
            raise UnknownTokenError("Unknown subscription token.")
        store.confirm_subscriber(subscriber_id)
    except SQLAlchemyError as exc:
        logger.error("Failed to confirm subscription: %s", exc)
        raise ConfirmStorageError("Failed to confirm the subscription.") from exc
    logger.info("Subscriber %s confirmed", subscriber_id)
    return subscriber_id


# ---------------------------------------------------------------------------
# Newsletter delivery
# ---------------------------------------------------------------------------


@dataclass
class PublishReport:
    sent: int = 0
    skipped: int = 0  # confirmed rows whose stored email no longer validates


def publish_issue(
    store: SubscriptionStore,
    email_client: EmailClient,
    title: str,
    html_content: str,
    text_content: str,
) -> PublishReport:
    """Send one newsletter issue to every confirmed subscriber.

    Stored addresses are re-validated before sending; invalid ones are
    skipped and logged. The first delivery failure aborts the run.
    """
    try:
        subscribers = store.list_confirmed_subscribers()
    except SQLAlchemyError as exc:
        raise PublishError("Failed to load confirmed subscribers.") from exc

    report = PublishReport()
    for subscriber in subscribers:
        try:
            recipient = SubscriberEmail.parse(subscriber.email)
        except ValidationError:
            logger.warning("Skipping confirmed subscriber %s: stored email is invalid", subscriber.id)
            report.skipped += 1
            continue
        try:
            email_client.send(recipient, title, html_content, text_content)
        except EmailSendError as exc:
            raise PublishError(f"Failed to send newsletter issue to {recipient.value}") from exc
        report.sent += 1
    logger.info("Newsletter %r sent to %d subscribers (%d skipped)", title, report.sent, report.skipped)
    return report
