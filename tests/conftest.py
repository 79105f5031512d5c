"""
tests/conftest.py -- Shared test fixtures for the newsletter service.

This module provides:
  - RecordingEmailSender: an EmailSender stand-in that records every send
  - make_stores(): isolated shared-memory SQLite stores for one test
  - SubscriptionQueries: read-only row lookups and counts for assertions
  - _patch_lifespan(): wires test objects into app.state, bypassing real startup
  - spawned_app: a running TestClient plus handles on its stores and mailbox

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.
Each test gets a fresh name, so tests never see each other's rows.

The DEBUG env var must be set before any core import so get_settings() does
not refuse to start without a SECRET_KEY.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import urlparse
from uuid import UUID, uuid4

# CRITICAL: Set DEBUG before any core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from asgi import app
from auth.passwords import hash_password
from auth.redirect import RedirectSigner
from auth.store import UserStore
from core.config import Settings
from core.email_client import EmailSendError
from subscriptions.models import Subscriber, SubscriberStatus
from subscriptions.store import SubscriptionStore, metadata

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
TEST_BASE_URL = "http://127.0.0.1:8000"
OPERATOR_USERNAME = "operator"
OPERATOR_PASSWORD = "correct-horse-battery-staple"

_LINK_RE = re.compile(r"https?://[^\s\"<>]+/subscriptions/confirm\?subscription_token=[A-Za-z0-9]+")


# ---------------------------------------------------------------------------
# Email sender stand-in
# ---------------------------------------------------------------------------


@dataclass
class SentEmail:
    recipient: str
    subject: str
    html_body: str
    text_body: str


@dataclass
class RecordingEmailSender:
    """Records sends instead of performing them. Set fail=True to simulate an outage."""

    fail: bool = False
    sent: list[SentEmail] = field(default_factory=list)

    def send(self, recipient, subject: str, html_body: str, text_body: str) -> None:
        if self.fail:
            raise EmailSendError(f"Failed to send email to {recipient.value}")
        self.sent.append(SentEmail(recipient.value, subject, html_body, text_body))

    def close(self) -> None:
        pass


def confirmation_links(email: SentEmail) -> tuple[str, str]:
    """Return the (html, text) confirmation links found in an email. Each body must carry exactly one."""
    html_links = _LINK_RE.findall(email.html_body)
    text_links = _LINK_RE.findall(email.text_body)
    assert len(html_links) == 1, html_links
    assert len(text_links) == 1, text_links
    return html_links[0], text_links[0]


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_db_url() -> str:
    return f"sqlite:///file:test_newsletter_{uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_stores() -> tuple[SubscriptionStore, UserStore]:
    """Create a SubscriptionStore and UserStore sharing one fresh in-memory database."""
    db_url = make_db_url()
    return SubscriptionStore(db_url), UserStore(db_url)


class SubscriptionQueries:
    """Read-only SQL against a SubscriptionStore's engine, for assertions.

    The application never needs these lookups, so they live here rather than
    on the store.
    """

    def __init__(self, store: SubscriptionStore) -> None:
        self._engine = store.engine
        self._subscriptions = metadata.tables["subscriptions"]
        self._tokens = metadata.tables["subscription_tokens"]

    def get_subscriber(self, subscriber_id) -> Subscriber | None:
        rows = self._select(self._subscriptions.c.id == str(subscriber_id))
        return rows[0] if rows else None

    def get_subscribers_by_email(self, email: str) -> list[Subscriber]:
        return self._select(self._subscriptions.c.email == email)

    def count_tokens_for(self, subscriber_id) -> int:
        query = (
            select(func.count())
            .select_from(self._tokens)
            .where(self._tokens.c.subscriber_id == str(subscriber_id))
        )
        with self._engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def count_subscribers(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self._subscriptions)).scalar() or 0

    def _select(self, where) -> list[Subscriber]:
        query = self._subscriptions.select().where(where).order_by(self._subscriptions.c.subscribed_at)
        with self._engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [
            Subscriber(
                id=UUID(r.id),
                email=r.email,
                name=r.name,
                subscribed_at=r.subscribed_at,
                status=SubscriberStatus(r.status),
            )
            for r in rows
        ]


def _patch_lifespan(state: dict):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see
    isolated test DBs and the recording mailbox rather than real services.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        for name, value in state.items():
            setattr(app.state, name, value)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@dataclass
class SpawnedApp:
    client: TestClient
    subscription_store: SubscriptionStore
    user_store: UserStore
    email_sender: RecordingEmailSender
    signer: RedirectSigner
    queries: SubscriptionQueries
    operator_username: str = OPERATOR_USERNAME
    operator_password: str = OPERATOR_PASSWORD

    def post_subscriptions(self, body: str):
        return self.client.post(
            "/subscriptions",
            content=body,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    def post_login(self, username: str, password: str):
        return self.client.post("/login", data={"username": username, "password": password})

    def get_confirmation_path(self, email: SentEmail) -> str:
        """Return the path+query of the link in email, ready for client.get()."""
        html_link, text_link = confirmation_links(email)
        assert html_link == text_link
        parsed = urlparse(text_link)
        return f"{parsed.path}?{parsed.query}"


@pytest.fixture
def db_url() -> str:
    """A fresh shared-memory SQLite URL, unique to the requesting test."""
    return make_db_url()


@pytest.fixture
def subscription_store(db_url: str) -> Generator[SubscriptionStore, None, None]:
    store = SubscriptionStore(db_url)
    yield store
    store.close()


@pytest.fixture
def queries(subscription_store: SubscriptionStore) -> SubscriptionQueries:
    return SubscriptionQueries(subscription_store)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def settings() -> Settings:
    return Settings(secret_key=TEST_SECRET, base_url=TEST_BASE_URL, debug=True)


@pytest.fixture
def spawned_app(settings: Settings) -> Generator[SpawnedApp, None, None]:
    """Yield a SpawnedApp backed by a fresh database with one operator account.

    follow_redirects=False is essential: login tests assert on the 303
    Location header, which is invisible once the client follows it.
    """
    subscription_store, user_store = make_stores()
    user_store.create_user(OPERATOR_USERNAME, hash_password(OPERATOR_PASSWORD))
    email_sender = RecordingEmailSender()
    signer = RedirectSigner(settings.secret_key)

    app.router.lifespan_context = _patch_lifespan(
        {
            "settings": settings,
            "subscription_store": subscription_store,
            "user_store": user_store,
            "email_client": email_sender,
            "signer": signer,
        }
    )

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield SpawnedApp(
            client, subscription_store, user_store, email_sender, signer, SubscriptionQueries(subscription_store)
        )

    subscription_store.close()
    user_store.close()
