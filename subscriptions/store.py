"""
subscriptions/store.py -- SQLAlchemy Core persistence for subscribers and tokens.

Pattern: Repository + Data Mapper (same as auth/store.py).
SubscriptionStore is the repository; _row_to_subscriber is the mapper.
Service and route code never touches SQL directly.

Transactions:
  Registration writes two rows that must appear together or not at all.
  transaction() hands out a Connection inside engine.begin(): leaving the
  with-block commits, any exception inside it rolls everything back and is
  re-raised. insert_subscriber() and store_token() take that Connection
  explicitly so both statements run on the same transaction.

  The connection is returned to the pool when the with-block exits, on every
  path. Callers must not do slow I/O (email) inside the block.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, select
from sqlalchemy.engine import Connection, Engine

from core.database import create_store_engine
from subscriptions.models import NewSubscriber, Subscriber, SubscriberStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_subscriptions = Table(
    "subscriptions",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID text
    Column("email", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("subscribed_at", String(32), nullable=False),
    Column("status", String(32), nullable=False, server_default=SubscriberStatus.pending_confirmation.value),
    # No UNIQUE(email): re-registration creates a second pending row. Whether
    # that should be rejected or deduplicated is an open product question.
)

_subscription_tokens = Table(
    "subscription_tokens",
    metadata,
    Column("subscription_token", String(25), primary_key=True),
    Column("subscriber_id", String(36), ForeignKey("subscriptions.id"), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SubscriptionStore:
    """Repository for subscriber and subscription-token rows.

    Usage:
        store = SubscriptionStore("sqlite:///newsletter.db")
        with store.transaction() as conn:
            subscriber_id = store.insert_subscriber(conn, new_subscriber)
            store.store_token(conn, subscriber_id, token)
        store.confirm_subscriber(store.get_subscriber_id_by_token(token))
        store.close()
    """

    def __init__(self, db_url: str, timeout_seconds: float = 2.0) -> None:
        self.engine: Engine = create_store_engine(db_url, timeout_seconds)
        metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a Connection inside a transaction; commit on exit, roll back on error."""
        with self.engine.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Transactional writes (caller supplies the Connection)
    # ------------------------------------------------------------------

    def insert_subscriber(self, conn: Connection, new_subscriber: NewSubscriber) -> UUID:
        """Insert a pending subscriber and return its freshly assigned id."""
        subscriber_id = uuid4()
        conn.execute(
            _subscriptions.insert().values(
                id=str(subscriber_id),
                email=new_subscriber.email.value,
                name=new_subscriber.name.value,
                subscribed_at=_now_iso(),
                status=SubscriberStatus.pending_confirmation.value,
            )
        )
        return subscriber_id

    def store_token(self, conn: Connection, subscriber_id: UUID, subscription_token: str) -> None:
        conn.execute(
            _subscription_tokens.insert().values(
                subscription_token=subscription_token,
                subscriber_id=str(subscriber_id),
            )
        )

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def get_subscriber_id_by_token(self, subscription_token: str) -> UUID | None:
        """Return the subscriber id the token was issued for, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_subscription_tokens.c.subscriber_id).where(
                    _subscription_tokens.c.subscription_token == subscription_token
                )
            ).fetchone()
        return UUID(row.subscriber_id) if row is not None else None

    def confirm_subscriber(self, subscriber_id: UUID) -> None:
        """Set status to confirmed. Idempotent: a second call changes nothing.

        A single UPDATE with a constant target value, so concurrent
        confirmations of the same subscriber converge on the same end state.
        """
        with self.engine.begin() as conn:
            conn.execute(
                _subscriptions.update()
                .where(_subscriptions.c.id == str(subscriber_id))
                .values(status=SubscriberStatus.confirmed.value)
            )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def list_confirmed_subscribers(self) -> list[Subscriber]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _subscriptions.select()
                .where(_subscriptions.c.status == SubscriberStatus.confirmed.value)
                .order_by(_subscriptions.c.subscribed_at)
            ).fetchall()
        return [_row_to_subscriber(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_subscriber(row) -> Subscriber:
    return Subscriber(
        id=UUID(row.id),
        email=row.email,
        name=row.name,
        subscribed_at=row.subscribed_at,
        status=SubscriberStatus(row.status),
    )
