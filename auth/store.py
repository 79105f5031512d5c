"""
auth/store.py -- SQLAlchemy Core persistence layer for operator credentials.

Pattern: Repository + Data Mapper (same as subscriptions/store.py).
UserStore is the repository; _row_to_credential is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Only password hashes are stored; plaintext never reaches this module.

Layer rule: no imports from api/, web/ or subscriptions/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import Column, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import StoredCredential
from core.database import create_store_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", String(36), primary_key=True),  # UUID text
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # argon2 PHC string
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for operator accounts.

    Usage:
        store = UserStore("sqlite:///newsletter.db")
        store.create_user("admin", hash_password("secret"))
        stored = store.get_stored_credentials("admin")
        store.close()
    """

    def __init__(self, db_url: str, timeout_seconds: float = 2.0) -> None:
        self.engine: Engine = create_store_engine(db_url, timeout_seconds)
        _metadata.create_all(self.engine)

    def create_user(self, username: str, password_hash: str) -> UUID:
        """Insert a new user and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        user_id = uuid4()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    user_id=str(user_id),
                    username=username,
                    password_hash=password_hash,
                    created_at=_now_iso(),
                )
            )
        return user_id

    def get_stored_credentials(self, username: str) -> StoredCredential | None:
        """Look up credentials by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.user_id, _users.c.password_hash).where(_users.c.username == username)
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def update_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        """Replace a user's hash. Returns True if a row was updated."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where(_users.c.user_id == str(user_id)).values(password_hash=password_hash)
            )
        return result.rowcount > 0

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> StoredCredential:
    return StoredCredential(user_id=UUID(row.user_id), password_hash=row.password_hash)
