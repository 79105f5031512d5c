"""
auth/passwords.py -- Password hashing and constant-cost credential checks.

Security design decisions:
  Hashing: argon2id via argon2-cffi's PasswordHasher. Argon2 is memory-hard,
       so GPU/ASIC brute force against a leaked hash is expensive. The PHC
       hash string records algorithm, version, memory/time/parallelism and
       salt, so verify() always uses the parameters the hash was made with.

  Timing equalization: validate_credentials() always performs exactly one
       argon2 verification. For an unknown username it verifies against
       _DUMMY_HASH, computed once at module load with the same hasher, so
       "no such user" costs the same as "wrong password". Both failures raise
       the same InvalidCredentials with the same message.

  Secret wrapper: Password never shows its value through repr/str/format,
       so it cannot leak through logging or tracebacks by accident. Its only
       operation is matches(stored_hash).

Layer rule: no imports from api/, web/ or subscriptions/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from auth.models import Credentials
    from auth.store import UserStore

logger = logging.getLogger("newsletter.auth")

_hasher = PasswordHasher()

_REDACTED = "**********"


class AuthError(Exception):
    """Base class for authentication failures."""


class InvalidCredentials(AuthError):
    """Unknown username or wrong password. Deliberately indistinguishable."""


class AuthUnavailable(AuthError):
    """Credentials could not be checked (storage failure)."""


@dataclass(frozen=True)
class PasswordMatch:
    """Outcome of Password.matches(). Truthy only when the password verified.

    upgraded_hash is set when the stored hash used outdated parameters; it is a
    fresh hash of the same password for the caller to persist.
    """

    ok: bool
    upgraded_hash: str | None = None

    def __bool__(self) -> bool:
        return self.ok


class Password:
    """Opaque wrapper around a plaintext password.

    There is no accessor for the plaintext. The only operations are matches()
    and rendering, and repr/str/format all render a fixed placeholder.
    """

    __slots__ = ("__secret",)

    def __init__(self, plaintext: str) -> None:
        self.__secret = plaintext

    def matches(self, stored_hash: str) -> PasswordMatch:
        """Verify this password against stored_hash.

        Mismatches, malformed hashes and unsupported parameters all give a
        falsy result -- callers treat every failure the same way. On success
        with outdated hash parameters, the result carries an upgraded hash.
        """
        try:
            _hasher.verify(stored_hash, self.__secret)
        except (VerificationError, InvalidHashError):
            return PasswordMatch(ok=False)
        if _hasher.check_needs_rehash(stored_hash):
            return PasswordMatch(ok=True, upgraded_hash=_hasher.hash(self.__secret))
        return PasswordMatch(ok=True)

    def __repr__(self) -> str:
        return f"Password('{_REDACTED}')"

    def __str__(self) -> str:
        return _REDACTED

    def __format__(self, format_spec: str) -> str:
        return _REDACTED

    def __reduce__(self):
        raise TypeError("Password objects cannot be serialized")


def hash_password(plain: str) -> str:
    """Return an argon2id PHC hash of plain. Used when creating accounts."""
    return _hasher.hash(plain)


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones, and with the same hasher so its cost matches
# real stored hashes.
_DUMMY_HASH: str = hash_password("newsletter_timing_dummy")


def validate_credentials(store: UserStore, credentials: Credentials) -> UUID:
    """Verify credentials with timing equalization and return the user id.

    Always runs one argon2 verification whether or not the user exists:
    - Unknown username: verify against _DUMMY_HASH (same cost as real check)
    - Wrong password: verify against the real hash (same cost)

    On success, a hash made with outdated parameters is transparently
    upgraded. Failing to store the upgraded hash does not fail the login.

    Raises:
        InvalidCredentials: unknown username or wrong password.
        AuthUnavailable: the user store could not be queried.
    """
    try:
        stored = store.get_stored_credentials(credentials.username)
    except SQLAlchemyError as exc:
        # Still burn one verification so storage errors are not a timing oracle either.
        credentials.password.matches(_DUMMY_HASH)
        raise AuthUnavailable("Failed to retrieve stored credentials.") from exc

    if stored is None:
        # Equalize timing -- do NOT return early before running argon2
        credentials.password.matches(_DUMMY_HASH)
        raise InvalidCredentials("Authentication failed")
    match = credentials.password.matches(stored.password_hash)
    if not match:
        raise InvalidCredentials("Authentication failed")

    if match.upgraded_hash is not None:
        try:
            store.update_password_hash(stored.user_id, match.upgraded_hash)
            logger.info("Upgraded password hash parameters for user %s", stored.user_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not store upgraded password hash for user %s: %s", stored.user_id, exc)
    return stored.user_id
