"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in subscriptions/models.py -- dataclasses own domain shape; stores and
routes do the work.

Layer rule: no imports from api/, web/, core/ or subscriptions/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from auth.passwords import Password


@dataclass
class Credentials:
    """A login attempt. password is opaque: printing it shows a placeholder."""

    username: str
    password: Password


@dataclass
class StoredCredential:
    """What the user store returns for a username.

    password_hash is a self-describing argon2 PHC string
    ($argon2id$v=19$m=...,t=...,p=...$salt$hash), so hashing parameters can
    change without migrating existing rows.
    """

    user_id: UUID
    password_hash: str
