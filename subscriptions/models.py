"""
subscriptions/models.py -- Domain value types and records for subscribers.

SubscriberName and SubscriberEmail are the only gate for untrusted input
entering the registration workflow. parse() is the single validation point:
once a value exists, downstream code trusts it unconditionally. Both are
frozen dataclasses, so a validated value cannot be mutated into an invalid one.

Subscriber is the persisted record shape. It is a plain data container; the
store (subscriptions/store.py) maps rows into it.

Layer rule: no imports from api/, web/, core/ or auth/.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

import regex
from email_validator import EmailNotValidError, validate_email

MAX_NAME_GRAPHEMES = 256
FORBIDDEN_NAME_CHARACTERS = frozenset('/()"<>\\{}')


class ValidationError(ValueError):
    """Raised when raw input cannot become a subscriber value type."""


class SubscriberStatus(str, Enum):
    pending_confirmation = "pending_confirmation"
    confirmed = "confirmed"


_GRAPHEME = regex.compile(r"\X")


def _grapheme_length(value: str) -> int:
    """Count extended grapheme clusters (UAX #29), i.e. user-perceived characters."""
    return len(_GRAPHEME.findall(value))


@dataclass(frozen=True)
class SubscriberName:
    value: str

    @classmethod
    def parse(cls, raw: str) -> SubscriberName:
        """Validate a display name.

        Rejects empty or whitespace-only input, names longer than 256
        graphemes, control characters, and characters commonly used to
        smuggle markup or paths: / ( ) " < > \\ { }
        """
        if raw is None or not raw.strip():
            raise ValidationError("Subscriber name must not be empty.")
        if _grapheme_length(raw) > MAX_NAME_GRAPHEMES:
            raise ValidationError(f"Subscriber name must be at most {MAX_NAME_GRAPHEMES} characters.")
        if any(ch in FORBIDDEN_NAME_CHARACTERS for ch in raw):
            raise ValidationError("Subscriber name contains a forbidden character.")
        if any(unicodedata.category(ch) == "Cc" for ch in raw):
            raise ValidationError("Subscriber name contains a control character.")
        return cls(raw)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SubscriberEmail:
    value: str

    @classmethod
    def parse(cls, raw: str) -> SubscriberEmail:
        """Validate an email address syntactically (no DNS lookups)."""
        if raw is None or not raw.strip():
            raise ValidationError("Subscriber email must not be empty.")
        try:
            validate_email(raw, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValidationError(f"{raw!r} is not a valid subscriber email.") from exc
        return cls(raw)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NewSubscriber:
    """A visitor's validated registration request. The only input to register()."""

    name: SubscriberName
    email: SubscriberEmail


@dataclass
class Subscriber:
    """A persisted subscriber row.

    email is the raw stored text, not a SubscriberEmail: rows written by older
    validation rules are re-parsed by callers that need a deliverable address
    (see subscriptions.service.publish_issue).
    """

    id: UUID
    email: str
    name: str
    subscribed_at: str  # ISO 8601, set by store on insert
    status: SubscriberStatus = SubscriberStatus.pending_confirmation
