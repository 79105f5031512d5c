"""
auth/redirect.py -- HMAC-signed error messages carried across a redirect.

A failed login redirects to /login?error=<message>&tag=<hex>. The server keeps
no session state, so the message travels in the URL; the tag proves this
server produced that exact query string. GET /login only renders the message
when the tag verifies -- otherwise anyone could link a victim to
/login?error=<attacker text>.

Wire format:
  query = "error=" + percent-encoded message (urllib.parse.quote, safe="")
  tag   = lowercase hex HMAC-SHA256(key, query bytes)

Verification recomputes the tag over the canonical query and compares with
hmac.compare_digest. Any mismatch (substituted message, truncated query,
altered or missing tag) raises TamperError and the message must be dropped.

The key is the process-wide SECRET_KEY, loaded once at startup.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from urllib.parse import parse_qs, quote

_PARAM = "error"


class TamperError(Exception):
    """The carried message failed signature verification."""


@dataclass(frozen=True)
class SignedQuery:
    query: str
    tag: str


def _tag_for(query: str, key: bytes) -> str:
    return hmac.new(key, query.encode("utf-8"), hashlib.sha256).hexdigest()


def encode(message: str, key: bytes) -> SignedQuery:
    """Return the error query string for message and its HMAC tag."""
    query = f"{_PARAM}={quote(message, safe='')}"
    return SignedQuery(query=query, tag=_tag_for(query, key))


def decode_and_verify(query: str, tag: str, key: bytes) -> str:
    """Verify tag over query and return the carried message.

    Raises TamperError if the tag is missing or does not match, or if the
    authenticated query does not carry exactly one error parameter.
    """
    if not tag:
        raise TamperError("Missing signature.")
    expected = _tag_for(query, key)
    if not hmac.compare_digest(expected.encode("utf-8"), tag.encode("utf-8")):
        raise TamperError("Signature mismatch.")
    values = parse_qs(query, keep_blank_values=True).get(_PARAM, [])
    if len(values) != 1:
        raise TamperError("Signed query does not carry a message.")
    return values[0]


class RedirectSigner:
    """Holds the signing key and builds/verifies /login error redirects.

    Constructed once in the API lifespan and stored on app.state.signer.
    """

    def __init__(self, key: str | bytes) -> None:
        self._key = key.encode("utf-8") if isinstance(key, str) else key

    def login_redirect_url(self, message: str) -> str:
        signed = encode(message, self._key)
        return f"/login?{signed.query}&tag={signed.tag}"

    def verify(self, message: str, tag: str) -> str:
        """Verify a message already decoded from request query params.

        The framework hands us the decoded error value, so the canonical
        query string is rebuilt from it before checking the tag.
        """
        query = f"{_PARAM}={quote(message, safe='')}"
        return decode_and_verify(query, tag, self._key)

    def __repr__(self) -> str:
        return "RedirectSigner(key='**********')"
