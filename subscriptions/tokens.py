"""
subscriptions/tokens.py -- Confirmation token generation.

A token is 25 characters drawn uniformly from [A-Za-z0-9] using the
operating system CSPRNG (secrets.choice). 25 * log2(62) is roughly 148 bits,
so guessing a live token through GET /subscriptions/confirm is infeasible.

The generator keeps no state between calls. Tokens are case-sensitive.
"""

import secrets
import string

TOKEN_LENGTH = 25
TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_subscription_token() -> str:
    """Return a fresh 25-character, case-sensitive alphanumeric token."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def is_well_formed_token(value: str) -> bool:
    """Return True if value has the shape of a token this module could produce.

    Used at the HTTP boundary to reject garbage before it reaches storage.
    """
    return len(value) == TOKEN_LENGTH and all(ch in TOKEN_ALPHABET for ch in value)
