"""Unit tests for subscriptions/tokens.py."""

import string

from subscriptions.tokens import TOKEN_LENGTH, generate_subscription_token, is_well_formed_token

_ALPHANUMERIC = set(string.ascii_letters + string.digits)


def test_tokens_are_25_alphanumeric_characters_and_unique():
    tokens = [generate_subscription_token() for _ in range(10_000)]
    assert len(set(tokens)) == len(tokens)
    for token in tokens:
        assert len(token) == TOKEN_LENGTH == 25
        assert set(token) <= _ALPHANUMERIC


def test_tokens_use_both_cases_and_digits():
    """Over many draws every symbol class shows up -- the alphabet really is 62 wide."""
    seen = set("".join(generate_subscription_token() for _ in range(200)))
    assert seen & set(string.ascii_lowercase)
    assert seen & set(string.ascii_uppercase)
    assert seen & set(string.digits)


def test_generated_token_is_well_formed():
    assert is_well_formed_token(generate_subscription_token())


def test_malformed_tokens_are_rejected():
    assert not is_well_formed_token("")
    assert not is_well_formed_token("a" * 24)
    assert not is_well_formed_token("a" * 26)
    assert not is_well_formed_token("a" * 24 + "-")
    assert not is_well_formed_token("' OR 1=1 --aaaaaaaaaaaaaa")
