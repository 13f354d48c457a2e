"""Unit tests for auth/tokens.py -- TokenIssuer.

Covers:
- Issue/validate round trip returns the username
- exp claim is exactly 24h after issue
- Expired, tampered, wrong-secret and garbage tokens are rejected
- Tokens without a username claim are rejected
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import TOKEN_LIFETIME, TokenIssuer


def test_round_trip(issuer: TokenIssuer) -> None:
    token = issuer.issue_token("alice")
    assert issuer.validate_token(token) == ("alice", True)


def test_exp_is_24_hours_after_issue(issuer: TokenIssuer) -> None:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    token = issuer.issue_token("alice", now=now)
    claims = jwt.get_unverified_claims(token)
    assert claims["username"] == "alice"
    assert claims["exp"] == int((now + timedelta(hours=24)).timestamp())
    assert TOKEN_LIFETIME == timedelta(hours=24)


def test_expired_token_rejected(issuer: TokenIssuer) -> None:
    issued = datetime.now(timezone.utc) - timedelta(hours=25)
    token = issuer.issue_token("alice", now=issued)
    assert issuer.validate_token(token) == ("", False)


def test_wrong_secret_rejected(issuer: TokenIssuer) -> None:
    token = TokenIssuer("another-secret-that-is-long-enough-to-sign-with").issue_token("alice")
    assert issuer.validate_token(token) == ("", False)


def test_tampered_signature_rejected(issuer: TokenIssuer) -> None:
    token = issuer.issue_token("alice")
    header, payload, signature = token.split(".")
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    assert issuer.validate_token(f"{header}.{payload}.{flipped}") == ("", False)


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c"])
def test_garbage_rejected(issuer: TokenIssuer, garbage: str) -> None:
    assert issuer.validate_token(garbage) == ("", False)


def test_missing_username_claim_rejected() -> None:
    secret = "claims-test-secret-0123456789abcdef0123456789"
    issuer = TokenIssuer(secret)
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"exp": exp}, secret, algorithm="HS256")
    assert issuer.validate_token(token) == ("", False)


def test_empty_secret_refused() -> None:
    with pytest.raises(ValueError):
        TokenIssuer("")
