"""
auth/tokens.py -- Bearer token issuance and validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the username and an expiry 24
       hours after issue. Validation returns ("", False) on any failure --
       expired, bad signature, malformed, or missing claims.

  Secret ownership: TokenIssuer receives the signing secret at construction
       and never reads configuration itself. The application lifespan builds
       one issuer from get_settings().jwt_secret and keeps it on app.state.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import CryptoFailure

logger = logging.getLogger("fivechan.auth.tokens")

_ALGORITHM = "HS256"

TOKEN_LIFETIME = timedelta(hours=24)


class TokenIssuer:
    """Signs and validates time-limited bearer tokens with a symmetric key.

    Usage:
        issuer = TokenIssuer(secret)
        token = issuer.issue_token("alice")
        username, ok = issuer.validate_token(token)
    """

    def __init__(self, secret: str, lifetime: timedelta = TOKEN_LIFETIME) -> None:
        if not secret:
            raise ValueError("TokenIssuer requires a non-empty secret")
        self._secret = secret
        self.lifetime = lifetime

    def __repr__(self) -> str:
        return f"TokenIssuer(lifetime={self.lifetime!r})"

    def issue_token(self, username: str, now: datetime | None = None) -> str:
        """Encode a signed JWT for username, expiring `lifetime` after now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "username": username,
            "exp": issued_at + self.lifetime,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        except JWTError as exc:
            logger.error("Token signing failed: %s", exc)
            raise CryptoFailure("token signing failed") from exc

    def validate_token(self, token: str) -> tuple[str, bool]:
        """Return (username, True) for a valid, unexpired token; ("", False) otherwise."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError:
            return "", False
        username = payload.get("username")
        if not isinstance(username, str) or not username or "exp" not in payload:
            return "", False
        return username, True
