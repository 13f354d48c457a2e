"""
auth/randomness.py -- Cryptographically secure randomness for salts and credentials.

All randomness comes from the OS CSPRNG via the secrets module. A failing
source is never papered over with a weaker fallback: it surfaces as
CryptoFailure and fails the calling operation.

secrets.choice() draws each character with secrets.randbelow(), which uses
rejection sampling, so every symbol of the alphabet is equally likely (no
modulo bias).
"""

from __future__ import annotations

import logging
import secrets
import string

from auth.errors import CryptoFailure

logger = logging.getLogger("fivechan.auth.random")

# 62 symbols: a-z, A-Z, 0-9.
ALPHANUMERIC = string.ascii_lowercase + string.ascii_uppercase + string.digits


def random_bytes(n: int) -> bytes:
    """Return n random bytes. Raises CryptoFailure if the source is unavailable."""
    if n < 0:
        raise ValueError("n must be non-negative")
    try:
        return secrets.token_bytes(n)
    except (OSError, NotImplementedError) as exc:
        logger.error("Randomness source unavailable: %s", exc)
        raise CryptoFailure("randomness source unavailable") from exc


def random_string(length: int, alphabet: str = ALPHANUMERIC) -> str:
    """Return length characters drawn independently and uniformly from alphabet."""
    if length < 0:
        raise ValueError("length must be non-negative")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    try:
        return "".join(secrets.choice(alphabet) for _ in range(length))
    except (OSError, NotImplementedError) as exc:
        logger.error("Randomness source unavailable: %s", exc)
        raise CryptoFailure("randomness source unavailable") from exc
