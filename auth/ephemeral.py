"""
auth/ephemeral.py -- Anonymous accounts with a fixed 30-day lifetime.

An ephemeral account gets a random username (anon_ + 12 alphanumerics) and a
random 16-character password, no email, and an expiry exactly
EPHEMERAL_LIFETIME after creation. The expiry is written once and never
extended; the expiry sweep (auth/expiry.py) deletes the account afterwards.

The token is only issued after the insert succeeded, so a failed insert
leaves nothing behind that the caller could use.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.errors import ConflictError, PersistenceFailure
from auth.models import Account, EphemeralAccount
from auth.passwords import hash_password
from auth.randomness import random_string
from auth.store import AccountStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("fivechan.auth.ephemeral")

EPHEMERAL_LIFETIME = timedelta(days=30)
USERNAME_PREFIX = "anon_"
USERNAME_RANDOM_LENGTH = 12
PASSWORD_LENGTH = 16


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EphemeralAccountManager:
    """Creates ephemeral accounts.

    clock is injectable so tests can pin creation time and check the expiry
    arithmetic exactly.
    """

    def __init__(
        self,
        store: AccountStore,
        issuer: TokenIssuer,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._clock = clock

    def create_ephemeral(self) -> EphemeralAccount:
        """Create, persist and return a new anonymous account with its token.

        Raises CryptoFailure if randomness or hashing fails and
        PersistenceFailure if the account cannot be stored.
        """
        username = USERNAME_PREFIX + random_string(USERNAME_RANDOM_LENGTH)
        password = random_string(PASSWORD_LENGTH)
        pw = hash_password(password)

        now = self._clock()
        expires_at = now + EPHEMERAL_LIFETIME
        account = Account(
            username=username,
            password_hash=pw.hash,
            salt=pw.salt,
            hash_format=pw.format,
            is_ephemeral=True,
            expires_at=expires_at,
            created_at=now,
        )
        try:
            self._store.insert(account)
        except ConflictError as exc:
            # 62^12 usernames; a collision means something is badly wrong
            # with the randomness, not that the caller should retry.
            raise PersistenceFailure("ephemeral username collision") from exc

        token = self._issuer.issue_token(username, now=now)
        logger.info("Ephemeral account created: %s (expires %s)", username, expires_at.isoformat())
        return EphemeralAccount(username=username, password=password, token=token, expires_at=expires_at)
