"""
auth/accounts.py -- Signup and login for standard accounts.

These are the request-level operations the HTTP layer calls. They take
already-parsed input and a store, and either return a result or raise one of
the auth.errors types; mapping those to HTTP responses is the caller's job.

Login is timing-equalized: an unknown username still costs one Argon2id
verification (against a dummy hash), so response time does not reveal whether
the account exists. Unknown username and wrong password both end in the same
AuthenticationError.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import AuthenticationError, ConflictError, PersistenceFailure, ValidationError
from auth.models import Account
from auth.passwords import hash_password, needs_rehash, verify_dummy, verify_password
from auth.store import AccountStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("fivechan.auth.accounts")


def signup(store: AccountStore, username: str, email: str, password: str) -> Account:
    """Create a standard account.

    Raises ValidationError if any field is empty and ConflictError if the
    username is taken. The existing account is never modified.
    """
    if not username or not email or not password:
        raise ValidationError("Missing required fields")

    if store.find_by_username(username) is not None:
        raise ConflictError()

    pw = hash_password(password)
    account = Account(
        username=username,
        email=email,
        password_hash=pw.hash,
        salt=pw.salt,
        hash_format=pw.format,
    )
    # The insert re-checks uniqueness at the DB level, which covers two
    # concurrent signups that both passed the lookup above.
    store.insert(account)
    logger.info("Account created: %s", username)
    return account


def authenticate(store: AccountStore, username: str, password: str) -> Account | None:
    """Return the account if the credentials are valid, else None.

    On success with a hash in an outdated format, the password is rehashed
    with the current default and stored. A failed upgrade is logged and does
    not affect the login.
    """
    account = store.find_by_username(username)
    if account is None:
        # Equalize timing -- do NOT return early before running Argon2id
        verify_dummy(password)
        return None
    if not verify_password(password, account.salt, account.password_hash, account.hash_format):
        return None
    if needs_rehash(account.hash_format):
        _upgrade_hash(store, account, password)
    return account


def _upgrade_hash(store: AccountStore, account: Account, password: str) -> None:
    old_format = account.hash_format
    pw = hash_password(password)
    try:
        store.update_credentials(account.username, pw.hash, pw.salt, pw.format)
    except PersistenceFailure:
        logger.warning("Could not upgrade %s hash for %s", old_format.value, account.username, exc_info=True)
        return
    account.password_hash, account.salt, account.hash_format = pw.hash, pw.salt, pw.format
    logger.info("Upgraded password hash for %s from %s", account.username, old_format.value)


def login(store: AccountStore, issuer: TokenIssuer, username: str, password: str) -> tuple[Account, str]:
    """Authenticate and issue a bearer token.

    Raises AuthenticationError for an unknown username or a wrong password.
    """
    account = authenticate(store, username, password)
    if account is None:
        raise AuthenticationError()
    return account, issuer.issue_token(account.username)
