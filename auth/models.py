"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond serialization
helpers). Stores and services do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class HashFormat(str, Enum):
    """Password hashing scheme a stored hash was produced with.

    Persisted per record so old hashes stay verifiable after the default
    changes. Never inferred from the hash content.
    """

    ARGON2ID = "argon2id"
    LEGACY_SHA256 = "legacy_sha256"


@dataclass
class Account:
    """A persisted credential record.

    email is empty for ephemeral accounts. expires_at is only meaningful when
    is_ephemeral is True; it is set once at creation and never extended.
    hash_format is left as the raw string when a stored tag is not a known
    HashFormat.
    """

    username: str
    password_hash: str
    salt: str
    hash_format: HashFormat | str = HashFormat.ARGON2ID
    email: str = ""
    is_ephemeral: bool = False
    expires_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class ExpiryNotification:
    """Pushed to /ws/expiry clients when an ephemeral account is deleted."""

    username: str
    deleted_at: datetime

    def to_dict(self) -> dict:
        return {"username": self.username, "deleted_at": self.deleted_at.isoformat()}


@dataclass(frozen=True)
class EphemeralAccount:
    """Result of creating an anonymous account.

    password is the plaintext credential. It is handed back once, here, and is
    not recoverable afterwards -- the store only holds the hash.
    """

    username: str
    password: str
    token: str
    expires_at: datetime
