"""
auth/passwords.py -- Password hashing and verification.

Security design decisions:
  Argon2id (argon2-cffi, raw mode): every new hash is a 32-byte Argon2id
       derivation over a fresh 16-byte salt with fixed parameters
       (t=1, m=64 MiB, p=4). Hash and salt are stored separately as unpadded
       base64, next to an explicit HashFormat tag.

  Legacy SHA-256: hex(SHA256(password + salt)). Only verified, never produced
       for new accounts. Records carrying this tag keep working and are
       upgraded to Argon2id on their next successful login.

  Format dispatch: the stored HashFormat selects the verifier through the
       _VERIFIERS table below. Nothing else in the codebase branches on the
       format, so adding a scheme means adding one entry here.

  Failure policy: verify_password() returns False for a wrong password, an
       unknown format, undecodable salt, or a primitive error alike. Callers
       cannot tell those apart, so neither can an attacker.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from auth.errors import CryptoFailure
from auth.models import HashFormat
from auth.randomness import random_bytes

logger = logging.getLogger("fivechan.auth.passwords")

# ---------------------------------------------------------------------------
# Argon2id parameters -- changing any of these invalidates every stored hash
# ---------------------------------------------------------------------------

ARGON2_TIME_COST = 1
ARGON2_MEMORY_COST = 64 * 1024  # KiB
ARGON2_PARALLELISM = 4
ARGON2_HASH_LENGTH = 32
SALT_LENGTH = 16

DEFAULT_FORMAT = HashFormat.ARGON2ID


@dataclass(frozen=True)
class PasswordHash:
    hash: str
    salt: str
    format: HashFormat

    def __repr__(self) -> str:
        return f"PasswordHash(format={self.format.value!r})"


# ---------------------------------------------------------------------------
# Encoding helpers (unpadded standard base64)
# ---------------------------------------------------------------------------


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded, validate=True)


def _argon2id(password: str, salt: bytes) -> bytes:
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=ARGON2_TIME_COST,
        memory_cost=ARGON2_MEMORY_COST,
        parallelism=ARGON2_PARALLELISM,
        hash_len=ARGON2_HASH_LENGTH,
        type=Type.ID,
    )


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(password: str) -> PasswordHash:
    """Hash a plaintext password with Argon2id over a fresh random salt.

    Raises CryptoFailure if the randomness source or Argon2 is unavailable.
    """
    salt = random_bytes(SALT_LENGTH)
    try:
        derived = _argon2id(password, salt)
    except (HashingError, MemoryError) as exc:
        logger.error("Argon2id derivation failed: %s", exc)
        raise CryptoFailure("password hashing failed") from exc
    return PasswordHash(hash=_b64encode(derived), salt=_b64encode(salt), format=HashFormat.ARGON2ID)


def hash_password_legacy(password: str, salt: str) -> str:
    """Return hex(SHA256(password + salt)), the pre-Argon2 scheme."""
    return hashlib.sha256((password + salt).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Verification -- one function per format, one dispatch table
# ---------------------------------------------------------------------------


def _verify_argon2id(password: str, salt: str, expected: str) -> bool:
    try:
        computed = _b64encode(_argon2id(password, _b64decode(salt)))
    except (binascii.Error, ValueError, HashingError):
        return False
    return hmac.compare_digest(computed.encode("utf-8"), expected.encode("utf-8"))


def _verify_legacy_sha256(password: str, salt: str, expected: str) -> bool:
    computed = hash_password_legacy(password, salt)
    return hmac.compare_digest(computed.encode("utf-8"), expected.encode("utf-8"))


_VERIFIERS: dict[HashFormat, Callable[[str, str, str], bool]] = {
    HashFormat.ARGON2ID: _verify_argon2id,
    HashFormat.LEGACY_SHA256: _verify_legacy_sha256,
}


def verify_password(password: str, salt: str, hashed: str, fmt: HashFormat | str) -> bool:
    """Return True if password matches the stored hash under the stored format.

    Never raises: an unknown format or malformed stored value is a mismatch.
    """
    try:
        verifier = _VERIFIERS[HashFormat(fmt)]
    except (ValueError, KeyError):
        return False
    return verifier(password, salt, hashed)


def needs_rehash(fmt: HashFormat | str) -> bool:
    """Return True if a hash in this format should be upgraded to DEFAULT_FORMAT."""
    return fmt != DEFAULT_FORMAT


# Timing equalization dummy hash.
# Computed once at module load. Login runs verify_dummy() when the username is
# unknown so the response takes as long as a real Argon2id check, and response
# time does not reveal whether an account exists.
_DUMMY = hash_password("fivechan_timing_dummy")


def verify_dummy(password: str) -> None:
    verify_password(password, _DUMMY.salt, _DUMMY.hash, _DUMMY.format)
