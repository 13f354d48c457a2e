"""
auth/errors.py -- Error taxonomy for the credential service.

Every error carries the HTTP status it maps to and a public message that is
safe to show a client. The boundary (api/main.py) renders these uniformly;
internal failures (crypto, persistence) never expose their detail there.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for all errors raised by auth/."""

    status_code: int = 500
    code: str = "internal_error"
    public_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class ValidationError(AuthServiceError):
    """Malformed or missing input. The client's fault."""

    status_code = 400
    code = "invalid_request"
    public_message = "Invalid request."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
        # Validation messages describe the client's own input, so they are public.
        if message:
            self.public_message = message


class ConflictError(AuthServiceError):
    """Username already taken."""

    status_code = 409
    code = "conflict"
    public_message = "Username exists."


class AuthenticationError(AuthServiceError):
    """Bad credentials. Deliberately says nothing about which part was wrong."""

    status_code = 401
    code = "bad_credentials"
    public_message = "Invalid credentials."


class CryptoFailure(AuthServiceError):
    """Randomness source or hashing/signing primitive unavailable."""

    code = "crypto_failure"


class PersistenceFailure(AuthServiceError):
    """A store operation failed."""

    code = "persistence_failure"
