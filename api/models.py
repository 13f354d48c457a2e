"""
API request and response models for the credential service.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /signup. All three fields are required and non-empty."""

    username: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


class LoginRequest(BaseModel):
    """Request body for POST /login.

    Emptiness is not validated here: an empty username or password simply
    fails authentication with the same 401 as any other bad credential.
    """

    username: str = Field(max_length=255)
    password: str = Field(max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    message: str = "User created"
    user: str


class LoginResponse(BaseModel):
    message: str = "Login success"
    user: str
    token: str


class RandomAccountResponse(BaseModel):
    """Response for POST /random. password is shown once and never again."""

    username: str
    password: str
    token: str
    expires_at: datetime


class ErrorResponse(BaseModel):
    """Uniform error envelope: a human-readable message and a machine code."""

    error: str
    code: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
