"""
api/main.py -- FastAPI application entry point.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for origins in PUBLIC_ALLOWED_URLS
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the shared collaborators once and keeps them on app.state:
  account_store      -- AccountStore on DATABASE_URL
  token_issuer       -- TokenIssuer holding the process-wide signing secret
  ephemeral_manager  -- EphemeralAccountManager over the two above
  expiry_scan_interval -- seconds between scans on each /ws/expiry connection
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.expiry import router as expiry_router
from auth.ephemeral import EphemeralAccountManager
from auth.errors import AuthServiceError
from auth.store import AccountStore
from auth.tokens import TokenIssuer
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fivechan.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the store, token issuer and ephemeral manager; dispose on shutdown.

    The signing secret is read from settings exactly once, here, and handed
    to the TokenIssuer. Nothing else holds or reads it.
    """
    logger.info("Credential service starting up")
    settings = get_settings()
    app.state.account_store = AccountStore(settings.database_url)
    app.state.token_issuer = TokenIssuer(settings.jwt_secret)
    app.state.ephemeral_manager = EphemeralAccountManager(app.state.account_store, app.state.token_issuer)
    app.state.expiry_scan_interval = settings.expiry_scan_interval
    logger.info("Account store initialized (scan interval %.1fs)", settings.expiry_scan_interval)

    yield

    app.state.account_store.close()
    logger.info("Credential service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="fivechan auth",
    description="Accounts, bearer tokens, and self-expiring anonymous accounts.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

_origins = _settings.allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    # Credentials only make sense with an explicit origin list, never with "*".
    allow_credentials="*" not in _origins,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every HTTP request passes through this coroutine; WebSocket traffic does not.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(expiry_router, tags=["Expiry"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message, code=code).model_dump())


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Render auth/ errors as status + generic public message.

    Internal failures (crypto, persistence) are logged with their cause; the
    client only ever sees the class's public message.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
    return _error(exc.status_code, exc.public_message, exc.code)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded, with Retry-After in seconds."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests.", "rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the body is missing, malformed, or fails field validation."""
    # Log field locations only; error inputs can contain passwords.
    fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
    logger.info("Rejected %s %s: invalid %s", request.method, request.url.path, fields)
    return _error(400, "Invalid request", "invalid_request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), f"http_{exc.status_code}")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.", "internal_error")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the account store answers."""
    store: AccountStore = request.app.state.account_store
    return HealthResponse(
        version=VERSION,
        components={"app": "ok", "database": "ok" if store.ping() else "error"},
    )
