"""
api/routes/auth.py -- Account endpoints.

Routes:
  POST /signup  -- create a standard account; 201
  POST /login   -- password login; returns a bearer token
  POST /random  -- create an ephemeral (anonymous) account; 201

Handlers are plain `def` so FastAPI runs them in its threadpool: Argon2id and
the SQLAlchemy store both block.

Errors raised by auth/ (ValidationError, ConflictError, CryptoFailure,
PersistenceFailure) propagate to the AuthServiceError handler in api/main.py,
which renders status + {"error", "code"}.

Security:
  POST /login is rate-limited per client address (LOGIN_RATE_LIMIT).
  Unknown username and wrong password produce the same 401 body.
  Cache-Control: no-store on login and /random responses -- both carry
  credentials.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import ErrorResponse, LoginRequest, LoginResponse, RandomAccountResponse, SignupRequest, SignupResponse
from auth.accounts import login as login_account
from auth.accounts import signup as signup_account
from auth.ephemeral import EphemeralAccountManager
from auth.errors import AuthenticationError
from auth.store import AccountStore
from auth.tokens import TokenIssuer

router = APIRouter()


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a standard account. 409 if the username is taken."""
    store: AccountStore = request.app.state.account_store
    account = signup_account(store, body.username, body.email, body.password)
    return SignupResponse(user=account.username)


@limiter.limit(login_rate_limit)  # brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and return a bearer token.

    Returns the same generic error for wrong username and wrong password to
    avoid leaking username existence information.
    """
    store: AccountStore = request.app.state.account_store
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        account, token = login_account(store, issuer, body.username, body.password)
    except AuthenticationError as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.public_message, code=exc.code).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user=account.username, token=token).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/random", response_model=RandomAccountResponse, status_code=201)
def random_account(request: Request, response: Response) -> RandomAccountResponse:
    """Create an anonymous account that is deleted 30 days from now.

    No request body. The generated password is returned here once only.
    """
    manager: EphemeralAccountManager = request.app.state.ephemeral_manager
    created = manager.create_ephemeral()
    response.headers["Cache-Control"] = "no-store"
    return RandomAccountResponse(
        username=created.username,
        password=created.password,
        token=created.token,
        expires_at=created.expires_at,
    )
