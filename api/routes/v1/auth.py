"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; returns a token pair (201)
  POST /api/v1/auth/login      -- email + password; returns a fresh token pair

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Both responses carry Cache-Control: no-store -- they contain live tokens.
  Unknown email and wrong password produce the SAME response (401,
  "bad_credentials"). AuthService raises distinct CredentialsError
  subclasses and logs which one occurred; only this boundary merges them.

Any other ValidationError (shape, duplicate account) propagates to the
ValidationError handler in api/main.py and becomes a 400.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import LoginRequest, RegisterRequest, TokenResponse
from auth.service import AuthService, LoginPayload, RegisterPayload
from core.errors import CredentialsError

# Auth policy:
# - POST /api/v1/auth/register: public -- creates the credentials
# - POST /api/v1/auth/login:    public -- exchanges credentials for tokens
router = APIRouter()


def _token_response(status_code: int, response: TokenResponse) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=response.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return its first access/refresh token pair."""
    service: AuthService = request.app.state.auth_service
    pair = service.register(RegisterPayload(username=body.username, email=body.email, password=body.password))
    return _token_response(201, TokenResponse.from_pair(pair))


@limiter.limit(login_limit)  # brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; supersede any previous session."""
    service: AuthService = request.app.state.auth_service
    try:
        pair = service.login(LoginPayload(email=body.email, password=body.password))
    except CredentialsError:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _token_response(200, TokenResponse.from_pair(pair))
