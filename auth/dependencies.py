"""
auth/dependencies.py -- FastAPI Depends() helpers for the Request Gate.

require_session() guards protected routes. It reads the
Authorization header, runs AuthService.validate_bearer() and binds the
resolved id to request.state.user_id.

Status policy for protected routes: every ValidationError from the gate
(absent, malformed, expired, superseded token) is answered with 404 so an
unauthenticated caller cannot tell a protected endpoint from a missing one.
Infrastructure errors (ConfigError, StoreError) are not caught here -- they
reach the generic 500 handler in api/main.py, which logs them.

Layer rule: auth/dependencies.py may import from fastapi (Request /
HTTPException) because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthService
from core.errors import ValidationError


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def require_session(request: Request) -> int:
    """Require a live session. Raises HTTP 404 on any token validation failure.

    Use as a FastAPI dependency:
        @router.get("/users/me")
        def route(user_id: int = Depends(require_session)): ...
    """
    try:
        user_id = _service(request).validate_bearer(request.headers.get("Authorization"))
    except ValidationError as exc:
        raise HTTPException(status_code=404, detail=exc.to_dict()) from exc
    request.state.user_id = user_id
    return user_id
