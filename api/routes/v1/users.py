"""
api/routes/v1/users.py -- Profile endpoint behind the Request Gate.

Routes:
  GET /api/v1/users/me   -- profile of the session's owner

Router-level dependency enforces the gate; handlers read the resolved id
from request.state.user_id. A token that passes the gate but whose account
has vanished gets the same 404 shape as a gate rejection.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import ProfileResponse
from auth.dependencies import require_session
from auth.service import AuthService
from core.errors import ValidationError

# Auth policy:
# - GET /api/v1/users/me: requires a live session (require_session)
router = APIRouter(dependencies=[Depends(require_session)])


@router.get("/users/me", response_model=ProfileResponse)
def get_me(request: Request) -> ProfileResponse:
    service: AuthService = request.app.state.auth_service
    try:
        profile = service.get_user_info(request.state.user_id)
    except ValidationError as exc:
        raise HTTPException(status_code=404, detail=exc.to_dict()) from exc
    return ProfileResponse.from_profile(profile)
