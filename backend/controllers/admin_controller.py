"""Controller layer for admin session and maintenance endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    get_allocation_service,
    get_auth_service,
    require_admin,
)
from backend.services.allocation_service import AllocationStateManager
from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ResetResponse(BaseModel):
    room_count: int = Field(ge=0)
    request_count: int = Field(ge=0)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.admin_token)
        return LoginResponse(access_token=bearer)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def logout(auth_service: AuthService = Depends(get_auth_service)) -> None:
    auth_service.logout()


@router.post(
    "/reset",
    response_model=ResetResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def reset(
    service: AllocationStateManager = Depends(get_allocation_service),
) -> ResetResponse:
    """Restore the seeded rooms and drop every request."""
    try:
        state = service.reset_state()
        return ResetResponse(room_count=len(state.rooms), request_count=len(state.requests))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected state reset failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset state",
        ) from exc
