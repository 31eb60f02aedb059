"""Public catalog endpoints and admin login."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from venuebook.controllers.dependencies import get_auth_service, get_booking_service
from venuebook.services.auth_service import AuthService, InvalidAdminTokenError
from venuebook.services.booking_service import BookingWorkflowService
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class VenueResponse(BaseModel):
    id: int = Field(gt=0)
    name: str
    location: str
    capacity: int = Field(gt=0)


class VenueListResponse(BaseModel):
    count: int = Field(ge=0)
    venues: list[VenueResponse]


class DepartmentResponse(BaseModel):
    id: int = Field(gt=0)
    name: str
    code: Optional[str] = None


class DepartmentListResponse(BaseModel):
    count: int = Field(ge=0)
    departments: list[DepartmentResponse]


@router.post("/auth/admin-login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def admin_login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        return LoginResponse(access_token=auth_service.login(payload.admin_token))
    except InvalidAdminTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected login failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to login",
        ) from exc


@router.get("/venues", response_model=VenueListResponse, status_code=status.HTTP_200_OK)
async def list_venues(
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> VenueListResponse:
    try:
        return VenueListResponse(**booking_service.list_venues())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected venue listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list venues",
        ) from exc


@router.get(
    "/departments",
    response_model=DepartmentListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_departments(
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> DepartmentListResponse:
    try:
        return DepartmentListResponse(**booking_service.list_departments())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected department listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list departments",
        ) from exc
