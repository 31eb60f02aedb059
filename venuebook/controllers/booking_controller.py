"""Controller layer for schedule and booking review endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from venuebook.controllers.dependencies import get_booking_service, require_admin
from venuebook.domain.models import BookingStatus
from venuebook.services.booking_service import (
    BookingConflictError,
    BookingNotFoundError,
    BookingStateError,
    BookingValidationError,
    BookingWorkflowService,
    VenueNotFoundError,
)
from venuebook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


class VenueRef(BaseModel):
    id: int
    name: str
    location: Optional[str] = None
    capacity: Optional[int] = None


class DepartmentRef(BaseModel):
    id: int
    name: str
    code: Optional[str] = None


class RequesterRef(BaseModel):
    id: int
    username: str
    email: str


class BookingResponse(BaseModel):
    id: int = Field(gt=0)
    event_name: str
    description: Optional[str] = None
    start_time: str
    end_time: str
    status: BookingStatus
    rejection_reason: Optional[str] = None
    venue: Optional[VenueRef] = None
    department: Optional[DepartmentRef] = None
    requester: Optional[RequesterRef] = None
    poster_images: list[str] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    message: str
    count: int = Field(ge=0)
    bookings: list[BookingResponse]


class BookingListResponse(BaseModel):
    count: int = Field(ge=0)
    bookings: list[BookingResponse]


class UpcomingBookingsResponse(BaseModel):
    count: int = Field(ge=0)
    days: int = Field(ge=1)
    bookings: list[BookingResponse]


class RecentPendingResponse(BaseModel):
    count: int = Field(ge=0)
    limit: int = Field(ge=1)
    bookings: list[BookingResponse]


class BookingStatsResponse(BaseModel):
    total: int = Field(ge=0)
    pending: int = Field(ge=0)
    approved: int = Field(ge=0)
    rejected: int = Field(ge=0)


class BookingActionResponse(BaseModel):
    message: str
    booking: BookingResponse


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = None


def _parse_int(value: Optional[str]) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Valid year/month required.",
        ) from exc



def _optional_int(value: Optional[str]) -> Optional[int]:
    """Unparseable values fall back to the service default."""
    try:
        return int(str(value).strip()) if value is not None else None
    except ValueError:
        return None

@router.get(
    "/schedule/{venue_id}",
    response_model=ScheduleResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def venue_schedule(
    venue_id: int,
    year: Optional[str] = Query(default=None),
    month: Optional[str] = Query(default=None),
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> ScheduleResponse:
    parsed_year, parsed_month = _parse_int(year), _parse_int(month)
    try:
        return ScheduleResponse(
            **booking_service.get_schedule(venue_id, parsed_year, parsed_month)
        )
    except BookingValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except VenueNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected schedule failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load schedule",
        ) from exc


@router.get(
    "/admin/all",
    response_model=BookingListResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def all_bookings(
    booking_status: Optional[str] = Query(default=None, alias="status"),
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        return BookingListResponse(**booking_service.list_all_bookings(booking_status))
    except BookingValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list bookings",
        ) from exc


@router.get(
    "/admin/stats",
    response_model=BookingStatsResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def booking_stats(
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> BookingStatsResponse:
    try:
        return BookingStatsResponse(**booking_service.get_stats())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected stats failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load booking stats",
        ) from exc


@router.get(
    "/admin/upcoming",
    response_model=UpcomingBookingsResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def upcoming_bookings(
    days: Optional[str] = Query(default=None),
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> UpcomingBookingsResponse:
    try:
        return UpcomingBookingsResponse(**booking_service.list_upcoming(_optional_int(days)))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected upcoming bookings failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load upcoming bookings",
        ) from exc


@router.get(
    "/admin/recent-pending",
    response_model=RecentPendingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def recent_pending_bookings(
    limit: Optional[str] = Query(default=None),
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> RecentPendingResponse:
    try:
        return RecentPendingResponse(**booking_service.list_recent_pending(_optional_int(limit)))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected recent pending failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load pending bookings",
        ) from exc


@router.put(
    "/{booking_id}/approve",
    response_model=BookingActionResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def approve_booking(
    booking_id: int,
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> BookingActionResponse:
    try:
        return BookingActionResponse(**booking_service.approve(booking_id))
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BookingStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except BookingConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected approve failure for booking %s", booking_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve booking",
        ) from exc


@router.put(
    "/{booking_id}/reject",
    response_model=BookingActionResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def reject_booking(
    booking_id: int,
    payload: Optional[RejectRequest] = None,
    booking_service: BookingWorkflowService = Depends(get_booking_service),
) -> BookingActionResponse:
    reason = payload.rejection_reason if payload is not None else None
    try:
        return BookingActionResponse(**booking_service.reject(booking_id, reason))
    except BookingValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BookingStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reject failure for booking %s", booking_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject booking",
        ) from exc
