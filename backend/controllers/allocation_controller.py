"""HTTP controller layer for rooms and allocation requests."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_allocation_service, require_admin
from backend.domain.models import AllocationRequest, RequestStatus, RoomAvailability
from backend.services.allocation_service import (
    AllocationStateManager,
    AllocationValidationError,
    InvariantViolationError,
    RequestNotFoundError,
    RoomFullError,
    RoomNotFoundError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["allocation"])


class RoomResponse(BaseModel):
    number: str
    capacity: int = Field(ge=0)
    occupied: int = Field(ge=0)
    free_slots: int = Field(ge=0)

    @classmethod
    def from_availability(cls, item: RoomAvailability) -> "RoomResponse":
        return cls(
            number=item.room.number,
            capacity=item.room.capacity,
            occupied=item.room.occupied,
            free_slots=item.free_slots,
        )


class SubmitRequestPayload(BaseModel):
    """Applicant form input; blank-field checks happen in the service layer."""

    applicant_name: str
    enrollment_id: str
    contact: str
    room_number: str
    roommate_count: int = Field(ge=1)


class AllocationRequestResponse(BaseModel):
    id: str
    applicant_name: str
    enrollment_id: str
    contact: str
    room_number: str
    occupant_count: int = Field(ge=1)
    roommate_count: int = Field(ge=1)
    status: RequestStatus
    submitted_at: datetime

    @classmethod
    def from_domain(cls, request: AllocationRequest) -> "AllocationRequestResponse":
        return cls(
            id=request.request_id,
            applicant_name=request.applicant_name,
            enrollment_id=request.enrollment_id,
            contact=request.contact,
            room_number=request.room_number,
            occupant_count=request.occupant_count,
            roommate_count=request.roommate_count,
            status=request.status,
            submitted_at=request.submitted_at,
        )


@router.get("/rooms", response_model=list[RoomResponse], status_code=status.HTTP_200_OK)
async def list_rooms(
    service: AllocationStateManager = Depends(get_allocation_service),
) -> list[RoomResponse]:
    return [RoomResponse.from_availability(item) for item in service.list_all_rooms()]


@router.get(
    "/rooms/available",
    response_model=list[RoomResponse],
    status_code=status.HTTP_200_OK,
)
async def list_available_rooms(
    service: AllocationStateManager = Depends(get_allocation_service),
) -> list[RoomResponse]:
    return [RoomResponse.from_availability(item) for item in service.list_available_rooms()]


@router.post(
    "/requests",
    response_model=AllocationRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_request(
    payload: SubmitRequestPayload,
    service: AllocationStateManager = Depends(get_allocation_service),
) -> AllocationRequestResponse:
    """Create a pending request; occupancy changes only on approval."""
    try:
        request = service.submit_request(
            applicant_name=payload.applicant_name,
            enrollment_id=payload.enrollment_id,
            contact=payload.contact,
            room_number=payload.room_number,
            roommate_count=payload.roommate_count,
        )
        return AllocationRequestResponse.from_domain(request)
    except AllocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (RoomFullError, InvariantViolationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected request submission failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit request",
        ) from exc


@router.get(
    "/requests",
    response_model=list[AllocationRequestResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def list_requests(
    service: AllocationStateManager = Depends(get_allocation_service),
) -> list[AllocationRequestResponse]:
    """Newest requests first."""
    return [AllocationRequestResponse.from_domain(item) for item in service.list_requests()]


@router.get(
    "/requests/{request_id}",
    response_model=AllocationRequestResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def get_request(
    request_id: str,
    service: AllocationStateManager = Depends(get_allocation_service),
) -> AllocationRequestResponse:
    try:
        return AllocationRequestResponse.from_domain(service.get_request(request_id))
    except RequestNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.post(
    "/requests/{request_id}/approve",
    response_model=AllocationRequestResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def approve_request(
    request_id: str,
    service: AllocationStateManager = Depends(get_allocation_service),
) -> AllocationRequestResponse:
    try:
        return AllocationRequestResponse.from_domain(service.approve_request(request_id))
    except (RequestNotFoundError, RoomNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (RoomFullError, InvariantViolationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected approval failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve request",
        ) from exc


@router.post(
    "/requests/{request_id}/reject",
    response_model=AllocationRequestResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def reject_request(
    request_id: str,
    service: AllocationStateManager = Depends(get_allocation_service),
) -> AllocationRequestResponse:
    try:
        return AllocationRequestResponse.from_domain(service.reject_request(request_id))
    except RequestNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvariantViolationError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected rejection failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject request",
        ) from exc
