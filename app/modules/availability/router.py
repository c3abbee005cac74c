"""Availability API router."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import SlotModeEnum
from app.modules.availability.schemas import (
    AvailabilitySettingsRead,
    ExceptionCreate,
    ExceptionDeleteRequest,
    ExceptionDeleteResponse,
    ExceptionRead,
    ScheduleUpsert,
    SlotQueryRead,
    TimeBlockValidateRequest,
    TimeBlockValidateResponse,
)
from app.modules.availability.service import AvailabilityService, get_availability_service
from app.modules.identity.service import get_current_user

router = APIRouter(tags=["availability"])


@router.get("/mentors/{mentor_id}/availability", response_model=AvailabilitySettingsRead)
async def get_availability(
    mentor_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilitySettingsRead:
    """Return mentor schedule, weekly patterns and exceptions."""
    result = await service.get_settings(mentor_id)
    return AvailabilitySettingsRead.model_validate(result)


@router.put("/mentors/{mentor_id}/availability", response_model=AvailabilitySettingsRead)
async def upsert_availability(
    mentor_id: UUID,
    payload: ScheduleUpsert,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> AvailabilitySettingsRead:
    """Create or replace mentor availability settings."""
    result = await service.upsert_schedule(mentor_id, payload, current_user)
    return AvailabilitySettingsRead.model_validate(result)


@router.post(
    "/mentors/{mentor_id}/availability/exceptions",
    response_model=ExceptionRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_exception(
    mentor_id: UUID,
    payload: ExceptionCreate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> ExceptionRead:
    """Add a vacation, holiday or special-hours override."""
    exception = await service.create_exception(mentor_id, payload, current_user)
    return ExceptionRead.model_validate(exception)


@router.delete("/mentors/{mentor_id}/availability/exceptions", response_model=ExceptionDeleteResponse)
async def delete_exceptions(
    mentor_id: UUID,
    payload: ExceptionDeleteRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> ExceptionDeleteResponse:
    deleted = await service.delete_exceptions(mentor_id, payload.exception_ids, current_user)
    return ExceptionDeleteResponse(deleted=deleted)


@router.post("/availability/time-blocks/validate", response_model=TimeBlockValidateResponse)
async def validate_time_block(
    payload: TimeBlockValidateRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> TimeBlockValidateResponse:
    """Check a block against the other blocks of a day."""
    result = service.validate_time_block(
        payload.block.to_block(),
        [block.to_block() for block in payload.existing_blocks],
        payload.allowed_overlap_types,
    )
    return TimeBlockValidateResponse.model_validate(result)


async def _query_slots(
    service: AvailabilityService,
    mentor_id: UUID,
    start_date: datetime,
    end_date: datetime,
    duration: int | None,
    timezone: str | None,
    mode: SlotModeEnum,
) -> SlotQueryRead:
    result = await service.generate_slots(
        mentor_id,
        start_date,
        end_date,
        duration_minutes=duration,
        timezone=timezone,
        mode=mode,
    )
    return SlotQueryRead.model_validate(result)


@router.get("/mentors/{mentor_id}/availability/slots", response_model=SlotQueryRead)
async def list_slots(
    mentor_id: UUID,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    duration: int | None = Query(default=None),
    timezone: str | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotQueryRead:
    """List available and already booked slots."""
    return await _query_slots(service, mentor_id, start_date, end_date, duration, timezone, SlotModeEnum.DETAILED)


@router.get("/mentors/{mentor_id}/availability/available-slots", response_model=SlotQueryRead)
async def list_available_slots(
    mentor_id: UUID,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    duration: int | None = Query(default=None),
    timezone: str | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotQueryRead:
    """List only slots that can be booked right now."""
    return await _query_slots(
        service,
        mentor_id,
        start_date,
        end_date,
        duration,
        timezone,
        SlotModeEnum.AVAILABLE_ONLY,
    )
