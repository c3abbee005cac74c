"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.modules.booking.matching import CandidateEvaluation
from app.modules.booking.schemas import (
    AlternativeMentorRead,
    AlternativeMentorSelect,
    SessionCancelRequest,
    SessionCreate,
    SessionRead,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import get_current_user
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _alternative_read(item: CandidateEvaluation) -> AlternativeMentorRead:
    return AlternativeMentorRead(
        mentor_user_id=item.mentor_user_id,
        display_name=item.mentor.display_name,
        expertise=list(item.mentor.expertise or []),
        timezone=item.schedule.timezone,
        is_available_at_original_time=item.is_available_at_original_time,
        reason=item.reason,
    )


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def book_session(
    payload: SessionCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Book a session at an available slot."""
    booking = await service.book_session(payload, current_user)
    return SessionRead.model_validate(booking)


@router.get("/my", response_model=Page[SessionRead])
async def list_my_sessions(
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> Page[SessionRead]:
    """List sessions for current user."""
    items, total = await service.list_sessions(current_user, pagination.limit, pagination.offset)
    serialized = [SessionRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/{session_id}/cancel", response_model=SessionRead)
async def cancel_session(
    session_id: UUID,
    payload: SessionCancelRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Cancel a session; a mentor cancellation triggers replacement matching."""
    booking = await service.cancel_session(session_id, payload, current_user)
    return SessionRead.model_validate(booking)


@router.post("/{session_id}/reassignment/accept", response_model=SessionRead)
async def accept_reassignment(
    session_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    booking = await service.accept_reassignment(session_id, current_user)
    return SessionRead.model_validate(booking)


@router.post("/{session_id}/reassignment/reject", response_model=SessionRead)
async def reject_reassignment(
    session_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    booking = await service.reject_reassignment(session_id, current_user)
    return SessionRead.model_validate(booking)


@router.get("/{session_id}/alternative-mentors", response_model=list[AlternativeMentorRead])
async def list_alternative_mentors(
    session_id: UUID,
    fixed_time: bool = Query(default=True),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> list[AlternativeMentorRead]:
    """List mentors who could take over the session."""
    items = await service.list_alternative_mentors(session_id, fixed_time, current_user)
    return [_alternative_read(item) for item in items]


@router.post("/{session_id}/alternative-mentors/select", response_model=SessionRead)
async def select_alternative_mentor(
    session_id: UUID,
    payload: AlternativeMentorSelect,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    booking = await service.select_alternative_mentor(session_id, payload.mentor_id, current_user)
    return SessionRead.model_validate(booking)


@router.post("/{session_id}/refund", response_model=SessionRead)
async def cancel_for_refund(
    session_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Cancel a session left without a mentor and refund it in full."""
    booking = await service.cancel_for_refund(session_id, current_user)
    return SessionRead.model_validate(booking)
