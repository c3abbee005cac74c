"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import CancelledByEnum, ReassignmentStatusEnum, SessionStatusEnum


class SessionCreate(BaseModel):
    """Book a session with a mentor."""

    mentor_id: UUID
    title: str = Field(min_length=1, max_length=255)
    scheduled_at: datetime
    duration_minutes: int | None = Field(default=None, ge=15, le=480)


class SessionCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=512)


class AlternativeMentorSelect(BaseModel):
    mentor_id: UUID


class SessionRead(BaseModel):
    """Mentoring session response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mentor_id: UUID
    mentee_id: UUID
    title: str
    scheduled_at: datetime
    duration_minutes: int
    status: SessionStatusEnum
    cancelled_by: CancelledByEnum | None
    cancellation_reason: str | None
    refund_percentage: int
    was_reassigned: bool
    reassigned_from_mentor_id: UUID | None
    reassigned_at: datetime | None
    reassignment_status: ReassignmentStatusEnum | None
    created_at: datetime
    updated_at: datetime


class AlternativeMentorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mentor_user_id: UUID
    display_name: str
    expertise: list[str]
    timezone: str
    is_available_at_original_time: bool
    reason: str | None
