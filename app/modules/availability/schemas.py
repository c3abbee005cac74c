"""Availability schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.enums import BlockTypeEnum, OverlapTypeEnum
from app.modules.availability.time_blocks import TIME_PATTERN, TimeBlock, minutes_to_time, time_to_minutes


class TimeBlockInput(BaseModel):
    """Block as submitted, before its times are checked."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    type: BlockTypeEnum
    max_bookings: int | None = Field(default=None, alias="maxBookings", ge=1)

    def to_block(self) -> TimeBlock:
        return TimeBlock(
            start_time=self.start_time,
            end_time=self.end_time,
            type=self.type,
            max_bookings=self.max_bookings,
        )


class TimeBlockSchema(TimeBlockInput):
    """Wall-clock block as stored in weekly patterns and exceptions."""

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError(f"Invalid time format: {value}. Use HH:MM format.")
        return minutes_to_time(time_to_minutes(value))

    def to_stored(self) -> dict:
        return self.to_block().to_mapping()


class WeeklyPatternPayload(BaseModel):
    """Blocks for one day of week (0 = Sunday)."""

    day_of_week: int = Field(ge=0, le=6)
    is_enabled: bool = True
    time_blocks: list[TimeBlockSchema] = Field(default_factory=list)


class ScheduleUpsert(BaseModel):
    """Create or replace a mentor's availability settings."""

    timezone: str = Field(default="UTC", min_length=1, max_length=64)
    default_session_duration: int | None = Field(default=None, ge=15, le=480)
    buffer_time_between_sessions: int | None = Field(default=None, ge=0, le=240)
    min_advance_booking_hours: int | None = Field(default=None, ge=0, le=720)
    max_advance_booking_days: int | None = Field(default=None, ge=1, le=365)
    is_active: bool | None = None
    allow_instant_booking: bool | None = None
    require_confirmation: bool | None = None
    weekly_patterns: list[WeeklyPatternPayload] = Field(default_factory=list)

    @field_validator("weekly_patterns")
    @classmethod
    def unique_days(cls, patterns: list[WeeklyPatternPayload]) -> list[WeeklyPatternPayload]:
        days = [pattern.day_of_week for pattern in patterns]
        if len(days) != len(set(days)):
            raise ValueError("Each day of week may appear only once")
        return patterns


class ExceptionCreate(BaseModel):
    """Add a date-ranged override."""

    start_date: datetime
    end_date: datetime
    type: BlockTypeEnum = BlockTypeEnum.BLOCKED
    reason: str | None = Field(default=None, max_length=512)
    is_full_day: bool = True
    time_blocks: list[TimeBlockSchema] | None = None

    @model_validator(mode="after")
    def check_dates(self) -> ExceptionCreate:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ExceptionDeleteRequest(BaseModel):
    exception_ids: list[UUID] = Field(min_length=1)


class TimeBlockValidateRequest(BaseModel):
    """Check a block against the other blocks of a day."""

    block: TimeBlockInput
    existing_blocks: list[TimeBlockInput] = Field(default_factory=list)
    allowed_overlap_types: list[BlockTypeEnum] = Field(default_factory=list)


class OverlapRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    block_a: TimeBlockInput
    block_b: TimeBlockInput
    overlap_start: str
    overlap_end: str
    conflict_type: OverlapTypeEnum


class TimeBlockValidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    errors: list[str]
    overlaps: list[OverlapRead]


class WeeklyPatternRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    day_of_week: int
    is_enabled: bool
    time_blocks: list[TimeBlockInput]


class ExceptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    start_date: datetime
    end_date: datetime
    type: BlockTypeEnum
    reason: str | None
    is_full_day: bool
    time_blocks: list[TimeBlockInput] | None


class ScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mentor_id: UUID
    timezone: str
    default_session_duration: int
    buffer_time_between_sessions: int
    min_advance_booking_hours: int
    max_advance_booking_days: int
    is_active: bool
    allow_instant_booking: bool
    require_confirmation: bool
    created_at: datetime
    updated_at: datetime


class AvailabilitySettingsRead(BaseModel):
    """Schedule with its weekly patterns and exceptions."""

    model_config = ConfigDict(from_attributes=True)

    schedule: ScheduleRead | None
    weekly_patterns: list[WeeklyPatternRead]
    exceptions: list[ExceptionRead]


class ExceptionDeleteResponse(BaseModel):
    deleted: int


class SlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_time: datetime
    end_time: datetime
    available: bool
    reason: str | None


class SlotQueryRead(BaseModel):
    """Slots for a mentor plus the settings they were computed with."""

    model_config = ConfigDict(from_attributes=True)

    slots: list[SlotRead]
    mentor_timezone: str | None
    timezone: str
    session_duration: int | None
    buffer_time: int | None
    disabled_days: list[int]
    message: str | None
