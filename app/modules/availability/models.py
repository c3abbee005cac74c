"""Availability ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import BlockTypeEnum

if TYPE_CHECKING:
    from app.modules.mentors.models import MentorProfile


class AvailabilitySchedule(BaseModelMixin, Base):
    """Mentor-wide availability settings; parent of patterns and exceptions."""

    __tablename__ = "mentor_availability_schedules"

    mentor_id: Mapped[UUID] = mapped_column(
        ForeignKey("mentor_profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    default_session_duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    buffer_time_between_sessions: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    min_advance_booking_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    max_advance_booking_days: Mapped[int] = mapped_column(Integer, default=90, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_instant_booking: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    require_confirmation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    mentor: Mapped["MentorProfile"] = relationship(back_populates="availability_schedule")
    weekly_patterns: Mapped[list["WeeklyPattern"]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="WeeklyPattern.day_of_week",
    )
    exceptions: Mapped[list["AvailabilityException"]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="AvailabilityException.start_date",
    )


class WeeklyPattern(BaseModelMixin, Base):
    """Recurring availability for one day of week (0 = Sunday)."""

    __tablename__ = "mentor_weekly_patterns"
    __table_args__ = (UniqueConstraint("schedule_id", "day_of_week"),)

    schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("mentor_availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    time_blocks: Mapped[list[dict]] = mapped_column(JSONB, default=list, nullable=False)

    schedule: Mapped[AvailabilitySchedule] = relationship(back_populates="weekly_patterns")


class AvailabilityException(BaseModelMixin, Base):
    """Date-ranged override of the weekly pattern (holiday, vacation, special hours)."""

    __tablename__ = "mentor_availability_exceptions"

    schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("mentor_availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    type: Mapped[BlockTypeEnum] = mapped_column(
        SAEnum(BlockTypeEnum, name="availability_type_enum", native_enum=False),
        default=BlockTypeEnum.BLOCKED,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_full_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    time_blocks: Mapped[list[dict] | None] = mapped_column(JSONB, nullable=True)

    schedule: Mapped[AvailabilitySchedule] = relationship(back_populates="exceptions")
