"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin
from app.core.enums import CancelledByEnum, ReassignmentStatusEnum, SessionStatusEnum


class MentoringSession(BaseModelMixin, Base):
    """Booked session between a mentor and a mentee; mutated only by status transitions."""

    __tablename__ = "mentoring_sessions"

    mentor_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentee_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    status: Mapped[SessionStatusEnum] = mapped_column(
        SAEnum(SessionStatusEnum, name="session_status_enum", native_enum=False),
        default=SessionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )

    cancelled_by: Mapped[CancelledByEnum | None] = mapped_column(
        SAEnum(CancelledByEnum, name="cancelled_by_enum", native_enum=False),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    refund_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    was_reassigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reassigned_from_mentor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reassigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reassignment_status: Mapped[ReassignmentStatusEnum | None] = mapped_column(
        SAEnum(ReassignmentStatusEnum, name="reassignment_status_enum", native_enum=False),
        nullable=True,
    )
    cancelled_mentor_ids: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
