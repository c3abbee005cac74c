"""Mentors ORM models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import VerificationStatusEnum

if TYPE_CHECKING:
    from app.modules.availability.models import AvailabilitySchedule
    from app.modules.identity.models import User


class MentorProfile(BaseModelMixin, Base):
    """Mentor profile linked to user account."""

    __tablename__ = "mentor_profiles"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    expertise: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    verification_status: Mapped[VerificationStatusEnum] = mapped_column(
        SAEnum(VerificationStatusEnum, name="verification_status_enum", native_enum=False),
        default=VerificationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(back_populates="mentor_profile")
    availability_schedule: Mapped["AvailabilitySchedule | None"] = relationship(
        back_populates="mentor",
        uselist=False,
        cascade="all, delete-orphan",
    )
