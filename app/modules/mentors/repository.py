"""Mentors repository layer."""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import VerificationStatusEnum
from app.modules.availability.models import AvailabilitySchedule
from app.modules.mentors.models import MentorProfile


class MentorsRepository:
    """DB operations for mentors domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_profile_by_user_id(self, user_id: UUID) -> MentorProfile | None:
        stmt = select(MentorProfile).where(MentorProfile.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_replacement_candidates(
        self,
        exclude_user_ids: Collection[UUID],
    ) -> list[tuple[MentorProfile, AvailabilitySchedule]]:
        """Available, verified mentors with an active schedule, minus the excluded users."""
        stmt = (
            select(MentorProfile, AvailabilitySchedule)
            .join(AvailabilitySchedule, AvailabilitySchedule.mentor_id == MentorProfile.id)
            .where(
                MentorProfile.is_available.is_(True),
                MentorProfile.verification_status == VerificationStatusEnum.VERIFIED,
                AvailabilitySchedule.is_active.is_(True),
            )
            .order_by(MentorProfile.created_at.asc())
        )
        if exclude_user_ids:
            stmt = stmt.where(MentorProfile.user_id.not_in(list(exclude_user_ids)))
        rows = (await self.session.execute(stmt)).all()
        return [(profile, schedule) for profile, schedule in rows]
