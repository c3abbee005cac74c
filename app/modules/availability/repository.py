"""Availability repository layer."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import BlockTypeEnum
from app.modules.availability.models import AvailabilityException, AvailabilitySchedule, WeeklyPattern
from app.modules.mentors.models import MentorProfile


class AvailabilityRepository:
    """DB access for mentor schedules, weekly patterns and exceptions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_schedule_by_mentor_user_id(
        self,
        mentor_user_id: UUID,
        *,
        for_update: bool = False,
    ) -> AvailabilitySchedule | None:
        stmt = (
            select(AvailabilitySchedule)
            .join(MentorProfile, MentorProfile.id == AvailabilitySchedule.mentor_id)
            .where(MentorProfile.user_id == mentor_user_id)
        )
        if for_update:
            stmt = stmt.with_for_update(of=AvailabilitySchedule)
        return await self.session.scalar(stmt)

    async def create_schedule(self, mentor_id: UUID, **values) -> AvailabilitySchedule:
        schedule = AvailabilitySchedule(mentor_id=mentor_id, **values)
        self.session.add(schedule)
        await self.session.flush()
        return schedule

    async def update_schedule(self, schedule: AvailabilitySchedule, **changes) -> AvailabilitySchedule:
        for key, value in changes.items():
            if value is not None:
                setattr(schedule, key, value)
        await self.session.flush()
        return schedule

    async def list_weekly_patterns(self, schedule_id: UUID) -> list[WeeklyPattern]:
        stmt = (
            select(WeeklyPattern)
            .where(WeeklyPattern.schedule_id == schedule_id)
            .order_by(WeeklyPattern.day_of_week.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_weekly_patterns_for_schedules(
        self,
        schedule_ids: Collection[UUID],
    ) -> list[WeeklyPattern]:
        if not schedule_ids:
            return []
        stmt = select(WeeklyPattern).where(WeeklyPattern.schedule_id.in_(list(schedule_ids)))
        return list((await self.session.scalars(stmt)).all())

    async def replace_weekly_patterns(
        self,
        schedule_id: UUID,
        patterns: Sequence[WeeklyPattern],
    ) -> list[WeeklyPattern]:
        """Delete all patterns of the schedule and insert the given transient rows."""
        await self.session.execute(delete(WeeklyPattern).where(WeeklyPattern.schedule_id == schedule_id))
        rows = list(patterns)
        for row in rows:
            row.schedule_id = schedule_id
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def list_exceptions(
        self,
        schedule_id: UUID,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
    ) -> list[AvailabilityException]:
        """Exceptions of a schedule, optionally limited to those intersecting a range."""
        stmt = select(AvailabilityException).where(AvailabilityException.schedule_id == schedule_id)
        if range_end is not None:
            stmt = stmt.where(AvailabilityException.start_date <= range_end)
        if range_start is not None:
            stmt = stmt.where(AvailabilityException.end_date >= range_start)
        stmt = stmt.order_by(AvailabilityException.start_date.asc())
        return list((await self.session.scalars(stmt)).all())

    async def list_exceptions_for_schedules(
        self,
        schedule_ids: Collection[UUID],
        range_start: datetime,
        range_end: datetime,
    ) -> list[AvailabilityException]:
        if not schedule_ids:
            return []
        stmt = select(AvailabilityException).where(
            AvailabilityException.schedule_id.in_(list(schedule_ids)),
            AvailabilityException.start_date <= range_end,
            AvailabilityException.end_date >= range_start,
        )
        return list((await self.session.scalars(stmt)).all())

    async def create_exception(
        self,
        schedule_id: UUID,
        start_date: datetime,
        end_date: datetime,
        type: BlockTypeEnum,
        reason: str | None,
        is_full_day: bool,
        time_blocks: list[dict] | None,
    ) -> AvailabilityException:
        exception = AvailabilityException(
            schedule_id=schedule_id,
            start_date=start_date,
            end_date=end_date,
            type=type,
            reason=reason,
            is_full_day=is_full_day,
            time_blocks=time_blocks,
        )
        self.session.add(exception)
        await self.session.flush()
        return exception

    async def delete_exceptions(self, schedule_id: UUID, exception_ids: Collection[UUID]) -> int:
        stmt = delete(AvailabilityException).where(
            AvailabilityException.schedule_id == schedule_id,
            AvailabilityException.id.in_(list(exception_ids)),
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
