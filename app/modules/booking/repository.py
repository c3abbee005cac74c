"""Booking repository layer."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import OCCUPYING_STATUSES, RoleEnum, SessionStatusEnum
from app.modules.booking.models import MentoringSession


class BookingRepository:
    """DB operations for mentoring sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_session(
        self,
        mentor_id: UUID,
        mentee_id: UUID,
        title: str,
        scheduled_at: datetime,
        duration_minutes: int,
    ) -> MentoringSession:
        booking = MentoringSession(
            mentor_id=mentor_id,
            mentee_id=mentee_id,
            title=title,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=SessionStatusEnum.SCHEDULED,
            cancelled_mentor_ids=[],
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_session_by_id(self, session_id: UUID) -> MentoringSession | None:
        stmt = select(MentoringSession).where(MentoringSession.id == session_id)
        return await self.session.scalar(stmt)

    async def list_sessions_in_range(
        self,
        mentor_ids: Collection[UUID],
        range_start: datetime,
        range_end: datetime,
        statuses: Sequence[SessionStatusEnum] = OCCUPYING_STATUSES,
    ) -> list[MentoringSession]:
        """Sessions of the given mentors starting inside ``[range_start, range_end]``."""
        if not mentor_ids:
            return []
        stmt = (
            select(MentoringSession)
            .where(
                MentoringSession.mentor_id.in_(list(mentor_ids)),
                MentoringSession.scheduled_at >= range_start,
                MentoringSession.scheduled_at <= range_end,
                MentoringSession.status.in_(list(statuses)),
            )
            .order_by(MentoringSession.scheduled_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_sessions(
        self,
        user_id: UUID,
        role_name: RoleEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[MentoringSession], int]:
        base_stmt: Select[tuple[MentoringSession]] = select(MentoringSession)

        if role_name == RoleEnum.MENTEE:
            base_stmt = base_stmt.where(MentoringSession.mentee_id == user_id)
        elif role_name == RoleEnum.MENTOR:
            base_stmt = base_stmt.where(
                or_(MentoringSession.mentor_id == user_id, MentoringSession.mentee_id == user_id),
            )

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(MentoringSession.scheduled_at.desc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def save(self, booking: MentoringSession) -> MentoringSession:
        await self.session.flush()
        return booking
