"""Availability business logic layer."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import OCCUPYING_STATUSES, BlockTypeEnum, RoleEnum, SlotModeEnum
from app.core.metrics import record_slot_query
from app.modules.availability import slots as slot_generation
from app.modules.availability.models import AvailabilityException, AvailabilitySchedule, WeeklyPattern
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.resolver import disabled_days, local_date
from app.modules.availability.schemas import ExceptionCreate, ScheduleUpsert
from app.modules.availability.slots import Slot, SlotRules
from app.modules.availability.time_blocks import (
    TimeBlock,
    ValidationResult,
    validate_time_block,
    validate_weekly_schedule,
)
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.mentors.models import MentorProfile
from app.modules.mentors.repository import MentorsRepository
from app.shared.exceptions import (
    ConflictException,
    InvalidInputException,
    InvalidTimeBlockError,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, load_zone, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()

MINUTES_PER_DAY = 24 * 60
NO_SCHEDULE_MESSAGE = "Mentor has not set up availability"
INACTIVE_SCHEDULE_MESSAGE = "Mentor is currently unavailable"

# Sessions and exceptions are fetched this far beyond the queried range so that
# local days at the range edges and buffers around edge sessions are covered.
FETCH_PADDING = timedelta(days=1)


@dataclass
class SlotQueryResult:
    """Slots for one mentor and the settings they were computed with."""

    slots: list[Slot]
    timezone: str
    mentor_timezone: str | None = None
    session_duration: int | None = None
    buffer_time: int | None = None
    disabled_days: list[int] = field(default_factory=list)
    message: str | None = None


@dataclass
class AvailabilitySettings:
    schedule: AvailabilitySchedule | None
    weekly_patterns: list[WeeklyPattern] = field(default_factory=list)
    exceptions: list[AvailabilityException] = field(default_factory=list)


def schedule_zone(schedule: AvailabilitySchedule) -> ZoneInfo:
    """Zone of a stored schedule; an unknown stored name falls back to UTC."""
    try:
        return load_zone(schedule.timezone)
    except InvalidInputException:
        logger.warning("Schedule %s has unknown timezone %r, using UTC", schedule.id, schedule.timezone)
        return ZoneInfo("UTC")


def validate_range(range_start: datetime, range_end: datetime, max_days: int) -> tuple[datetime, datetime]:
    """Normalize a query range to UTC and enforce the day cap."""
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    if range_end < range_start:
        raise InvalidInputException("End date must not be before start date")
    range_days = math.ceil((range_end - range_start) / timedelta(days=1))
    if range_days > max_days:
        raise InvalidInputException(f"Date range cannot exceed {max_days} days")
    return range_start, range_end


class AvailabilityService:
    """Mentor availability settings and slot queries."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        mentors_repository: MentorsRepository,
        booking_repository: BookingRepository,
    ) -> None:
        self.repository = repository
        self.mentors_repository = mentors_repository
        self.booking_repository = booking_repository

    async def _get_mentor(self, mentor_user_id: UUID) -> MentorProfile:
        mentor = await self.mentors_repository.get_profile_by_user_id(mentor_user_id)
        if mentor is None:
            raise NotFoundException("Mentor not found")
        return mentor

    @staticmethod
    def _ensure_can_manage(mentor_user_id: UUID, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.MENTOR and actor.id == mentor_user_id:
            return
        raise UnauthorizedException("You cannot manage this mentor's availability")

    async def _get_schedule_for_update(self, mentor_user_id: UUID, actor: User) -> AvailabilitySchedule:
        self._ensure_can_manage(mentor_user_id, actor)
        await self._get_mentor(mentor_user_id)
        schedule = await self.repository.get_schedule_by_mentor_user_id(mentor_user_id)
        if schedule is None:
            raise NotFoundException("Availability schedule not found")
        return schedule

    async def get_settings(self, mentor_user_id: UUID) -> AvailabilitySettings:
        """Return schedule, weekly patterns and exceptions of a mentor."""
        await self._get_mentor(mentor_user_id)
        schedule = await self.repository.get_schedule_by_mentor_user_id(mentor_user_id)
        if schedule is None:
            return AvailabilitySettings(schedule=None)
        return AvailabilitySettings(
            schedule=schedule,
            weekly_patterns=await self.repository.list_weekly_patterns(schedule.id),
            exceptions=await self.repository.list_exceptions(schedule.id),
        )

    async def upsert_schedule(
        self,
        mentor_user_id: UUID,
        payload: ScheduleUpsert,
        actor: User,
    ) -> AvailabilitySettings:
        """Create or update the schedule and replace its weekly patterns."""
        self._ensure_can_manage(mentor_user_id, actor)
        mentor = await self._get_mentor(mentor_user_id)
        load_zone(payload.timezone)

        drafts = [
            WeeklyPattern(
                day_of_week=pattern.day_of_week,
                is_enabled=pattern.is_enabled,
                time_blocks=[block.to_stored() for block in pattern.time_blocks],
            )
            for pattern in payload.weekly_patterns
        ]
        validation = validate_weekly_schedule(drafts)
        if not validation.is_valid:
            messages = [f"Day {item.day}: {error}" for item in validation.errors for error in item.errors]
            raise InvalidTimeBlockError("; ".join(messages))

        values = payload.model_dump(exclude={"weekly_patterns"})
        schedule = await self.repository.get_schedule_by_mentor_user_id(mentor_user_id)
        if schedule is None:
            defaults = {
                "default_session_duration": settings.default_session_duration_minutes,
                "buffer_time_between_sessions": settings.default_buffer_minutes,
                "min_advance_booking_hours": settings.default_min_advance_booking_hours,
                "max_advance_booking_days": settings.default_max_advance_booking_days,
            }
            defaults.update({key: value for key, value in values.items() if value is not None})
            schedule = await self.repository.create_schedule(mentor.id, **defaults)
        else:
            schedule = await self.repository.update_schedule(schedule, **values)

        weekly_patterns = await self.repository.replace_weekly_patterns(schedule.id, drafts)
        logger.info(
            "Availability updated for mentor %s: %s weekly patterns",
            mentor_user_id,
            len(weekly_patterns),
        )
        return AvailabilitySettings(
            schedule=schedule,
            weekly_patterns=sorted(weekly_patterns, key=lambda pattern: pattern.day_of_week),
            exceptions=await self.repository.list_exceptions(schedule.id),
        )

    async def create_exception(
        self,
        mentor_user_id: UUID,
        payload: ExceptionCreate,
        actor: User,
    ) -> AvailabilityException:
        """Add a date-ranged override; it may not share a local date with an existing one."""
        schedule = await self._get_schedule_for_update(mentor_user_id, actor)
        start_date = ensure_utc(payload.start_date)
        end_date = ensure_utc(payload.end_date)
        if end_date < start_date:
            raise InvalidInputException("End date must not be before start date")

        time_blocks = None
        if payload.time_blocks:
            blocks = [block.to_block() for block in payload.time_blocks]
            errors: list[str] = []
            for index, block in enumerate(blocks):
                errors.extend(validate_time_block(block, blocks[:index] + blocks[index + 1 :]).errors)
            if errors:
                raise InvalidTimeBlockError("; ".join(errors))
            time_blocks = [block.to_mapping() for block in blocks]

        # Exceptions apply per local date, so two of them may not share a day.
        zone = schedule_zone(schedule)
        first_day = local_date(start_date, zone)
        last_day = local_date(end_date, zone)
        candidates = await self.repository.list_exceptions(
            schedule.id,
            slot_generation.wall_clock_to_utc(first_day, 0, zone),
            slot_generation.wall_clock_to_utc(last_day + timedelta(days=1), 0, zone) - timedelta(microseconds=1),
        )
        overlapping = [
            existing
            for existing in candidates
            if local_date(existing.start_date, zone) <= last_day and local_date(existing.end_date, zone) >= first_day
        ]
        if overlapping:
            existing = overlapping[0]
            raise ConflictException(
                "Exception overlaps an existing exception "
                f"({existing.start_date.isoformat()} - {existing.end_date.isoformat()})",
            )

        return await self.repository.create_exception(
            schedule_id=schedule.id,
            start_date=start_date,
            end_date=end_date,
            type=payload.type,
            reason=payload.reason,
            is_full_day=payload.is_full_day,
            time_blocks=time_blocks,
        )

    async def delete_exceptions(
        self,
        mentor_user_id: UUID,
        exception_ids: Iterable[UUID],
        actor: User,
    ) -> int:
        """Delete exceptions by id and return how many were removed."""
        schedule = await self._get_schedule_for_update(mentor_user_id, actor)
        return await self.repository.delete_exceptions(schedule.id, list(exception_ids))

    @staticmethod
    def validate_time_block(
        block: TimeBlock,
        existing_blocks: list[TimeBlock],
        allowed_overlap_types: Iterable[BlockTypeEnum] = (),
    ) -> ValidationResult:
        return validate_time_block(block, existing_blocks, allowed_overlap_types)

    async def generate_slots(
        self,
        mentor_user_id: UUID,
        range_start: datetime,
        range_end: datetime,
        duration_minutes: int | None = None,
        timezone: str | None = None,
        mode: SlotModeEnum = SlotModeEnum.DETAILED,
    ) -> SlotQueryResult:
        """Compute bookable slots for a mentor over ``[range_start, range_end]``.

        Input is validated before anything is loaded. An empty result always
        carries a message: no schedule, inactive schedule, no working days,
        days blocked by exceptions, or nothing left inside the booking window.
        """
        range_start, range_end = validate_range(range_start, range_end, settings.slot_query_max_days)
        if duration_minutes is not None and not 0 < duration_minutes <= MINUTES_PER_DAY:
            raise InvalidInputException("Session duration must be between 1 and 1440 minutes")
        target_zone = load_zone(timezone) if timezone else None

        await self._get_mentor(mentor_user_id)
        schedule = await self.repository.get_schedule_by_mentor_user_id(mentor_user_id)
        if schedule is None:
            return SlotQueryResult(slots=[], timezone=timezone or "UTC", message=NO_SCHEDULE_MESSAGE)

        zone = schedule_zone(schedule)
        output_zone = target_zone or zone
        if not schedule.is_active:
            return SlotQueryResult(
                slots=[],
                timezone=output_zone.key,
                mentor_timezone=schedule.timezone,
                message=INACTIVE_SCHEDULE_MESSAGE,
            )

        patterns = await self.repository.list_weekly_patterns(schedule.id)
        exceptions = await self.repository.list_exceptions(
            schedule.id,
            range_start - FETCH_PADDING,
            range_end + FETCH_PADDING,
        )
        sessions = await self.booking_repository.list_sessions_in_range(
            [mentor_user_id],
            range_start - FETCH_PADDING,
            range_end + FETCH_PADDING,
            OCCUPYING_STATUSES,
        )

        earliest_start, latest_start = slot_generation.booking_window(
            utc_now(),
            schedule.min_advance_booking_hours,
            schedule.max_advance_booking_days,
        )
        duration = duration_minutes or schedule.default_session_duration
        rules = SlotRules(
            duration_minutes=duration,
            buffer_minutes=schedule.buffer_time_between_sessions,
            earliest_start=earliest_start,
            latest_start=latest_start,
        )
        slots = slot_generation.generate_slots(
            range_start=range_start,
            range_end=range_end,
            zone=zone,
            patterns=patterns,
            exceptions=exceptions,
            sessions=sessions,
            rules=rules,
            mode=mode,
        )
        slots = slot_generation.to_zone(slots, output_zone)

        record_slot_query(mode.value, len(slots))
        logger.debug(
            "Generated %s %s slots for mentor %s (%s exceptions, %s sessions)",
            len(slots),
            mode.value,
            mentor_user_id,
            len(exceptions),
            len(sessions),
        )

        message = None
        if not slots:
            message = slot_generation.explain_empty_range(
                range_start=range_start,
                range_end=range_end,
                zone=zone,
                patterns=patterns,
                exceptions=exceptions,
            )

        return SlotQueryResult(
            slots=slots,
            timezone=output_zone.key,
            mentor_timezone=schedule.timezone,
            session_duration=duration,
            buffer_time=schedule.buffer_time_between_sessions,
            disabled_days=disabled_days(patterns),
            message=message,
        )


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return AvailabilityService(
        repository=AvailabilityRepository(session),
        mentors_repository=MentorsRepository(session),
        booking_repository=BookingRepository(session),
    )
