"""Replacement mentor matching for sessions cancelled by their mentor.

Candidates, their weekly patterns, exceptions and sessions are loaded in one
batch per table, then every candidate is checked in memory: the session must
fit inside one of the candidate's weekly availability fragments (in the
candidate's own timezone), no blocking exception may touch that local date,
and the session must not collide with the candidate's buffered bookings.
Partial-day blocking exceptions disqualify a candidate just like full-day ones.
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from app.core.enums import OCCUPYING_STATUSES
from app.core.metrics import record_replacement_search
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.resolver import (
    carve_day_blocks,
    day_of_week,
    exception_covers_day,
    index_patterns,
    is_blocking_exception,
    usable_pattern_blocks,
)
from app.modules.availability.time_blocks import block_bounds
from app.modules.booking.conflicts import find_conflict
from app.modules.booking.repository import BookingRepository
from app.modules.mentors.repository import MentorsRepository
from app.shared.exceptions import InvalidInputException
from app.shared.utils import ensure_utc, load_zone

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
FETCH_PADDING = timedelta(days=1)

OUTSIDE_WEEKLY_HOURS = "Outside weekly availability"
BLOCKED_BY_EXCEPTION = "Unavailable on this date"
CONFLICTING_SESSION = "Has a conflicting session"


@dataclass(frozen=True)
class CandidateEvaluation:
    """Outcome of checking one mentor against the original session time."""

    mentor_user_id: UUID
    mentor: Any
    schedule: Any
    is_available_at_original_time: bool
    reason: str | None = None


def candidate_zone(schedule: Any) -> ZoneInfo:
    try:
        return load_zone(schedule.timezone)
    except InvalidInputException:
        logger.warning("Schedule %s has unknown timezone %r, using UTC", schedule.id, schedule.timezone)
        return ZoneInfo("UTC")


def fits_weekly_pattern(
    scheduled_at: datetime,
    duration_minutes: int,
    patterns_by_day: Mapping[int, Any],
    zone: ZoneInfo,
) -> bool:
    """True when ``[start, start + duration)`` lies inside one carved weekly fragment."""
    local_start = ensure_utc(scheduled_at).astimezone(zone)
    start_minute = local_start.hour * 60 + local_start.minute
    end_minute = start_minute + duration_minutes
    if end_minute > MINUTES_PER_DAY:
        return False

    pattern = patterns_by_day.get(day_of_week(local_start.date()))
    for fragment in carve_day_blocks(usable_pattern_blocks(pattern)):
        fragment_start, fragment_end = block_bounds(fragment)
        if fragment_start <= start_minute and end_minute <= fragment_end:
            return True
    return False


def evaluate_candidate(
    scheduled_at: datetime,
    duration_minutes: int,
    schedule: Any,
    patterns: Iterable[Any],
    exceptions: Iterable[Any],
    sessions: Iterable[Any],
) -> str | None:
    """Return why a candidate cannot take the session, or ``None`` when eligible."""
    zone = candidate_zone(schedule)
    if not fits_weekly_pattern(scheduled_at, duration_minutes, index_patterns(patterns), zone):
        return OUTSIDE_WEEKLY_HOURS

    local_day = ensure_utc(scheduled_at).astimezone(zone).date()
    for exception in exceptions:
        if is_blocking_exception(exception) and exception_covers_day(exception, local_day, zone):
            return BLOCKED_BY_EXCEPTION

    start = ensure_utc(scheduled_at)
    end = start + timedelta(minutes=duration_minutes)
    if find_conflict(start, end, sessions, schedule.buffer_time_between_sessions).has_conflict:
        return CONFLICTING_SESSION
    return None


class ReplacementMentorMatcher:
    """Finds mentors able to take over a session at its original time."""

    def __init__(
        self,
        mentors_repository: MentorsRepository,
        availability_repository: AvailabilityRepository,
        booking_repository: BookingRepository,
        rng: random.Random | None = None,
    ) -> None:
        self.mentors_repository = mentors_repository
        self.availability_repository = availability_repository
        self.booking_repository = booking_repository
        self.rng = rng or random.Random()

    async def evaluate_candidates(
        self,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_mentor_ids: Collection[UUID],
    ) -> list[CandidateEvaluation]:
        candidates = await self.mentors_repository.list_replacement_candidates(exclude_mentor_ids)
        if not candidates:
            return []

        start = ensure_utc(scheduled_at)
        end = start + timedelta(minutes=duration_minutes)
        schedule_ids = [schedule.id for _, schedule in candidates]
        user_ids = [profile.user_id for profile, _ in candidates]

        patterns_by_schedule: dict[UUID, list[Any]] = defaultdict(list)
        for pattern in await self.availability_repository.list_weekly_patterns_for_schedules(schedule_ids):
            patterns_by_schedule[pattern.schedule_id].append(pattern)

        exceptions_by_schedule: dict[UUID, list[Any]] = defaultdict(list)
        for exception in await self.availability_repository.list_exceptions_for_schedules(
            schedule_ids,
            start - FETCH_PADDING,
            end + FETCH_PADDING,
        ):
            exceptions_by_schedule[exception.schedule_id].append(exception)

        sessions_by_mentor: dict[UUID, list[Any]] = defaultdict(list)
        for session in await self.booking_repository.list_sessions_in_range(
            user_ids,
            start - FETCH_PADDING,
            end + FETCH_PADDING,
            OCCUPYING_STATUSES,
        ):
            sessions_by_mentor[session.mentor_id].append(session)

        evaluations: list[CandidateEvaluation] = []
        for profile, schedule in candidates:
            reason = evaluate_candidate(
                start,
                duration_minutes,
                schedule,
                patterns_by_schedule[schedule.id],
                exceptions_by_schedule[schedule.id],
                sessions_by_mentor[profile.user_id],
            )
            evaluations.append(
                CandidateEvaluation(
                    mentor_user_id=profile.user_id,
                    mentor=profile,
                    schedule=schedule,
                    is_available_at_original_time=reason is None,
                    reason=reason,
                ),
            )
        return evaluations

    async def find_replacement_mentor(
        self,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_mentor_ids: Collection[UUID],
    ) -> UUID | None:
        """Pick one eligible mentor uniformly at random, or ``None``."""
        evaluations = await self.evaluate_candidates(scheduled_at, duration_minutes, exclude_mentor_ids)
        eligible = [item for item in evaluations if item.is_available_at_original_time]
        record_replacement_search(found=bool(eligible))
        logger.info(
            "Replacement search at %s: %s candidates, %s eligible",
            ensure_utc(scheduled_at).isoformat(),
            len(evaluations),
            len(eligible),
        )
        if not eligible:
            return None
        return self.rng.choice(eligible).mentor_user_id

    async def list_alternative_mentors(
        self,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_mentor_ids: Collection[UUID],
        fixed_time_only: bool = False,
    ) -> list[CandidateEvaluation]:
        """Candidates flagged by availability at the original time, available ones first."""
        evaluations = await self.evaluate_candidates(scheduled_at, duration_minutes, exclude_mentor_ids)
        if fixed_time_only:
            return [item for item in evaluations if item.is_available_at_original_time]
        return sorted(evaluations, key=lambda item: not item.is_available_at_original_time)
