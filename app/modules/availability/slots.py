"""Discrete slot generation over a date range.

Slots are walked with a contiguous stride: the next candidate starts at the
previous slot's end plus the mentor's buffer, and never earlier than the start
of the fragment it falls in. The stride carries across fragments and days, so
consecutive slots are always at least ``buffer`` apart.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from app.core.enums import SlotModeEnum
from app.modules.availability.resolver import (
    blocked_day_reasons,
    day_of_week,
    index_patterns,
    local_date,
    resolve_day,
    usable_pattern_blocks,
)
from app.modules.availability.time_blocks import block_bounds
from app.modules.booking.conflicts import find_conflict
from app.shared.utils import ensure_utc

ALREADY_BOOKED = "Already booked"
NO_WORKING_DAYS_MESSAGE = "Mentor does not work on the requested days"
NO_SLOTS_MESSAGE = "No available slots in this range"


@dataclass(frozen=True)
class Slot:
    """Candidate booking interval; recomputed on every query."""

    start_time: datetime
    end_time: datetime
    available: bool = True
    reason: str | None = None


@dataclass(frozen=True)
class SlotRules:
    duration_minutes: int
    buffer_minutes: int
    earliest_start: datetime
    latest_start: datetime


def iter_days(first: date, last: date) -> Iterator[date]:
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def wall_clock_to_utc(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    """Instant of ``HH:MM`` (given as minutes) on ``day`` in ``zone``."""
    local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=zone)
    return local.astimezone(UTC)


def generate_slots(
    *,
    range_start: datetime,
    range_end: datetime,
    zone: ZoneInfo,
    patterns: Iterable[Any],
    exceptions: Iterable[Any],
    sessions: Iterable[Any],
    rules: SlotRules,
    mode: SlotModeEnum = SlotModeEnum.DETAILED,
) -> list[Slot]:
    """Enumerate slots for every local day touched by ``[range_start, range_end]``.

    Slots starting outside the booking window are dropped. Slots that collide
    with a buffered session are kept as unavailable in detailed mode and
    dropped in available-only mode. Times are returned in UTC.
    """
    patterns_by_day = index_patterns(patterns)
    exceptions = list(exceptions)
    sessions = list(sessions)
    duration = timedelta(minutes=rules.duration_minutes)
    buffer = timedelta(minutes=rules.buffer_minutes)

    slots: list[Slot] = []
    next_start: datetime | None = None

    first_day = local_date(range_start, zone)
    last_day = local_date(range_end, zone)
    for day in iter_days(first_day, last_day):
        for fragment in resolve_day(day, patterns_by_day, exceptions, zone).fragments:
            fragment_start, fragment_end = block_bounds(fragment)
            window_start = wall_clock_to_utc(day, fragment_start, zone)
            window_end = wall_clock_to_utc(day, fragment_end, zone)

            # Stride carries over, so a blocker shorter than the buffer delays the next fragment's first slot.
            cursor = window_start if next_start is None else max(window_start, next_start)
            while cursor + duration <= window_end:
                slot_end = cursor + duration
                next_start = slot_end + buffer

                if rules.earliest_start <= cursor <= rules.latest_start:
                    conflict = find_conflict(cursor, slot_end, sessions, rules.buffer_minutes)
                    if not conflict.has_conflict:
                        slots.append(Slot(start_time=cursor, end_time=slot_end))
                    elif mode == SlotModeEnum.DETAILED:
                        slots.append(
                            Slot(start_time=cursor, end_time=slot_end, available=False, reason=ALREADY_BOOKED),
                        )

                cursor = next_start

    slots.sort(key=lambda slot: slot.start_time)
    return slots


def to_zone(slots: Iterable[Slot], zone: ZoneInfo) -> list[Slot]:
    """Express slot instants in another zone."""
    return [
        replace(slot, start_time=slot.start_time.astimezone(zone), end_time=slot.end_time.astimezone(zone))
        for slot in slots
    ]


def booking_window(now: datetime, min_advance_hours: int, max_advance_days: int) -> tuple[datetime, datetime]:
    """Earliest and latest bookable start relative to ``now``."""
    now = ensure_utc(now)
    return now + timedelta(hours=min_advance_hours), now + timedelta(days=max_advance_days)


def explain_empty_range(
    *,
    range_start: datetime,
    range_end: datetime,
    zone: ZoneInfo,
    patterns: Iterable[Any],
    exceptions: Iterable[Any],
) -> str:
    """Human-readable reason why a range produced no slots."""
    patterns_by_day = index_patterns(patterns)
    days = list(iter_days(local_date(range_start, zone), local_date(range_end, zone)))
    if not any(usable_pattern_blocks(patterns_by_day.get(day_of_week(day))) for day in days):
        return NO_WORKING_DAYS_MESSAGE
    reasons = blocked_day_reasons(days, patterns_by_day, exceptions, zone)
    if reasons:
        return f"Mentor is unavailable: {'; '.join(reasons)}"
    return NO_SLOTS_MESSAGE
