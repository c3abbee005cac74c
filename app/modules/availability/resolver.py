"""Resolve a calendar day's effective availability from weekly pattern and exceptions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from app.core.enums import BLOCKING_TYPES, BlockTypeEnum
from app.modules.availability.time_blocks import TimeBlock, apply_blocked_times, coerce_time_blocks
from app.shared.utils import ensure_utc

logger = logging.getLogger(__name__)

ALL_DAYS = tuple(range(7))


@dataclass(frozen=True)
class DayAvailability:
    """Effective ``AVAILABLE`` fragments for one local calendar day."""

    day: date
    fragments: list[TimeBlock] = field(default_factory=list)
    reason: str | None = None


def day_of_week(day: date) -> int:
    """Day index with 0 = Sunday .. 6 = Saturday."""
    return day.isoweekday() % 7


def local_date(moment: datetime, zone: ZoneInfo) -> date:
    return ensure_utc(moment).astimezone(zone).date()


def index_patterns(patterns: Iterable[Any]) -> dict[int, Any]:
    """Map day-of-week to its pattern."""
    return {pattern.day_of_week: pattern for pattern in patterns}


def usable_pattern_blocks(pattern: Any | None) -> list[TimeBlock]:
    """Blocks of an enabled pattern; empty for a missing or disabled day."""
    if pattern is None or not pattern.is_enabled:
        return []
    return coerce_time_blocks(pattern.time_blocks)


def disabled_days(patterns: Iterable[Any]) -> list[int]:
    """Weekdays that can never yield availability."""
    by_day = index_patterns(patterns)
    return [day for day in ALL_DAYS if not usable_pattern_blocks(by_day.get(day))]


def carve_day_blocks(
    blocks: Iterable[TimeBlock],
    extra_blockers: Iterable[TimeBlock] = (),
) -> list[TimeBlock]:
    """Split a day's blocks into available and blocking sets and carve."""
    blocks = list(blocks)
    available = [block for block in blocks if block.type == BlockTypeEnum.AVAILABLE]
    blockers = [block for block in blocks if block.type != BlockTypeEnum.AVAILABLE]
    blockers.extend(extra_blockers)
    return apply_blocked_times(available, blockers)


def exception_type(exception: Any) -> BlockTypeEnum | None:
    try:
        return BlockTypeEnum(exception.type)
    except ValueError:
        logger.warning("Ignoring exception %s with unknown type %r", getattr(exception, "id", None), exception.type)
        return None


def exception_covers_day(exception: Any, day: date, zone: ZoneInfo) -> bool:
    """True when ``day`` falls between the exception's local start and end dates."""
    return local_date(exception.start_date, zone) <= day <= local_date(exception.end_date, zone)


def is_blocking_exception(exception: Any) -> bool:
    return exception_type(exception) in BLOCKING_TYPES


def resolve_day(
    day: date,
    patterns_by_day: Mapping[int, Any],
    exceptions: Iterable[Any],
    zone: ZoneInfo,
) -> DayAvailability:
    """Compute the available fragments for ``day`` in the schedule's zone.

    A missing, disabled or empty weekly pattern short-circuits to nothing.
    A full-day blocking exception, or a partial one without its own blocks,
    blocks the whole day. A partial blocking exception layers its blocks on
    top of the pattern's own blockers. An ``AVAILABLE`` exception with blocks
    replaces the pattern's blocks for that day.
    """
    blocks = usable_pattern_blocks(patterns_by_day.get(day_of_week(day)))
    if not blocks:
        return DayAvailability(day=day)

    extra_blockers: list[TimeBlock] = []
    for exception in exceptions:
        if not exception_covers_day(exception, day, zone):
            continue
        kind = exception_type(exception)
        exception_blocks = coerce_time_blocks(exception.time_blocks)

        if kind in BLOCKING_TYPES:
            if exception.is_full_day or not exception_blocks:
                return DayAvailability(day=day, reason=exception.reason or "Unavailable")
            extra_blockers.extend(replace(block, type=kind) for block in exception_blocks)
        elif kind == BlockTypeEnum.AVAILABLE and exception_blocks:
            blocks = exception_blocks

    return DayAvailability(day=day, fragments=carve_day_blocks(blocks, extra_blockers))


def blocked_day_reasons(
    days: Iterable[date],
    patterns_by_day: Mapping[int, Any],
    exceptions: Iterable[Any],
    zone: ZoneInfo,
) -> list[str]:
    """Distinct exception reasons when every working day in ``days`` is blocked.

    Returns an empty list as soon as one working day is not fully blocked by
    an exception.
    """
    exceptions = list(exceptions)
    reasons: list[str] = []
    for day in days:
        if not usable_pattern_blocks(patterns_by_day.get(day_of_week(day))):
            continue
        resolved = resolve_day(day, patterns_by_day, exceptions, zone)
        if resolved.reason is None:
            return []
        if resolved.reason not in reasons:
            reasons.append(resolved.reason)
    return reasons
