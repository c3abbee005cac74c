"""Time block validation, merging and carving.

Time blocks are wall-clock ``HH:MM`` intervals within a single day. Internally
every comparison is done on integer minutes since midnight, and every block
produced here is written back zero-padded so that stored values also sort
lexicographically.

Intervals are half-open: ``09:00-10:00`` and ``10:00-11:00`` do not overlap,
but two touching ``AVAILABLE`` blocks are merged.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from app.core.enums import BLOCKING_TYPES, BlockTypeEnum, OverlapTypeEnum
from app.shared.exceptions import InvalidTimeBlockError

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

_TYPE_DESCRIPTIONS = {
    BlockTypeEnum.AVAILABLE: "available time",
    BlockTypeEnum.BLOCKED: "blocked time",
    BlockTypeEnum.BREAK: "break time",
    BlockTypeEnum.BUFFER: "buffer time",
}


@dataclass(frozen=True)
class TimeBlock:
    """Labeled wall-clock interval inside one day."""

    start_time: str
    end_time: str
    type: BlockTypeEnum
    max_bookings: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TimeBlock:
        """Build a block from stored JSON (camelCase) or snake_case keys."""
        start_time = data.get("startTime", data.get("start_time"))
        end_time = data.get("endTime", data.get("end_time"))
        max_bookings = data.get("maxBookings", data.get("max_bookings"))
        if not isinstance(start_time, str) or not isinstance(end_time, str):
            raise InvalidTimeBlockError(f"Time block is missing start or end time: {dict(data)}")
        try:
            block_type = BlockTypeEnum(data.get("type"))
        except ValueError as exc:
            raise InvalidTimeBlockError(f"Unknown time block type: {data.get('type')}") from exc
        return cls(
            start_time=start_time,
            end_time=end_time,
            type=block_type,
            max_bookings=int(max_bookings) if max_bookings is not None else None,
        )

    def to_mapping(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape."""
        data: dict[str, Any] = {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "type": self.type.value,
        }
        if self.max_bookings is not None:
            data["maxBookings"] = self.max_bookings
        return data


@dataclass(frozen=True)
class OverlapInfo:
    """Overlap between two blocks, with the shared sub-interval."""

    block_a: TimeBlock
    block_b: TimeBlock
    overlap_start: str
    overlap_end: str
    conflict_type: OverlapTypeEnum


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    overlaps: list[OverlapInfo] = field(default_factory=list)


@dataclass
class DayValidationErrors:
    day: int
    errors: list[str]


@dataclass
class WeeklyScheduleValidation:
    is_valid: bool
    errors: list[DayValidationErrors] = field(default_factory=list)


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise InvalidTimeBlockError(f"Invalid time format: {value}. Use HH:MM format.")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to zero-padded ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def block_bounds(block: TimeBlock) -> tuple[int, int]:
    """Return ``(start, end)`` minutes, rejecting blocks that do not end after they start."""
    start = time_to_minutes(block.start_time)
    end = time_to_minutes(block.end_time)
    if end <= start:
        raise InvalidTimeBlockError("Invalid time block: end time must be after start time")
    return start, end


def coerce_time_blocks(raw_blocks: Iterable[TimeBlock | Mapping[str, Any]] | None) -> list[TimeBlock]:
    """Turn stored block data into ``TimeBlock`` objects, skipping unreadable entries."""
    blocks: list[TimeBlock] = []
    for raw in raw_blocks or ():
        if isinstance(raw, TimeBlock):
            blocks.append(raw)
            continue
        try:
            blocks.append(TimeBlock.from_mapping(raw))
        except (InvalidTimeBlockError, TypeError, ValueError) as exc:
            logger.warning("Skipping unreadable stored time block %r: %s", raw, exc)
    return blocks


def _normalized(blocks: Iterable[TimeBlock]) -> Iterator[tuple[int, int, TimeBlock]]:
    """Yield parsed, zero-padded blocks; malformed ones are logged and dropped."""
    for block in blocks:
        try:
            start, end = block_bounds(block)
        except InvalidTimeBlockError as exc:
            logger.warning("Skipping malformed time block %s: %s", block, exc.message)
            continue
        yield start, end, replace(
            block,
            start_time=minutes_to_time(start),
            end_time=minutes_to_time(end),
        )


def check_overlap(block_a: TimeBlock, block_b: TimeBlock) -> OverlapInfo | None:
    """Return overlap details for two blocks, or ``None`` when they do not overlap."""
    start_a, end_a = block_bounds(block_a)
    start_b, end_b = block_bounds(block_b)

    if start_a >= end_b or start_b >= end_a:
        return None

    if start_a == start_b and end_a == end_b:
        conflict_type = OverlapTypeEnum.FULL
    elif start_a <= start_b and end_a >= end_b:
        conflict_type = OverlapTypeEnum.CONTAINS
    elif start_b <= start_a and end_b >= end_a:
        conflict_type = OverlapTypeEnum.CONTAINED
    else:
        conflict_type = OverlapTypeEnum.PARTIAL

    return OverlapInfo(
        block_a=block_a,
        block_b=block_b,
        overlap_start=minutes_to_time(max(start_a, start_b)),
        overlap_end=minutes_to_time(min(end_a, end_b)),
        conflict_type=conflict_type,
    )


def describe_conflict(overlap: OverlapInfo) -> str:
    """Human-readable message for an overlap between a new and an existing block."""
    new_block, existing = overlap.block_a, overlap.block_b
    new_type = _TYPE_DESCRIPTIONS[new_block.type]
    existing_type = _TYPE_DESCRIPTIONS[existing.type]
    new_range = f"{new_block.start_time}-{new_block.end_time}"
    existing_range = f"{existing.start_time}-{existing.end_time}"

    if overlap.conflict_type == OverlapTypeEnum.FULL:
        return f"This exact time slot ({new_range}) is already set as {existing_type}"
    if overlap.conflict_type == OverlapTypeEnum.CONTAINS:
        return (
            f"This {new_type} block ({new_range}) completely overlaps with existing "
            f"{existing_type} ({existing_range})"
        )
    if overlap.conflict_type == OverlapTypeEnum.CONTAINED:
        return f"This {new_type} block ({new_range}) is within an existing {existing_type} block ({existing_range})"
    return (
        f"This {new_type} block ({new_range}) partially overlaps with {existing_type} "
        f"({existing_range}) from {overlap.overlap_start} to {overlap.overlap_end}"
    )


def validate_time_block(
    new_block: TimeBlock,
    existing_blocks: Sequence[TimeBlock],
    allowed_overlap_types: Iterable[BlockTypeEnum] = (),
) -> ValidationResult:
    """Validate a block's format and its overlaps with the blocks already in the day.

    An overlap is acceptable only when both blocks' types are listed in
    ``allowed_overlap_types``. Malformed existing blocks are logged and skipped.
    """
    allowed = frozenset(allowed_overlap_types)
    errors: list[str] = []
    overlaps: list[OverlapInfo] = []

    if not TIME_PATTERN.match(new_block.start_time):
        errors.append(f"Invalid start time format: {new_block.start_time}. Use HH:MM format.")
    if not TIME_PATTERN.match(new_block.end_time):
        errors.append(f"Invalid end time format: {new_block.end_time}. Use HH:MM format.")
    if errors:
        return ValidationResult(is_valid=False, errors=errors)

    if time_to_minutes(new_block.end_time) <= time_to_minutes(new_block.start_time):
        errors.append(
            f"End time ({new_block.end_time}) must be after start time ({new_block.start_time})",
        )
        return ValidationResult(is_valid=False, errors=errors)

    for existing in existing_blocks:
        try:
            overlap = check_overlap(new_block, existing)
        except InvalidTimeBlockError as exc:
            logger.warning("Invalid existing block detected %s: %s", existing, exc.message)
            continue
        if overlap is None:
            continue
        if new_block.type in allowed and existing.type in allowed:
            continue
        overlaps.append(overlap)
        errors.append(describe_conflict(overlap))

    return ValidationResult(is_valid=not errors, errors=errors, overlaps=overlaps)


def validate_weekly_schedule(patterns: Iterable[Any]) -> WeeklyScheduleValidation:
    """Validate every enabled day's blocks against the other blocks of that day."""
    day_errors: list[DayValidationErrors] = []
    for pattern in patterns:
        blocks = coerce_time_blocks(pattern.time_blocks)
        if not pattern.is_enabled or not blocks:
            continue
        errors: list[str] = []
        for index, block in enumerate(blocks):
            others = blocks[:index] + blocks[index + 1 :]
            errors.extend(validate_time_block(block, others).errors)
        if errors:
            day_errors.append(DayValidationErrors(day=pattern.day_of_week, errors=errors))
    return WeeklyScheduleValidation(is_valid=not day_errors, errors=day_errors)


def merge_and_sort(blocks: Iterable[TimeBlock]) -> list[TimeBlock]:
    """Sort blocks by start and merge touching or overlapping ``AVAILABLE`` runs.

    Only ``AVAILABLE`` blocks sharing the same ``max_bookings`` merge; other
    types stay interspersed in start order.
    """
    ordered = sorted(_normalized(blocks), key=lambda item: item[0])
    merged: list[tuple[int, int, TimeBlock]] = []
    for start, end, block in ordered:
        if merged:
            last_start, last_end, last = merged[-1]
            if (
                last.type == BlockTypeEnum.AVAILABLE
                and block.type == BlockTypeEnum.AVAILABLE
                and last.max_bookings == block.max_bookings
                and start <= last_end
            ):
                if end > last_end:
                    merged[-1] = (last_start, end, replace(last, end_time=block.end_time))
                continue
        merged.append((start, end, block))
    return [block for _, _, block in merged]


def apply_blocked_times(
    available_blocks: Iterable[TimeBlock],
    blocked_blocks: Iterable[TimeBlock],
) -> list[TimeBlock]:
    """Carve ``BLOCKED`` and ``BREAK`` intervals out of ``AVAILABLE`` blocks.

    ``BUFFER`` blocks are ignored here; buffer is spacing applied when slots
    are generated. Returns merged, sorted ``AVAILABLE`` fragments.
    """
    blockers = [
        (start, end)
        for start, end, block in _normalized(blocked_blocks)
        if block.type in BLOCKING_TYPES
    ]

    fragments_out: list[TimeBlock] = []
    for start, end, block in _normalized(available_blocks):
        if block.type != BlockTypeEnum.AVAILABLE:
            continue

        fragments = [(start, end)]
        for blocked_start, blocked_end in blockers:
            carved: list[tuple[int, int]] = []
            for fragment_start, fragment_end in fragments:
                if fragment_end <= blocked_start or fragment_start >= blocked_end:
                    carved.append((fragment_start, fragment_end))
                    continue
                if fragment_start < blocked_start:
                    carved.append((fragment_start, blocked_start))
                if fragment_end > blocked_end:
                    carved.append((blocked_end, fragment_end))
            fragments = carved

        fragments_out.extend(
            TimeBlock(
                start_time=minutes_to_time(fragment_start),
                end_time=minutes_to_time(fragment_end),
                type=BlockTypeEnum.AVAILABLE,
                max_bookings=block.max_bookings,
            )
            for fragment_start, fragment_end in fragments
            if fragment_end > fragment_start
        )

    return merge_and_sort(fragments_out)


def total_minutes(blocks: Iterable[TimeBlock]) -> int:
    """Sum of block lengths, ignoring malformed blocks."""
    return sum(end - start for start, end, _ in _normalized(blocks))
