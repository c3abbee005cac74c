from __future__ import annotations

from datetime import UTC, date, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from app.core.enums import BlockTypeEnum
from app.modules.availability.resolver import day_of_week, disabled_days, index_patterns, resolve_day
from tests.fakes import FakeException, FakePattern, available, blocked

UTC_ZONE = ZoneInfo("UTC")
MONDAY = date(2026, 3, 9)
SCHEDULE_ID = uuid4()


def patterns_for(*patterns: FakePattern) -> dict:
    return index_patterns(patterns)


def monday(*blocks: dict, enabled: bool = True) -> FakePattern:
    return FakePattern(schedule_id=SCHEDULE_ID, day_of_week=1, time_blocks=list(blocks), is_enabled=enabled)


def exception_on(day: date, **values) -> FakeException:
    return FakeException(
        schedule_id=SCHEDULE_ID,
        start_date=datetime(day.year, day.month, day.day, tzinfo=UTC),
        end_date=datetime(day.year, day.month, day.day, 23, 59, tzinfo=UTC),
        **values,
    )


def spans(result) -> list[tuple[str, str]]:
    return [(item.start_time, item.end_time) for item in result.fragments]


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(date(2026, 3, 8)) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2026, 3, 14)) == 6


def test_missing_pattern_yields_nothing() -> None:
    result = resolve_day(MONDAY, {}, [], UTC_ZONE)

    assert result.fragments == []


def test_disabled_day_yields_nothing_even_with_blocks() -> None:
    patterns = patterns_for(monday(available("09:00", "17:00"), enabled=False))

    assert resolve_day(MONDAY, patterns, [], UTC_ZONE).fragments == []


def test_inline_breaks_are_carved_from_pattern() -> None:
    patterns = patterns_for(
        monday(available("09:00", "17:00"), blocked("12:00", "13:00", "BREAK"), blocked("15:00", "15:15", "BUFFER")),
    )

    result = resolve_day(MONDAY, patterns, [], UTC_ZONE)

    assert spans(result) == [("09:00", "12:00"), ("13:00", "17:00")]


def test_full_day_blocking_exception_wins_over_pattern() -> None:
    patterns = patterns_for(monday(available("09:00", "17:00")))
    exceptions = [exception_on(MONDAY, reason="Conference")]

    result = resolve_day(MONDAY, patterns, exceptions, UTC_ZONE)

    assert result.fragments == []
    assert result.reason == "Conference"


def test_buffer_exception_does_not_block() -> None:
    patterns = patterns_for(monday(available("09:00", "12:00")))
    exceptions = [exception_on(MONDAY, type=BlockTypeEnum.BUFFER)]

    assert spans(resolve_day(MONDAY, patterns, exceptions, UTC_ZONE)) == [("09:00", "12:00")]


def test_partial_exception_blocks_are_layered_on_pattern() -> None:
    patterns = patterns_for(monday(available("09:00", "17:00"), blocked("12:00", "13:00", "BREAK")))
    exceptions = [
        exception_on(
            MONDAY,
            type=BlockTypeEnum.BLOCKED,
            is_full_day=False,
            time_blocks=[available("09:00", "10:00")],
        ),
    ]

    result = resolve_day(MONDAY, patterns, exceptions, UTC_ZONE)

    assert spans(result) == [("10:00", "12:00"), ("13:00", "17:00")]


def test_partial_exception_without_blocks_blocks_whole_day() -> None:
    patterns = patterns_for(monday(available("09:00", "17:00")))
    exceptions = [exception_on(MONDAY, type=BlockTypeEnum.BREAK, is_full_day=False, time_blocks=None)]

    result = resolve_day(MONDAY, patterns, exceptions, UTC_ZONE)

    assert result.fragments == []
    assert result.reason == "Unavailable"


def test_available_exception_replaces_pattern_blocks() -> None:
    patterns = patterns_for(monday(available("09:00", "12:00")))
    exceptions = [
        exception_on(
            MONDAY,
            type=BlockTypeEnum.AVAILABLE,
            is_full_day=False,
            time_blocks=[available("14:00", "18:00"), blocked("16:00", "16:30")],
        ),
    ]

    assert spans(resolve_day(MONDAY, patterns, exceptions, UTC_ZONE)) == [("14:00", "16:00"), ("16:30", "18:00")]


def test_exception_coverage_uses_schedule_local_dates() -> None:
    zone = ZoneInfo("America/New_York")
    patterns = patterns_for(monday(available("09:00", "12:00")))
    # 02:00-03:00 UTC on Monday is still Sunday evening in New York.
    exceptions = [
        FakeException(
            schedule_id=SCHEDULE_ID,
            start_date=datetime(2026, 3, 9, 2, tzinfo=UTC),
            end_date=datetime(2026, 3, 9, 3, tzinfo=UTC),
        ),
    ]

    assert spans(resolve_day(MONDAY, patterns, exceptions, zone)) == [("09:00", "12:00")]
    assert resolve_day(MONDAY, patterns, exceptions, UTC_ZONE).fragments == []


def test_malformed_stored_blocks_are_skipped() -> None:
    patterns = patterns_for(
        monday(available("09:00", "12:00"), {"startTime": "25:00", "endTime": "26:00", "type": "AVAILABLE"}),
    )

    assert spans(resolve_day(MONDAY, patterns, [], UTC_ZONE)) == [("09:00", "12:00")]


def test_disabled_days_lists_weekdays_without_usable_pattern() -> None:
    patterns = [
        monday(available("09:00", "12:00")),
        FakePattern(
            schedule_id=SCHEDULE_ID,
            day_of_week=2,
            time_blocks=[available("09:00", "12:00")],
            is_enabled=False,
        ),
        FakePattern(schedule_id=SCHEDULE_ID, day_of_week=3, time_blocks=[]),
        FakePattern(schedule_id=SCHEDULE_ID, day_of_week=4, time_blocks=[available("09:00", "12:00")]),
    ]

    assert disabled_days(patterns) == [0, 2, 3, 5, 6]
