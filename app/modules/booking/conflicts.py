"""Buffer-aware overlap checks between a candidate interval and booked sessions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from app.core.enums import OCCUPYING_STATUSES
from app.shared.utils import ensure_utc


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    session: Any | None = None


def occupies_calendar(session: Any) -> bool:
    """Only scheduled and in-progress sessions block a mentor's time."""
    return session.status in OCCUPYING_STATUSES


def buffered_window(session: Any, buffer_minutes: int) -> tuple[datetime, datetime]:
    """Session interval widened by ``buffer_minutes`` on both sides."""
    start = ensure_utc(session.scheduled_at)
    buffer = timedelta(minutes=buffer_minutes)
    return start - buffer, start + timedelta(minutes=session.duration_minutes) + buffer


def find_conflict(
    start: datetime,
    end: datetime,
    sessions: Iterable[Any],
    buffer_minutes: int,
) -> ConflictResult:
    """Return the first occupying session whose buffered window overlaps ``[start, end)``."""
    start = ensure_utc(start)
    end = ensure_utc(end)
    for session in sessions:
        if not occupies_calendar(session):
            continue
        buffered_start, buffered_end = buffered_window(session, buffer_minutes)
        if start < buffered_end and end > buffered_start:
            return ConflictResult(has_conflict=True, session=session)
    return ConflictResult(has_conflict=False)
