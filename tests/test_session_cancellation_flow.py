from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

import app.modules.availability.service as availability_service_module
import app.modules.booking.service as booking_service_module
from app.core.enums import CancelledByEnum, ReassignmentStatusEnum, RoleEnum, SessionStatusEnum
from app.modules.availability.service import AvailabilityService
from app.modules.booking.matching import ReplacementMentorMatcher
from app.modules.booking.schemas import SessionCancelRequest, SessionCreate
from app.modules.booking.service import BookingService
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    UnauthorizedException,
)
from tests.fakes import (
    FakeAuditRepository,
    FakeAvailabilityRepository,
    FakeBookingRepository,
    FakeException,
    FakeMentorsRepository,
    FakeSession,
    FakeStore,
    available,
    blocked,
    make_user,
)

FIXED_NOW = datetime(2026, 3, 1, tzinfo=UTC)
# Monday
SESSION_START = datetime(2026, 3, 9, 10, tzinfo=UTC)
WORKDAY = {1: [available("09:00", "17:00"), blocked("12:00", "13:00", "BREAK")]}


class PickFirst:
    def choice(self, items):
        return items[0]


def make_service(
    store: FakeStore,
) -> tuple[BookingService, FakeAvailabilityRepository, FakeAuditRepository]:
    mentors_repo = FakeMentorsRepository(store)
    availability_repo = FakeAvailabilityRepository(store)
    booking_repo = FakeBookingRepository(store)
    audit_repo = FakeAuditRepository()
    service = BookingService(
        booking_repository=booking_repo,
        availability_repository=availability_repo,
        availability_service=AvailabilityService(availability_repo, mentors_repo, booking_repo),
        matcher=ReplacementMentorMatcher(mentors_repo, availability_repo, booking_repo, rng=PickFirst()),
        audit_repository=audit_repo,
    )
    return service, availability_repo, audit_repo


def freeze(monkeypatch: pytest.MonkeyPatch, now: datetime = FIXED_NOW) -> None:
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: now)
    monkeypatch.setattr(availability_service_module, "utc_now", lambda: now)


def add_session(store: FakeStore, mentor_user_id, mentee_user_id, **values) -> FakeSession:
    booking = FakeSession(
        mentor_id=mentor_user_id,
        mentee_id=mentee_user_id,
        scheduled_at=SESSION_START,
        **values,
    )
    store.sessions.append(booking)
    return booking


def event_types(audit_repo: FakeAuditRepository) -> list[str]:
    return [event["event_type"] for event in audit_repo.events]


@pytest.mark.asyncio
async def test_mentee_books_available_slot_under_schedule_lock(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    service, availability_repo, audit_repo = make_service(store)

    booking = await service.book_session(
        SessionCreate(mentor_id=mentor.user_id, title="Career chat", scheduled_at=datetime(2026, 3, 9, 9, tzinfo=UTC)),
        mentee,
    )

    assert booking.mentor_id == mentor.user_id
    assert booking.mentee_id == mentee.id
    assert booking.duration_minutes == 60
    assert booking.status == SessionStatusEnum.SCHEDULED
    assert availability_repo.locked_user_ids == [mentor.user_id]
    assert event_types(audit_repo) == ["session.booked"]
    assert audit_repo.logs[0]["action"] == "session.booked"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "scheduled_at",
    [
        datetime(2026, 3, 9, 9, 30, tzinfo=UTC),
        datetime(2026, 3, 9, 12, tzinfo=UTC),
        datetime(2026, 3, 10, 9, tzinfo=UTC),
    ],
)
async def test_booking_outside_generated_slots_is_rejected(
    monkeypatch: pytest.MonkeyPatch,
    scheduled_at: datetime,
) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    service, _, audit_repo = make_service(store)

    with pytest.raises(ConflictException):
        await service.book_session(
            SessionCreate(mentor_id=mentor.user_id, title="Review", scheduled_at=scheduled_at),
            make_user(RoleEnum.MENTEE),
        )
    assert audit_repo.events == []


@pytest.mark.asyncio
async def test_booking_into_buffer_of_existing_session_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    store.sessions.append(
        FakeSession(mentor_id=mentor.user_id, mentee_id=uuid4(), scheduled_at=SESSION_START),
    )
    service, _, _ = make_service(store)

    with pytest.raises(ConflictException):
        await service.book_session(
            SessionCreate(mentor_id=mentor.user_id, title="Review", scheduled_at=datetime(2026, 3, 9, 9, tzinfo=UTC)),
            make_user(RoleEnum.MENTEE),
        )


@pytest.mark.asyncio
async def test_booking_on_blocked_day_reports_exception_reason(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, schedule = store.add_mentor(patterns=WORKDAY)
    store.exceptions.append(
        FakeException(
            schedule_id=schedule.id,
            start_date=datetime(2026, 3, 9, tzinfo=UTC),
            end_date=datetime(2026, 3, 9, 23, 59, tzinfo=UTC),
            reason="Public holiday",
        ),
    )
    service, _, audit_repo = make_service(store)

    with pytest.raises(ConflictException, match="Public holiday"):
        await service.book_session(
            SessionCreate(mentor_id=mentor.user_id, title="Review", scheduled_at=SESSION_START),
            make_user(RoleEnum.MENTEE),
        )
    assert audit_repo.events == []


@pytest.mark.asyncio
async def test_only_mentees_can_book(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    service, _, _ = make_service(store)

    with pytest.raises(UnauthorizedException):
        await service.book_session(
            SessionCreate(mentor_id=mentor.user_id, title="Review", scheduled_at=SESSION_START),
            make_user(RoleEnum.MENTOR),
        )


@pytest.mark.asyncio
async def test_booking_inactive_mentor_fails_with_message(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY, is_active=False)
    service, _, _ = make_service(store)

    with pytest.raises(BusinessRuleException, match="currently unavailable"):
        await service.book_session(
            SessionCreate(mentor_id=mentor.user_id, title="Review", scheduled_at=SESSION_START),
            make_user(RoleEnum.MENTEE),
        )


@pytest.mark.asyncio
async def test_mentee_cancellation_cancels_outright(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, mentor.user_id, mentee.id)
    service, _, audit_repo = make_service(store)

    cancelled = await service.cancel_session(booking.id, SessionCancelRequest(reason="Sick"), mentee)

    assert cancelled.status == SessionStatusEnum.CANCELLED
    assert cancelled.cancelled_by == CancelledByEnum.MENTEE
    assert cancelled.cancellation_reason == "Sick"
    assert cancelled.reassignment_status is None
    assert event_types(audit_repo) == ["session.cancelled"]


@pytest.mark.asyncio
async def test_cancellation_inside_cutoff_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch, SESSION_START - timedelta(hours=1))
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, mentor.user_id, mentee.id)
    service, _, _ = make_service(store)

    with pytest.raises(BusinessRuleException):
        await service.cancel_session(booking.id, SessionCancelRequest(), make_user(RoleEnum.MENTOR, mentor.user_id))
    assert booking.status == SessionStatusEnum.SCHEDULED


@pytest.mark.asyncio
async def test_outsider_cannot_cancel(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    booking = add_session(store, mentor.user_id, uuid4())
    service, _, _ = make_service(store)

    with pytest.raises(UnauthorizedException):
        await service.cancel_session(booking.id, SessionCancelRequest(), make_user(RoleEnum.MENTEE))


@pytest.mark.asyncio
async def test_cancelled_session_cannot_be_cancelled_again(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, mentor.user_id, mentee.id, status=SessionStatusEnum.CANCELLED)
    service, _, _ = make_service(store)

    with pytest.raises(ConflictException):
        await service.cancel_session(booking.id, SessionCancelRequest(), mentee)


@pytest.mark.asyncio
async def test_mentor_cancellation_reassigns_to_free_mentor(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    original, _ = store.add_mentor(patterns=WORKDAY)
    replacement, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, original.user_id, mentee.id)
    service, _, audit_repo = make_service(store)

    result = await service.cancel_session(
        booking.id,
        SessionCancelRequest(reason="Conflict"),
        make_user(RoleEnum.MENTOR, original.user_id),
    )

    assert result.status == SessionStatusEnum.SCHEDULED
    assert result.mentor_id == replacement.user_id
    assert result.reassigned_from_mentor_id == original.user_id
    assert result.was_reassigned is True
    assert result.reassigned_at == FIXED_NOW
    assert result.reassignment_status == ReassignmentStatusEnum.PENDING_ACCEPTANCE
    assert result.cancelled_by == CancelledByEnum.MENTOR
    assert result.cancelled_mentor_ids == [str(original.user_id)]
    assert event_types(audit_repo) == ["session.reassigned"]
    payload = audit_repo.events[0]["payload"]
    assert payload["previous_mentor_id"] == str(original.user_id)
    assert set(payload["recipients"]) == {str(mentee.id), str(replacement.user_id)}


@pytest.mark.asyncio
async def test_mentor_cancellation_without_replacement_awaits_mentee(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    original, _ = store.add_mentor(patterns=WORKDAY)
    store.add_mentor(patterns={2: [available("09:00", "17:00")]})
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, original.user_id, mentee.id)
    service, _, audit_repo = make_service(store)

    mentor_actor = make_user(RoleEnum.MENTOR, original.user_id)

    result = await service.cancel_session(booking.id, SessionCancelRequest(), mentor_actor)

    assert result.status == SessionStatusEnum.CANCELLED
    assert result.mentor_id == original.user_id
    assert result.reassignment_status == ReassignmentStatusEnum.AWAITING_MENTEE_ACTION
    assert event_types(audit_repo) == ["session.replacement_not_found"]


@pytest.mark.asyncio
async def test_accepting_reassignment_keeps_new_mentor(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(
        store,
        mentor.user_id,
        mentee.id,
        reassignment_status=ReassignmentStatusEnum.PENDING_ACCEPTANCE,
    )
    service, _, audit_repo = make_service(store)

    accepted = await service.accept_reassignment(booking.id, mentee)

    assert accepted.reassignment_status == ReassignmentStatusEnum.ACCEPTED
    assert accepted.status == SessionStatusEnum.SCHEDULED
    assert event_types(audit_repo) == ["session.reassignment_accepted"]


@pytest.mark.asyncio
async def test_rejecting_reassignment_refunds_in_full(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(
        store,
        mentor.user_id,
        mentee.id,
        reassignment_status=ReassignmentStatusEnum.PENDING_ACCEPTANCE,
    )
    service, _, _ = make_service(store)

    rejected = await service.reject_reassignment(booking.id, mentee)

    assert rejected.reassignment_status == ReassignmentStatusEnum.REJECTED
    assert rejected.status == SessionStatusEnum.CANCELLED
    assert rejected.refund_percentage == 100


@pytest.mark.asyncio
async def test_reassignment_actions_require_matching_state(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(store, mentor.user_id, mentee.id)
    service, _, _ = make_service(store)

    with pytest.raises(ConflictException):
        await service.accept_reassignment(booking.id, mentee)
    with pytest.raises(ConflictException):
        await service.cancel_for_refund(booking.id, mentee)
    with pytest.raises(UnauthorizedException):
        await service.reject_reassignment(booking.id, make_user(RoleEnum.MENTEE))


@pytest.mark.asyncio
async def test_mentee_selects_alternative_mentor(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    original, _ = store.add_mentor(patterns=WORKDAY)
    busy, _ = store.add_mentor(patterns=WORKDAY)
    alternative, _ = store.add_mentor(patterns=WORKDAY)
    store.sessions.append(FakeSession(mentor_id=busy.user_id, mentee_id=uuid4(), scheduled_at=SESSION_START))
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(
        store,
        original.user_id,
        mentee.id,
        status=SessionStatusEnum.CANCELLED,
        reassignment_status=ReassignmentStatusEnum.AWAITING_MENTEE_ACTION,
        cancelled_mentor_ids=[str(original.user_id)],
    )
    service, availability_repo, audit_repo = make_service(store)

    options = await service.list_alternative_mentors(booking.id, fixed_time=False, actor=mentee)
    assert [item.mentor_user_id for item in options] == [alternative.user_id, busy.user_id]

    with pytest.raises(ConflictException):
        await service.select_alternative_mentor(booking.id, busy.user_id, mentee)
    with pytest.raises(BusinessRuleException):
        await service.select_alternative_mentor(booking.id, original.user_id, mentee)

    selected = await service.select_alternative_mentor(booking.id, alternative.user_id, mentee)

    assert selected.status == SessionStatusEnum.SCHEDULED
    assert selected.mentor_id == alternative.user_id
    assert selected.reassigned_from_mentor_id == original.user_id
    assert selected.reassignment_status == ReassignmentStatusEnum.MENTEE_SELECTED
    assert alternative.user_id in availability_repo.locked_user_ids
    assert event_types(audit_repo) == ["session.mentor_selected"]


@pytest.mark.asyncio
async def test_selecting_alternative_after_start_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch, SESSION_START + timedelta(minutes=5))
    store = FakeStore()
    original, _ = store.add_mentor(patterns=WORKDAY)
    alternative, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(
        store,
        original.user_id,
        mentee.id,
        status=SessionStatusEnum.CANCELLED,
        reassignment_status=ReassignmentStatusEnum.AWAITING_MENTEE_ACTION,
    )
    service, _, _ = make_service(store)

    with pytest.raises(BusinessRuleException):
        await service.select_alternative_mentor(booking.id, alternative.user_id, mentee)


@pytest.mark.asyncio
async def test_cancel_for_refund_closes_session(monkeypatch: pytest.MonkeyPatch) -> None:
    freeze(monkeypatch)
    store = FakeStore()
    mentor, _ = store.add_mentor(patterns=WORKDAY)
    mentee = make_user(RoleEnum.MENTEE)
    booking = add_session(
        store,
        mentor.user_id,
        mentee.id,
        status=SessionStatusEnum.CANCELLED,
        reassignment_status=ReassignmentStatusEnum.AWAITING_MENTEE_ACTION,
    )
    service, _, audit_repo = make_service(store)

    refunded = await service.cancel_for_refund(booking.id, mentee)

    assert refunded.status == SessionStatusEnum.CANCELLED
    assert refunded.reassignment_status == ReassignmentStatusEnum.REFUNDED
    assert refunded.refund_percentage == 100
    assert event_types(audit_repo) == ["session.refunded"]
