"""HTTP-level checks for the availability and session routes with in-memory repositories."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

import app.modules.availability.service as availability_service_module
import app.modules.booking.service as booking_service_module
from app.core.config import get_settings
from app.core.enums import RoleEnum
from app.main import app
from app.modules.availability.service import AvailabilityService, get_availability_service
from app.modules.booking.matching import ReplacementMentorMatcher
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import get_current_user
from tests.fakes import (
    FakeAuditRepository,
    FakeAvailabilityRepository,
    FakeBookingRepository,
    FakeMentorsRepository,
    FakeSession,
    FakeStore,
    available,
    blocked,
    make_user,
)

API_PREFIX = get_settings().api_prefix
FIXED_NOW = datetime(2026, 3, 1, tzinfo=UTC)


class ApiContext:
    def __init__(self) -> None:
        self.store = FakeStore()
        self.actor = make_user(RoleEnum.MENTEE)
        mentors_repo = FakeMentorsRepository(self.store)
        availability_repo = FakeAvailabilityRepository(self.store)
        booking_repo = FakeBookingRepository(self.store)
        self.availability_service = AvailabilityService(availability_repo, mentors_repo, booking_repo)
        self.booking_service = BookingService(
            booking_repository=booking_repo,
            availability_repository=availability_repo,
            availability_service=self.availability_service,
            matcher=ReplacementMentorMatcher(mentors_repo, availability_repo, booking_repo),
            audit_repository=FakeAuditRepository(),
        )


@pytest_asyncio.fixture()
async def api(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[tuple[httpx.AsyncClient, ApiContext]]:
    monkeypatch.setattr(availability_service_module, "utc_now", lambda: FIXED_NOW)
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: FIXED_NOW)
    context = ApiContext()
    app.dependency_overrides[get_availability_service] = lambda: context.availability_service
    app.dependency_overrides[get_booking_service] = lambda: context.booking_service
    app.dependency_overrides[get_current_user] = lambda: context.actor

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=f"http://testserver{API_PREFIX}") as client:
        yield client, context

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_available_slots_endpoint_returns_slots_and_settings(api) -> None:
    client, context = api
    mentor, _ = context.store.add_mentor(patterns={1: [available("09:00", "12:00")]})

    response = await client.get(
        f"/mentors/{mentor.user_id}/availability/available-slots",
        params={"start_date": "2026-03-09T00:00:00Z", "end_date": "2026-03-09T23:00:00Z"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["session_duration"] == 60
    assert body["buffer_time"] == 15
    assert body["timezone"] == "UTC"
    starts = [datetime.fromisoformat(slot["start_time"]) for slot in body["slots"]]
    assert starts == [datetime(2026, 3, 9, 9, tzinfo=UTC), datetime(2026, 3, 9, 10, 15, tzinfo=UTC)]


@pytest.mark.asyncio
async def test_slot_query_over_range_cap_returns_error_envelope(api) -> None:
    client, context = api
    mentor, _ = context.store.add_mentor(patterns={1: [available("09:00", "12:00")]})

    response = await client.get(
        f"/mentors/{mentor.user_id}/availability/slots",
        params={"start_date": "2026-03-01T00:00:00Z", "end_date": "2026-06-01T00:00:00Z"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_input"


@pytest.mark.asyncio
async def test_slot_query_for_unknown_mentor_is_404(api) -> None:
    client, _ = api

    response = await client.get(
        f"/mentors/{uuid4()}/availability/slots",
        params={"start_date": "2026-03-09T00:00:00Z", "end_date": "2026-03-10T00:00:00Z"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_time_block_validation_endpoint(api) -> None:
    client, _ = api

    response = await client.post(
        "/availability/time-blocks/validate",
        json={
            "block": available("09:00", "10:30"),
            "existing_blocks": [blocked("10:00", "11:00", "BREAK")],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert body["overlaps"][0]["conflict_type"] == "partial"
    assert body["overlaps"][0]["block_b"]["type"] == "BREAK"


@pytest.mark.asyncio
async def test_booking_and_listing_sessions(api) -> None:
    client, context = api
    mentor, _ = context.store.add_mentor(patterns={1: [available("09:00", "12:00")]})

    created = await client.post(
        "/sessions",
        json={"mentor_id": str(mentor.user_id), "title": "Intro", "scheduled_at": "2026-03-09T09:00:00Z"},
    )
    conflict = await client.post(
        "/sessions",
        json={"mentor_id": str(mentor.user_id), "title": "Intro", "scheduled_at": "2026-03-09T09:30:00Z"},
    )
    listed = await client.get("/sessions/my")

    assert created.status_code == 201
    assert created.json()["status"] == "scheduled"
    assert conflict.status_code == 409
    assert conflict.json()["error"]["code"] == "conflict"
    assert listed.status_code == 200
    assert listed.json()["total"] == 1


@pytest.mark.asyncio
async def test_outsider_cancellation_is_forbidden(api) -> None:
    client, context = api
    mentor, _ = context.store.add_mentor(patterns={1: [available("09:00", "12:00")]})
    booking = FakeSession(mentor_id=mentor.user_id, mentee_id=uuid4(), scheduled_at=datetime(2026, 3, 9, 9, tzinfo=UTC))
    context.store.sessions.append(booking)

    response = await client.post(f"/sessions/{booking.id}/cancel", json={"reason": "n/a"})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "forbidden"
