from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

import app.main as main_module

CHECKED_AT = datetime(2026, 3, 1, 8, tzinfo=UTC)


def scheduling_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=main_module.app)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


def database_ready(monkeypatch: pytest.MonkeyPatch, ready: bool) -> None:
    async def _check() -> bool:
        return ready

    monkeypatch.setattr(main_module, "_is_database_ready", _check)
    monkeypatch.setattr(main_module, "utc_now", lambda: CHECKED_AT)


@pytest.mark.asyncio
async def test_liveness_does_not_touch_database(monkeypatch: pytest.MonkeyPatch) -> None:
    database_ready(monkeypatch, False)

    async with scheduling_client() as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_scheduler_is_ready_when_database_answers(monkeypatch: pytest.MonkeyPatch) -> None:
    database_ready(monkeypatch, True)

    async with scheduling_client() as client:
        response = await client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "database": "ok",
        "timestamp": CHECKED_AT.isoformat(),
    }


@pytest.mark.asyncio
async def test_scheduler_reports_503_while_database_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    database_ready(monkeypatch, False)

    async with scheduling_client() as client:
        response = await client.get("/ready")

    assert response.status_code == 503
