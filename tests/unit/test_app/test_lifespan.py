"""Tests for FastAPI application lifespan management."""

from __future__ import annotations

from types import SimpleNamespace

from fastapi import FastAPI
import pytest

from notify_service.app import lifespan as lifespan_module
from notify_service.tasks import broker as broker_module
from notify_service.tasks import scheduler as scheduler_module


@pytest.fixture
def recorded(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace every startup/shutdown hook with a recorder."""
    calls: list[str] = []

    def _async(name: str):
        async def _hook() -> None:
            calls.append(name)

        return _hook

    monkeypatch.setattr(lifespan_module, "init_database", _async("init_database"))
    monkeypatch.setattr(lifespan_module, "close_database", _async("close_database"))
    monkeypatch.setattr(broker_module, "start_taskiq", _async("start_taskiq"))
    monkeypatch.setattr(broker_module, "stop_taskiq", _async("stop_taskiq"))
    monkeypatch.setattr(scheduler_module, "start_scheduler", _async("start_scheduler"))
    monkeypatch.setattr(scheduler_module, "stop_scheduler", _async("stop_scheduler"))
    monkeypatch.setattr(scheduler_module, "setup_scheduled_jobs", lambda: calls.append("setup_jobs"))
    return calls


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lifespan_without_scheduler(recorded: list[str]) -> None:
    async with lifespan_module.lifespan(FastAPI()):
        assert recorded == ["init_database", "start_taskiq"]

    assert recorded == ["init_database", "start_taskiq", "stop_taskiq", "close_database"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_scheduler(recorded: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        lifespan_module,
        "get_notification_settings",
        lambda: SimpleNamespace(scheduler_enabled=True),
    )

    async with lifespan_module.lifespan(FastAPI()):
        assert recorded[-2:] == ["setup_jobs", "start_scheduler"]

    assert recorded == [
        "init_database",
        "start_taskiq",
        "setup_jobs",
        "start_scheduler",
        "stop_scheduler",
        "stop_taskiq",
        "close_database",
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lifespan_closes_database_when_body_raises(recorded: list[str]) -> None:
    with pytest.raises(RuntimeError):
        async with lifespan_module.lifespan(FastAPI()):
            raise RuntimeError("boom")

    assert recorded[-1] == "close_database"
