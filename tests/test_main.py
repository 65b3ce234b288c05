from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from convai_bridge.api.routers import health as health_router
from convai_bridge.main import create_app
from convai_bridge.services.contracts import ChatPlatformProtocol, LanePoolProtocol
from convai_bridge.services.poll_loop import PollLoop
from tests.conftest import build_test_container


class FakePollLoop:
    def __init__(self) -> None:
        self.started = False
        self.cancelled = False

    async def run_forever(self) -> None:
        self.started = True
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class FakeLanes:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakePlatform:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def test_health_router_returns_static_ok() -> None:
    app = FastAPI()
    app.include_router(health_router.router)

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_app_lifespan_runs_poll_loop_and_releases_resources(test_settings) -> None:
    poll_loop = FakePollLoop()
    lanes = FakeLanes()
    platform = FakePlatform()
    container = build_test_container(
        {
            PollLoop: poll_loop,
            LanePoolProtocol: lanes,
            ChatPlatformProtocol: platform,
        }
    )

    with TestClient(create_app(test_settings, container)) as client:
        response = client.get("/health")
        assert response.json() == {"ok": True}
        assert poll_loop.started is True

    assert poll_loop.cancelled is True
    assert lanes.closed is True
    assert platform.closed is True
