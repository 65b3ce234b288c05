"""Shared test doubles and fixtures for bridge tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import json

import punq
import pytest

from convai_bridge.agents.base import AgentConnectError, AgentConnectionClosed
from convai_bridge.agents.session import AgentSessionFactory, SessionMetadata, SessionTiming
from convai_bridge.core.settings import Settings
from convai_bridge.services.session_store import InMemorySessionStore

FAST_TIMING = SessionTiming(deadline_seconds=2.0, ready_grace_seconds=0.05, quiet_period_seconds=0.05)
TEST_METADATA = SessionMetadata(channel="telegram", originator="tests", fallback_reply="fallback reply")


def ready_event(conversation_id: str) -> dict[str, object]:
    return {
        "type": "conversation_initiation_metadata",
        "conversation_initiation_metadata_event": {"conversation_id": conversation_id},
    }


def fragment_event(text: str) -> dict[str, object]:
    return {"type": "agent_response", "agent_response_event": {"agent_response": text}}


class FakeAgentConnection:
    """Scripted duplex connection; ``on_send`` reacts to every outbound frame."""

    def __init__(self, on_send: Callable[[FakeAgentConnection, dict], None] | None = None) -> None:
        self.sent: list[dict] = []
        self.close_calls = 0
        self.close_error: Exception | None = None
        self._inbound: asyncio.Queue[str | Exception] = asyncio.Queue()
        self._on_send = on_send
        self._tasks: list[asyncio.Task] = []

    def push(self, frame: dict | str) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def push_closed(self, code: int, reason: str = "") -> None:
        self._inbound.put_nowait(AgentConnectionClosed(code, reason))

    def push_later(self, delay: float, *frames: dict | str) -> None:
        async def _push() -> None:
            await asyncio.sleep(delay)
            for frame in frames:
                self.push(frame)

        self._tasks.append(asyncio.get_running_loop().create_task(_push()))

    def sent_types(self) -> list[str]:
        return [payload["type"] for payload in self.sent]

    async def send(self, message: str) -> None:
        payload = json.loads(message)
        self.sent.append(payload)
        if self._on_send is not None:
            self._on_send(self, payload)

    async def recv(self) -> str:
        item = await self._inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeAgentConnector:
    def __init__(self, *connections: FakeAgentConnection, fail: bool = False) -> None:
        self._connections = list(connections)
        self.fail = fail
        self.connect_calls = 0

    async def connect(self) -> FakeAgentConnection:
        self.connect_calls += 1
        if self.fail:
            raise AgentConnectError("connection refused")
        return self._connections.pop(0)


class FakeSender:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages: list[tuple[str, str]] = []

    async def send_message(self, chat_id: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("telegram unavailable")
        self.messages.append((chat_id, text))


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ELEVENLABS_API_KEY="test-api-key",
        ELEVENLABS_AGENT_ID="agent-1",
        TELEGRAM_BOT_TOKEN="123:test-token",
    )


def build_session_factory(
    connector: FakeAgentConnector,
    store: InMemorySessionStore,
    timing: SessionTiming = FAST_TIMING,
) -> AgentSessionFactory:
    return AgentSessionFactory(connector=connector, store=store, timing=timing, metadata=TEST_METADATA)


def build_test_container(bindings: dict[object, object]) -> punq.Container:
    """Create a punq container and bind protocol/service keys to test doubles."""

    container = punq.Container()
    for key, value in bindings.items():
        container.register(key, instance=value)
    return container
