from __future__ import annotations

import punq

from convai_bridge.agents.base import AgentConnector
from convai_bridge.agents.session import AgentSessionFactory, SessionMetadata, SessionTiming
from convai_bridge.agents.websocket_connector import WebsocketAgentConnector
from convai_bridge.core.settings import Settings
from convai_bridge.services.chat_lanes import ChatLanePool
from convai_bridge.services.contracts import ChatPlatformProtocol, LanePoolProtocol, SessionStoreProtocol
from convai_bridge.services.dispatcher import UpdateDispatcher
from convai_bridge.services.poll_loop import PollLoop
from convai_bridge.services.session_store import InMemorySessionStore
from convai_bridge.telegram.client import TelegramClient


def build_container(settings: Settings) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)

    container.register(SessionStoreProtocol, factory=InMemorySessionStore, scope=punq.Scope.singleton)
    container.register(
        ChatPlatformProtocol,
        factory=lambda: TelegramClient(
            settings.telegram_bot_token,
            base_url=settings.telegram_api_base_url,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        AgentConnector,
        factory=lambda: WebsocketAgentConnector(
            ws_url=settings.elevenlabs_ws_url,
            agent_id=settings.elevenlabs_agent_id,
            api_key=settings.elevenlabs_api_key,
            open_timeout_seconds=settings.elevenlabs_connect_timeout_seconds,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        AgentSessionFactory,
        factory=lambda: AgentSessionFactory(
            connector=container.resolve(AgentConnector),
            store=container.resolve(SessionStoreProtocol),
            timing=SessionTiming(
                deadline_seconds=settings.request_timeout_seconds,
                ready_grace_seconds=settings.agent_ready_grace_seconds,
                quiet_period_seconds=settings.agent_quiet_period_seconds,
            ),
            metadata=SessionMetadata(
                channel=settings.agent_channel,
                originator=settings.elevenlabs_originator,
                fallback_reply=settings.fallback_reply,
            ),
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        UpdateDispatcher,
        factory=lambda: UpdateDispatcher(
            sessions=container.resolve(AgentSessionFactory),
            sender=container.resolve(ChatPlatformProtocol),
            apology_text=settings.apology_text,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        LanePoolProtocol,
        factory=lambda: ChatLanePool(
            concurrency=settings.worker_concurrency,
            max_pending=settings.worker_max_pending,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        PollLoop,
        factory=lambda: PollLoop(
            platform=container.resolve(ChatPlatformProtocol),
            dispatcher=container.resolve(UpdateDispatcher),
            lanes=container.resolve(LanePoolProtocol),
            poll_timeout_seconds=settings.telegram_poll_timeout_seconds,
            backoff_seconds=settings.telegram_poll_backoff_seconds,
        ),
        scope=punq.Scope.singleton,
    )

    return container
