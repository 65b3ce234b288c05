"""Single question/answer exchange with the conversational agent.

An ``AgentSession`` opens one duplex connection, asks the agent to start or
resume the chat's conversation, sends the user's text once, and collects the
streamed answer. The agent never marks a fragment as final, so the answer is
considered complete after a quiet period without new fragments. Every run
ends in exactly one ``Reply`` or ``Failure``; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
import logging

from convai_bridge.agents.base import AgentConnectError, AgentConnection, AgentConnectionClosed, AgentConnector
from convai_bridge.agents.events import (
    Ping,
    ProtocolError,
    ResponseFragment,
    SessionReady,
    build_initiation_message,
    build_pong,
    build_user_message,
    classify_event,
    decode_frame,
    extract_conversation_id,
)
from convai_bridge.services.contracts import SessionStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class Failure:
    reason: str


SessionOutcome = Reply | Failure


class SessionState(StrEnum):
    INIT = "init"
    AWAITING_READY = "awaiting_ready"
    SENDING = "sending"
    ACCUMULATING = "accumulating"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionTiming:
    deadline_seconds: float = 20.0
    ready_grace_seconds: float = 0.5
    quiet_period_seconds: float = 0.6


@dataclass(frozen=True)
class SessionMetadata:
    channel: str = "telegram"
    originator: str = "telegram-assistant"
    fallback_reply: str = "I am here. Can you rephrase that?"


class _Timer:
    """Deadline token owned by a session; it fires only when the receive loop checks it."""

    def __init__(self) -> None:
        self._due_at: float | None = None

    @property
    def armed(self) -> bool:
        return self._due_at is not None

    def arm(self, delay: float) -> None:
        self._due_at = asyncio.get_running_loop().time() + delay

    def cancel(self) -> None:
        self._due_at = None

    def remaining(self) -> float | None:
        if self._due_at is None:
            return None
        return max(self._due_at - asyncio.get_running_loop().time(), 0.0)

    def is_due(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class AgentSession:
    def __init__(
        self,
        *,
        chat_id: str,
        text: str,
        connector: AgentConnector,
        store: SessionStoreProtocol,
        timing: SessionTiming,
        metadata: SessionMetadata,
    ) -> None:
        self._chat_id = chat_id
        self._text = text
        self._connector = connector
        self._store = store
        self._timing = timing
        self._metadata = metadata

        self._state = SessionState.INIT
        self._consumed = False
        self._connection: AgentConnection | None = None
        self._user_text_sent = False
        self._fragments: list[str] = []
        self._conversation_id: str | None = None
        self._ready_grace = _Timer()
        self._quiet_period = _Timer()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    async def run(self) -> SessionOutcome:
        if self._consumed:
            raise RuntimeError("agent session is single-use")
        self._consumed = True

        try:
            async with asyncio.timeout(self._timing.deadline_seconds):
                outcome = await self._exchange()
        except TimeoutError:
            outcome = Failure("timeout")
        except asyncio.CancelledError:
            await self._finish(Failure("cancelled"))
            raise
        except Exception:  # noqa: BLE001
            logger.exception("agent session crashed", extra={"chat_id": self._chat_id})
            outcome = Failure("internal error")

        await self._finish(outcome)
        return outcome

    async def _exchange(self) -> SessionOutcome:
        try:
            self._connection = await self._connector.connect()
        except AgentConnectError:
            return Failure("connect error")

        try:
            return await self._converse(self._connection)
        except AgentConnectionClosed as exc:
            return Failure(
                f"connection closed before final response (code={exc.code}, reason={exc.reason or 'n/a'})"
            )

    async def _converse(self, connection: AgentConnection) -> SessionOutcome:
        existing_conversation_id = await self._store.get(self._chat_id)
        await connection.send(
            build_initiation_message(
                chat_id=self._chat_id,
                channel=self._metadata.channel,
                originator=self._metadata.originator,
                conversation_id=existing_conversation_id,
            )
        )
        logger.debug(
            "agent conversation requested",
            extra={"chat_id": self._chat_id, "resume": existing_conversation_id is not None},
        )
        self._state = SessionState.AWAITING_READY
        self._ready_grace.arm(self._timing.ready_grace_seconds)

        while True:
            outcome = await self._fire_due_timers(connection)
            if outcome is not None:
                return outcome

            try:
                raw = await asyncio.wait_for(connection.recv(), timeout=self._next_wakeup())
            except TimeoutError:
                continue

            outcome = await self._handle_frame(connection, raw)
            if outcome is not None:
                return outcome

    def _next_wakeup(self) -> float | None:
        pending = [timer.remaining() for timer in (self._ready_grace, self._quiet_period) if timer.armed]
        return min(pending) if pending else None

    async def _fire_due_timers(self, connection: AgentConnection) -> SessionOutcome | None:
        if self._ready_grace.is_due():
            self._ready_grace.cancel()
            if not self._user_text_sent:
                logger.debug("no ready signal within grace period, sending user text", extra={"chat_id": self._chat_id})
                await self._send_user_text(connection)

        if self._quiet_period.is_due():
            self._quiet_period.cancel()
            text = "".join(self._fragments).strip()
            return Reply(text or self._metadata.fallback_reply)

        return None

    async def _handle_frame(self, connection: AgentConnection, raw: str) -> SessionOutcome | None:
        payload = decode_frame(raw)
        if payload is None:
            logger.debug("discarding malformed agent frame", extra={"chat_id": self._chat_id})
            return None

        conversation_id = extract_conversation_id(payload)
        if conversation_id:
            await self._observe_conversation(conversation_id)

        event = classify_event(payload)
        if isinstance(event, SessionReady):
            if not self._user_text_sent:
                await self._send_user_text(connection)
        elif isinstance(event, ResponseFragment):
            self._fragments.append(event.text)
            self._state = SessionState.ACCUMULATING
            self._quiet_period.arm(self._timing.quiet_period_seconds)
        elif isinstance(event, ProtocolError):
            return Failure(event.message)
        elif isinstance(event, Ping):
            await connection.send(build_pong(event.event_id))
        return None

    async def _observe_conversation(self, conversation_id: str) -> None:
        if conversation_id != self._conversation_id:
            logger.debug(
                "agent conversation observed",
                extra={"chat_id": self._chat_id, "conversation_id": conversation_id},
            )
        self._conversation_id = conversation_id
        await self._store.put(self._chat_id, conversation_id)

    async def _send_user_text(self, connection: AgentConnection) -> None:
        self._user_text_sent = True
        self._ready_grace.cancel()
        self._state = SessionState.SENDING
        await connection.send(build_user_message(self._text))
        self._state = SessionState.ACCUMULATING

    async def _finish(self, outcome: SessionOutcome) -> None:
        self._ready_grace.cancel()
        self._quiet_period.cancel()
        self._state = SessionState.RESOLVED if isinstance(outcome, Reply) else SessionState.FAILED

        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception:  # noqa: BLE001
                logger.debug("agent connection close failed", extra={"chat_id": self._chat_id}, exc_info=True)

        logger.debug(
            "agent session finished",
            extra={"chat_id": self._chat_id, "state": str(self._state), "conversation_id": self._conversation_id},
        )


class AgentSessionFactory:
    """Builds single-use sessions sharing one connector, store and timing profile."""

    def __init__(
        self,
        *,
        connector: AgentConnector,
        store: SessionStoreProtocol,
        timing: SessionTiming,
        metadata: SessionMetadata,
    ) -> None:
        self._connector = connector
        self._store = store
        self._timing = timing
        self._metadata = metadata

    def create(self, *, chat_id: str, text: str) -> AgentSession:
        return AgentSession(
            chat_id=chat_id,
            text=text,
            connector=self._connector,
            store=self._store,
            timing=self._timing,
            metadata=self._metadata,
        )
