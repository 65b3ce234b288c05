from __future__ import annotations

import logging
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from convai_bridge.agents.base import AgentConnectError, AgentConnectionClosed

logger = logging.getLogger(__name__)

_ABNORMAL_CLOSURE = 1006


def _closed_error(exc: ConnectionClosed) -> AgentConnectionClosed:
    frame = exc.rcvd
    if frame is None:
        return AgentConnectionClosed(_ABNORMAL_CLOSURE, "")
    return AgentConnectionClosed(frame.code, frame.reason)


class WebsocketAgentConnection:
    """``AgentConnection`` over a websockets client connection."""

    def __init__(self, websocket: ClientConnection) -> None:
        self._websocket = websocket

    async def send(self, message: str) -> None:
        try:
            await self._websocket.send(message)
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc

    async def recv(self) -> str:
        try:
            message = await self._websocket.recv()
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc
        if isinstance(message, bytes):
            return message.decode("utf-8", errors="replace")
        return message

    async def close(self) -> None:
        await self._websocket.close()


class WebsocketAgentConnector:
    """Opens authenticated WebSocket connections to a conversational agent."""

    def __init__(
        self,
        *,
        ws_url: str,
        agent_id: str,
        api_key: str,
        open_timeout_seconds: float = 10.0,
    ) -> None:
        self._ws_url = ws_url
        self._agent_id = agent_id
        self._api_key = api_key
        self._open_timeout_seconds = open_timeout_seconds

    @property
    def conversation_url(self) -> str:
        return f"{self._ws_url}?{urlencode({'agent_id': self._agent_id})}"

    async def connect(self) -> WebsocketAgentConnection:
        try:
            websocket = await connect(
                self.conversation_url,
                additional_headers={"xi-api-key": self._api_key},
                open_timeout=self._open_timeout_seconds,
            )
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as exc:
            logger.warning("agent websocket connect failed", extra={"error": str(exc)})
            raise AgentConnectError(str(exc)) from exc
        logger.debug("agent websocket connected", extra={"agent_id": self._agent_id})
        return WebsocketAgentConnection(websocket)
