from __future__ import annotations

import asyncio
from functools import partial
import logging

from convai_bridge.services.contracts import ChatPlatformProtocol, LanePoolProtocol
from convai_bridge.services.dispatcher import UpdateDispatcher

logger = logging.getLogger(__name__)


class PollLoop:
    """Long-polls the chat platform and hands each message to its chat lane."""

    def __init__(
        self,
        *,
        platform: ChatPlatformProtocol,
        dispatcher: UpdateDispatcher,
        lanes: LanePoolProtocol,
        poll_timeout_seconds: int = 30,
        backoff_seconds: float = 2.0,
        initial_cursor: int = 0,
    ) -> None:
        self._platform = platform
        self._dispatcher = dispatcher
        self._lanes = lanes
        self._poll_timeout_seconds = poll_timeout_seconds
        self._backoff_seconds = backoff_seconds
        self._cursor = initial_cursor

    @property
    def cursor(self) -> int:
        return self._cursor

    async def poll_once(self) -> int:
        """Fetch one batch and submit its messages; returns the number submitted."""

        updates = await self._platform.get_updates(offset=self._cursor, timeout_seconds=self._poll_timeout_seconds)
        submitted = 0
        for update in updates:
            # Advance first so a message that later fails is never fetched again.
            self._cursor = max(self._cursor, update.update_id + 1)
            message = update.to_inbound_message()
            if message is None:
                logger.debug("ignoring update without text message", extra={"update_id": update.update_id})
                continue
            await self._lanes.submit(message.chat_id, partial(self._dispatcher.dispatch, message))
            submitted += 1
        return submitted

    async def run_forever(self) -> None:
        logger.info("telegram polling started", extra={"cursor": self._cursor})
        while True:
            try:
                await self.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("telegram polling error", extra={"cursor": self._cursor})
                await asyncio.sleep(self._backoff_seconds)
