from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from convai_bridge.telegram.models import TelegramUpdate


class SessionStoreProtocol(Protocol):
    """Chat id to agent conversation id mapping shared by all agent sessions."""

    async def get(self, chat_id: str) -> str | None:
        """Return the last conversation id observed for ``chat_id``, if any."""

    async def put(self, chat_id: str, conversation_id: str) -> None:
        """Record ``conversation_id`` for ``chat_id``, replacing any previous value."""


class OutboundSenderProtocol(Protocol):
    """Delivers a text reply to a chat."""

    async def send_message(self, chat_id: str, text: str) -> None:
        """Post ``text`` to ``chat_id``; raises on delivery failure."""


class ChatPlatformProtocol(OutboundSenderProtocol, Protocol):
    """Long-polling chat platform: update feed plus reply delivery."""

    async def get_updates(self, *, offset: int, timeout_seconds: int) -> Sequence[TelegramUpdate]:
        """Fetch updates with ids at or after ``offset``, waiting up to ``timeout_seconds``."""

    async def close(self) -> None:
        """Release the underlying HTTP resources."""


LaneJob = Callable[[], Awaitable[object]]


class LanePoolProtocol(Protocol):
    """Runs jobs concurrently across keys and sequentially within one key."""

    async def submit(self, key: str, job: LaneJob) -> None:
        """Queue ``job`` behind earlier jobs for ``key``."""

    async def join(self) -> None:
        """Wait until every submitted job has finished."""

    async def close(self) -> None:
        """Cancel all running lanes."""
