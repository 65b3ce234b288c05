from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from convai_bridge.telegram.models import TelegramUpdate

logger = logging.getLogger(__name__)

# Extra HTTP headroom on top of the long-poll wait.
_LONG_POLL_SLACK_SECONDS = 10.0


class TelegramApiError(RuntimeError):
    """Raised when the Bot API rejects a request or answers with ``ok: false``."""


class TelegramClient:
    """Minimal async Telegram Bot API client for long polling and replies."""

    def __init__(
        self,
        bot_token: str,
        *,
        base_url: str = "https://api.telegram.org",
        request_timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._request_timeout_seconds = request_timeout_seconds
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=request_timeout_seconds)

    async def get_updates(self, *, offset: int, timeout_seconds: int) -> list[TelegramUpdate]:
        result = await self._request(
            "getUpdates",
            {"offset": offset, "timeout": timeout_seconds},
            timeout_seconds=timeout_seconds + _LONG_POLL_SLACK_SECONDS,
        )
        updates: list[TelegramUpdate] = []
        for item in result or []:
            try:
                updates.append(TelegramUpdate.model_validate(item))
            except ValidationError as exc:
                update_id = item.get("update_id") if isinstance(item, dict) else None
                logger.warning(
                    "skipping malformed telegram update",
                    extra={"update_id": update_id, "error": str(exc)},
                )
                # Keep the id so the cursor still moves past the bad update.
                if isinstance(update_id, int) and not isinstance(update_id, bool):
                    updates.append(TelegramUpdate(update_id=update_id))
        return updates

    async def send_message(self, chat_id: str, text: str) -> None:
        await self._request("sendMessage", {"chat_id": chat_id, "text": text})

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, payload: dict[str, Any], *, timeout_seconds: float | None = None) -> Any:
        response = await self._client.post(
            f"/bot{self._bot_token}/{method}",
            json=payload,
            timeout=timeout_seconds if timeout_seconds is not None else self._request_timeout_seconds,
        )
        if response.is_error:
            raise TelegramApiError(f"Telegram API HTTP {response.status_code}")

        data = response.json()
        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TelegramApiError(f"Telegram API error: {description or 'unknown error'}")
        return data.get("result")
