from __future__ import annotations


class InMemorySessionStore:
    """Process-lifetime mapping from chat id to the agent's conversation id.

    Entries are never evicted; a put for an existing chat overwrites the
    previous conversation id (last write wins). Only coroutines on the
    service's event loop touch the mapping.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, str] = {}

    async def get(self, chat_id: str) -> str | None:
        return self._conversations.get(chat_id)

    async def put(self, chat_id: str, conversation_id: str) -> None:
        self._conversations[chat_id] = conversation_id
