from __future__ import annotations

import logging

from convai_bridge.agents.session import AgentSessionFactory, Failure, SessionOutcome
from convai_bridge.services.contracts import OutboundSenderProtocol
from convai_bridge.telegram.models import InboundMessage

logger = logging.getLogger(__name__)


class UpdateDispatcher:
    """Turns one inbound chat message into one agent exchange and one outbound reply."""

    def __init__(
        self,
        *,
        sessions: AgentSessionFactory,
        sender: OutboundSenderProtocol,
        apology_text: str,
    ) -> None:
        self._sessions = sessions
        self._sender = sender
        self._apology_text = apology_text

    async def dispatch(self, message: InboundMessage) -> SessionOutcome:
        session = self._sessions.create(chat_id=message.chat_id, text=message.text)
        outcome = await session.run()

        if isinstance(outcome, Failure):
            logger.warning(
                "agent exchange failed, sending apology",
                extra={"chat_id": message.chat_id, "update_id": message.update_id, "reason": outcome.reason},
            )
            await self._sender.send_message(message.chat_id, self._apology_text)
            return outcome

        await self._sender.send_message(message.chat_id, outcome.text)
        logger.info(
            "agent reply delivered",
            extra={"chat_id": message.chat_id, "update_id": message.update_id, "reply_chars": len(outcome.text)},
        )
        return outcome
