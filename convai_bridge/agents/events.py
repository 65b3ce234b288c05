"""Wire format of the conversational agent's WebSocket protocol.

Inbound frames are JSON objects tagged by ``type``. They are decoded into the
small set of events the session state machine reacts to; anything else is an
``UnhandledEvent`` and ignored by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

READY_EVENT_TYPES = frozenset({"conversation_initiation_metadata", "conversation_metadata"})

# Older and newer protocol versions report the conversation id in different
# places. Checked in order; the first non-empty string wins.
CONVERSATION_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("conversation_initiation_metadata_event", "conversation_id"),
    ("conversation_metadata_event", "conversation_id"),
    ("conversation_id",),
)

_DEFAULT_ERROR_MESSAGE = "agent returned an error"


@dataclass(frozen=True)
class SessionReady:
    conversation_id: str | None


@dataclass(frozen=True)
class ResponseFragment:
    text: str


@dataclass(frozen=True)
class ProtocolError:
    message: str


@dataclass(frozen=True)
class Ping:
    event_id: Any


@dataclass(frozen=True)
class UnhandledEvent:
    type: str | None


AgentEvent = SessionReady | ResponseFragment | ProtocolError | Ping | UnhandledEvent


def decode_frame(raw: str | bytes) -> dict[str, Any] | None:
    """Parse a raw frame, returning ``None`` for anything that is not a JSON object."""

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def extract_conversation_id(payload: dict[str, Any]) -> str | None:
    for path in CONVERSATION_ID_PATHS:
        value: Any = payload
        for key in path:
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def classify_event(payload: dict[str, Any]) -> AgentEvent:
    event_type = payload.get("type")

    if event_type in READY_EVENT_TYPES:
        return SessionReady(conversation_id=extract_conversation_id(payload))

    if event_type == "agent_response":
        response_event = payload.get("agent_response_event")
        text = response_event.get("agent_response") if isinstance(response_event, dict) else None
        if not text:
            text = payload.get("text")
        return ResponseFragment(text=text if isinstance(text, str) else "")

    if event_type == "error":
        message = payload.get("message")
        return ProtocolError(message=message if isinstance(message, str) and message else _DEFAULT_ERROR_MESSAGE)

    if event_type == "ping":
        ping_event = payload.get("ping_event")
        event_id = ping_event.get("event_id") if isinstance(ping_event, dict) else payload.get("event_id")
        return Ping(event_id=event_id)

    return UnhandledEvent(type=event_type if isinstance(event_type, str) else None)


def build_initiation_message(
    *,
    chat_id: str,
    channel: str,
    originator: str,
    conversation_id: str | None = None,
) -> str:
    payload: dict[str, Any] = {
        "type": "conversation_initiation_client_data",
        "dynamic_variables": {
            "channel": channel,
            "originator": originator,
            "chat_id": chat_id,
        },
    }
    if conversation_id:
        payload["conversation_id"] = conversation_id
    return json.dumps(payload)


def build_user_message(text: str) -> str:
    return json.dumps({"type": "user_message", "text": text})


def build_pong(event_id: Any) -> str:
    return json.dumps({"type": "pong", "event_id": event_id})
