from __future__ import annotations

import json

from convai_bridge.agents.events import (
    Ping,
    ProtocolError,
    ResponseFragment,
    SessionReady,
    UnhandledEvent,
    build_initiation_message,
    classify_event,
    decode_frame,
    extract_conversation_id,
)


def test_decode_frame_rejects_invalid_and_non_object_json() -> None:
    assert decode_frame("{broken") is None
    assert decode_frame('"just a string"') is None
    assert decode_frame(b'{"type": "ping"}') == {"type": "ping"}


def test_extract_conversation_id_checks_known_paths_in_order() -> None:
    payload = {
        "conversation_id": "top-level",
        "conversation_metadata_event": {"conversation_id": "metadata"},
        "conversation_initiation_metadata_event": {"conversation_id": "initiation"},
    }
    assert extract_conversation_id(payload) == "initiation"

    del payload["conversation_initiation_metadata_event"]
    assert extract_conversation_id(payload) == "metadata"

    payload["conversation_metadata_event"] = {"conversation_id": ""}
    assert extract_conversation_id(payload) == "top-level"

    assert extract_conversation_id({"conversation_metadata_event": "not-a-dict"}) is None


def test_classify_event_maps_known_types() -> None:
    assert classify_event({"type": "conversation_metadata", "conversation_id": "c-1"}) == SessionReady("c-1")
    assert classify_event({"type": "conversation_initiation_metadata"}) == SessionReady(None)
    assert classify_event({"type": "agent_response", "agent_response_event": {"agent_response": "hi"}}) == ResponseFragment("hi")
    assert classify_event({"type": "agent_response", "agent_response_event": {}, "text": "alt"}) == ResponseFragment("alt")
    assert classify_event({"type": "agent_response"}) == ResponseFragment("")
    assert classify_event({"type": "error", "message": "nope"}) == ProtocolError("nope")
    assert classify_event({"type": "ping", "ping_event": {"event_id": 3}}) == Ping(3)
    assert classify_event({"type": "audio"}) == UnhandledEvent("audio")
    assert classify_event({}) == UnhandledEvent(None)


def test_initiation_message_only_carries_conversation_id_when_resuming() -> None:
    fresh = json.loads(build_initiation_message(chat_id="42", channel="telegram", originator="bot"))
    resumed = json.loads(
        build_initiation_message(chat_id="42", channel="telegram", originator="bot", conversation_id="abc")
    )

    assert "conversation_id" not in fresh
    assert fresh["dynamic_variables"] == {"channel": "telegram", "originator": "bot", "chat_id": "42"}
    assert resumed["conversation_id"] == "abc"
