"""Inbound events the detector reacts to.

Events arrive either as :class:`EventPayload` objects from the in-process
bus or as raw dicts decoded from the server's event stream. Both carry a
``type`` and a ``properties`` mapping; the parsers here pull out the few
fields the detector needs and return None for anything unrecognized or
malformed.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from ..core.bus import BusEvent, EventPayload

REASONING_PART = "reasoning"


class SessionCreatedProperties(BaseModel):
    """Properties for session.created."""
    info: Dict[str, Any]


class SessionDeletedProperties(BaseModel):
    """Properties for session.deleted."""
    info: Dict[str, Any]


class MessagePartUpdatedProperties(BaseModel):
    """Properties for message.part.updated."""
    part: Dict[str, Any]
    delta: Optional[str] = None


SessionCreated = BusEvent.define("session.created", SessionCreatedProperties)
SessionDeleted = BusEvent.define("session.deleted", SessionDeletedProperties)
MessagePartUpdated = BusEvent.define("message.part.updated", MessagePartUpdatedProperties)


class SessionLifecycle(BaseModel):
    """A session.created or session.deleted event."""
    type: str
    session_id: str


class ReasoningDelta(BaseModel):
    """One streamed chunk of a reasoning part."""
    session_id: str
    message_id: str
    part_id: Optional[str] = None
    part_type: str = REASONING_PART
    delta: Optional[str] = None


DetectorEvent = Union[SessionLifecycle, ReasoningDelta]

RawEvent = Union[EventPayload, Mapping[str, Any]]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _first(mapping: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = _text(mapping.get(key))
        if value is not None:
            return value
    return None


def _unwrap(event: RawEvent) -> tuple[Optional[str], Mapping[str, Any]]:
    if isinstance(event, EventPayload):
        return event.type, event.properties
    if not isinstance(event, Mapping):
        return None, {}
    # global event stream wraps each event as {"directory", "payload"}
    payload = event.get("payload")
    if "type" not in event and isinstance(payload, Mapping):
        event = payload
    properties = event.get("properties")
    if not isinstance(properties, Mapping):
        properties = {}
    return _text(event.get("type")), properties


def _session_id(properties: Mapping[str, Any]) -> Optional[str]:
    for key in ("info", "session"):
        nested = properties.get(key)
        if isinstance(nested, Mapping):
            value = _first(nested, "id", "sessionID", "session_id")
            if value is not None:
                return value
    return _first(properties, "sessionID", "session_id")


def parse_reasoning_delta(properties: Mapping[str, Any]) -> Optional[ReasoningDelta]:
    """Extract a reasoning delta from message.part.updated properties."""
    part = properties.get("part")
    if not isinstance(part, Mapping):
        return None
    if part.get("type") != REASONING_PART:
        return None

    session_id = _first(part, "sessionID", "session_id") or _first(properties, "sessionID", "session_id")
    message_id = _first(part, "messageID", "message_id")
    if session_id is None or message_id is None:
        return None

    delta = properties.get("delta")
    if delta is None:
        delta = part.get("delta")
    if delta is not None and not isinstance(delta, str):
        return None

    return ReasoningDelta(
        session_id=session_id,
        message_id=message_id,
        part_id=_first(part, "id", "partID", "part_id"),
        delta=delta,
    )


def parse_event(event: RawEvent) -> Optional[DetectorEvent]:
    """Map a raw event to the detector's view of it, None when irrelevant."""
    event_type, properties = _unwrap(event)
    if event_type in (SessionCreated.type, SessionDeleted.type):
        session_id = _session_id(properties)
        if session_id is None:
            return None
        return SessionLifecycle(type=event_type, session_id=session_id)
    if event_type == MessagePartUpdated.type:
        return parse_reasoning_delta(properties)
    return None
