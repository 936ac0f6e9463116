"""Decoding of raw response bodies into typed protocol events.

The server answers in two shapes:

- an object whose ``events`` key holds nested arrays, of which only the first
  innermost event name counts;
- a bare array of entries, each entry an array whose first string is an event
  name and whose remaining slots are event payload.

Entries may carry slots that are not strings (the disconnect notice embeds a
server status object, for instance). Those slots are skipped. Nothing in this
module raises on malformed input: unrecognized shapes decode to no events.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .models import (
    Connected,
    Message,
    PeerDisconnected,
    ProtocolEvent,
    RecaptchaRequired,
    ServerError,
    StartResponse,
    StoppedTyping,
    TransportError,
    Typing,
    Waiting,
)
from .protocol import (
    COMMON_LIKES_ENTRY,
    CONNECTED_EVENT,
    CONNECTION_ERROR_EVENT,
    ERROR_EVENT,
    MESSAGE_EVENT,
    RECAPTCHA_REQUIRED_EVENT,
    REJECTED_CLIENT_ID,
    SERVER_MESSAGE_ENTRY,
    STOPPED_TYPING_EVENT,
    STRANGER_DISCONNECTED_EVENT,
    TYPING_EVENT,
    WAITING_EVENT,
)

# Events that carry no payload.
_SIMPLE_EVENTS: dict[str, Callable[[], ProtocolEvent]] = {
    RECAPTCHA_REQUIRED_EVENT: RecaptchaRequired,
    TYPING_EVENT: Typing,
    STOPPED_TYPING_EVENT: StoppedTyping,
    STRANGER_DISCONNECTED_EVENT: PeerDisconnected,
    WAITING_EVENT: Waiting,
    ERROR_EVENT: ServerError,
    CONNECTION_ERROR_EVENT: TransportError,
}


@dataclass(slots=True)
class StartOutcome:
    """Decoded bootstrap response.

    Attributes:
        client_id: Session handle, or None when the server rejected the client.
        events: Events bundled with the response.
    """

    client_id: str | None
    events: list[ProtocolEvent] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return self.client_id is None


def decode(raw_body: str) -> list[ProtocolEvent]:
    """Decode one poll response body into zero or more events."""
    payload = _load_json(raw_body)
    if isinstance(payload, dict):
        return _decode_object(payload)
    if isinstance(payload, list):
        return decode_entries(payload)
    return []


def decode_entries(entries: Sequence[Any]) -> list[ProtocolEvent]:
    """Decode a bare array of event entries, one event per recognized entry."""
    events: list[ProtocolEvent] = []
    for entry in entries:
        tokens = _string_tokens(entry)
        if not tokens:
            logger.debug("Dropping event entry without a name: {!r}", entry)
            continue
        event = _event_from_tokens(tokens, entries)
        if event is not None:
            events.append(event)
    return events


def decode_start_response(raw_body: str) -> StartOutcome | None:
    """Decode the bootstrap response body.

    A session handle equal to the rejection sentinel (or a missing one) yields
    a single `TransportError` no matter which events were bundled. Returns None
    when the body is not a bootstrap object at all.
    """
    payload = _load_json(raw_body)
    if not isinstance(payload, dict):
        return None
    try:
        response = StartResponse.model_validate(payload)
    except ValidationError:
        logger.debug("Bootstrap body failed validation: {!r}", payload)
        return None

    if not response.client_id or response.client_id == REJECTED_CLIENT_ID:
        return StartOutcome(
            client_id=None,
            events=[TransportError(detail="server rejected the client")],
        )
    return StartOutcome(client_id=response.client_id, events=decode_entries(response.events))


def _load_json(raw_body: str) -> Any:
    if not raw_body or not raw_body.strip():
        return None
    try:
        return json.loads(raw_body)
    except json.JSONDecodeError:
        logger.debug("Dropping non-JSON body: {!r}", raw_body[:200])
        return None


def _decode_object(payload: dict[str, Any]) -> list[ProtocolEvent]:
    siblings: Sequence[Any] = ()
    node: Any = payload.get("events")
    while isinstance(node, list) and node:
        head = node[0]
        if isinstance(head, str):
            event = _event_from_tokens([head], siblings)
            return [event] if event is not None else []
        siblings = node
        node = head
    logger.debug("Dropping events object without an event name: {!r}", payload)
    return []


def _event_from_tokens(tokens: list[str], siblings: Sequence[Any]) -> ProtocolEvent | None:
    name = tokens[0]
    simple = _SIMPLE_EVENTS.get(name)
    if simple is not None:
        return simple()
    if name == CONNECTED_EVENT:
        return _connected_from_siblings(siblings)
    if name == MESSAGE_EVENT:
        if len(tokens) < 2:
            logger.debug("Dropping message event without text")
            return None
        return Message(text=tokens[-1])
    logger.debug("Ignoring unknown event {!r}", name)
    return None


def _connected_from_siblings(siblings: Sequence[Any]) -> Connected:
    interests: list[str] = []
    same_language = False
    for entry in siblings:
        if not isinstance(entry, list) or not entry or not isinstance(entry[0], str):
            continue
        if entry[0] == SERVER_MESSAGE_ENTRY:
            same_language = True
        elif entry[0] == COMMON_LIKES_ENTRY and len(entry) > 1 and isinstance(entry[1], list):
            interests = [item for item in entry[1] if isinstance(item, str)]
    return Connected(matched_interests=tuple(interests), same_language=same_language)


def _string_tokens(entry: Any) -> list[str]:
    if isinstance(entry, str):
        return [entry]
    if not isinstance(entry, list):
        return []
    tokens = []
    for slot in entry:
        token = _coerce_token(slot)
        if token is not None:
            tokens.append(token)
    return tokens


def _coerce_token(slot: Any) -> str | None:
    if isinstance(slot, str):
        return slot
    if isinstance(slot, bool):
        return "true" if slot else "false"
    if isinstance(slot, (int, float)):
        return str(slot)
    return None
