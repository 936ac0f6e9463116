from __future__ import annotations

import json
from collections.abc import Sequence
from urllib.parse import quote

# Event names as they appear on the wire.
RECAPTCHA_REQUIRED_EVENT = "recaptchaRequired"
CONNECTED_EVENT = "connected"
TYPING_EVENT = "typing"
STOPPED_TYPING_EVENT = "stoppedTyping"
MESSAGE_EVENT = "gotMessage"
STRANGER_DISCONNECTED_EVENT = "strangerDisconnected"
WAITING_EVENT = "waiting"
ERROR_EVENT = "error"
CONNECTION_ERROR_EVENT = "connectionError"

# Sibling entries that decorate a `connected` event.
COMMON_LIKES_ENTRY = "commonLikes"
SERVER_MESSAGE_ENTRY = "serverMessage"

# Endpoint paths relative to the front server.
START_PATH = "/start"
EVENTS_PATH = "/events"
SEND_PATH = "/send"
DISCONNECT_PATH = "/disconnect"
STOP_COMMON_LIKES_PATH = "/stoplookingforcommonlikes"

# Server-issued client id meaning the client was rejected (usually an IP block).
REJECTED_CLIENT_ID = "null"

# Events endpoint body for a handle the server no longer recognises.
EXPIRED_SESSION_BODY = "null"

# Body returned by best-effort endpoints on success.
SUCCESS_BODY = "win"

DEFAULT_CAPS = "recaptcha2,t3"
DEFAULT_LANGUAGE = "en"

# Cache-buster sent with status queries.
STATUS_NOCACHE = "7182637182637"


def encode_topics(interests: Sequence[str]) -> str:
    """Encode interests as the percent-escaped quoted list the server expects.

    ``["music", "books"]`` becomes ``%5B%22music%22,%20%22books%22%5D``.
    """
    listed = "[" + ", ".join(json.dumps(item, ensure_ascii=False) for item in interests) + "]"
    return quote(listed, safe=",")


def make_start_params(
    *,
    random_id: str,
    challenge_token: str,
    interests: Sequence[str],
    language: str = DEFAULT_LANGUAGE,
    caps: str = DEFAULT_CAPS,
) -> dict[str, str]:
    """Build the bootstrap request parameters."""
    return {
        "caps": caps,
        "firstevents": "1",
        "spid": "",
        "randid": random_id,
        "cc": challenge_token,
        "topics": encode_topics(interests),
        "lang": language,
    }


def make_send_form(client_id: str, text: str) -> dict[str, str]:
    """Build the form body for an outgoing chat message."""
    return {"msg": text, "id": client_id}


def make_id_form(client_id: str) -> dict[str, str]:
    """Build the form body shared by poll, disconnect and stop-search requests."""
    return {"id": client_id}


def is_success_reply(status_code: int, text: str) -> bool:
    """Return True when a best-effort endpoint acknowledged the request."""
    return status_code == 200 and text.strip() == SUCCESS_BODY


def parse_interests(stored: str | None) -> list[str]:
    """Split a stored ``", "``-separated interest string into a list."""
    if not stored:
        return []
    return [item.strip() for item in stored.split(",") if item.strip()]
